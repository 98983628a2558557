"""API routes."""

from .cron import router as cron_router
from .jobs import router as jobs_router
from .readme import router as readme_router

__all__ = ["cron_router", "jobs_router", "readme_router"]
