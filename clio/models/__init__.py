"""Database models."""

from .repository import Installation, Repository
from .readme_job import JobStatus, ReadmeJob, ReadmeStyle
from .version import ReadmeVersion

__all__ = [
    "Installation", "Repository",
    "JobStatus", "ReadmeJob", "ReadmeStyle",
    "ReadmeVersion",
]
