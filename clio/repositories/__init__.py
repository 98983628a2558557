"""Repository layer for database access."""

from .job_repository import JobRepository
from .repository_repository import RepositoryRepository
from .version_repository import VersionRepository

__all__ = ["JobRepository", "RepositoryRepository", "VersionRepository"]
