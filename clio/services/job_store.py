"""Session-per-call persistence facade used by the job pipeline.

Each method opens a short transaction, commits and closes. Returned ORM
objects are detached but fully loaded (``expire_on_commit=False``), so
the orchestrator can read them from the event loop without holding a
session across awaits.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..exceptions import DatabaseError
from ..models import JobStatus, ReadmeJob, ReadmeVersion, Repository
from ..repositories import JobRepository, RepositoryRepository, VersionRepository
from ..schemas.version import VersionCreate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepositoryLink:
    """A repository together with the GitHub installation that grants access."""
    repository: Repository
    installation_id: str


class JobStore:
    """Job, version and repository-linkage storage."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Job store operation failed: {e}")
            raise DatabaseError("Job store operation failed", original_error=e) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # -- jobs -----------------------------------------------------------------

    def create_job(self, user_id: str, repository_id: str, **options: Any) -> ReadmeJob:
        with self._session() as db:
            return JobRepository(db).create(user_id, repository_id, **options)

    def get_job(self, job_id: str) -> Optional[ReadmeJob]:
        with self._session() as db:
            return JobRepository(db).get_by_id_optional(job_id)

    def list_claimable(self, limit: int) -> List[ReadmeJob]:
        with self._session() as db:
            return JobRepository(db).list_claimable(limit)

    def list_jobs_for_user(
        self, user_id: str, status: Optional[JobStatus] = None, limit: int = 10
    ) -> List[ReadmeJob]:
        with self._session() as db:
            return JobRepository(db).get_by_user(user_id, status=status, limit=limit)

    def claim_job(self, job_id: str) -> Optional[ReadmeJob]:
        """Conditionally claim a job. Returns the claimed row, or None if someone else won."""
        with self._session() as db:
            repo = JobRepository(db)
            if not repo.claim(job_id):
                return None
            return repo.get_by_id_optional(job_id)

    def update_job(self, job_id: str, **fields: Any) -> Optional[ReadmeJob]:
        with self._session() as db:
            return JobRepository(db).update(job_id, **fields)

    def delete_job(self, job_id: str) -> bool:
        with self._session() as db:
            return JobRepository(db).delete(job_id)

    # -- versions -------------------------------------------------------------

    def create_version(
        self,
        job_id: str,
        content: str,
        model_used: Optional[str] = None,
        tokens_used: Optional[int] = None,
        generation_time_ms: Optional[int] = None,
    ) -> ReadmeVersion:
        with self._session() as db:
            return VersionRepository(db).create(VersionCreate(
                job_id=job_id,
                content=content,
                model_used=model_used,
                tokens_used=tokens_used,
                generation_time_ms=generation_time_ms,
            ))

    def list_versions(self, job_id: str, skip: int = 0, limit: int = 50) -> List[ReadmeVersion]:
        with self._session() as db:
            return VersionRepository(db).get_by_job(job_id, skip=skip, limit=limit)

    # -- linkage --------------------------------------------------------------

    def get_repository_link(self, repository_id: str) -> Optional[RepositoryLink]:
        """Repository plus GitHub installation id, or None if either is missing."""
        with self._session() as db:
            repository = RepositoryRepository(db).get_with_installation(repository_id)
            if repository is None or repository.installation is None:
                return None
            return RepositoryLink(
                repository=repository,
                installation_id=str(repository.installation.installation_id),
            )
