"""Version repository for database operations."""

import uuid
from typing import List, Optional

from ..models import ReadmeVersion
from ..schemas.version import VersionCreate
from ..exceptions import VersionNotFoundError
from ..services.content_utils import content_hash, count_characters, count_words
from .base import BaseRepository


class VersionRepository(BaseRepository[ReadmeVersion]):
    """Repository for README version CRUD operations."""

    model_class = ReadmeVersion
    not_found_error = VersionNotFoundError

    def create(self, version: VersionCreate) -> ReadmeVersion:
        """Create a new version, deriving hash and counts from the content."""
        db_version = ReadmeVersion(
            id=str(uuid.uuid4()),
            job_id=version.job_id,
            content=version.content,
            content_hash=content_hash(version.content),
            word_count=count_words(version.content),
            character_count=count_characters(version.content),
            model_used=version.model_used,
            tokens_used=version.tokens_used,
            generation_time_ms=version.generation_time_ms,
        )
        self.db.add(db_version)
        self.db.flush()
        self.db.refresh(db_version)
        return db_version

    def get_by_job(self, job_id: str, skip: int = 0, limit: int = 50) -> List[ReadmeVersion]:
        """Get all versions for a job, newest first."""
        return self.db.query(ReadmeVersion).filter(
            ReadmeVersion.job_id == job_id
        ).order_by(ReadmeVersion.created_at.desc()).offset(skip).limit(limit).all()

    def get_latest(self, job_id: str) -> Optional[ReadmeVersion]:
        """Get the current (most recent) version for a job."""
        return self.db.query(ReadmeVersion).filter(
            ReadmeVersion.job_id == job_id
        ).order_by(ReadmeVersion.created_at.desc()).first()
