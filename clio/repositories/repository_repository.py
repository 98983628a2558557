"""Read access to connected repositories and their installations."""

from typing import Optional

from sqlalchemy.orm import joinedload

from ..exceptions import RepositoryNotFoundError
from ..models import Repository
from .base import BaseRepository


class RepositoryRepository(BaseRepository[Repository]):
    """Repository lookups; rows are maintained by the GitHub sync."""

    model_class = Repository
    not_found_error = RepositoryNotFoundError

    def get_with_installation(self, repository_id: str) -> Optional[Repository]:
        return (
            self.db.query(Repository)
            .options(joinedload(Repository.installation))
            .filter(Repository.id == repository_id)
            .first()
        )
