"""Repository and GitHub App installation models.

Rows are written by the GitHub sync outside the pipeline; the job
orchestrator only reads them to resolve a job's repository and credentials.
"""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Installation(Base):
    """A GitHub App installation granting access to an account's repositories."""

    __tablename__ = "installations"

    id = Column(String(50), primary_key=True)
    # GitHub's numeric installation id
    installation_id = Column(BigInteger, nullable=False, unique=True)
    account_login = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    repositories = relationship("Repository", back_populates="installation")


class Repository(Base):
    """A GitHub repository connected by a user."""

    __tablename__ = "repositories"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), nullable=False)
    github_id = Column(BigInteger, nullable=True)

    name = Column(String(200), nullable=False)
    full_name = Column(String(400), nullable=False)  # owner/repo
    description = Column(Text, nullable=True)
    language = Column(String(100), nullable=True)
    topics = Column(JSON, nullable=True)
    default_branch = Column(String(200), nullable=False, default="main")
    stars = Column(Integer, nullable=False, default=0)

    installation_id = Column(String(50), ForeignKey("installations.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    installation = relationship("Installation", back_populates="repositories")
    jobs = relationship("ReadmeJob", back_populates="repository", passive_deletes=True)
