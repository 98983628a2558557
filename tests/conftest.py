"""Shared test fixtures for the Clio test suite.

All tests use an in-memory SQLite database shared through a StaticPool, so
the API's request sessions and the job store's short-lived sessions see the
same rows. Each test starts from empty tables.
"""

import os

# Configure the app before any clio imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FORMAT"] = "text"
os.environ["ENVIRONMENT"] = "development"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["LLM_MODEL"] = "test/model"
os.environ["LLM_ALLOWED_MODELS"] = "test/model,test/other-model"

import asyncio
import uuid
from typing import Any, List, Optional

import pytest
from fastapi.testclient import TestClient

from clio.database import Base, SessionLocal, get_db, init_db
from clio.dependencies import get_orchestrator
from clio.main import app
from clio.models import Installation, JobStatus, ReadmeJob, Repository
from clio.services.analyzer import KeyFile, RepositoryAnalysis
from clio.services.generator import ContentGenerator
from clio.services.job_store import JobStore
from clio.services.llm_client import TextCompletion
from clio.services.orchestrator import JobOrchestrator, OrchestratorConfig
from clio.services.postprocessor import ContentPostProcessor

init_db()

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

SAMPLE_README = """# Widget

A small widget library.

## Usage

```python
import widget
```
"""


@pytest.fixture(autouse=True)
def _clean_tables():
    """Delete all rows before each test for isolation."""
    db = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def store():
    return JobStore()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_repository(db):
    def _make(
        user_id: str = USER_ID,
        full_name: str = "acme/widget",
        with_installation: bool = True,
        **fields: Any,
    ) -> Repository:
        installation = None
        if with_installation:
            installation = Installation(
                id=str(uuid.uuid4()),
                installation_id=int(uuid.uuid4().int % 10_000_000),
                account_login=full_name.split("/")[0],
            )
            db.add(installation)
        repository = Repository(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=full_name.split("/")[-1],
            full_name=full_name,
            description=fields.pop("description", "A small widget library"),
            language=fields.pop("language", "Python"),
            topics=fields.pop("topics", ["widgets", "tools"]),
            default_branch=fields.pop("default_branch", "main"),
            installation_id=installation.id if installation else None,
            **fields,
        )
        db.add(repository)
        db.commit()
        return repository

    return _make


@pytest.fixture()
def make_job(store):
    def _make(repository: Repository, status: JobStatus = JobStatus.PENDING, **options: Any) -> ReadmeJob:
        return store.create_job(repository.user_id, repository.id, status=status, **options)

    return _make


# ---------------------------------------------------------------------------
# Pipeline fakes
# ---------------------------------------------------------------------------

def make_analysis(**overrides: Any) -> RepositoryAnalysis:
    fields = dict(
        name="widget",
        structure={"README.md": {"type": "file", "path": "README.md", "size": 10, "language": "Markdown"}},
        key_files=[KeyFile(path="README.md", content="# Widget", language="Markdown", importance="high")],
        package_info=None,
    )
    fields.update(overrides)
    return RepositoryAnalysis(**fields)


class FakeAnalyzer:
    """Returns a fixed analysis; optionally sleeps or raises."""

    def __init__(self, analysis: Optional[RepositoryAnalysis] = None, delay: float = 0.0, error: Optional[Exception] = None):
        self.analysis = analysis or make_analysis()
        self.delay = delay
        self.error = error
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def analyze(self, repository: Any, installation_id: str) -> RepositoryAnalysis:
        self.calls.append(repository.full_name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return self.analysis
        finally:
            self.active -= 1


class FakeLLM:
    """Scripted text client. Each call pops the next response or exception."""

    def __init__(self, responses: Optional[list] = None, default: str = SAMPLE_README):
        self.responses = list(responses or [])
        self.default = default
        self.prompts: List[str] = []
        self.models: List[str] = []

    async def generate_text(self, prompt: str, model: str, max_tokens: int, temperature: float) -> TextCompletion:
        self.prompts.append(prompt)
        self.models.append(model)
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, BaseException):
            raise item
        return TextCompletion(text=item, tokens_used=321, finish_reason="stop", model=model)


@pytest.fixture()
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture()
def fake_llm():
    return FakeLLM()


@pytest.fixture()
def make_orchestrator(store):
    def _make(
        analyzer: Optional[FakeAnalyzer] = None,
        llm: Optional[FakeLLM] = None,
        **config: Any,
    ) -> JobOrchestrator:
        defaults = dict(
            max_concurrent_jobs=3,
            job_timeout_seconds=5.0,
            retry_attempts=3,
            retry_delay_seconds=0.0,
            cron_batch_size=3,
        )
        defaults.update(config)
        generator = ContentGenerator(
            llm_client=llm or FakeLLM(),
            default_model="test/model",
            allowed_models=["test/model", "test/other-model"],
            max_tokens=4096,
            temperature=0.7,
        )
        return JobOrchestrator(
            store=store,
            analyzer=analyzer or FakeAnalyzer(),
            generator=generator,
            postprocessor=ContentPostProcessor(),
            config=OrchestratorConfig(**defaults),
        )

    return _make


@pytest.fixture()
def orchestrator(make_orchestrator, fake_analyzer, fake_llm):
    return make_orchestrator(analyzer=fake_analyzer, llm=fake_llm)


@pytest.fixture()
def client(db, orchestrator):
    """FastAPI TestClient with the DB session and orchestrator overridden.

    The shared session is expired before each request so rows written by
    the job store in background tasks are read fresh.
    """

    def _override_get_db():
        db.expire_all()
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def user_headers(user_id: str = USER_ID) -> dict:
    return {"X-User-Id": user_id}
