"""Tests for the job, README and cron endpoints."""

from clio.dependencies import get_orchestrator
from clio.main import app
from clio.models import JobStatus
from tests.conftest import OTHER_USER_ID, FakeLLM, user_headers

CRON_AUTH = {"Authorization": "Bearer test-cron-secret"}


def _queue(client, repository_id, headers=None, **options):
    return client.post(
        "/api/jobs",
        json={"repository_id": repository_id, **options},
        headers=headers if headers is not None else user_headers(),
    )


class TestQueueJob:

    def test_queue_runs_job_in_background(self, client, make_repository):
        repository = make_repository()

        resp = _queue(client, repository.id, style="minimal")

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "QUEUED"
        job_id = body["job_id"]

        job = client.get(f"/api/jobs/{job_id}", headers=user_headers()).json()
        assert job["status"] == "COMPLETED"
        assert job["progress"] == 100
        assert job["style"] == "minimal"

        versions = client.get(f"/api/jobs/{job_id}/versions", headers=user_headers()).json()
        assert len(versions) == 1
        latest = client.get(f"/api/jobs/{job_id}/versions/latest", headers=user_headers()).json()
        assert latest["id"] == versions[0]["id"]
        assert latest["content"].startswith("# Widget")

    def test_requires_user(self, client, make_repository):
        resp = _queue(client, make_repository().id, headers={})
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHORIZED"

    def test_other_users_repository_forbidden(self, client, make_repository):
        resp = _queue(client, make_repository().id, headers=user_headers(OTHER_USER_ID))
        assert resp.status_code == 403

    def test_unknown_repository(self, client):
        resp = _queue(client, "no-such-repo")
        assert resp.status_code == 404
        assert resp.json()["error"] == "REPOSITORY_NOT_FOUND"

    def test_repository_without_installation(self, client, make_repository):
        resp = _queue(client, make_repository(with_installation=False).id)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Repository or installation not found"

    def test_invalid_style_rejected(self, client, make_repository):
        resp = _queue(client, make_repository().id, style="shouty")
        assert resp.status_code == 422

    def test_model_override_rejected(self, client, make_repository, store):
        repository = make_repository()

        resp = _queue(client, repository.id, model="test/other-model")

        assert resp.status_code == 422
        assert "/api/readme/generate" in resp.text
        assert store.list_jobs_for_user(repository.user_id) == []


class TestReadJobs:

    def test_get_job_ownership(self, client, make_repository, make_job):
        job = make_job(make_repository())

        assert client.get(f"/api/jobs/{job.id}", headers=user_headers()).status_code == 200
        assert client.get(f"/api/jobs/{job.id}", headers=user_headers(OTHER_USER_ID)).status_code == 403
        assert client.get("/api/jobs/missing", headers=user_headers()).status_code == 404

    def test_list_jobs_with_status_filter(self, client, make_repository, make_job):
        repository = make_repository()
        make_job(repository)
        failed = make_job(repository, status=JobStatus.FAILED)

        all_jobs = client.get("/api/jobs", headers=user_headers()).json()
        failed_only = client.get("/api/jobs?status=FAILED", headers=user_headers()).json()

        assert len(all_jobs) == 2
        assert [j["id"] for j in failed_only] == [failed.id]
        assert client.get("/api/jobs", headers=user_headers(OTHER_USER_ID)).json() == []

    def test_list_limit_validated(self, client):
        assert client.get("/api/jobs?limit=0", headers=user_headers()).status_code == 422
        assert client.get("/api/jobs?limit=51", headers=user_headers()).status_code == 422

    def test_active_jobs(self, client, make_repository, make_job):
        repository = make_repository()
        pending = make_job(repository)
        queued = make_job(repository, status=JobStatus.QUEUED)
        make_job(repository, status=JobStatus.COMPLETED)

        ids = {j["id"] for j in client.get("/api/jobs/active", headers=user_headers()).json()}

        assert ids == {pending.id, queued.id}

    def test_latest_version_missing(self, client, make_repository, make_job):
        job = make_job(make_repository())
        resp = client.get(f"/api/jobs/{job.id}/versions/latest", headers=user_headers())
        assert resp.status_code == 404
        assert resp.json()["error"] == "VERSION_NOT_FOUND"


class TestDeleteJob:

    def test_delete(self, client, make_repository, make_job):
        job = make_job(make_repository())

        assert client.delete(f"/api/jobs/{job.id}", headers=user_headers()).status_code == 204
        assert client.get(f"/api/jobs/{job.id}", headers=user_headers()).status_code == 404

    def test_delete_forbidden_for_other_user(self, client, make_repository, make_job):
        job = make_job(make_repository())
        resp = client.delete(f"/api/jobs/{job.id}", headers=user_headers(OTHER_USER_ID))
        assert resp.status_code == 403


class TestGenerateReadme:

    def test_generate(self, client, make_repository):
        repository = make_repository()

        resp = client.post(
            "/api/readme/generate",
            json={"repository_id": repository.id, "include_toc": False},
            headers=user_headers(),
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["content"].startswith("# Widget")
        assert body["job"]["status"] == "COMPLETED"
        assert body["job"]["include_toc"] is False
        assert body["metadata"]["model_used"] == "test/model"
        assert body["metadata"]["word_count"] > 0

    def test_generation_failure_returns_error(self, client, make_repository, make_orchestrator, store):
        failing = make_orchestrator(llm=FakeLLM(responses=[ValueError("bad output")]))
        app.dependency_overrides[get_orchestrator] = lambda: failing
        repository = make_repository()

        resp = client.post(
            "/api/readme/generate",
            json={"repository_id": repository.id},
            headers=user_headers(),
        )

        assert resp.status_code == 502
        assert resp.json()["error"] == "GENERATION_FAILED"
        (job,) = store.list_jobs_for_user(repository.user_id)
        assert job.job_status == JobStatus.FAILED

    def test_forbidden_repository(self, client, make_repository):
        resp = client.post(
            "/api/readme/generate",
            json={"repository_id": make_repository().id},
            headers=user_headers(OTHER_USER_ID),
        )
        assert resp.status_code == 403


class TestCron:

    def test_rejects_missing_credentials(self, client):
        assert client.get("/api/cron/process-jobs").status_code == 401

    def test_rejects_wrong_secret(self, client):
        resp = client.post("/api/cron/process-jobs", headers={"Authorization": "Bearer wrong"})
        assert resp.status_code == 401

    def test_nothing_to_do(self, client):
        resp = client.get("/api/cron/process-jobs", headers=CRON_AUTH)
        assert resp.status_code == 200
        assert resp.json() == {"message": "No jobs to process", "results": []}

    def test_scheduler_header_processes_batch(self, client, make_repository, make_job, store):
        repository = make_repository()
        jobs = [make_job(repository, status=JobStatus.QUEUED) for _ in range(2)]

        resp = client.post("/api/cron/process-jobs", headers={"x-vercel-cron": "1"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Processed 2 jobs"
        assert {r["job_id"] for r in body["results"]} == {j.id for j in jobs}
        assert all(r["status"] == "processed" for r in body["results"])
        assert all(store.get_job(j.id).job_status == JobStatus.COMPLETED for j in jobs)

    def test_failed_linkage_reported(self, client, make_repository, make_job):
        job = make_job(make_repository(with_installation=False))

        body = client.get("/api/cron/process-jobs", headers=CRON_AUTH).json()

        assert body["results"] == [{
            "job_id": job.id,
            "status": "failed",
            "reason": "missing_repo_or_installation",
            "error": "Repository or installation not found",
        }]
