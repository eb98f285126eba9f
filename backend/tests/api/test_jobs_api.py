import asyncio

import pytest
from httpx import AsyncClient

from engageflow.models.job import JobKind
from tests.factories import RedditPostFactory

DISCOVERY_BODY = {
    "kind": "content_discovery",
    "parameters": {"communities": ["homegym"], "keywords": ["rower"], "limit": 5},
}


@pytest.mark.unit
class TestJobsEndpoints:
    """Test job start / poll endpoints."""

    @pytest.mark.asyncio
    async def test_start_job_returns_202_and_id(self, async_client: AsyncClient, job_runner, content_source):
        content_source.results[("homegym", "rower")] = RedditPostFactory.create_batch(3)

        response = await async_client.post("/api/v1/jobs", json=DISCOVERY_BODY)

        assert response.status_code == 202
        job_id = response.json()["jobId"]

        await job_runner.join(job_id)
        response = await async_client.get(f"/api/v1/jobs/{job_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["progress"] == 100
        assert data["resultCount"] == 3
        assert data["kind"] == "content_discovery"
        assert data["scope"] == "global"

    @pytest.mark.asyncio
    async def test_start_while_running_returns_409(self, async_client: AsyncClient, content_source):
        gate = asyncio.Event()
        content_source.gates[("homegym", "rower")] = gate

        first = await async_client.post("/api/v1/jobs", json=DISCOVERY_BODY)
        second = await async_client.post("/api/v1/jobs", json=DISCOVERY_BODY)

        assert first.status_code == 202
        assert second.status_code == 409
        assert "already running" in second.json()["detail"]
        gate.set()

    @pytest.mark.asyncio
    async def test_invalid_parameters_return_400(self, async_client: AsyncClient):
        body = {"kind": "content_discovery", "parameters": {"communities": [], "keywords": ["rower"]}}

        response = await async_client.post("/api/v1/jobs", json=body)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_kind_returns_422(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/jobs", json={"kind": "video_generation"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_unknown_job_returns_404(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/jobs/not-a-job")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_latest_is_idle_before_any_run(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/jobs/latest", params={"kind": "analytics_sync"})

        assert response.status_code == 200
        assert response.json() == {"status": "idle"}

    @pytest.mark.asyncio
    async def test_latest_and_list_show_failed_job(self, async_client: AsyncClient, job_runner, content_source):
        content_source.error = RuntimeError("reddit is down")
        job = await job_runner.run(JobKind.CONTENT_DISCOVERY, parameters=DISCOVERY_BODY["parameters"])

        latest = await async_client.get("/api/v1/jobs/latest", params={"kind": "content_discovery"})
        listing = await async_client.get("/api/v1/jobs", params={"kind": "content_discovery"})

        assert latest.json()["jobId"] == job.job_id
        assert latest.json()["status"] == "failed"
        assert latest.json()["error"] == "RuntimeError: reddit is down"
        assert [j["jobId"] for j in listing.json()["data"]] == [job.job_id]
