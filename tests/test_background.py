"""Tests for background jobs and pooled HTTP clients."""

import asyncio

import pytest

from src.main import run_periodic
from src.utils.http_client import close_all_clients, get_client, get_tmdb_client
from src.utils.metrics import metrics


class TestRunPeriodic:
    """Tests for the periodic job loop."""

    @pytest.mark.asyncio
    async def test_runs_job_until_shutdown(self):
        """Test that the job runs on each interval and the loop exits on shutdown."""
        shutdown = asyncio.Event()
        calls = []

        async def job():
            calls.append(1)
            if len(calls) == 3:
                shutdown.set()

        await asyncio.wait_for(run_periodic("test_job", 0.01, job, shutdown), timeout=2.0)

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_failures_are_counted_and_loop_continues(self):
        """Test that a failing job does not stop the loop."""
        shutdown = asyncio.Event()
        calls = []

        async def job():
            calls.append(1)
            if len(calls) == 2:
                shutdown.set()
            raise RuntimeError("boom")

        await asyncio.wait_for(run_periodic("failing_job", 0.01, job, shutdown), timeout=2.0)

        assert len(calls) == 2
        assert metrics.background_task_runs_total.get(task="failing_job", status="error") >= 2

    @pytest.mark.asyncio
    async def test_shutdown_before_first_interval_skips_job(self):
        """Test that nothing runs when shutdown is already requested."""
        shutdown = asyncio.Event()
        shutdown.set()
        calls = []

        async def job():
            calls.append(1)

        await run_periodic("never", 60, job, shutdown)

        assert calls == []


class TestHttpClients:
    """Tests for the per-service client registry."""

    @pytest.mark.asyncio
    async def test_client_is_reused_per_service(self):
        """Test that each service gets one shared client."""
        try:
            assert get_tmdb_client() is get_client("tmdb")
            assert get_client("other") is not get_client("tmdb")
        finally:
            await close_all_clients()

    @pytest.mark.asyncio
    async def test_close_all_clients(self):
        """Test that closed clients are replaced on next use."""
        client = get_client("tmdb")
        await close_all_clients()

        assert client.is_closed
        replacement = get_client("tmdb")
        assert replacement is not client
        await close_all_clients()
