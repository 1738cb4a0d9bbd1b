import pytest
from unittest.mock import AsyncMock

from common.workers.base_worker import PeriodicWorker


class TestableWorker(PeriodicWorker):
    """Concrete PeriodicWorker that stops itself after a number of iterations."""

    def __init__(self, iterations: int = 3, fail_on: tuple = (), worker_id="test_worker"):
        super().__init__("test", interval_seconds=0, worker_id=worker_id)
        self.iterations = iterations
        self.fail_on = fail_on
        self.calls = 0

    async def run_once(self):
        self.calls += 1
        if self.calls >= self.iterations:
            await self.stop()
        if self.calls in self.fail_on:
            raise RuntimeError(f"iteration {self.calls} failed")


class TestPeriodicWorker:
    """Tests for the PeriodicWorker run loop."""

    def test_worker_id_defaults_to_name(self):
        worker = TestableWorker(worker_id=None)

        assert worker.worker_id.startswith("test_worker_")
        assert worker.running is False

    async def test_runs_until_stopped(self):
        worker = TestableWorker(iterations=3)

        await worker.start()

        assert worker.calls == 3
        assert worker.running is False

    async def test_failed_iteration_does_not_stop_worker(self):
        """Test that an exception in one iteration is logged and the loop continues."""
        worker = TestableWorker(iterations=3, fail_on=(1,))

        await worker.start()

        assert worker.calls == 3

    async def test_cleanup_disconnects_lock_provider(self):
        worker = TestableWorker(iterations=1)
        worker.lock_provider = AsyncMock()

        await worker.start()

        worker.lock_provider.disconnect.assert_called_once()

    async def test_cleanup_errors_are_logged(self):
        worker = TestableWorker(iterations=1)
        worker.lock_provider = AsyncMock()
        worker.lock_provider.disconnect.side_effect = ConnectionError("gone")

        await worker.start()

        assert worker.running is False

    async def test_start_when_already_running(self):
        worker = TestableWorker()
        worker.running = True

        await worker.start()

        assert worker.calls == 0


@pytest.mark.asyncio
async def test_stop_sets_running_false():
    worker = TestableWorker()
    worker.running = True

    await worker.stop()

    assert worker.running is False
