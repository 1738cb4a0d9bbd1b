import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class PeriodicWorker(ABC):
    """Base worker that runs one unit of work on a fixed interval."""

    def __init__(self, name: str, interval_seconds: float, worker_id: Optional[str] = None):
        self.name = name
        self.interval_seconds = interval_seconds
        self.worker_id = worker_id or f"{name}_worker_{uuid4()}"
        self.running = False

    async def setup(self):
        """Initialize worker dependencies."""
        logger.info(f"Worker {self.worker_id} setup completed")

    async def cleanup(self):
        """Cleanup worker resources."""
        try:
            # Cleanup lock provider if this worker has one
            if hasattr(self, "lock_provider"):
                await self.lock_provider.disconnect()

            logger.info(f"Worker {self.worker_id} cleanup completed")
        except Exception as e:
            logger.error(f"Error cleaning up worker {self.worker_id}: {e}")

    async def start(self):
        """Run until stopped. A failed iteration is logged and retried on the next tick."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        self.running = True
        logger.info(
            f"Starting worker {self.worker_id} every {self.interval_seconds}s"
        )

        try:
            await self.setup()
            while self.running:
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error(
                        f"Error in worker {self.worker_id} iteration: {e}",
                        exc_info=True,
                    )
                await asyncio.sleep(self.interval_seconds)
        finally:
            self.running = False
            await self.cleanup()

    async def stop(self):
        """Stop the worker."""
        self.running = False
        logger.info(f"Stopping worker {self.worker_id}")

    @abstractmethod
    async def run_once(self):
        """One unit of work. Must be implemented by subclasses."""
        pass
