"""
Worker launcher: telemetry, logging, signals and lifecycle for worker processes.
"""

import asyncio
import logging
import signal
from typing import Optional

from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger
from common.workers.base_worker import PeriodicWorker


class WorkerLauncher:
    """Runs a worker until SIGINT/SIGTERM, then lets the current iteration finish."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self.worker_instance: Optional[PeriodicWorker] = None

    def _setup_logging(self, log_level: str):
        logging.basicConfig(
            level=getattr(logging, log_level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,  # This ensures it overrides any existing configuration
        )

    def _request_shutdown(self, signum: int) -> None:
        self.logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        if self.worker_instance:
            asyncio.get_running_loop().create_task(self.worker_instance.stop())

    def _register_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._request_shutdown, signum)

    async def _run_worker_async(self, worker_instance: PeriodicWorker, worker_name: str):
        self.worker_instance = worker_instance
        self._register_signal_handlers()

        try:
            self.logger.info(f"Starting {worker_name}...")
            await worker_instance.start()
        except Exception as e:
            self.logger.error(f"Worker failed with error: {e}", exc_info=True)
            raise
        finally:
            self.logger.info(f"{worker_name} shutdown complete")

    def run(self, worker_instance: PeriodicWorker, worker_name: str, log_level: str = "INFO"):
        """
        Main entry point to run a worker.

        Args:
            worker_instance: The worker to run
            worker_name: Human readable name for logging
            log_level: Root log level
        """
        _initialize_telemetry()
        self._setup_logging(log_level)

        self.logger.info(f"Configuring {worker_name}...")
        asyncio.run(self._run_worker_async(worker_instance, worker_name))
