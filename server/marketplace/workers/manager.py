"""Worker manager for coordinating background tasks."""

import asyncio
import logging
from typing import Dict

from ..core.config import Settings
from ..services.side_effects import SideEffectOrchestrator
from .base import BaseWorker
from .side_effect_worker import SideEffectWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages background workers for the application.

    Coordinates starting, stopping, and monitoring of all background workers.
    """

    def __init__(self, orchestrator: SideEffectOrchestrator, settings: Settings):
        """Initialize the worker manager."""
        self.workers: Dict[str, BaseWorker] = {}
        self._setup_workers(orchestrator, settings)

    def _setup_workers(self, orchestrator: SideEffectOrchestrator, settings: Settings) -> None:
        """Initialize all workers."""
        self.workers["side_effects"] = SideEffectWorker(
            orchestrator,
            interval_seconds=settings.side_effect_idle_seconds,
        )

        logger.info(f"Initialized {len(self.workers)} workers")

    async def start_all(self) -> None:
        """Start all workers."""
        logger.info("Starting all workers")

        for name, worker in self.workers.items():
            try:
                await worker.start()
                logger.info(f"Started worker: {name}")
            except Exception as e:
                logger.error(f"Failed to start worker {name}: {str(e)}", exc_info=True)

        logger.info(f"Started {len(self.workers)} workers")

    async def stop_all(self) -> None:
        """Stop all workers gracefully."""
        logger.info("Stopping all workers")

        tasks = [worker.stop() for worker in self.workers.values()]

        # Wait for all workers to stop
        results = await asyncio.gather(*tasks, return_exceptions=True)

        # Log any errors
        for name, result in zip(self.workers.keys(), results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping worker {name}: {str(result)}")
            else:
                logger.info(f"Stopped worker: {name}")

        logger.info("All workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """
        Get the status of all workers.

        Returns:
            Dictionary mapping worker names to their running status
        """
        return {
            name: worker.is_running
            for name, worker in self.workers.items()
        }
