"""Background worker that runs queued post-booking side effects."""

import asyncio
import logging

from ..services.side_effects import SideEffectOrchestrator
from .base import BaseWorker

logger = logging.getLogger(__name__)


class SideEffectWorker(BaseWorker):
    """
    Drains the side-effect queue filled by the webhook processor.

    Each iteration waits up to one interval for work, then runs everything
    queued so far.
    """

    def __init__(self, orchestrator: SideEffectOrchestrator, interval_seconds: float = 1.0):
        """
        Initialize the side-effect worker.

        Args:
            orchestrator: Orchestrator owning the queue
            interval_seconds: Longest wait for new work per iteration
        """
        super().__init__(name="SideEffect", interval_seconds=interval_seconds)
        self.orchestrator = orchestrator

    async def process(self) -> None:
        """Run the next batch of queued side effects."""
        queue = self.orchestrator.queue
        try:
            effect = await asyncio.wait_for(queue.get(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            return

        try:
            await self.orchestrator.run_effect(effect)
        finally:
            queue.task_done()

        if not queue.empty():
            await self.orchestrator.drain()

    async def stop(self) -> None:
        """Stop the loop, then run whatever is still queued."""
        await super().stop()
        remaining = self.orchestrator.pending
        if remaining:
            logger.info(f"Running {remaining} queued side effects before shutdown")
            await self.orchestrator.drain()
