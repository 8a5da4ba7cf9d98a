"""
Queue consumer for queued mode.

Runs either in-process (started from the FastAPI lifespan) or as the
standalone ``worker.py`` process.
"""

import asyncio
import logging

from redis.exceptions import RedisError

from constants.limits import WORKER_DEQUEUE_TIMEOUT_SECONDS
from services.suggestion_orchestrator import SuggestionOrchestrator
from services.suggestion_queue import SuggestionQueue

logger = logging.getLogger(__name__)

# Back-off after Redis errors so a dead connection does not spin the loop
ERROR_BACKOFF_SECONDS = 1.0


class SuggestionWorker:
    def __init__(
        self,
        queue: SuggestionQueue,
        orchestrator: SuggestionOrchestrator,
        dequeue_timeout: int = WORKER_DEQUEUE_TIMEOUT_SECONDS,
    ):
        self.queue = queue
        self.orchestrator = orchestrator
        self.dequeue_timeout = dequeue_timeout
        self._stopping = asyncio.Event()
        self.processed = 0

    @property
    def running(self) -> bool:
        return not self._stopping.is_set()

    def stop(self) -> None:
        """Ask the loop to exit after the current job."""
        self._stopping.set()

    async def run_once(self) -> bool:
        """
        Process at most one job.

        Returns:
            True if a job was processed
        """
        payload = await self.queue.dequeue(timeout=self.dequeue_timeout)
        if payload is None:
            return False

        logger.info(f"Processing suggestion job {payload.job_id}")
        await self.orchestrator.process_job(payload)
        self.processed += 1
        return True

    async def run(self) -> None:
        logger.info("Suggestion worker started")
        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except RedisError as e:
                logger.error(f"Worker lost Redis connection: {e}")
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)
            except Exception:
                logger.error("Worker iteration failed", exc_info=True)
        logger.info(f"Suggestion worker stopped after {self.processed} jobs")
