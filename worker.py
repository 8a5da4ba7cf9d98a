"""
Standalone suggestion worker.

Consumes the Redis queue filled by the API in queued mode:

    SUGGESTION_MODE=queued python worker.py
"""

import asyncio
import logging
import signal

from config.settings import get_settings
from core.clients.redis import close_redis, get_redis
from services.suggestion_orchestrator import create_orchestrator
from services.suggestion_queue import SuggestionQueue
from services.suggestion_worker import SuggestionWorker

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main() -> None:
    redis = get_redis()
    worker = SuggestionWorker(SuggestionQueue(redis), create_orchestrator(redis))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    if settings.suggestion_mode != "queued":
        logger.warning("SUGGESTION_MODE is inline; the API will not enqueue jobs")

    try:
        await worker.run()
    finally:
        await close_redis()


if __name__ == "__main__":
    asyncio.run(main())
