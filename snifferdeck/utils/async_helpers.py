# snifferdeck/utils/async_helpers.py
"""Background task helper for controller intents."""

import asyncio
import logging
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: Optional[str] = None,
    log_errors: bool = True
) -> asyncio.Task:
    """
    Schedule ``coro`` and log it if it dies with an exception.

    Controller operations report their own failures, so anything reaching
    the done-callback is a bug worth an ERROR line with a traceback.
    """
    task = asyncio.create_task(coro, name=name)

    def _log_failure(t: asyncio.Task):
        if t.cancelled():
            return
        exc = t.exception()
        if exc and log_errors:
            logger.error(f"[Task:{name or t.get_name()}] Unhandled exception: {exc}", exc_info=exc)

    task.add_done_callback(_log_failure)
    return task
