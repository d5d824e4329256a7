"""
Best-effort follow-up work that runs outside a committed transaction.

A ``FollowUp`` is returned next to a transactional result and executed
later by ``run_best_effort``. Its only error channel is the log: a failing
follow-up never changes the outcome of the operation that produced it.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FollowUp:
    """Named zero-argument coroutine function."""

    label: str
    run: Callable[[], Awaitable[None]]


async def run_best_effort(follow_up: FollowUp) -> bool:
    """Await the follow-up; log and swallow any failure. Returns success."""
    try:
        await follow_up.run()
    except Exception:
        logger.exception("Best-effort task failed: %s", follow_up.label)
        return False
    return True

