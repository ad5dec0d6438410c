import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Set, Tuple

logger = logging.getLogger(__name__)


class Outcome(Enum):
    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"


class ResolutionPool:
    """Runs file resolutions in the background, at most `limit` at a time.

    Submitting never waits, so folder traversal continues while files are
    resolved. Every task reports exactly one outcome on the completion
    queue; outcomes arrive in completion order, not submission order.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("The pool needs room for at least one task")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._completed: "asyncio.Queue[Tuple[str, Outcome]]" = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()
        self._submitted = 0

    def submit(self, name: str, factory: Callable[[], Awaitable[Outcome]]) -> None:
        task = asyncio.create_task(self._run(name, factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._submitted += 1

    async def _run(self, name: str, factory: Callable[[], Awaitable[Outcome]]) -> None:
        outcome = Outcome.FAILED
        try:
            async with self._semaphore:
                outcome = await factory()
        except Exception:
            logger.exception(f"Unexpected failure while processing {name}")
        finally:
            self._completed.put_nowait((name, outcome))

    async def join(self) -> List[Tuple[str, Outcome]]:
        """Wait for every submitted task and return their outcomes"""
        results = []
        while len(results) < self._submitted:
            results.append(await self._completed.get())
        self._submitted = 0
        return results
