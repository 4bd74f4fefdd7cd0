"""Background queue that pushes local mutations to the remote store."""

import asyncio
from collections.abc import Callable

import structlog

from repohistory.domain.value_objects import PropagationTask


class PropagationQueue:
    """Runs propagation tasks on the current event loop.

    Tasks with the same key run strictly in submission order, so a slow
    request can never overtake a later one for the same repository. Tasks
    with different keys run concurrently. A task without a key waits for all
    earlier tasks, and every later task waits for it.
    """

    def __init__(self) -> None:
        """Initialize the queue."""
        self._tails: dict[str, asyncio.Task[None]] = {}
        self._barrier: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._on_busy_change: Callable[[bool], None] | None = None
        self._on_key_idle: Callable[[str | None], None] | None = None
        self.log = structlog.get_logger(__name__)

    @property
    def pending(self) -> int:
        """Return the number of tasks not yet finished."""
        return len(self._pending)

    def set_on_busy_change(self, callback: Callable[[bool], None] | None) -> None:
        """Set the callback invoked when the queue goes from idle to busy or back."""
        self._on_busy_change = callback

    def set_on_key_idle(self, callback: Callable[[str | None], None] | None) -> None:
        """Set the callback invoked when the last task for a key has finished.

        The key is None when a barrier task finishes.
        """
        self._on_key_idle = callback

    def has_pending(self, key: str) -> bool:
        """Whether a task for this key is queued or running."""
        return key in self._tails

    def submit(self, task: PropagationTask) -> asyncio.Task[None] | None:
        """Schedule a task. Returns None if there is no running event loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.log.warning(
                "No running event loop, propagation skipped",
                operation=task.operation,
                key=task.key,
            )
            return None

        if task.key is None:
            predecessors = [*self._tails.values(), self._barrier]
        else:
            predecessors = [self._tails.get(task.key), self._barrier]

        job = loop.create_task(self._run(task, predecessors))
        was_idle = not self._pending
        self._pending.add(job)

        if task.key is None:
            self._tails.clear()
            self._barrier = job
        else:
            self._tails[task.key] = job

        job.add_done_callback(lambda done: self._on_done(task.key, done))
        self.log.debug("Propagation queued", operation=task.operation, key=task.key)
        if was_idle and self._on_busy_change:
            self._on_busy_change(True)
        return job

    def _on_done(self, key: str | None, job: asyncio.Task[None]) -> None:
        self._pending.discard(job)
        idle = False
        if key is None:
            if self._barrier is job:
                self._barrier = None
                idle = True
        elif self._tails.get(key) is job:
            del self._tails[key]
            idle = True

        if idle and self._on_key_idle:
            self._on_key_idle(key)
        if not self._pending and self._on_busy_change:
            self._on_busy_change(False)

    async def _run(
        self,
        task: PropagationTask,
        predecessors: list[asyncio.Task[None] | None],
    ) -> None:
        waiting = [p for p in predecessors if p is not None]
        if waiting:
            await asyncio.wait(waiting)

        try:
            await task.run()
        except Exception as e:  # noqa: BLE001
            self.log.warning(
                "Propagation failed",
                operation=task.operation,
                key=task.key,
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait until every submitted task has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
