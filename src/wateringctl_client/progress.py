"""Outstanding-operation tracking for busy indicators.

Every issued operation registers a task; the tracker exposes whether
any task is outstanding plus the last reported progress percentage.
The busy flag is delivered to listeners debounced, so operations that
finish within a few milliseconds never flicker an indicator.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Type for listener callbacks
BusyListener = Callable[[bool], None]
ProgressListener = Callable[["int | None"], None]

DEFAULT_DEBOUNCE = 0.05


@dataclass
class ProgressTask:
    """A registered task and its optional auto-finish timer."""

    id: int
    deadline: asyncio.TimerHandle | None = None


class ProgressTaskTracker:
    """Tracks outstanding operations.

    ``busy`` is true iff at least one task is registered. ``is_active``
    is the debounced view of it, updated ``debounce`` seconds after the
    last change.
    """

    def __init__(self, debounce: float = DEFAULT_DEBOUNCE):
        self.debounce = debounce
        self._tasks: dict[int, ProgressTask] = {}
        self._ids = itertools.count()
        self._progress: int | None = 0
        self._active = False
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._busy_listeners: list[BusyListener] = []
        self._progress_listeners: list[ProgressListener] = []

    @property
    def busy(self) -> bool:
        """Whether any task is outstanding (not debounced)."""
        return bool(self._tasks)

    @property
    def is_active(self) -> bool:
        """Debounced busy flag."""
        return self._active

    @property
    def outstanding(self) -> list[int]:
        """IDs of all outstanding tasks."""
        return list(self._tasks)

    @property
    def progress(self) -> int | None:
        """Last reported percentage, None while indeterminate."""
        return self._progress

    def start_task(self, timeout: float | None = None) -> int:
        """Register a task.

        Args:
            timeout: Finish the task automatically after this many seconds

        Returns:
            The task ID to pass to finish_task()
        """
        task = ProgressTask(id=next(self._ids))
        if timeout is not None:
            loop = asyncio.get_running_loop()
            task.deadline = loop.call_later(timeout, self.finish_task, task.id)
        self._tasks[task.id] = task
        self._schedule_update()
        return task.id

    def finish_task(self, task_id: int | None) -> None:
        """Remove a task. Unknown or already finished IDs are ignored."""
        if task_id is None:
            return
        task = self._tasks.pop(task_id, None)
        if task is None:
            return
        if task.deadline:
            task.deadline.cancel()
        self._schedule_update()

    def set_progress(self, percent: int | None) -> None:
        """Report progress; None means indeterminate."""
        if percent is not None:
            percent = max(0, min(100, percent))
        if percent == self._progress:
            return
        self._progress = percent
        for listener in list(self._progress_listeners):
            listener(percent)

    def add_busy_listener(self, listener: BusyListener) -> Callable[[], None]:
        """Subscribe to debounced busy changes. Returns unsubscribe function."""
        self._busy_listeners.append(listener)
        return lambda: self._busy_listeners.remove(listener)

    def add_progress_listener(self, listener: ProgressListener) -> Callable[[], None]:
        """Subscribe to progress changes. Returns unsubscribe function."""
        self._progress_listeners.append(listener)
        return lambda: self._progress_listeners.remove(listener)

    def _schedule_update(self) -> None:
        if self._debounce_handle:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.debounce, self._publish)

    def _publish(self) -> None:
        self._debounce_handle = None
        active = self.busy
        if active == self._active:
            return
        self._active = active
        logger.debug(f"Busy indicator {'on' if active else 'off'}")
        for listener in list(self._busy_listeners):
            listener(active)
