"""
Cancellable timers bound to a session view's lifetime.

RepeatingTask and SingleShotTask wrap QTimer so callbacks run on the Qt
event loop. A TaskScope owns every task a view creates; cancel_all() on
teardown stops them and marks them cancelled, so a timeout that was already
queued is dropped instead of running against a dead view.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from PySide6.QtCore import QTimer

logger = logging.getLogger(__name__)


class RepeatingTask:
    """Runs `callback` every `interval_sec` seconds until stopped."""

    def __init__(self, name: str, interval_sec: float, callback: Callable[[], None]) -> None:
        self.name = name
        self.interval_sec = interval_sec
        self._callback = callback
        self._cancelled = False
        self._timer = QTimer()
        self._timer.setSingleShot(self._single_shot())
        self._timer.timeout.connect(self.fire)

    def _single_shot(self) -> bool:
        return False

    def start(self) -> None:
        """(Re)arm the timer. A cancelled task never restarts."""
        if self._cancelled:
            return
        self._timer.start(int(self.interval_sec * 1000))
        logger.debug("Task %s armed (%.1fs)", self.name, self.interval_sec)

    def stop(self) -> None:
        self._timer.stop()

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.stop()

    def set_interval(self, interval_sec: float) -> None:
        self.interval_sec = interval_sec
        if self._timer.isActive():
            self.start()

    @property
    def is_active(self) -> bool:
        return self._timer.isActive() and not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def fire(self) -> None:
        """Run the callback now. Ignored once the task is cancelled."""
        if self._cancelled:
            return
        self._callback()


class SingleShotTask(RepeatingTask):
    """Runs `callback` once after `interval_sec` seconds."""

    def _single_shot(self) -> bool:
        return True


class TaskScope:
    """Groups the tasks that belong to one view so they die together."""

    def __init__(self) -> None:
        self._tasks: List[RepeatingTask] = []
        self._closed = False

    def repeating(self, name: str, interval_sec: float, callback: Callable[[], None]) -> RepeatingTask:
        return self._track(RepeatingTask(name, interval_sec, callback))

    def single_shot(self, name: str, delay_sec: float, callback: Callable[[], None]) -> SingleShotTask:
        return self._track(SingleShotTask(name, delay_sec, callback))

    def _track(self, task):
        if self._closed:
            task.cancel()
        self._tasks = [t for t in self._tasks if not t.cancelled]
        self._tasks.append(task)
        return task

    def __len__(self) -> int:
        return len(self._tasks)

    def cancel_all(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        self._closed = True
        logger.debug("Task scope closed.")

    @property
    def closed(self) -> bool:
        return self._closed
