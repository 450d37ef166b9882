"""Named periodic tasks.

At most one loop runs per name. Stopping is deferred: the loop notices on its
next wake-up and exits, it is never interrupted mid-call.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTask:
    """A registered periodic loop."""

    name: str
    interval: float
    stop_event: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None
    iterations: int = 0

    @property
    def running(self) -> bool:
        return not self.stop_event.is_set()


class Scheduler:
    """Registry of named periodic loops, each on its own daemon thread.

    Usage:
        scheduler = Scheduler()
        scheduler.schedule("heartbeat", 5.0, send_heartbeat)
        ...
        scheduler.stop("heartbeat")
    """

    def __init__(self):
        self._tasks: dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()

    def schedule(self, name: str, interval: float, run: Callable[[str], Any]) -> bool:
        """Start calling ``run(name)`` every ``interval`` seconds.

        Args:
            name: Task name; duplicates of a running name are ignored
            interval: Seconds to wait after each run
            run: Callable receiving the task name; if it raises, the loop
                ends and the name is released

        Returns:
            True if a new loop was started
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        with self._lock:
            if name in self._tasks:
                return False
            task = ScheduledTask(name=name, interval=interval)
            task.thread = threading.Thread(
                target=self._loop,
                args=(task, run),
                name=f"safecall-schedule-{name}",
                daemon=True,
            )
            self._tasks[name] = task

        logger.info(f"Scheduled task {name} every {interval}s")
        task.thread.start()
        return True

    def _loop(self, task: ScheduledTask, run: Callable[[str], Any]) -> None:
        try:
            while task.running:
                run(task.name)
                task.iterations += 1
                task.stop_event.wait(task.interval)
        except Exception as e:
            logger.error(f"Scheduled task {task.name} failed, stopping: {e}")
        finally:
            task.stop_event.set()
            with self._lock:
                # A newer task may already own the name
                if self._tasks.get(task.name) is task:
                    del self._tasks[task.name]
            logger.info(f"Scheduled task {task.name} stopped after {task.iterations} runs")

    def stop(self, name: str) -> bool:
        """Mark a task stopped. Returns False if no such task is running."""
        with self._lock:
            task = self._tasks.pop(name, None)
        if task is None:
            return False
        task.stop_event.set()
        return True

    def stop_all(self) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.stop_event.set()

    def is_scheduled(self, name: str) -> bool:
        with self._lock:
            return name in self._tasks

    def get_task(self, name: str) -> Optional[ScheduledTask]:
        with self._lock:
            return self._tasks.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._tasks)
