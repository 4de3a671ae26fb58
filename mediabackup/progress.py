"""Progress events emitted by the pipeline and their rich progress bar bridge."""

import threading
from dataclasses import dataclass
from typing import Optional

from rich.progress import Progress, TaskID


@dataclass(frozen=True)
class ProgressEvent:
    """One file finished: its 1-based position, the total, and its name."""
    index: int
    total: int
    filename: str


class ProgressContext:
    """Encapsulates progress tracking state for cleaner parameter passing."""

    def __init__(self, progress: Optional[Progress] = None, task: Optional[TaskID] = None):
        self.progress = progress
        self.task = task
        self._lock = threading.Lock()

    @property
    def is_active(self) -> bool:
        """Check if progress tracking is active."""
        return self.progress is not None and self.task is not None

    def __call__(self, event: ProgressEvent) -> None:
        """Consume a pipeline progress event."""
        if not self.is_active:
            return
        with self._lock:
            self.progress.update(self.task, total=event.total, completed=event.index,
                                 description=f"[{event.index}/{event.total}] {event.filename}")
