"""Throttled progress reporting for long-running generation jobs.

A ProgressTracker follows one active stage at a time and pushes
ProgressEvent values to its subscribers. Intermediate events are throttled;
the first and last event of every stage are always delivered.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from legacylens.constants import MIN_EMIT_INTERVAL_MS

logger = logging.getLogger(__name__)


class GenerationStage(Enum):
    """Stages of a generation job, in execution order."""

    ANALYZING = "analyzing"
    PLANNING = "planning"
    GENERATING = "generating"
    VALIDATING = "validating"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """Progress update emitted by a ProgressTracker.

    Attributes:
        stage: Stage the event belongs to.
        current: Items finished so far in the stage.
        total: Items in the stage.
        message: Human-readable progress message.
        timestamp: Time the event was created.
    """

    stage: GenerationStage
    current: int
    total: int
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressTracker:
    """Tracks progress of the active stage and notifies subscribers."""

    def __init__(
        self,
        min_emit_interval_ms: int = MIN_EMIT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the tracker.

        Args:
            min_emit_interval_ms: Minimum gap between intermediate events.
            clock: Monotonic clock returning seconds.
        """
        self.min_emit_interval_ms = min_emit_interval_ms
        self._clock = clock
        self._callbacks: list[ProgressCallback] = []
        self.reset()

    @property
    def stage(self) -> GenerationStage | None:
        return self._stage

    @property
    def current(self) -> int:
        return self._current

    @property
    def total(self) -> int:
        return self._total

    def start_stage(self, stage: GenerationStage, total: int, message: str) -> None:
        """Start tracking a new stage. Always emits."""
        self._stage = stage
        self._current = 0
        self._total = total
        self._emit(message)

    def update_progress(self, current: int, message: str | None = None) -> None:
        """Set progress within the current stage."""
        self._current = current
        self._emit(message or f"Processing {self._stage_name}...")

    def increment_progress(self, message: str | None = None) -> None:
        """Advance progress by one item."""
        self._current += 1
        self._emit(message or f"Processing {self._stage_name}...")

    def complete_stage(self, message: str | None = None) -> None:
        """Mark the current stage finished. Always emits."""
        self._current = self._total
        self._emit(message or f"Completed {self._stage_name}")

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a callback for progress events."""
        self._callbacks.append(callback)

    def off_progress(self, callback: ProgressCallback) -> None:
        """Remove a previously registered callback. Unknown callbacks are ignored."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def get_progress_percentage(self) -> int:
        """Get current progress as a rounded percentage (0 when the stage is empty)."""
        if self._total == 0:
            return 0
        return round(self._current / self._total * 100)

    def reset(self) -> None:
        """Return the tracker to its state before any stage was started."""
        self._stage: GenerationStage | None = None
        self._current = 0
        self._total = 0
        self._last_emit: float | None = None

    @property
    def _stage_name(self) -> str:
        return self._stage.value if self._stage else "stage"

    def _should_emit(self, now: float) -> bool:
        if self._current == 0 or self._current == self._total:
            return True
        if self._last_emit is None:
            return True
        return (now - self._last_emit) * 1000 >= self.min_emit_interval_ms

    def _emit(self, message: str) -> None:
        now = self._clock()
        if self._stage is None or not self._should_emit(now):
            return

        event = ProgressEvent(
            stage=self._stage,
            current=self._current,
            total=self._total,
            message=message,
        )
        self._last_emit = now

        # Iterate over a snapshot so callbacks may unsubscribe themselves
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Progress callback {callback!r} failed")
