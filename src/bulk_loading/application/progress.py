"""Progress reporting for bulk loads."""

from __future__ import annotations

import time
from typing import Callable

from bulk_loading.domain.value_objects import (
    LoadPhase,
    LoadProgress,
    ProgressCallback,
)
from bulk_loading.infrastructure.observability import DefaultBulkLoadProbe
from bulk_loading.ports.observability import BulkLoadProbe


class ProgressReporter:
    """Delivers progress events to a caller-supplied callback.

    Reporting never raises into the load: a failing callback is logged
    through the probe and the load carries on. Callbacks run synchronously,
    so a slow callback slows the load down but cannot corrupt it.
    """

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        probe: BulkLoadProbe | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._callback = callback
        self._probe = probe or DefaultBulkLoadProbe()
        self._clock = clock
        self._started_at = clock()

    @property
    def elapsed(self) -> float:
        return max(self._clock() - self._started_at, 0.0)

    def build(
        self,
        phase: LoadPhase,
        current_type: str,
        processed: int,
        total: int,
        *,
        batch_number: int | None = None,
        total_batches: int | None = None,
        warnings: tuple[str, ...] = (),
        error: str | None = None,
    ) -> LoadProgress:
        """Build a progress event timed from the start of the load."""
        return LoadProgress.create(
            phase=phase,
            current_type=current_type,
            processed=processed,
            total=total,
            elapsed_time=self.elapsed,
            batch_number=batch_number,
            total_batches=total_batches,
            warnings=warnings,
            error=error,
        )

    def report(self, progress: LoadProgress) -> None:
        if self._callback is None:
            return
        try:
            self._callback(progress)
        except Exception as e:
            self._probe.progress_callback_failed(error=e)

    def emit(self, *args, **kwargs) -> LoadProgress:
        """Build an event and report it. Accepts the arguments of :meth:`build`."""
        progress = self.build(*args, **kwargs)
        self.report(progress)
        return progress
