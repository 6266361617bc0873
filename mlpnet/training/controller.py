"""Pause/resume gate and cooperative cancellation for a training loop."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from ..core.errors import CancellationError, TrainingStateError


class TrainingController:
    """Single gate shared by the training loop and an external controller.

    The loop calls :meth:`maybe_suspend` at every epoch boundary and
    :meth:`check_cancelled` at its poll points. While the loop is parked in
    :meth:`maybe_suspend` the controller is ``suspended`` and edits made under
    :meth:`edit` cannot race with an epoch.
    """

    def __init__(self, *, start_paused: bool = False) -> None:
        self._cond = threading.Condition()
        self._paused = start_paused
        self._parked = False
        self._cancelled = False

    @property
    def paused(self) -> bool:
        with self._cond:
            return self._paused

    @property
    def suspended(self) -> bool:
        with self._cond:
            return self._parked

    @property
    def cancelled(self) -> bool:
        with self._cond:
            return self._cancelled

    def pause(self) -> None:
        with self._cond:
            self._paused = True

    def resume(self) -> None:
        with self._cond:
            self._paused = False
            self._cond.notify_all()

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()

    def check_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError("Training was cancelled")

    def maybe_suspend(self) -> bool:
        """Block while paused; return ``True`` if the loop was parked."""

        with self._cond:
            parked = False
            while self._paused and not self._cancelled:
                parked = True
                self._parked = True
                self._cond.notify_all()
                self._cond.wait()
            self._parked = False
            if self._cancelled:
                raise CancellationError("Training was cancelled")
            return parked

    def wait_until_suspended(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._parked or self._cancelled, timeout)

    @contextmanager
    def edit(self) -> Iterator[None]:
        """Hold the gate for a mutation; the loop must be parked."""

        with self._cond:
            if not self._parked:
                raise TrainingStateError(
                    "Training must be suspended at an epoch boundary before editing"
                )
            yield


__all__ = ["TrainingController"]
