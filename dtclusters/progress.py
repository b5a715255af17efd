"""
Progress reporting and cancellation for long-running operations.

Every long-running operation (index build, clustering, agglomeration) takes a
ProgressCallback. The callback's ``delay`` method is the only cancellation
checkpoint: it raises DelayAborted, and the operation turns that into an
``Aborted`` outcome returned to its caller.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar, Union

from tqdm import tqdm

from .exceptions import DelayAborted

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome of a long-running operation."""
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Aborted:
    """Outcome of an operation cancelled through its progress callback."""
    reason: str = "Operation aborted"

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise DelayAborted(self.reason)


Outcome = Union[Ok[T], Aborted]


class ProgressCallback:
    """No-op progress callback with cooperative cancellation.

    Subclasses override the ``on_*`` hooks; ``delay`` always checks the
    cancellation flag first, so ``request_cancel`` works for every subclass
    (including from another thread or a signal handler).
    """

    def __init__(self):
        self._cancel = threading.Event()
        self.warnings: List[str] = []

    def request_cancel(self) -> None:
        """Ask the running operation to stop at its next checkpoint."""
        self._cancel.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def begin(self) -> None:
        self.on_begin()

    def delay(self, done: int, total: int) -> None:
        """Report progress; raises DelayAborted if cancellation was requested."""
        if self._cancel.is_set():
            raise DelayAborted("Cancelled by user")
        self.on_delay(done, total)

    def end(self) -> None:
        self.on_end()
        for warning in self.warnings:
            logger.warning(warning)
        self.warnings = []

    def add_warning(self, warning: str) -> None:
        """Record a non-fatal warning, reported once the operation ends."""
        self.warnings.append(warning)

    def on_begin(self) -> None:
        pass

    def on_delay(self, done: int, total: int) -> None:
        pass

    def on_end(self) -> None:
        pass


class TqdmProgress(ProgressCallback):
    """Progress callback that draws a tqdm progress bar per operation."""

    def __init__(self, desc: str = "Processing", unit: str = " seqs", disable: bool = False):
        super().__init__()
        self.desc = desc
        self.unit = unit
        self.disable = disable
        self._pbar: Optional[tqdm] = None

    def on_begin(self) -> None:
        self._close()
        self._pbar = tqdm(total=0, desc=self.desc, unit=self.unit, disable=self.disable)

    def on_delay(self, done: int, total: int) -> None:
        if self._pbar is None:
            return
        if self._pbar.total != total or done < self._pbar.n:
            self._pbar.reset(total=total)
        self._pbar.update(done - self._pbar.n)

    def on_end(self) -> None:
        self._close()

    def _close(self) -> None:
        if self._pbar is not None:
            self._pbar.close()
            self._pbar = None


def ensure_callback(callback: Optional[ProgressCallback]) -> ProgressCallback:
    """Substitute a no-op callback for None."""
    return callback if callback is not None else ProgressCallback()
