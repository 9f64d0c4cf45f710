"""
zapvault - Execution Context

Call serialization and whole-call rollback.

A ledger host runs one transaction at a time and discards a failed one
without trace. ExecutionContext reproduces both for in-process state:

  - call() takes a non-blocking lock; a nested or concurrent attempt fails
    at once with ReentrantCall
  - on entry every enlisted participant is snapshotted
  - the call timestamp is frozen at entry (now()), like a block timestamp
  - on any exception the snapshots are restored in reverse order and the
    exception propagates unchanged

Participants implement snapshot() -> object and restore(snapshot).

Usage:
    ctx = ExecutionContext()
    ctx.enlist(tokens)
    ctx.enlist(vault)

    with ctx.call("deposit"):
        ...  # all-or-nothing
"""

import functools
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, List, Optional, Tuple

from .errors import ReentrantCall

log = logging.getLogger(__name__)


class ExecutionContext:
    """Mutual-exclusion guard plus snapshot journal shared by one deployment."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._lock = threading.Lock()
        self._participants: List[Any] = []
        self._active: Optional[str] = None
        self._owner: Optional[int] = None
        self._timestamp: Optional[float] = None

    def enlist(self, participant) -> None:
        """Register state that must roll back with a failed call."""
        if not (hasattr(participant, "snapshot") and hasattr(participant, "restore")):
            raise TypeError(f"{type(participant).__name__} cannot take part in rollback")
        if participant not in self._participants:
            self._participants.append(participant)

    @property
    def active(self) -> Optional[str]:
        """Name of the operation currently holding the guard."""
        return self._active

    def now(self) -> float:
        """Timestamp of the current call, frozen at entry; the clock outside a call."""
        if self._timestamp is not None and self.in_call:
            return self._timestamp
        return self.clock()

    @property
    def in_call(self) -> bool:
        """True when the current thread holds the guard."""
        return self._owner == threading.get_ident()

    @contextmanager
    def call(self, operation: str):
        if not self._lock.acquire(blocking=False):
            raise ReentrantCall(operation, self._active or "")
        self._active = operation
        self._owner = threading.get_ident()
        self._timestamp = self.clock()
        journal: List[Tuple[Any, Any]] = []
        try:
            for participant in self._participants:
                journal.append((participant, participant.snapshot()))
            yield self
        except BaseException as e:
            for participant, snapshot in reversed(journal):
                participant.restore(snapshot)
            log.warning(f"{operation} reverted: {e}")
            raise
        finally:
            self._active = None
            self._owner = None
            self._timestamp = None
            self._lock.release()

    def require_call(self, operation: str) -> None:
        """Unguarded entry points refuse to run outside a call."""
        if not self.in_call:
            raise RuntimeError(f"{operation} must run inside an ExecutionContext call")


def guarded(method):
    """Run a method as one atomic, non-reentrant call on self.context."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.context.call(method.__name__):
            return method(self, *args, **kwargs)
    return wrapper
