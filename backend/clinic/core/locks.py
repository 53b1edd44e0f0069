"""
Process-local keyed locks.

Serializes check-then-write sequences that share a key, e.g. every booking for
``doctor:7`` or every payment against ``invoice:12``. Locks for unused keys are
dropped automatically once no thread holds a reference to them.
"""

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class KeyedLockRegistry:
    """Hands out one ``threading.Lock`` per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, _KeyLock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: str) -> "_KeyLock":
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = _KeyLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Acquire the locks for ``keys`` in sorted order, release on exit."""
        ordered = sorted(set(keys))
        # Strong references keep the weak entries alive while held
        held = [self._lock_for(key) for key in ordered]
        acquired = []
        try:
            for lock in held:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


class _KeyLock:
    """Weak-referenceable wrapper around ``threading.Lock``."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def acquire(self) -> None:
        self._lock.acquire()

    def release(self) -> None:
        self._lock.release()


# Shared by every unit of work in the process
default_registry = KeyedLockRegistry()


def doctor_lock(doctor_id: int) -> str:
    return f"doctor:{doctor_id}"


def appointment_lock(appointment_id: int) -> str:
    return f"appointment:{appointment_id}"


def invoice_lock(invoice_id: int) -> str:
    return f"invoice:{invoice_id}"


def appointment_invoice_lock(appointment_id: int) -> str:
    return f"appointment-invoice:{appointment_id}"
