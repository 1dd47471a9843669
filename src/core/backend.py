"""
Backend call guard.

Wraps calls into the storage backend and the metadata repository so that:
- every call can be bounded by a timeout
- adapter exceptions surface as the subsystem's error taxonomy
- idempotent reads get exactly one retry on BackendError

Each deadline-bound call runs on its own daemon thread. A call that times
out keeps running there and its result is discarded; it never holds up
calls made after it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Generic, ParamSpec, TypeVar

from src.core.errors import AssetError, BackendError, ConflictError
from src.core.ports.storage import KeyExistsError, StorageError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class RepoError(Exception):
    """Raised by metadata repository adapters when the store itself fails."""


def translate(exc: Exception, op: str) -> AssetError:
    if isinstance(exc, AssetError):
        return exc
    if isinstance(exc, KeyExistsError):
        return ConflictError(f"Storage key collision during {op}; retry the request")
    if isinstance(exc, StorageError):
        return BackendError(f"Storage backend failed during {op}: {exc}")
    if isinstance(exc, RepoError):
        return BackendError(f"Metadata store failed during {op}: {exc}")
    raise exc


class _Attempt(Generic[T]):
    """One backend call on a dedicated daemon thread."""

    def __init__(self, op: str, fn: Callable[[], T]) -> None:
        self._fn = fn
        self._value: T | None = None
        self._error: Exception | None = None
        self.done = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"asset-backend:{op}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            self._value = self._fn()
        except Exception as e:
            self._error = e
        finally:
            self.done.set()

    def result(self, timeout: float) -> T:
        """Raises TimeoutError if the call is still running after ``timeout``."""
        if not self.done.wait(timeout):
            raise TimeoutError
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]


class BackendGuard:
    """Runs backend calls with an optional deadline and error translation."""

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self._abandoned: list[_Attempt[Any]] = []
        self._lock = threading.Lock()

    @property
    def abandoned(self) -> int:
        """Timed-out calls that are still running."""
        with self._lock:
            self._abandoned = [a for a in self._abandoned if not a.done.is_set()]
            return len(self._abandoned)

    def call(self, op: str, fn: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        try:
            if self.timeout_seconds is None:
                return fn(*args, **kwargs)
            attempt: _Attempt[T] = _Attempt(op, lambda: fn(*args, **kwargs))
            try:
                return attempt.result(self.timeout_seconds)
            except TimeoutError as e:
                with self._lock:
                    self._abandoned.append(attempt)
                logger.warning(
                    "Backend call %s timed out after %ss (%d still running)",
                    op,
                    self.timeout_seconds,
                    self.abandoned,
                )
                raise BackendError(
                    f"Backend call {op} timed out after {self.timeout_seconds}s"
                ) from e
        except (AssetError, StorageError, RepoError) as e:
            translated = translate(e, op)
            if translated is e:
                raise
            raise translated from e

    def read(self, op: str, fn: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Idempotent read: retried once on BackendError."""
        try:
            return self.call(op, fn, *args, **kwargs)
        except BackendError as e:
            logger.warning("Retrying %s after backend error: %s", op, e.message)
            return self.call(op, fn, *args, **kwargs)
