"""
Backend guard tests: deadlines, error translation and read retries.
"""

from __future__ import annotations

import threading
import time

import pytest

from src.core.backend import BackendGuard, RepoError, translate
from src.core.errors import BackendError, ConflictError, NotFoundError
from src.core.ports.storage import KeyExistsError, StorageError


class TestTranslate:
    def test_asset_errors_pass_through(self) -> None:
        err = NotFoundError("x")
        assert translate(err, "op") is err

    def test_key_collision_is_conflict(self) -> None:
        translated = translate(KeyExistsError("k"), "storage.put")
        assert isinstance(translated, ConflictError)
        assert translated.retryable is True

    @pytest.mark.parametrize("exc", [StorageError("boom"), RepoError("locked")])
    def test_adapter_failures_are_backend_errors(self, exc: Exception) -> None:
        assert isinstance(translate(exc, "op"), BackendError)

    def test_unknown_errors_propagate(self) -> None:
        with pytest.raises(KeyError):
            translate(KeyError("bug"), "op")


class TestCall:
    def test_direct_call_returns_value(self) -> None:
        assert BackendGuard().call("op", lambda a, b=0: a + b, 2, b=3) == 5

    def test_storage_error_translated(self) -> None:
        def fail() -> None:
            raise StorageError("disk gone")

        with pytest.raises(BackendError) as exc_info:
            BackendGuard().call("storage.put", fail)
        assert "storage.put" in exc_info.value.message

    def test_programming_errors_not_masked(self) -> None:
        def fail() -> None:
            raise TypeError("wrong arity")

        with pytest.raises(TypeError):
            BackendGuard().call("op", fail)

    def test_timeout_becomes_backend_error(self) -> None:
        release = threading.Event()
        guard = BackendGuard(timeout_seconds=0.05)
        try:
            with pytest.raises(BackendError) as exc_info:
                guard.call("storage.signed_url", release.wait, 5)
            assert "timed out" in exc_info.value.message
            assert guard.abandoned == 1
        finally:
            release.set()

    def test_hung_calls_do_not_block_later_calls(self) -> None:
        release = threading.Event()
        guard = BackendGuard(timeout_seconds=0.2)
        try:
            for _ in range(3):
                with pytest.raises(BackendError):
                    guard.call("storage.get", release.wait, 5)

            assert guard.call("storage.exists", lambda: "ok") == "ok"
        finally:
            release.set()

    def test_finished_calls_are_not_counted(self) -> None:
        release = threading.Event()
        guard = BackendGuard(timeout_seconds=0.05)
        with pytest.raises(BackendError):
            guard.call("storage.get", release.wait, 5)

        release.set()
        deadline = time.monotonic() + 2
        while guard.abandoned and time.monotonic() < deadline:
            time.sleep(0.01)
        assert guard.abandoned == 0

    def test_errors_raised_under_deadline_are_translated(self) -> None:
        def fail() -> None:
            raise RepoError("database is locked")

        with pytest.raises(BackendError) as exc_info:
            BackendGuard(timeout_seconds=1.0).call("assets.get", fail)
        assert "locked" in exc_info.value.message

    def test_fast_call_under_deadline(self) -> None:
        assert BackendGuard(timeout_seconds=2.0).call("op", lambda: "ok") == "ok"


class TestRead:
    def test_retried_once(self) -> None:
        calls = {"n": 0}

        def flaky() -> str:
            calls["n"] += 1
            if calls["n"] == 1:
                raise RepoError("database is locked")
            return "row"

        assert BackendGuard().read("assets.get", flaky) == "row"
        assert calls["n"] == 2

    def test_gives_up_after_second_failure(self) -> None:
        calls = {"n": 0}

        def down() -> None:
            calls["n"] += 1
            raise StorageError("unreachable")

        with pytest.raises(BackendError):
            BackendGuard().read("storage.signed_url", down)
        assert calls["n"] == 2

    def test_not_found_not_retried(self) -> None:
        calls = {"n": 0}

        def missing() -> None:
            calls["n"] += 1
            raise NotFoundError("x")

        with pytest.raises(NotFoundError):
            BackendGuard().read("assets.get", missing)
        assert calls["n"] == 1

    def test_write_call_not_retried(self) -> None:
        calls = {"n": 0}

        def insert() -> None:
            calls["n"] += 1
            raise RepoError("constraint failed")

        with pytest.raises(BackendError):
            BackendGuard().call("assets.insert", insert)
        assert calls["n"] == 1
