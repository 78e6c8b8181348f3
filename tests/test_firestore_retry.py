from __future__ import annotations

import pytest
from google.api_core import exceptions as gexc

from ledgersync.persistence.firestore_retry import is_transient, with_firestore_retry


class _Flaky:
    def __init__(self, failures: list[BaseException]) -> None:
        self.failures = list(failures)
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


def test_transient_classification() -> None:
    assert is_transient(gexc.ServiceUnavailable("x"))
    assert is_transient(gexc.DeadlineExceeded("x"))
    assert not is_transient(gexc.PermissionDenied("x"))
    assert not is_transient(ValueError("x"))


def test_single_attempt_by_default() -> None:
    fn = _Flaky([gexc.ServiceUnavailable("x")])
    with pytest.raises(gexc.ServiceUnavailable):
        with_firestore_retry(fn, sleep=lambda s: None)
    assert fn.calls == 1


def test_retries_transient_errors_up_to_max_attempts() -> None:
    sleeps: list[float] = []
    fn = _Flaky([gexc.ServiceUnavailable("x"), gexc.Aborted("y")])
    assert with_firestore_retry(fn, max_attempts=3, sleep=sleeps.append) == "ok"
    assert fn.calls == 3
    assert len(sleeps) == 2
    assert all(0 <= s <= 5.0 for s in sleeps)


def test_gives_up_after_max_attempts() -> None:
    fn = _Flaky([gexc.ServiceUnavailable("x")] * 5)
    with pytest.raises(gexc.ServiceUnavailable):
        with_firestore_retry(fn, max_attempts=2, sleep=lambda s: None)
    assert fn.calls == 2


def test_non_transient_errors_are_raised_immediately() -> None:
    fn = _Flaky([gexc.InvalidArgument("bad")])
    with pytest.raises(gexc.InvalidArgument):
        with_firestore_retry(fn, max_attempts=5, sleep=lambda s: None)
    assert fn.calls == 1
