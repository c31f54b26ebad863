"""Shared test fixtures for sitedeploy."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from sitedeploy.clients.base import InvalidationSubmitError, TransferError
from sitedeploy.clients.memory import InMemoryCdn, InMemoryObjectStore
from sitedeploy.core.env_lock import EnvironmentLock
from sitedeploy.core.orchestrator import DeployOrchestrator
from sitedeploy.core.retry import RetryPolicy
from sitedeploy.core.run_ledger import DeployLedger
from sitedeploy.models.artifacts import ArtifactSet
from sitedeploy.models.policy import CachePolicy, CacheRule


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FlakyStore(InMemoryObjectStore):
    """InMemoryObjectStore with injected put/delete failures.

    ``put_failures[path] = n`` fails the first n puts of ``path``; a
    negative n fails every attempt.  Same for ``delete_failures``.
    """

    def __init__(self, objects: dict | None = None) -> None:
        super().__init__(objects)
        self.put_failures: dict[str, int] = {}
        self.delete_failures: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []

    @staticmethod
    def _maybe_fail(failures: dict[str, int], op: str, path: str) -> None:
        remaining = failures.get(path, 0)
        if remaining == 0:
            return
        if remaining > 0:
            failures[path] = remaining - 1
        raise TransferError(f"injected {op} failure for {path}")

    def put(self, path: str, data: bytes, **kwargs: Any) -> None:
        self.calls.append(("put", path))
        self._maybe_fail(self.put_failures, "put", path)
        super().put(path, data, **kwargs)

    def delete(self, path: str) -> None:
        self.calls.append(("delete", path))
        self._maybe_fail(self.delete_failures, "delete", path)
        super().delete(path)


class FailingCdn(InMemoryCdn):
    """InMemoryCdn whose first ``submit_failures`` submits raise (negative: all)."""

    def __init__(self, submit_failures: int = -1, polls_until_done: int = 0) -> None:
        super().__init__(polls_until_done=polls_until_done)
        self.submit_failures = submit_failures
        self.submit_attempts = 0

    def submit(self, paths: list[str], caller_reference: str) -> str:
        self.submit_attempts += 1
        if self.submit_failures != 0:
            if self.submit_failures > 0:
                self.submit_failures -= 1
            raise InvalidationSubmitError("injected submit timeout")
        return super().submit(paths, caller_reference)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def ledger(tmp_dir: Path) -> DeployLedger:
    """Provide a fresh DeployLedger backed by a temp SQLite database."""
    return DeployLedger(tmp_dir / "ledger.db")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def env_lock(tmp_dir: Path, clock: FakeClock) -> EnvironmentLock:
    """Provide an EnvironmentLock on the fake clock."""
    return EnvironmentLock(
        tmp_dir / "locks.db", ttl_seconds=60.0, clock=clock, sleep=clock.sleep
    )


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def cdn() -> InMemoryCdn:
    return InMemoryCdn()


@pytest.fixture
def policy() -> CachePolicy:
    """Hashed assets cached forever, HTML revalidated, everything else short."""
    return CachePolicy(
        rules={
            "": CacheRule(max_age=300),
            "assets/": CacheRule(max_age=31536000, immutable=True),
            "index.html": CacheRule(max_age=0, revalidate=True),
        }
    )


@pytest.fixture
def make_artifacts() -> Callable[..., ArtifactSet]:
    """Factory fixture: ArtifactSet from ``{path: content}``."""

    def _factory(files: dict[str, bytes | str], build_id: str = "test-build") -> ArtifactSet:
        pairs = [
            (path, data.encode() if isinstance(data, str) else data)
            for path, data in files.items()
        ]
        return ArtifactSet.from_pairs(pairs, build_id=build_id)

    return _factory


@pytest.fixture
def make_orchestrator(
    store: FlakyStore, cdn: InMemoryCdn, clock: FakeClock
) -> Callable[..., DeployOrchestrator]:
    """Factory fixture: orchestrator on the fake clock with zero-delay retries."""

    def _factory(**overrides: Any) -> DeployOrchestrator:
        kwargs: dict[str, Any] = {
            "environment": "test",
            "retry_policy": RetryPolicy(max_attempts=3, base_delay=0.0),
            "max_workers": 4,
            "poll_interval": 1.0,
            "verify_timeout": 10.0,
            "sleep": clock.sleep,
            "clock": clock,
        }
        kwargs.update(overrides)
        return DeployOrchestrator(
            kwargs.pop("store", store), kwargs.pop("cdn", cdn), **kwargs
        )

    return _factory


@pytest.fixture
def make_failing_cdn() -> Callable[..., FailingCdn]:
    return FailingCdn
