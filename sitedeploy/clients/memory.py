"""In-memory store and CDN backends.

Used for the ``memory`` environment backend and as the base for test
fakes.  Thread-safe, since the orchestrator writes from a worker pool.
"""

from __future__ import annotations

import itertools
import threading

from pydantic import BaseModel, ConfigDict

from sitedeploy.clients.base import InvalidationSubmitError
from sitedeploy.models.artifacts import RemoteObjectState
from sitedeploy.models.reports import InvalidationStatus


class StoredObject(BaseModel):
    """One published object and the headers it was written with."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    content_hash: str
    cache_control: str
    content_type: str


class InMemoryObjectStore:
    """Dictionary-backed ObjectStoreClient."""

    def __init__(self, objects: dict[str, StoredObject] | None = None) -> None:
        self._objects: dict[str, StoredObject] = dict(objects or {})
        self._lock = threading.Lock()

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_hash: str,
        cache_control: str,
        content_type: str,
    ) -> None:
        with self._lock:
            self._objects[path] = StoredObject(
                data=data,
                content_hash=content_hash,
                cache_control=cache_control,
                content_type=content_type,
            )

    def delete(self, path: str) -> None:
        with self._lock:
            self._objects.pop(path, None)

    def list(self) -> RemoteObjectState:
        with self._lock:
            return RemoteObjectState(
                objects={p: o.content_hash for p, o in self._objects.items()}
            )

    def head(self, path: str) -> str | None:
        with self._lock:
            obj = self._objects.get(path)
        return obj.content_hash if obj else None

    def get(self, path: str) -> StoredObject | None:
        with self._lock:
            return self._objects.get(path)


class InMemoryCdn:
    """Records submitted batches; invalidations complete after N status polls.

    Parameters
    ----------
    polls_until_done:
        Number of ``status()`` calls that report PENDING before DONE.
    """

    def __init__(self, polls_until_done: int = 0) -> None:
        self.polls_until_done = polls_until_done
        self.submissions: list[tuple[str, tuple[str, ...], str]] = []
        self._by_reference: dict[str, str] = {}
        self._polls: dict[str, int] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def submit(self, paths: list[str], caller_reference: str) -> str:
        with self._lock:
            existing = self._by_reference.get(caller_reference)
            if existing is not None:
                return existing
            invalidation_id = f"INV{next(self._ids):06d}"
            self._by_reference[caller_reference] = invalidation_id
            self._polls[invalidation_id] = 0
            self.submissions.append((invalidation_id, tuple(paths), caller_reference))
            return invalidation_id

    def status(self, invalidation_id: str) -> InvalidationStatus:
        with self._lock:
            if invalidation_id not in self._polls:
                raise InvalidationSubmitError(f"Unknown invalidation {invalidation_id}")
            self._polls[invalidation_id] += 1
            if self._polls[invalidation_id] > self.polls_until_done:
                return InvalidationStatus.DONE
            return InvalidationStatus.PENDING


class NullCdn:
    """CDN client for environments served straight from the store."""

    def submit(self, paths: list[str], caller_reference: str) -> str:
        return f"none-{caller_reference}"

    def status(self, invalidation_id: str) -> InvalidationStatus:
        return InvalidationStatus.DONE
