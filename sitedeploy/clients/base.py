"""Object store and CDN client protocols, plus the errors they raise.

The orchestrator depends only on these Protocols.  Each store operation
reports success or failure for exactly one object; no multi-object
atomicity is assumed.

Backends
--------
- ``InMemoryObjectStore`` / ``InMemoryCdn`` / ``NullCdn`` (memory.py)
- ``LocalDirectoryStore`` (local.py) — a directory acting as origin
- ``S3ObjectStore`` / ``CloudFrontInvalidator`` (aws.py) — boto3
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sitedeploy.models.artifacts import RemoteObjectState
from sitedeploy.models.reports import InvalidationStatus


class TransferError(RuntimeError):
    """An object store write or delete failed.  Retried with backoff."""


class PreconditionFailedError(TransferError):
    """The published object changed between planning and writing.

    Raised only when precondition checks are enabled; never retried.
    """


class InvalidationSubmitError(RuntimeError):
    """The CDN rejected or failed an invalidation submit/status request."""


@runtime_checkable
class ObjectStoreClient(Protocol):
    """Path-addressed remote store the site is published to."""

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_hash: str,
        cache_control: str,
        content_type: str,
    ) -> None:
        """Write one object.  Raises TransferError on failure."""
        ...

    def delete(self, path: str) -> None:
        """Remove one object.  Deleting an absent object succeeds."""
        ...

    def list(self) -> RemoteObjectState:
        """Return path -> content hash for everything currently published."""
        ...

    def head(self, path: str) -> str | None:
        """Return the published content hash of ``path``, or None if absent."""
        ...


@runtime_checkable
class InvalidationClient(Protocol):
    """CDN cache invalidation API."""

    def submit(self, paths: list[str], caller_reference: str) -> str:
        """Submit one invalidation batch; returns the invalidation id.

        Resubmitting with the same ``caller_reference`` must not create a
        second, different invalidation.
        """
        ...

    def status(self, invalidation_id: str) -> InvalidationStatus:
        """Return the current status of a submitted invalidation."""
        ...
