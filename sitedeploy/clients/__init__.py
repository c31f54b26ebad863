"""Store and CDN clients, and construction from an EnvironmentDescriptor."""

from __future__ import annotations

from sitedeploy.clients.base import (
    InvalidationClient,
    InvalidationSubmitError,
    ObjectStoreClient,
    PreconditionFailedError,
    TransferError,
)
from sitedeploy.clients.local import LocalDirectoryStore
from sitedeploy.clients.memory import InMemoryCdn, InMemoryObjectStore, NullCdn
from sitedeploy.models.environment import DeployCredentials, EnvironmentDescriptor

__all__ = [
    "InvalidationClient",
    "InvalidationSubmitError",
    "ObjectStoreClient",
    "PreconditionFailedError",
    "TransferError",
    "LocalDirectoryStore",
    "InMemoryCdn",
    "InMemoryObjectStore",
    "NullCdn",
    "create_clients",
]


def create_clients(
    descriptor: EnvironmentDescriptor,
    credentials: DeployCredentials | None = None,
) -> tuple[ObjectStoreClient, InvalidationClient]:
    """Build the (store, cdn) pair an environment deploys through.

    boto3 is imported lazily so local and in-memory environments work
    without AWS configuration.
    """
    credentials = credentials or DeployCredentials()

    if descriptor.backend == "s3":
        from sitedeploy.clients.aws import CloudFrontInvalidator, S3ObjectStore

        store: ObjectStoreClient = S3ObjectStore(
            descriptor.bucket,
            prefix=descriptor.prefix,
            credentials=credentials,
            region=descriptor.region,
        )
        if descriptor.has_cdn:
            cdn: InvalidationClient = CloudFrontInvalidator(
                descriptor.distribution_id,
                credentials=credentials,
                path_prefix=descriptor.cdn_path_prefix,
            )
        else:
            cdn = NullCdn()
        return store, cdn

    if descriptor.backend == "local":
        if descriptor.root is None:
            raise ValueError(f"Environment {descriptor.name!r}: local backend needs 'root'")
        return LocalDirectoryStore(descriptor.root), NullCdn()

    return InMemoryObjectStore(), InMemoryCdn()
