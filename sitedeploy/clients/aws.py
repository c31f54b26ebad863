"""AWS backends: S3 as the object store, CloudFront as the CDN.

Both clients take an explicit ``DeployCredentials`` at construction and
build their own boto3 session from it, so the trust boundary is the
object handed in rather than whatever happens to be in the process
environment.  Empty credentials fall back to boto3's default chain.

The published content hash is stored as S3 user metadata
(``x-amz-meta-content-hash``); objects without it list with an empty hash
and are therefore always re-uploaded.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from sitedeploy.clients.base import InvalidationSubmitError, TransferError
from sitedeploy.models.artifacts import RemoteObjectState
from sitedeploy.models.environment import DeployCredentials
from sitedeploy.models.reports import InvalidationStatus

logger = logging.getLogger(__name__)

HASH_METADATA_KEY = "content-hash"

# CloudFront rejects invalidation batches with more paths than this.
MAX_INVALIDATION_PATHS = 3000


def make_session(credentials: DeployCredentials, region: str = "") -> boto3.session.Session:
    """Build a boto3 session scoped to ``credentials``."""
    kwargs: dict[str, Any] = {}
    if credentials.is_explicit:
        kwargs["aws_access_key_id"] = credentials.access_key_id
        kwargs["aws_secret_access_key"] = credentials.secret_access_key.get_secret_value()
        token = credentials.session_token.get_secret_value()
        if token:
            kwargs["aws_session_token"] = token
    region_name = region or credentials.region
    if region_name:
        kwargs["region_name"] = region_name
    return boto3.session.Session(**kwargs)


class S3ObjectStore:
    """ObjectStoreClient over one S3 bucket (optionally under a key prefix)."""

    def __init__(
        self,
        bucket: str,
        *,
        prefix: str = "",
        credentials: DeployCredentials | None = None,
        region: str = "",
        list_workers: int = 8,
        client: Any = None,
    ) -> None:
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._list_workers = max(list_workers, 1)
        self._s3 = client or make_session(credentials or DeployCredentials(), region).client("s3")

    def _key(self, path: str) -> str:
        return f"{self._prefix}/{path}" if self._prefix else path

    def _path(self, key: str) -> str:
        return key[len(self._prefix) + 1:] if self._prefix else key

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_hash: str,
        cache_control: str,
        content_type: str,
    ) -> None:
        try:
            self._s3.put_object(
                Bucket=self._bucket,
                Key=self._key(path),
                Body=data,
                CacheControl=cache_control,
                ContentType=content_type,
                Metadata={HASH_METADATA_KEY: content_hash},
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransferError(f"put s3://{self._bucket}/{self._key(path)}: {exc}") from exc
        logger.debug("Uploaded s3://%s/%s", self._bucket, self._key(path))

    def delete(self, path: str) -> None:
        try:
            self._s3.delete_object(Bucket=self._bucket, Key=self._key(path))
        except (ClientError, BotoCoreError) as exc:
            raise TransferError(f"delete s3://{self._bucket}/{self._key(path)}: {exc}") from exc
        logger.debug("Deleted s3://%s/%s", self._bucket, self._key(path))

    def list(self) -> RemoteObjectState:
        """List published objects and their content hashes.

        The hash lives in object metadata, which ListObjectsV2 does not
        return, so each key needs a HEAD.  Those run on a bounded pool.
        """
        paths: list[str] = []
        list_kwargs: dict[str, Any] = {"Bucket": self._bucket}
        if self._prefix:
            list_kwargs["Prefix"] = f"{self._prefix}/"
        try:
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(**list_kwargs):
                paths.extend(self._path(item["Key"]) for item in page.get("Contents", []))
        except (ClientError, BotoCoreError) as exc:
            raise TransferError(f"list s3://{self._bucket}/{self._prefix}: {exc}") from exc
        if not paths:
            return RemoteObjectState()
        workers = min(self._list_workers, len(paths))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sitedeploy-list") as pool:
            hashes = list(pool.map(self.head, paths))
        return RemoteObjectState(
            objects={path: content_hash or "" for path, content_hash in zip(paths, hashes)}
        )

    def head(self, path: str) -> str | None:
        try:
            response = self._s3.head_object(Bucket=self._bucket, Key=self._key(path))
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return None
            raise TransferError(f"head s3://{self._bucket}/{self._key(path)}: {exc}") from exc
        except BotoCoreError as exc:
            raise TransferError(f"head s3://{self._bucket}/{self._key(path)}: {exc}") from exc
        return response.get("Metadata", {}).get(HASH_METADATA_KEY, "")


_CLOUDFRONT_STATUS = {
    "InProgress": InvalidationStatus.PENDING,
    "Completed": InvalidationStatus.DONE,
}


class CloudFrontInvalidator:
    """InvalidationClient for one CloudFront distribution.

    CloudFront deduplicates on ``CallerReference``: resubmitting the same
    batch with the same reference returns the existing invalidation, which
    is what makes retries after a transient failure safe.
    """

    def __init__(
        self,
        distribution_id: str,
        *,
        credentials: DeployCredentials | None = None,
        path_prefix: str = "",
        client: Any = None,
    ) -> None:
        self._distribution_id = distribution_id
        self._path_prefix = path_prefix.strip("/")
        self._cf = client or make_session(credentials or DeployCredentials()).client("cloudfront")

    def _url_path(self, path: str) -> str:
        full = f"{self._path_prefix}/{path}" if self._path_prefix else path
        return "/" + quote(full, safe="/~")

    def _items(self, paths: list[str]) -> list[str]:
        """URL-encoded invalidation paths, collapsed to one wildcard past the batch limit."""
        if len(paths) > MAX_INVALIDATION_PATHS:
            # The wildcard itself must stay unencoded.
            wildcard = self._url_path("").rstrip("/") + "/*"
            logger.info(
                "%d paths exceed the CloudFront batch limit; invalidating %s instead",
                len(paths),
                wildcard,
            )
            return [wildcard]
        return [self._url_path(p) for p in paths]

    def submit(self, paths: list[str], caller_reference: str) -> str:
        items = self._items(paths)
        try:
            response = self._cf.create_invalidation(
                DistributionId=self._distribution_id,
                InvalidationBatch={
                    "Paths": {"Quantity": len(items), "Items": items},
                    "CallerReference": caller_reference,
                },
            )
        except (ClientError, BotoCoreError) as exc:
            raise InvalidationSubmitError(
                f"create_invalidation on {self._distribution_id}: {exc}"
            ) from exc
        invalidation_id = response["Invalidation"]["Id"]
        logger.info(
            "Submitted CloudFront invalidation %s (%d paths)", invalidation_id, len(items)
        )
        return invalidation_id

    def status(self, invalidation_id: str) -> InvalidationStatus:
        try:
            response = self._cf.get_invalidation(
                DistributionId=self._distribution_id, Id=invalidation_id
            )
        except (ClientError, BotoCoreError) as exc:
            raise InvalidationSubmitError(
                f"get_invalidation {invalidation_id}: {exc}"
            ) from exc
        raw = response["Invalidation"]["Status"]
        return _CLOUDFRONT_STATUS.get(raw, InvalidationStatus.FAILED)
