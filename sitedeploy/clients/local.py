"""Filesystem origin backend — a directory served as-is by a web server.

Storage layout: {root}/{path} for object bytes, plus an index file
{root}/.sitedeploy-index.json recording each object's content hash,
Cache-Control and Content-Type.  The index is the source of truth for
``list()``; files on disk that the index does not know about are not
considered published.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from sitedeploy.clients.base import TransferError
from sitedeploy.models.artifacts import RemoteObjectState

logger = logging.getLogger(__name__)

INDEX_NAME = ".sitedeploy-index.json"


class LocalDirectoryStore:
    """ObjectStoreClient writing into a local directory.

    Parameters
    ----------
    root:
        Origin directory.  Created if it does not exist.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._index_path = self._root / INDEX_NAME
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def _object_path(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if not target.is_relative_to(self._root.resolve()):
            raise TransferError(f"Refusing to write outside origin root: {path!r}")
        return target

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def _read_index(self) -> dict[str, dict[str, Any]]:
        if not self._index_path.exists():
            return {}
        try:
            return json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise TransferError(f"Unreadable origin index {self._index_path}: {exc}") from exc

    def _write_index(self, index: dict[str, dict[str, Any]]) -> None:
        tmp = self._index_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(index, sort_keys=True, indent=2), encoding="utf-8")
        os.replace(tmp, self._index_path)

    # ------------------------------------------------------------------
    # ObjectStoreClient
    # ------------------------------------------------------------------

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_hash: str,
        cache_control: str,
        content_type: str,
    ) -> None:
        target = self._object_path(path)
        with self._lock:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                tmp = target.with_name(f".{target.name}.partial")
                tmp.write_bytes(data)
                os.replace(tmp, target)
                index = self._read_index()
                index[path] = {
                    "content_hash": content_hash,
                    "cache_control": cache_control,
                    "content_type": content_type,
                }
                self._write_index(index)
            except OSError as exc:
                raise TransferError(f"Failed to write {path}: {exc}") from exc
        logger.debug("Wrote %s (%d bytes) to %s", path, len(data), self._root)

    def delete(self, path: str) -> None:
        target = self._object_path(path)
        with self._lock:
            try:
                target.unlink(missing_ok=True)
                index = self._read_index()
                if index.pop(path, None) is not None:
                    self._write_index(index)
            except OSError as exc:
                raise TransferError(f"Failed to delete {path}: {exc}") from exc
        logger.debug("Deleted %s from %s", path, self._root)

    def list(self) -> RemoteObjectState:
        with self._lock:
            index = self._read_index()
        return RemoteObjectState(
            objects={p: meta["content_hash"] for p, meta in index.items()}
        )

    def head(self, path: str) -> str | None:
        with self._lock:
            meta = self._read_index().get(path)
        return meta["content_hash"] if meta else None

    def metadata(self, path: str) -> dict[str, Any] | None:
        """Return the recorded headers for ``path``, or None if unpublished."""
        with self._lock:
            return self._read_index().get(path)
