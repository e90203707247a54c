"""Persistence adapter: one serialized blob per key.

The whole conversation collection lives under a single stable key as a JSON
array of conversation objects. There is no schema migration; a blob that
does not decode is reported as ``ParsePersistenceError`` and callers treat
it as absent.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from ..errors import ParsePersistenceError
from .models import Conversation

logger = logging.getLogger(__name__)

_collection_adapter = TypeAdapter(list[Conversation])


class BlobStore(Protocol):
    def read(self, key: str) -> Optional[bytes]: ...

    def write(self, key: str, data: bytes) -> None: ...


class FileBlobStore:
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("Failed to read %s: %s", path, e)
            return None

    def write(self, key: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        # Write to a sibling temp file first so a crash never leaves a torn blob
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class MemoryBlobStore:
    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self.blobs: dict[str, bytes] = dict(initial or {})

    def read(self, key: str) -> Optional[bytes]:
        return self.blobs.get(key)

    def write(self, key: str, data: bytes) -> None:
        self.blobs[key] = data


def encode_collection(conversations: list[Conversation]) -> bytes:
    return json.dumps(
        _collection_adapter.dump_python(conversations, mode="json"),
        indent=2,
        ensure_ascii=False,
    ).encode("utf-8")


def decode_collection(data: bytes) -> list[Conversation]:
    try:
        return _collection_adapter.validate_json(data)
    except ValidationError as e:
        raise ParsePersistenceError(
            f"Stored conversations are malformed ({e.error_count()} errors)"
        ) from e
