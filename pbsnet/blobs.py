"""
Blob storage abstraction for Appwrite Storage and in-memory testing.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.input_file import InputFile
from appwrite.services.storage import Storage

from pbsnet.errors import NotFound, UpstreamFailure

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Defines the operations the API needs from file storage."""

    def upload(self, content: bytes, filename: str) -> str:
        ...

    def delete(self, blob_id: str) -> None:
        ...


@dataclass
class InMemoryBlobStore:
    """Test double for storage interactions."""

    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload(self, content: bytes, filename: str) -> str:
        blob_id = uuid.uuid4().hex[:20]
        self.stored_objects[blob_id] = (filename, bytes(content))
        return blob_id

    def delete(self, blob_id: str) -> None:
        if self.stored_objects.pop(blob_id, None) is None:
            raise NotFound("File not found")

    def reset(self) -> None:
        self.stored_objects.clear()


class AppwriteBlobStore:
    """
    Appwrite Storage client bound to a single bucket.
    """

    def __init__(self, client: Client, bucket_id: str):
        self.bucket_id = bucket_id
        self._storage = Storage(client)

    def upload(self, content: bytes, filename: str) -> str:
        try:
            created = self._storage.create_file(
                self.bucket_id,
                ID.unique(),
                InputFile.from_bytes(content, filename),
            )
        except AppwriteException as exc:
            logger.exception("Upload to bucket %s failed", self.bucket_id)
            raise UpstreamFailure("Upload failed") from exc
        return created["$id"]

    def delete(self, blob_id: str) -> None:
        try:
            self._storage.delete_file(self.bucket_id, blob_id)
        except AppwriteException as exc:
            if exc.code == 404:
                raise NotFound("File not found") from exc
            raise UpstreamFailure() from exc
