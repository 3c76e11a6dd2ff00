"""
Profile picture handling: one blob per user, referenced by ``profile_pic_id``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pbsnet.blobs import BlobStore
from pbsnet.errors import InvalidInput, ServiceError

if TYPE_CHECKING:
    from pbsnet.profiles import ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "profile.png"


@dataclass(frozen=True)
class ViewUrlBuilder:
    """Builds retrieval URLs for stored blobs. No network calls."""

    endpoint: str
    project_id: str
    bucket_id: str

    def build(self, blob_id: str, *, admin: bool = False) -> str:
        url = (
            f"{self.endpoint.rstrip('/')}/storage/buckets/{self.bucket_id}"
            f"/files/{blob_id}/view?project={self.project_id}"
        )
        if admin:
            url += "&mode=admin"
        return url

    def __call__(self, blob_id: str | None, *, admin: bool = False) -> str | None:
        if not blob_id:
            return None
        return self.build(blob_id, admin=admin)


class MediaService:
    def __init__(self, blobs: BlobStore, profiles: "ProfileStore", urls: ViewUrlBuilder):
        self.blobs = blobs
        self.profiles = profiles
        self.urls = urls

    def build_view_url(self, blob_id: str, *, admin: bool = False) -> str:
        return self.urls.build(blob_id, admin=admin)

    def replace_profile_picture(
        self, user_id: str, content: bytes, filename: str | None = None
    ) -> str:
        """
        Upload ``content`` as the user's picture and return the new blob id.

        The previous blob is deleted best-effort. The pointer update must
        succeed for the call to succeed; if it fails after the upload the new
        blob is left orphaned and logged.
        """
        if not content:
            raise InvalidInput("No file uploaded")

        old_blob_id = self.profiles.get(user_id).profile_pic_id
        if old_blob_id:
            self._discard(old_blob_id)

        blob_id = self.blobs.upload(content, filename or DEFAULT_FILENAME)
        try:
            self.profiles.set_profile_pic(user_id, blob_id)
        except ServiceError:
            logger.error(
                "Orphaned blob %s: profile %s pointer update failed", blob_id, user_id
            )
            raise
        return blob_id

    def _discard(self, blob_id: str) -> None:
        try:
            self.blobs.delete(blob_id)
        except ServiceError as exc:
            logger.warning("Could not delete old profile picture %s: %s", blob_id, exc)
