"""
Dependency wiring for the FastAPI app.

Platform clients are process-wide singletons built once from settings; the
adapters on top of them are cheap and built per request so tests can swap
settings through ``app.dependency_overrides``.
"""

from __future__ import annotations

import hmac
import logging
from datetime import timedelta
from typing import Optional

from appwrite.client import Client
from fastapi import Depends, Header

from pbsnet.blobs import AppwriteBlobStore, BlobStore, InMemoryBlobStore
from pbsnet.bridge import IdentityBridge
from pbsnet.config import Settings, get_settings
from pbsnet.directory import AppwriteUserDirectory, InMemoryUserDirectory, UserDirectory
from pbsnet.documents import AppwriteDocumentStore, DocumentStore, InMemoryDocumentStore
from pbsnet.errors import Forbidden, InvalidToken, ServiceError, Unauthorized
from pbsnet.locks import InMemoryUserLocks, RedisUserLocks, UserLocks
from pbsnet.media import MediaService, ViewUrlBuilder
from pbsnet.profiles import ProfileStore
from pbsnet.system_data import SystemDataStore
from pbsnet.tokens import TokenClaims, TokenService

logger = logging.getLogger(__name__)

_admin_client: Client | None = None
_document_store: DocumentStore | None = None
_user_directory: UserDirectory | None = None
_blob_store: BlobStore | None = None
_user_locks: UserLocks | None = None


def _get_admin_client(settings: Settings) -> Client:
    global _admin_client
    if _admin_client is not None:
        return _admin_client
    client = Client()
    client.set_endpoint(settings.appwrite_endpoint)
    client.set_project(settings.appwrite_project_id or "")
    client.set_key(settings.appwrite_api_key or "")
    _admin_client = client
    return _admin_client


def get_document_store(settings: Settings = Depends(get_settings)) -> DocumentStore:
    """
    Return a singleton document store so state persists across requests.
    """
    global _document_store
    if _document_store is not None:
        return _document_store

    if settings.uses_appwrite:
        _document_store = AppwriteDocumentStore(
            _get_admin_client(settings), settings.database_id
        )
    else:
        logger.info("Using in-memory document store")
        _document_store = InMemoryDocumentStore()
    return _document_store


def get_user_directory(settings: Settings = Depends(get_settings)) -> UserDirectory:
    global _user_directory
    if _user_directory is not None:
        return _user_directory

    if settings.uses_appwrite:
        _user_directory = AppwriteUserDirectory(
            _get_admin_client(settings),
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id or "",
        )
    else:
        logger.info("Using in-memory user directory")
        _user_directory = InMemoryUserDirectory()
    return _user_directory


def get_blob_store(settings: Settings = Depends(get_settings)) -> BlobStore:
    global _blob_store
    if _blob_store is not None:
        return _blob_store

    if settings.uses_appwrite:
        _blob_store = AppwriteBlobStore(_get_admin_client(settings), settings.bucket_id)
    else:
        _blob_store = InMemoryBlobStore()
    return _blob_store


def get_user_locks(settings: Settings = Depends(get_settings)) -> UserLocks:
    """
    Return the keyed-lock registry; Redis-backed when several workers share it.
    """
    global _user_locks
    if _user_locks is not None:
        return _user_locks

    if settings.redis_url:
        _user_locks = RedisUserLocks(
            url=settings.redis_url, timeout=settings.lock_timeout_seconds
        )
    else:
        _user_locks = InMemoryUserLocks(timeout=settings.lock_timeout_seconds)
    return _user_locks


def reset_clients() -> None:
    """Drop every cached client (used by tests between cases)."""
    global _admin_client, _document_store, _user_directory, _blob_store, _user_locks
    _admin_client = None
    _document_store = None
    _user_directory = None
    _blob_store = None
    _user_locks = None


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    try:
        return TokenService(settings.jwt_secret, ttl=timedelta(days=settings.token_ttl_days))
    except ValueError as exc:
        logger.error("Bearer tokens unavailable: %s", exc)
        raise ServiceError("Server is not configured to issue tokens") from exc


def get_view_urls(settings: Settings = Depends(get_settings)) -> ViewUrlBuilder:
    return ViewUrlBuilder(
        endpoint=settings.appwrite_endpoint or "",
        project_id=settings.appwrite_project_id or "",
        bucket_id=settings.bucket_id,
    )


def get_profile_store(
    settings: Settings = Depends(get_settings),
    documents: DocumentStore = Depends(get_document_store),
    locks: UserLocks = Depends(get_user_locks),
    urls: ViewUrlBuilder = Depends(get_view_urls),
) -> ProfileStore:
    return ProfileStore(
        documents,
        locks,
        collection=settings.collection_profile,
        view_url=urls,
        api_key_prefix=settings.api_key_prefix,
        page_size=settings.search_page_size,
    )


def get_system_data_store(
    settings: Settings = Depends(get_settings),
    documents: DocumentStore = Depends(get_document_store),
    locks: UserLocks = Depends(get_user_locks),
) -> SystemDataStore:
    return SystemDataStore(documents, locks, collection=settings.collection_system_data)


def get_media_service(
    blobs: BlobStore = Depends(get_blob_store),
    profiles: ProfileStore = Depends(get_profile_store),
    urls: ViewUrlBuilder = Depends(get_view_urls),
) -> MediaService:
    return MediaService(blobs, profiles, urls)


def get_identity_bridge(
    settings: Settings = Depends(get_settings),
    directory: UserDirectory = Depends(get_user_directory),
    profiles: ProfileStore = Depends(get_profile_store),
    tokens: TokenService = Depends(get_token_service),
) -> IdentityBridge:
    return IdentityBridge(
        directory,
        profiles,
        tokens,
        endpoint=settings.appwrite_endpoint or "",
        project_id=settings.appwrite_project_id or "",
        frontend_url=settings.frontend_url,
    )


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """
    Bearer-token gate. A missing header is 401; anything unusable is 403.
    """
    if not authorization:
        raise Unauthorized("Access Denied: No Token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise InvalidToken()
    return tokens.verify(token.strip())


def require_admin(
    x_admin_secret: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.appwrite_api_key
    if not expected or not x_admin_secret or not hmac.compare_digest(
        x_admin_secret.encode("utf-8"), expected.encode("utf-8")
    ):
        raise Forbidden("Access Denied: Admin Secret Required")
