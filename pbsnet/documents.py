"""
Document database abstraction for Appwrite and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.query import Query
from appwrite.services.databases import Databases

from pbsnet.errors import Conflict, NotFound, UpstreamFailure

logger = logging.getLogger(__name__)

ID_FIELD = "$id"


def load_json_bag(raw: Any) -> dict:
    """Decode a JSON object attribute stored as a string. Empty means ``{}``."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.error("Stored JSON attribute is not valid JSON: %r", raw)
        raise UpstreamFailure("Stored data is corrupt") from exc
    if not isinstance(value, dict):
        logger.error("Stored JSON attribute is not an object: %r", raw)
        raise UpstreamFailure("Stored data is corrupt")
    return value


def dump_json_bag(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"))


@dataclass(frozen=True)
class Filter:
    """A single ANDed query condition. ``op`` is ``equal`` or ``search``."""

    field: str
    value: Any
    op: str = "equal"

    @classmethod
    def equal(cls, field: str, value: Any) -> "Filter":
        return cls(field, value, "equal")

    @classmethod
    def search(cls, field: str, value: str) -> "Filter":
        return cls(field, value, "search")


class DocumentStore(Protocol):
    """Operations the API needs from the document database."""

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def create(self, collection: str, doc_id: str, data: dict) -> dict:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> dict:
        ...

    def find(
        self,
        collection: str,
        filters: list[Filter],
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        ...


def _matches(doc: dict, condition: Filter) -> bool:
    value = doc.get(condition.field)
    if condition.op == "search":
        if not isinstance(value, str):
            return False
        haystack = value.lower()
        return all(term in haystack for term in str(condition.value).lower().split())
    return value == condition.value


class InMemoryDocumentStore:
    """Simple in-memory document database for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}

    def _collection(self, collection: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def create(self, collection: str, doc_id: str, data: dict) -> dict:
        docs = self._collection(collection)
        if doc_id in docs:
            raise Conflict("Document already exists")
        docs[doc_id] = {**copy.deepcopy(data), ID_FIELD: doc_id}
        return copy.deepcopy(docs[doc_id])

    def update(self, collection: str, doc_id: str, data: dict) -> dict:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            raise NotFound("Document not found")
        doc.update(copy.deepcopy(data))
        return copy.deepcopy(doc)

    def find(
        self,
        collection: str,
        filters: list[Filter],
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        hits = [
            doc
            for doc in self._collection(collection).values()
            if all(_matches(doc, condition) for condition in filters)
        ]
        hits = hits[offset:]
        if limit is not None:
            hits = hits[:limit]
        return [copy.deepcopy(doc) for doc in hits]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


class AppwriteDocumentStore:
    """
    Appwrite Databases-backed implementation. Collections live in one database.
    """

    def __init__(self, client: Client, database_id: str):
        self.database_id = database_id
        self._databases = Databases(client)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        try:
            return self._databases.get_document(self.database_id, collection, doc_id)
        except AppwriteException as exc:
            if exc.code == 404:
                return None
            logger.exception("get_document %s/%s failed", collection, doc_id)
            raise UpstreamFailure() from exc

    def create(self, collection: str, doc_id: str, data: dict) -> dict:
        try:
            return self._databases.create_document(
                self.database_id, collection, doc_id, data
            )
        except AppwriteException as exc:
            if exc.code == 409:
                raise Conflict("Document already exists") from exc
            logger.exception("create_document %s/%s failed", collection, doc_id)
            raise UpstreamFailure() from exc

    def update(self, collection: str, doc_id: str, data: dict) -> dict:
        try:
            return self._databases.update_document(
                self.database_id, collection, doc_id, data
            )
        except AppwriteException as exc:
            if exc.code == 404:
                raise NotFound("Document not found") from exc
            logger.exception("update_document %s/%s failed", collection, doc_id)
            raise UpstreamFailure() from exc

    def find(
        self,
        collection: str,
        filters: list[Filter],
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        queries = [self._to_query(condition) for condition in filters]
        if limit is not None:
            queries.append(Query.limit(limit))
        if offset:
            queries.append(Query.offset(offset))
        try:
            result = self._databases.list_documents(
                self.database_id, collection, queries=queries
            )
        except AppwriteException as exc:
            logger.exception("list_documents %s failed", collection)
            raise UpstreamFailure() from exc
        return list(result.get("documents", []))

    @staticmethod
    def _to_query(condition: Filter) -> str:
        if condition.op == "search":
            return Query.search(condition.field, condition.value)
        return Query.equal(condition.field, condition.value)
