"""
Admin-only system data: one document per user (id == user id) whose ``app_json``
holds named subclasses, e.g. ``{"billing": {...}, "notes": {...}}``.

The document is created lazily on the first admin write; a missing document
reads as an empty bag.
"""

from __future__ import annotations

from pbsnet.documents import DocumentStore, dump_json_bag, load_json_bag
from pbsnet.locks import UserLocks


class SystemDataStore:
    def __init__(self, documents: DocumentStore, locks: UserLocks, *, collection: str):
        self.documents = documents
        self.locks = locks
        self.collection = collection

    def _read(self, user_id: str) -> tuple[dict, bool]:
        doc = self.documents.get(self.collection, user_id)
        if doc is None:
            return {}, False
        return load_json_bag(doc.get("app_json")), True

    def get_all(self, user_id: str) -> dict:
        return self._read(user_id)[0]

    def get_subclass(self, user_id: str, subclass: str) -> dict:
        value = self.get_all(user_id).get(subclass)
        return value if isinstance(value, dict) else {}

    def upsert_subclass(self, user_id: str, subclass: str, partial: dict) -> dict:
        """Merge ``partial`` into one subclass, leaving siblings untouched."""
        with self.locks.hold(f"system:{user_id}"):
            app_json, exists = self._read(user_id)
            current = app_json.get(subclass)
            merged = {**(current if isinstance(current, dict) else {}), **partial}
            app_json[subclass] = merged
            payload = {"app_json": dump_json_bag(app_json)}
            if exists:
                self.documents.update(self.collection, user_id, payload)
            else:
                self.documents.create(self.collection, user_id, payload)
        return merged
