"""
Profile documents: one per user, document id == user id.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pbsnet.documents import DocumentStore, Filter, ID_FIELD, dump_json_bag, load_json_bag
from pbsnet.errors import Conflict, InvalidInput, NotFound
from pbsnet.locks import UserLocks

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-z0-9_]{3,20}$")
CORE_FIELDS = ("full_name", "mobile", "post_name", "office_name", "pbs_name")
API_KEY_ALPHABET = string.digits + string.ascii_lowercase
API_KEY_SUFFIX_LENGTH = 16
DEFAULT_PAGE_SIZE = 20


@dataclass
class Profile:
    user_id: str
    email: str = ""
    full_name: str = ""
    username: Optional[str] = None
    mobile: Optional[str] = None
    post_name: Optional[str] = None
    office_name: Optional[str] = None
    pbs_name: Optional[str] = None
    api_key: Optional[str] = None
    profile_pic_id: Optional[str] = None
    personal_json: dict = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc: dict) -> "Profile":
        return cls(
            user_id=doc[ID_FIELD],
            email=doc.get("email") or "",
            full_name=doc.get("full_name") or "",
            username=doc.get("username"),
            mobile=doc.get("mobile"),
            post_name=doc.get("post_name"),
            office_name=doc.get("office_name"),
            pbs_name=doc.get("pbs_name"),
            api_key=doc.get("api_key"),
            profile_pic_id=doc.get("profile_pic_id"),
            personal_json=load_json_bag(doc.get("personal_json")),
        )


@dataclass(frozen=True)
class SearchFilters:
    pbs: Optional[str] = None
    office: Optional[str] = None
    mobile: Optional[str] = None
    designation: Optional[str] = None
    username: Optional[str] = None
    name_search: Optional[str] = None

    def to_filters(self) -> list[Filter]:
        equalities = (
            ("pbs_name", self.pbs),
            ("office_name", self.office),
            ("mobile", self.mobile),
            ("post_name", self.designation),
            ("username", self.username),
        )
        filters = [Filter.equal(name, value) for name, value in equalities if value]
        if self.name_search:
            filters.append(Filter.search("full_name", self.name_search))
        return filters


class ProfileStore:
    """Reads and writes profile documents through the platform document store."""

    def __init__(
        self,
        documents: DocumentStore,
        locks: UserLocks,
        *,
        collection: str,
        view_url: Callable[[Optional[str]], Optional[str]],
        api_key_prefix: str = "pbsnet",
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.documents = documents
        self.locks = locks
        self.collection = collection
        self.view_url = view_url
        self.api_key_prefix = api_key_prefix
        self.page_size = page_size

    def get(self, user_id: str) -> Profile:
        doc = self.documents.get(self.collection, user_id)
        if doc is None:
            raise NotFound("Profile not found")
        return Profile.from_document(doc)

    def create(self, user_id: str, email: str, full_name: str) -> Profile:
        doc = self.documents.create(
            self.collection,
            user_id,
            {"full_name": full_name, "email": email, "personal_json": dump_json_bag({})},
        )
        return Profile.from_document(doc)

    def _patch(self, user_id: str, data: dict) -> None:
        try:
            self.documents.update(self.collection, user_id, data)
        except NotFound as exc:
            raise NotFound("Profile not found") from exc

    def update_core(self, user_id: str, fields: dict[str, Any]) -> dict:
        """Patch only the core fields that were supplied; returns the patch."""
        patch = {
            name: fields[name]
            for name in CORE_FIELDS
            if name in fields and fields[name] is not None
        }
        if patch:
            self._patch(user_id, patch)
        return patch

    def merge_json(self, user_id: str, partial: dict) -> dict:
        with self.locks.hold(f"profile:{user_id}"):
            merged = {**self.get(user_id).personal_json, **partial}
            self._patch(user_id, {"personal_json": dump_json_bag(merged)})
        return merged

    def set_username(self, user_id: str, candidate: str) -> None:
        if not isinstance(candidate, str) or not USERNAME_PATTERN.match(candidate):
            raise InvalidInput("Invalid username format")
        with self.locks.hold(f"username:{candidate}"):
            if self._find_one(Filter.equal("username", candidate)) is not None:
                raise Conflict("Username Taken")
            self._patch(user_id, {"username": candidate})

    def generate_api_key(self, user_id: str) -> str:
        suffix = "".join(
            secrets.choice(API_KEY_ALPHABET) for _ in range(API_KEY_SUFFIX_LENGTH)
        )
        key = f"{self.api_key_prefix}-{suffix}"
        self._patch(user_id, {"api_key": key})
        return key

    def set_profile_pic(self, user_id: str, blob_id: str) -> None:
        self._patch(user_id, {"profile_pic_id": blob_id})

    def _find_one(self, condition: Filter) -> Optional[Profile]:
        docs = self.documents.find(self.collection, [condition], limit=1)
        return Profile.from_document(docs[0]) if docs else None

    def find_by_email(self, email: str) -> Optional[Profile]:
        return self._find_one(Filter.equal("email", email))

    def find_by_mobile(self, mobile: str) -> Optional[Profile]:
        return self._find_one(Filter.equal("mobile", mobile))

    def find_by_api_key(self, api_key: Optional[str]) -> Profile:
        profile = self._find_one(Filter.equal("api_key", api_key)) if api_key else None
        if profile is None:
            raise NotFound("Invalid User Key")
        return profile

    def search(self, filters: SearchFilters, *, page: int = 1) -> list[dict]:
        docs = self.documents.find(
            self.collection,
            filters.to_filters(),
            limit=self.page_size,
            offset=(max(page, 1) - 1) * self.page_size,
        )
        results = []
        for doc in docs:
            profile = Profile.from_document(doc)
            results.append(
                {
                    "name": profile.full_name,
                    "username": profile.username,
                    "pbs": profile.pbs_name,
                    "designation": profile.post_name,
                    "office": profile.office_name,
                    "pic_url": self.view_url(profile.profile_pic_id),
                }
            )
        return results

    def get_public_by_username(self, username: str) -> dict:
        profile = self._find_one(Filter.equal("username", username))
        if profile is None:
            raise NotFound("User not found")
        return {
            "full_name": profile.full_name,
            "username": profile.username,
            "post_name": profile.post_name,
            "pbs_name": profile.pbs_name,
            "office_name": profile.office_name,
            "mobile": profile.mobile,
            "email": profile.email,
            "profile_pic_url": self.view_url(profile.profile_pic_id),
            "personal_json": profile.personal_json,
        }
