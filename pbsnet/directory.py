"""
User directory abstraction: the platform's identity store.

Passwords only ever live in the platform. Password checks are done by opening a
throwaway, non-admin session with the supplied credentials.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Protocol

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query
from appwrite.services.account import Account
from appwrite.services.users import Users

from pbsnet.errors import Conflict, InvalidInput, NotFound, Unauthorized, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class PlatformUser:
    user_id: str
    email: str
    name: str = ""

    @classmethod
    def from_appwrite(cls, payload: dict) -> "PlatformUser":
        return cls(
            user_id=payload["$id"],
            email=payload.get("email", ""),
            name=payload.get("name", ""),
        )


class UserDirectory(Protocol):
    """Identity operations the API needs from the platform."""

    def create_user(self, email: str, password: str, name: str) -> PlatformUser:
        ...

    def find_by_email(self, email: str) -> list[PlatformUser]:
        ...

    def update_password(self, user_id: str, password: str) -> None:
        ...

    def verify_password(self, email: str, password: str) -> None:
        ...

    def account_for_jwt(self, platform_jwt: str) -> PlatformUser:
        ...

    def send_recovery(self, email: str, redirect_url: str) -> None:
        ...


@dataclass
class InMemoryUserDirectory:
    """Test double for the platform user directory."""

    users: Dict[str, PlatformUser] = field(default_factory=dict)
    passwords: Dict[str, str] = field(default_factory=dict)
    platform_jwts: Dict[str, str] = field(default_factory=dict)
    recoveries: list[tuple[str, str]] = field(default_factory=list)

    def create_user(self, email: str, password: str, name: str) -> PlatformUser:
        if self.find_by_email(email):
            raise Conflict("A user with the same email already exists")
        user = PlatformUser(user_id=uuid.uuid4().hex[:20], email=email, name=name)
        self.users[user.user_id] = user
        self.passwords[user.user_id] = password
        return user

    def find_by_email(self, email: str) -> list[PlatformUser]:
        return [user for user in self.users.values() if user.email == email]

    def update_password(self, user_id: str, password: str) -> None:
        if user_id not in self.users:
            raise NotFound("User not found")
        self.passwords[user_id] = password

    def verify_password(self, email: str, password: str) -> None:
        for user in self.find_by_email(email):
            if self.passwords.get(user.user_id) == password:
                return
        raise Unauthorized("Invalid credentials")

    def account_for_jwt(self, platform_jwt: str) -> PlatformUser:
        user_id = self.platform_jwts.get(platform_jwt)
        if user_id is None or user_id not in self.users:
            raise Unauthorized("Invalid platform session")
        return self.users[user_id]

    def send_recovery(self, email: str, redirect_url: str) -> None:
        if not self.find_by_email(email):
            raise NotFound("User not found")
        self.recoveries.append((email, redirect_url))

    def issue_platform_jwt(self, user_id: str) -> str:
        """Simulate the platform minting a session JWT after an OAuth login."""
        token = uuid.uuid4().hex
        self.platform_jwts[token] = user_id
        return token

    def add_oauth_account(self, email: str, name: str) -> str:
        """Simulate a third-party login whose account exists only on the platform."""
        user = PlatformUser(user_id=uuid.uuid4().hex[:20], email=email, name=name)
        self.users[user.user_id] = user
        return self.issue_platform_jwt(user.user_id)

    def reset(self) -> None:
        self.users.clear()
        self.passwords.clear()
        self.platform_jwts.clear()
        self.recoveries.clear()


class AppwriteUserDirectory:
    """
    Appwrite-backed directory. Admin calls use the keyed client; credential
    checks use fresh unauthenticated clients so no admin privilege leaks in.
    """

    def __init__(self, client: Client, endpoint: str, project_id: str):
        self.endpoint = endpoint
        self.project_id = project_id
        self._users = Users(client)

    def _public_client(self) -> Client:
        client = Client()
        client.set_endpoint(self.endpoint)
        client.set_project(self.project_id)
        return client

    def create_user(self, email: str, password: str, name: str) -> PlatformUser:
        try:
            payload = self._users.create(
                ID.unique(), email=email, password=password, name=name
            )
        except AppwriteException as exc:
            if exc.code == 409:
                raise Conflict("A user with the same email already exists") from exc
            if exc.code == 400:
                logger.warning("User creation rejected for %s: %s", email, exc.message)
                raise InvalidInput("Invalid email, password or name") from exc
            logger.exception("users.create failed for %s", email)
            raise UpstreamFailure() from exc
        return PlatformUser.from_appwrite(payload)

    def find_by_email(self, email: str) -> list[PlatformUser]:
        try:
            result = self._users.list(queries=[Query.equal("email", email)])
        except AppwriteException as exc:
            logger.exception("users.list failed for %s", email)
            raise UpstreamFailure() from exc
        return [PlatformUser.from_appwrite(user) for user in result.get("users", [])]

    def update_password(self, user_id: str, password: str) -> None:
        try:
            self._users.update_password(user_id, password)
        except AppwriteException as exc:
            if exc.code == 404:
                raise NotFound("User not found") from exc
            if exc.code == 400:
                raise InvalidInput("Password does not meet requirements") from exc
            logger.exception("users.update_password failed for %s", user_id)
            raise UpstreamFailure() from exc

    def verify_password(self, email: str, password: str) -> None:
        account = Account(self._public_client())
        try:
            account.create_email_password_session(email, password)
        except AppwriteException as exc:
            logger.info("Password session rejected for %s (%s)", email, exc.code)
            raise Unauthorized("Invalid credentials") from exc

    def account_for_jwt(self, platform_jwt: str) -> PlatformUser:
        client = self._public_client()
        client.set_jwt(platform_jwt)
        try:
            payload = Account(client).get()
        except AppwriteException as exc:
            logger.info("Platform JWT rejected (%s)", exc.code)
            raise Unauthorized("Invalid platform session") from exc
        return PlatformUser.from_appwrite(payload)

    def send_recovery(self, email: str, redirect_url: str) -> None:
        try:
            Account(self._public_client()).create_recovery(email, redirect_url)
        except AppwriteException as exc:
            logger.warning("Recovery email for %s failed: %s", email, exc.message)
            raise UpstreamFailure() from exc
