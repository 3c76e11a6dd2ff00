"""
Identity bridge: turns login credentials, OAuth assertions and profile lookups
into one canonical ``(user_id, email)`` pair, then issues our bearer token.

Three ways of finding a user are reconciled here:

* by mobile number, through the profile collection;
* by email, through the platform user directory;
* by a platform session JWT minted after a third-party (Google) login.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlencode

from pbsnet.directory import UserDirectory
from pbsnet.errors import (
    Conflict,
    InvalidInput,
    NotFound,
    ServiceError,
    Unauthorized,
    UpstreamFailure,
)
from pbsnet.profiles import ProfileStore
from pbsnet.tokens import TokenService

logger = logging.getLogger(__name__)

NO_API_KEY = "Not Generated"


@dataclass(frozen=True)
class EmailIdentifier:
    email: str


@dataclass(frozen=True)
class PhoneIdentifier:
    mobile: str


LoginIdentifier = Union[EmailIdentifier, PhoneIdentifier]


def parse_login_identifier(raw: str) -> LoginIdentifier:
    value = (raw or "").strip()
    if not value:
        raise InvalidInput("identifier is required")
    if "@" in value:
        return EmailIdentifier(value)
    return PhoneIdentifier(value)


@dataclass(frozen=True)
class LoginResult:
    token: str
    user_id: str
    email: str


class IdentityBridge:
    def __init__(
        self,
        directory: UserDirectory,
        profiles: ProfileStore,
        tokens: TokenService,
        *,
        endpoint: str,
        project_id: str,
        frontend_url: str,
    ):
        self.directory = directory
        self.profiles = profiles
        self.tokens = tokens
        self.endpoint = endpoint
        self.project_id = project_id
        self.frontend_url = frontend_url.rstrip("/")

    def resolve_login_identifier(
        self, identifier: LoginIdentifier
    ) -> tuple[str, Optional[str]]:
        if isinstance(identifier, EmailIdentifier):
            return identifier.email, None
        profile = self.profiles.find_by_mobile(identifier.mobile)
        if profile is None:
            raise NotFound("User not found with this mobile")
        return profile.email, profile.user_id

    def authenticate(self, email: str, password: str) -> None:
        try:
            self.directory.verify_password(email, password or "")
        except Unauthorized as exc:
            raise Unauthorized("Invalid Password or Email") from exc

    def resolve_user_id_by_email(self, email: str) -> str:
        users = self.directory.find_by_email(email)
        if not users:
            logger.warning(
                "Authenticated %s but no directory user matches; profile store and "
                "directory are out of sync",
                email,
            )
            raise NotFound("User not found")
        return users[0].user_id

    def login(self, raw_identifier: str, password: str) -> LoginResult:
        identifier = parse_login_identifier(raw_identifier)
        email, user_id = self.resolve_login_identifier(identifier)
        self.authenticate(email, password)
        if not user_id:
            user_id = self.resolve_user_id_by_email(email)
        return LoginResult(self.tokens.issue(user_id, email), user_id, email)

    def register(self, email: str, password: str, name: str) -> str:
        try:
            user = self.directory.create_user(email, password, name)
        except Conflict as exc:
            raise InvalidInput(exc.message) from exc
        try:
            self.profiles.create(user.user_id, email, name)
        except ServiceError:
            logger.error(
                "Directory user %s has no profile: profile creation failed", user.user_id
            )
            raise
        logger.info("Registered user %s", user.user_id)
        return user.user_id

    def oauth_exchange(self, platform_jwt: Optional[str]) -> LoginResult:
        if not platform_jwt:
            raise InvalidInput("No JWT provided")
        try:
            account = self.directory.account_for_jwt(platform_jwt)
        except Unauthorized as exc:
            raise Unauthorized("Authentication Failed") from exc
        email = account.email

        profile = self.profiles.find_by_email(email)
        if profile is not None:
            user_id = profile.user_id
        else:
            try:
                # OAuth-only users never log in with this password.
                self.directory.create_user(email, secrets.token_urlsafe(24), account.name)
            except Conflict:
                logger.info("Directory user %s already exists, creating profile only", email)
            user_id = self.resolve_user_id_by_email(email)
            self.profiles.create(user_id, email, account.name)
            logger.info("Created profile %s from OAuth login", user_id)
        return LoginResult(self.tokens.issue(user_id, email), user_id, email)

    def google_redirect_url(self) -> str:
        query = urlencode(
            {
                "project": self.project_id,
                "success": f"{self.frontend_url}/dashboard",
                "failure": f"{self.frontend_url}/login",
            },
            safe=":/",
        )
        return f"{self.endpoint.rstrip('/')}/account/sessions/oauth2/google?{query}"

    def request_password_recovery(self, email: str) -> None:
        try:
            self.directory.send_recovery(email, f"{self.frontend_url}/reset-password")
        except (NotFound, UpstreamFailure) as exc:
            raise UpstreamFailure("Failed to send link") from exc

    def retrieve_api_key(self, raw_identifier: str, password: str) -> str:
        identifier = parse_login_identifier(raw_identifier)
        if isinstance(identifier, EmailIdentifier):
            profile = self.profiles.find_by_email(identifier.email)
        else:
            profile = self.profiles.find_by_mobile(identifier.mobile)
        if profile is None:
            raise NotFound("User not found")
        try:
            self.directory.verify_password(profile.email, password or "")
        except Unauthorized as exc:
            raise Unauthorized("Wrong Password") from exc
        return profile.api_key or NO_API_KEY

    def change_password(self, user_id: str, new_password: str) -> None:
        self.directory.update_password(user_id, new_password)
