"""
Self-issued bearer tokens.

Tokens are stateless HS256 JWTs carrying ``userId`` and ``email``. There is no
refresh and no revocation list: a token is good until it expires.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from pbsnet.errors import ExpiredToken, InvalidToken

ALGORITHM = "HS256"
DEFAULT_TTL = timedelta(days=7)


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str


class TokenService:
    def __init__(self, secret: str | None, ttl: timedelta = DEFAULT_TTL):
        if not secret:
            raise ValueError("JWT_SECRET is required to issue bearer tokens")
        self._secret = secret
        self.ttl = ttl

    def issue(self, user_id: str, email: str, *, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "userId": user_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except jwt.PyJWTError as exc:
            raise InvalidToken() from exc

        user_id = payload.get("userId")
        if not user_id:
            raise InvalidToken()
        return TokenClaims(user_id=user_id, email=payload.get("email") or "")
