"""JWT access tokens and request authentication.

Tokens are HS256 JWTs whose subject is the user id. They are read from an
``Authorization: Bearer`` header or, for the web dashboard, the
``accessToken`` cookie.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from sqlalchemy.orm import Session

from tldw.config import settings
from tldw.db.models import UserModel
from tldw.domain.errors import InvalidToken, InvalidUser, TokenExpired, Unauthenticated
from tldw.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"


@dataclass(frozen=True)
class TokenPayload:
    """Decoded access token."""

    sub: str
    email: str | None
    plan: str | None
    iat: datetime
    exp: datetime


class TokenService:
    """Issues and validates access tokens."""

    def __init__(
        self,
        secret: str | None = None,
        algorithm: str | None = None,
        expire_days: int | None = None,
    ) -> None:
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm
        self._expire_days = expire_days or settings.jwt_expire_days

    @property
    def expire_seconds(self) -> int:
        return self._expire_days * 24 * 60 * 60

    def create_token(self, user: UserModel, now: datetime | None = None) -> str:
        now = now or datetime.now(UTC)
        payload: dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "plan": user.plan,
            "iat": now,
            "exp": now + timedelta(days=self._expire_days),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate a token.

        Raises:
            TokenExpired: If the token has expired.
            InvalidToken: If the token is malformed or its signature is wrong.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except ExpiredSignatureError as e:
            raise TokenExpired() from e
        except InvalidTokenError as e:
            raise InvalidToken() from e

        return TokenPayload(
            sub=payload["sub"],
            email=payload.get("email"),
            plan=payload.get("plan"),
            iat=datetime.fromtimestamp(payload["iat"], tz=UTC),
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )

    def authenticate(self, session: Session, token: str | None) -> UserModel:
        """Resolve the active user a token belongs to.

        Raises:
            Unauthenticated: No token was supplied.
            TokenExpired: The token has expired.
            InvalidToken: The token does not verify.
            InvalidUser: The user is unknown or deactivated.
        """
        if not token:
            raise Unauthenticated()

        payload = self.decode_token(token)
        try:
            user_id = UUID(payload.sub)
        except ValueError as e:
            raise InvalidToken() from e

        user = session.get(UserModel, user_id)
        if user is None or not user.is_active:
            logger.warning("token_user_rejected", user_id=payload.sub)
            raise InvalidUser()
        return user


def extract_token(authorization: str | None, cookie_token: str | None) -> str | None:
    """Pick the bearer token from the Authorization header, falling back to the cookie."""
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return cookie_token or None


def get_token_service() -> TokenService:
    """Factory function for TokenService."""
    return TokenService()
