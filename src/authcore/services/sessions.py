"""Session token issuing and verification (JWT)."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from authcore.clock import Clock, utcnow
from authcore.errors import AuthError, ErrorCode
from authcore.models import User

MIN_KEY_BYTES = 32


@dataclass(frozen=True)
class SessionToken:
    """A signed token and when it stops being valid."""

    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Verified payload of a session token."""

    user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


class SessionIssuer:
    """Signs session tokens for resolved local users.

    Issuing never touches the datastore: a token is a pure function of the
    user, the clock, the key and the TTL.
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        clock: Clock = utcnow,
        logger: logging.Logger | None = None,
    ):
        if len(secret.encode("utf-8")) < MIN_KEY_BYTES:
            raise ValueError(f"Session secret must be at least {MIN_KEY_BYTES} bytes")
        self._secret = secret
        self.ttl = ttl
        self.algorithm = algorithm
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    def issue(self, user: User) -> SessionToken:
        """Create a signed token for a user."""
        now = self.clock()
        expires = now + self.ttl
        payload = {
            "sub": user.id,
            "email": user.email,
            "iat": int(now.timestamp()),
            "exp": int(expires.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        self.logger.debug(f"Issued session token for user {user.id}")
        return SessionToken(token=token, expires_at=expires)

    def verify(self, token: str) -> TokenClaims:
        """Decode a token and check its signature and expiry.

        Expiry is checked against the injected clock rather than wall time.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            self.logger.debug(f"Token verification failed: {e!r}")
            raise AuthError(ErrorCode.AUTH_TOKEN_INVALID) from e

        user_id = payload.get("sub")
        exp = payload.get("exp")
        iat = payload.get("iat")
        if not user_id or not isinstance(exp, int) or not isinstance(iat, int):
            raise AuthError(ErrorCode.AUTH_TOKEN_INVALID)

        expires_at = datetime.fromtimestamp(exp, UTC)
        if expires_at <= self.clock():
            raise AuthError(ErrorCode.AUTH_TOKEN_EXPIRED)

        return TokenClaims(
            user_id=user_id,
            email=payload.get("email", ""),
            issued_at=datetime.fromtimestamp(iat, UTC),
            expires_at=expires_at,
        )

    def refresh(self, token: str, user: User) -> SessionToken:
        """Re-issue a still-valid token with fresh user data."""
        claims = self.verify(token)
        if claims.user_id != user.id:
            raise AuthError(ErrorCode.AUTH_TOKEN_INVALID)
        return self.issue(user)
