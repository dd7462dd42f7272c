"""Password hashing and signed token primitives for admin authentication.

Both primitives are thin wrappers over external libraries: passlib's bcrypt
context for passwords and python-jose for HS256 tokens. Bcrypt is CPU bound,
so the async helpers hand it to the thread pool.

Token Lifecycle
===============
::
    issue()  ──▶ JWT {userId, username, email, iat, exp, jti}
                  │
                  ├─▶ client keeps the raw token
                  └─▶ hash_token() ──▶ admin_sessions.token_hash

    decode() ──▶ signature check (jose) + exp check against the injected clock
"""

import datetime
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any

from fastapi.concurrency import run_in_threadpool
from jose import JWTError, jwt
from passlib.context import CryptContext

from shortener.enums import SessionInvalidReason

__all__ = ["PasswordHasher", "TokenCodec", "TokenClaims", "TokenDecodeError", "hash_token"]


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Malformed stored hash
            return False

    async def hash_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash, password)

    async def verify_async(self, password: str, password_hash: str) -> bool:
        return await run_in_threadpool(self.verify, password, password_hash)


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    username: str
    email: str
    expires_at: datetime.datetime


class TokenDecodeError(Exception):
    def __init__(self, reason: SessionInvalidReason) -> None:
        self.reason = reason
        super().__init__(reason.value)


class TokenCodec:
    def __init__(self, secret: str, algorithm: str = "HS256", ttl_hours: int = 24) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self.ttl = datetime.timedelta(hours=ttl_hours)

    def issue(self, user_id: int, username: str, email: str, now: datetime.datetime) -> tuple[str, datetime.datetime]:
        expires_at = now + self.ttl
        claims: dict[str, Any] = {
            "userId": user_id,
            "username": username,
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm), expires_at

    def decode(self, token: str, now: datetime.datetime) -> TokenClaims:
        """Verify the signature and expiry of ``token``.

        Expiry is checked against ``now`` rather than the wall clock so that it
        agrees with the session table, which is also compared against the
        service clock.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as exc:
            raise TokenDecodeError(SessionInvalidReason.INVALID_TOKEN) from exc

        try:
            expires_at = datetime.datetime.fromtimestamp(int(payload["exp"]), tz=datetime.timezone.utc)
            claims = TokenClaims(
                user_id=int(payload["userId"]),
                username=str(payload["username"]),
                email=str(payload["email"]),
                expires_at=expires_at,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenDecodeError(SessionInvalidReason.INVALID_TOKEN) from exc

        if now >= claims.expires_at:
            raise TokenDecodeError(SessionInvalidReason.TOKEN_EXPIRED)
        return claims
