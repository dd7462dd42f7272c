"""Admin authentication with revocable sessions.

A token is valid only while BOTH hold: its signature and expiry verify, AND a
non-expired session row exists for its SHA-256 digest and an active user.
Logout, password change and deactivation delete session rows, which revokes
tokens whose signatures would otherwise still verify.

Flow Diagram — authenticate()
=============================
::
    ┌─────────────┐
    │ username or │── no match ──▶ UnknownUser (401)
    │ email match │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ is_active?  │── no ──▶ UserDisabled (401)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ bcrypt check│── no ──▶ WrongPassword (401)
    │ (threadpool)│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ issue JWT,  │
    │ store hash  │
    │ as session, │
    │ last_login  │
    └─────────────┘

Flow Diagram — verify_session()
===============================
::
    token ──▶ decode ──── bad signature ──▶ invalid_token
                 │  └─── past exp ───────▶ token_expired
                 ▼
          session row for sha256(token),
          not expired, user active? ── no ──▶ session_revoked
                 │
                 ▼
               valid
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError

from shortener.clock import Clock
from shortener.config import Settings
from shortener.enums import SessionInvalidReason
from shortener.errors import (
    EmailTaken,
    UnknownUser,
    UserDisabled,
    UserNotFound,
    UsernameTaken,
    ValidationError,
    WeakPassword,
    WrongPassword,
)
from shortener.models import AdminSession, AdminUser
from shortener.repositories import AdminRepository
from shortener.security import PasswordHasher, TokenCodec, TokenDecodeError, hash_token

if TYPE_CHECKING:
    from shortener.dependencies import RequestContext

__all__ = ["AdminIdentity", "AuthService", "LoginResult", "SessionCheck"]

LOGIN_ATTEMPTS_TOTAL = Counter(
    "url_shortener_admin_login_attempts_total",
    "Admin login attempts by result",
    ["result"],
)


@dataclass(frozen=True)
class AdminIdentity:
    id: int
    username: str
    email: str
    full_name: str | None = None

    @classmethod
    def from_user(cls, user: AdminUser) -> "AdminIdentity":
        return cls(id=user.id, username=user.username, email=user.email, full_name=user.full_name)


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: AdminIdentity


@dataclass(frozen=True)
class SessionCheck:
    valid: bool
    user: AdminIdentity | None = None
    reason: SessionInvalidReason | None = None

    @classmethod
    def ok(cls, user: AdminIdentity) -> "SessionCheck":
        return cls(valid=True, user=user)

    @classmethod
    def invalid(cls, reason: SessionInvalidReason) -> "SessionCheck":
        return cls(valid=False, reason=reason)


class AuthService:
    def __init__(
        self,
        admins: AdminRepository,
        hasher: PasswordHasher,
        tokens: TokenCodec,
        clock: Clock,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter,
    ) -> None:
        self._admins = admins
        self._hasher = hasher
        self._tokens = tokens
        self._clock = clock
        self._settings = settings
        self._logger = logger

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "AuthService":
        manager = ctx.service_manager
        return cls(
            admins=AdminRepository(manager.session_factory),
            hasher=manager.password_hasher,
            tokens=manager.token_codec,
            clock=manager.clock,
            settings=manager.settings,
            logger=ctx.logger,
        )

    # ========================================================================
    # TOKEN LIFECYCLE
    # ========================================================================

    async def authenticate(
        self,
        username: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        user = await self._admins.find_user_by_username(username)
        if user is None:
            user = await self._admins.find_user_by_email(username)
        if user is None:
            LOGIN_ATTEMPTS_TOTAL.labels(result="unknown_user").inc()
            self._logger.warning(f"Login failed - unknown user: {username}")
            raise UnknownUser()
        if not user.is_active:
            LOGIN_ATTEMPTS_TOTAL.labels(result="disabled").inc()
            self._logger.warning(f"Login failed - user disabled: {user.username}")
            raise UserDisabled()
        if not await self._hasher.verify_async(password, user.password_hash):
            LOGIN_ATTEMPTS_TOTAL.labels(result="wrong_password").inc()
            self._logger.warning(f"Login failed - wrong password: {user.username}")
            raise WrongPassword()

        now = self._clock.now()
        token, expires_at = self._tokens.issue(user.id, user.username, user.email, now)
        await self._admins.add_session(
            AdminSession(
                user_id=user.id,
                token_hash=hash_token(token),
                expires_at=expires_at,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=now,
            )
        )
        await self._admins.update_last_login(user.id, now)

        LOGIN_ATTEMPTS_TOTAL.labels(result="success").inc()
        self._logger.info(f"Admin logged in: {user.username}")
        return LoginResult(token=token, user=AdminIdentity.from_user(user))

    async def verify_session(self, token: str) -> SessionCheck:
        now = self._clock.now()
        try:
            self._tokens.decode(token, now)
        except TokenDecodeError as exc:
            return SessionCheck.invalid(exc.reason)

        found = await self._admins.find_live_session(hash_token(token), now)
        if found is None:
            return SessionCheck.invalid(SessionInvalidReason.SESSION_REVOKED)
        _, user = found
        return SessionCheck.ok(AdminIdentity.from_user(user))

    async def logout(self, token: str) -> None:
        removed = await self._admins.delete_session(hash_token(token))
        self._logger.info(f"Admin logout removed {removed} session(s)")

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = await self._admins.get_user(user_id)
        if user is None:
            raise UserNotFound()
        if not await self._hasher.verify_async(current_password, user.password_hash):
            raise WrongPassword("Current password is wrong")
        self._check_password_strength(new_password)

        password_hash = await self._hasher.hash_async(new_password)
        revoked = await self._admins.update_password_and_revoke(user_id, password_hash)
        self._logger.info(f"Password changed for {user.username}; revoked {revoked} session(s)")

    # ========================================================================
    # ACCOUNT MANAGEMENT
    # ========================================================================

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        full_name: str | None = None,
    ) -> AdminUser:
        if not username or not email or not password:
            raise ValidationError("Username, email and password are required")
        self._check_password_strength(password)
        if await self._admins.find_user_by_username(username) is not None:
            raise UsernameTaken()
        if await self._admins.find_user_by_email(email) is not None:
            raise EmailTaken()

        user = AdminUser(
            username=username,
            email=email,
            password_hash=await self._hasher.hash_async(password),
            full_name=full_name or None,
            is_active=True,
            created_at=self._clock.now(),
        )
        try:
            user = await self._admins.add_user(user)
        except IntegrityError as exc:
            # Lost an insert race; report whichever unique column collided.
            username_taken = await self._admins.find_user_by_username(username) is not None
            if not username_taken and await self._admins.find_user_by_email(email) is not None:
                raise EmailTaken() from exc
            raise UsernameTaken() from exc
        self._logger.info(f"Admin user created: {username}")
        return user

    async def list_users(self) -> list[AdminUser]:
        return await self._admins.list_users()

    async def set_user_active(self, user_id: int, is_active: bool) -> None:
        if not await self._admins.set_user_active(user_id, is_active):
            raise UserNotFound()
        self._logger.info(f"Admin user {user_id} {'activated' if is_active else 'deactivated'}")

    async def clean_expired_sessions(self) -> int:
        removed = await self._admins.delete_expired_sessions(self._clock.now())
        self._logger.info(f"Expired session cleanup removed {removed} sessions")
        return removed

    async def ensure_bootstrap_admin(self) -> AdminUser | None:
        """Create the configured first admin when no admin account exists yet."""
        settings = self._settings
        if not (
            settings.ADMIN_BOOTSTRAP_USERNAME
            and settings.ADMIN_BOOTSTRAP_EMAIL
            and settings.ADMIN_BOOTSTRAP_PASSWORD
        ):
            return None
        if await self._admins.count_users() > 0:
            return None
        return await self.create_user(
            settings.ADMIN_BOOTSTRAP_USERNAME,
            settings.ADMIN_BOOTSTRAP_EMAIL,
            settings.ADMIN_BOOTSTRAP_PASSWORD,
            full_name="Administrator",
        )

    def _check_password_strength(self, password: str) -> None:
        if len(password) < self._settings.PASSWORD_MIN_LENGTH:
            raise WeakPassword(
                f"Password must have at least {self._settings.PASSWORD_MIN_LENGTH} characters"
            )
