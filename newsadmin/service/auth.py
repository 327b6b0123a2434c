from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Protocol, Tuple

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHash, VerificationError

from newsadmin.config import Settings
from newsadmin.logging import get_logger
from newsadmin.service.errors import (
    AccountInactiveError,
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NoTokenError,
    NotFoundError,
    ServiceError,
    UserNotFoundError,
    ValidationError,
)
from newsadmin.service.lockout import LockoutPolicy
from newsadmin.service.tokens import GUEST_ROLE, TokenCodec
from newsadmin.storage.errors import ConstraintViolation
from newsadmin.storage.models import Role, User, UserStatus, utcnow

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = "Invalid credentials"


class AccessLevel(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


def _levels_for(role: Role) -> FrozenSet[AccessLevel]:
    if role is Role.USER:
        return frozenset()
    if role is Role.ADMIN:
        return frozenset({AccessLevel.ADMIN})
    if role is Role.SUPER_ADMIN:
        return frozenset({AccessLevel.ADMIN, AccessLevel.SUPER_ADMIN})
    raise ValueError(f"role '{role}' has no access mapping")


# Built eagerly so a Role member without a mapping fails at import
ACCESS_LEVELS: Dict[Role, FrozenSet[AccessLevel]] = {role: _levels_for(role) for role in Role}

# Roles allowed to sign in to the admin API
LOGIN_ROLES = frozenset(role for role, levels in ACCESS_LEVELS.items() if AccessLevel.ADMIN in levels)

# Roles a caller may pick for themselves at registration
REGISTRATION_ROLES = (Role.USER, Role.ADMIN)


class AuthStore(Protocol):
    def create_user(
        self,
        name: str,
        email: str,
        *,
        role: str = "user",
        status: str = "active",
        phone: Optional[str] = None,
        email_verified: bool = False,
    ) -> User: ...

    def get_user(self, user_id: str) -> Optional[User]: ...

    def get_user_by_email(self, email: str) -> Optional[User]: ...

    def update_user(self, user_id: str, **changes: Any) -> Optional[User]: ...

    def save_password(self, user_id: str, password_hash: str, password_algo: str) -> None: ...

    def get_password_record(self, user_id: str) -> Optional[Tuple[str, str]]: ...


@dataclass
class IdentityContext:
    id: str
    role: str
    email: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    is_guest: bool = False

    @property
    def access_levels(self) -> FrozenSet[AccessLevel]:
        if self.is_guest:
            return frozenset()
        return ACCESS_LEVELS[Role(self.role)]

    @classmethod
    def for_user(cls, user: User) -> "IdentityContext":
        return cls(
            id=user.id,
            role=user.role.value,
            email=user.email,
            name=user.name,
            status=user.status.value,
        )


def require_role(context: IdentityContext, allowed: Iterable[AccessLevel]) -> IdentityContext:
    """Raise ForbiddenError unless ``context`` holds one of ``allowed``."""
    allowed = frozenset(allowed)
    if context.access_levels & allowed:
        return context
    if AccessLevel.ADMIN in allowed:
        message = "Access denied. Admin privileges required."
    else:
        message = "Access denied. Super admin privileges required."
    raise ForbiddenError(message, detail={"role": context.role})


def extract_bearer(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthService:
    """Password login, bearer token verification and account lockout."""

    def __init__(
        self,
        store: AuthStore,
        settings: Settings,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store: AuthStore = store
        self.settings = settings
        self._clock = clock or utcnow
        self.tokens = TokenCodec(
            settings.jwt_secret or "",
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            ttl=timedelta(days=settings.token_ttl_days),
            clock=self._clock,
        )
        self.lockout = LockoutPolicy(
            max_attempts=settings.max_failed_logins,
            lock_duration=timedelta(minutes=settings.lockout_minutes),
            clock=self._clock,
        )
        self._pwd_hasher = PasswordHasher(type=Type.ID)
        self.logger = logger

    def _now(self) -> datetime:
        return self._clock()

    def _hash_password(self, password: str) -> Tuple[str, str]:
        algo = "argon2id"
        digest = self._pwd_hasher.hash(password)
        return digest, algo

    def verify_password(self, user_id: str, password: str) -> bool:
        """Verify a user's password against stored hash."""
        record = self.store.get_password_record(user_id)
        if not record:
            self.logger.warning("password_record_missing", user_id=user_id)
            return False
        stored_hash, algo = record
        if algo != "argon2id":
            self.logger.warning("password_algo_mismatch", user_id=user_id, algo=algo)
            return False
        try:
            return self._pwd_hasher.verify(stored_hash, password)
        except (InvalidHash, VerificationError):
            return False

    def save_password(self, user_id: str, password: str) -> None:
        """Hash and save a new password for a user."""
        pwd_hash, algo = self._hash_password(password)
        self.store.save_password(user_id, pwd_hash, algo)

    @staticmethod
    def _check_password_length(password: str, field: str = "password") -> None:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError.for_field(
                field, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

    def issue_token(self, user: User) -> str:
        return self.tokens.issue(user.id, user.role.value)

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        *,
        phone: Optional[str] = None,
        role: str = Role.ADMIN.value,
    ) -> Tuple[User, str]:
        self._check_password_length(password)
        try:
            chosen = Role(role)
        except ValueError:
            chosen = None
        if chosen not in REGISTRATION_ROLES:
            raise ValidationError.for_field("role", "Role must be either user or admin")
        if self.store.get_user_by_email(email):
            raise ConflictError("User already exists with this email", detail={"field": "email"})
        try:
            user = self.store.create_user(name.strip(), email, role=chosen.value, phone=phone)
        except ConstraintViolation as exc:
            raise ConflictError("User already exists with this email", detail=exc.detail) from exc
        self.save_password(user.id, password)
        self.logger.info("user_registered", user_id=user.id, role=user.role.value)
        return user, self.issue_token(user)

    def _record_failure(self, user: User) -> None:
        changes = self.lockout.register_failure(user)
        self.store.update_user(user.id, **changes)
        if self.lockout.locks(changes):
            self.logger.warning(
                "account_locked",
                user_id=user.id,
                lock_until=changes["lock_until"].isoformat(),
            )
        else:
            self.logger.info(
                "login_failed", user_id=user.id, failed_attempts=changes["failed_attempts"]
            )

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        user = self.store.get_user_by_email(email)
        if not user:
            self.logger.info("login_unknown_email")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if user.role not in LOGIN_ROLES:
            self.logger.info("login_role_rejected", user_id=user.id, role=user.role.value)
            raise ForbiddenError("Access denied. Admin privileges required.")
        if self.lockout.is_locked(user):
            raise AccountLockedError(self.lockout.minutes_remaining(user))
        if user.status is not UserStatus.ACTIVE:
            raise AccountInactiveError("Account is not active. Please contact support.")
        if not self.verify_password(user.id, password):
            self._record_failure(user)
            raise AuthenticationError(INVALID_CREDENTIALS)

        now = self._now()
        changes = self.lockout.register_success(user)
        changes.update(last_login=now, last_active_at=now)
        updated = self.store.update_user(user.id, **changes) or user
        self.logger.info("login_succeeded", user_id=updated.id)
        return updated, self.issue_token(updated)

    async def authenticate(self, authorization: Optional[str]) -> IdentityContext:
        token = extract_bearer(authorization)
        if not token:
            raise NoTokenError()
        claims = self.tokens.verify(token)
        if claims.is_guest:
            return IdentityContext(id=claims.subject_id, role=GUEST_ROLE, is_guest=True)
        user = self.store.get_user(claims.subject_id)
        if not user:
            raise UserNotFoundError()
        if user.status is not UserStatus.ACTIVE:
            raise AccountInactiveError("Account is not active. Please contact support.")
        if self.lockout.is_locked(user):
            raise AccountLockedError(self.lockout.minutes_remaining(user))
        return IdentityContext.for_user(user)

    async def authenticate_optional(self, authorization: Optional[str]) -> Optional[IdentityContext]:
        try:
            return await self.authenticate(authorization)
        except ServiceError as exc:
            self.logger.debug("optional_auth_skipped", error_code=exc.error_code)
            return None

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        self._check_password_length(new_password, "newPassword")
        if not self.store.get_user(user_id):
            raise NotFoundError("User not found")
        if not self.verify_password(user_id, old_password):
            raise AuthenticationError("Current password is incorrect")
        self.save_password(user_id, new_password)
        self.logger.info("password_changed", user_id=user_id)

    def touch_activity(self, user_id: str) -> Optional[User]:
        return self.store.update_user(user_id, last_active_at=self._now())

    async def set_user_status(self, user_id: str, status: str) -> User:
        try:
            new_status = UserStatus(status)
        except ValueError:
            raise ValidationError.for_field("status", "Invalid status") from None
        user = self.store.update_user(user_id, status=new_status.value)
        if not user:
            raise NotFoundError("User not found")
        self.logger.info("user_status_updated", user_id=user_id, status=new_status.value)
        return user

    async def set_user_role(self, user_id: str, role: str) -> User:
        try:
            new_role = Role(role)
        except ValueError:
            raise ValidationError.for_field("role", "Invalid role") from None
        user = self.store.update_user(user_id, role=new_role.value)
        if not user:
            raise NotFoundError("User not found")
        self.logger.info("user_role_updated", user_id=user_id, role=new_role.value)
        return user

    async def bootstrap_admin(
        self, email: str, password: str, name: str = "Admin User"
    ) -> Tuple[User, bool]:
        """Ensure the default admin exists, is active and can sign in.

        Returns ``(user, created)``. Safe to call repeatedly: an existing
        account only has its password reset and lockout cleared when the
        password no longer matches or failures are recorded.
        """
        self._check_password_length(password)
        user = self.store.get_user_by_email(email)
        if not user:
            user = self.store.create_user(
                name, email, role=Role.ADMIN.value, status=UserStatus.ACTIVE.value,
                email_verified=True,
            )
            self.save_password(user.id, password)
            self.logger.info("admin_bootstrapped", user_id=user.id)
            return user, True

        needs_reset = (
            user.failed_attempts > 0
            or user.lock_until is not None
            or not self.verify_password(user.id, password)
        )
        if needs_reset:
            self.save_password(user.id, password)
            user = self.store.update_user(user.id, failed_attempts=0, lock_until=None) or user
            self.logger.info("admin_reset", user_id=user.id)
        return user, False


__all__ = [
    "ACCESS_LEVELS",
    "AccessLevel",
    "AuthService",
    "IdentityContext",
    "LOGIN_ROLES",
    "extract_bearer",
    "require_role",
]
