from __future__ import annotations

import re
import unicodedata
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from newsadmin.storage.models import NEWS_CATEGORIES, VIDEO_CATEGORIES, User

MAX_BULK_IDS = 1000


def _normalize_unicode(value: str) -> str:
    """Strip zero-width and bidi override characters, then NFKC-normalize."""
    zero_width = "\u200b\u200c\u200d\ufeff"
    cleaned = "".join(c for c in value if c not in zero_width)
    bidi_overrides = set(chr(c) for c in range(0x202A, 0x202F))
    bidi_overrides.update(chr(c) for c in range(0x2066, 0x206A))
    cleaned = "".join(c for c in cleaned if c not in bidi_overrides)
    return unicodedata.normalize("NFKC", cleaned)


class Envelope(BaseModel):
    """Uniform response wrapper for every endpoint."""

    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    errors: Optional[List[Any]] = None

    def render(self) -> Dict[str, Any]:
        body = self.model_dump(mode="json")
        return {key: value for key, value in body.items() if value is not None or key == "success"}


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    return Envelope(success=True, data=data, message=message).render()


_EMAIL_LOCAL_PART = re.compile(r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+$")
_EMAIL_DOMAIN_LABEL = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$")


def _validate_email(value: str) -> str:
    if not isinstance(value, str):
        raise ValueError("email must be a string")
    normalized = _normalize_unicode(value.strip().lower())
    if len(normalized) > 254:
        raise ValueError("email address too long")
    local, sep, domain = normalized.partition("@")
    if not sep or not local or not domain:
        raise ValueError("Please provide a valid email")
    if len(local) > 64 or not _EMAIL_LOCAL_PART.match(local):
        raise ValueError("Please provide a valid email")
    domain_parts = domain.split(".")
    if len(domain_parts) < 2:
        raise ValueError("Please provide a valid email")
    for label in domain_parts:
        if len(label) > 63 or not _EMAIL_DOMAIN_LABEL.match(label):
            raise ValueError("Please provide a valid email")
    return normalized


def _validate_url(value: Optional[str], message: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    parsed = urlparse(value if "://" in value else f"https://{value}")
    if parsed.scheme not in {"http", "https"} or "." not in (parsed.hostname or ""):
        raise ValueError(message)
    return value


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterRequest(_Request):
    name: str = Field(..., min_length=1, max_length=100)
    email: str
    password: str = Field(..., max_length=128)
    phone: Optional[str] = Field(default=None, max_length=32)
    role: Literal["user", "admin"] = "admin"

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("email")
    @classmethod
    def _validate_register_email(cls, value: str) -> str:
        return _validate_email(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return value


class LoginRequest(_Request):
    email: str
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _validate_login_email(cls, value: str) -> str:
        return _validate_email(value)


class PasswordChangeRequest(_Request):
    """Request to change password (requires the current password)."""

    old_password: str = Field(..., alias="oldPassword", min_length=1, max_length=128)
    new_password: str = Field(..., alias="newPassword", max_length=128)

    @field_validator("new_password")
    @classmethod
    def _validate_new_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("New password must be at least 6 characters long")
        return value


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    status: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    email_verified: bool = False
    is_locked: bool = False
    last_login: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role.value,
            status=user.status.value,
            phone=user.phone,
            avatar=user.avatar,
            email_verified=user.email_verified,
            is_locked=user.is_locked(),
            last_login=user.last_login,
            last_active_at=user.last_active_at,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class UserStatusRequest(_Request):
    status: Literal["active", "inactive", "suspended"]


class UserRoleRequest(_Request):
    role: Literal["user", "admin", "super_admin"]


class ContentStatusRequest(_Request):
    status: Literal["published", "draft"]


class BulkDeleteRequest(_Request):
    ids: List[str] = Field(..., max_length=MAX_BULK_IDS)

    @field_validator("ids")
    @classmethod
    def _validate_ids(cls, value: List[str]) -> List[str]:
        for item in value:
            if not isinstance(item, str) or not item.strip():
                raise ValueError("Invalid ID in array")
        return value


class NewsRequest(_Request):
    title: str = Field(..., min_length=5, max_length=200)
    summary: str = Field(..., min_length=10, max_length=500)
    content: str = Field(..., min_length=50)
    category: str
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    status: Literal["published", "draft"] = "draft"
    featured: bool = False
    tags: List[str] = Field(default_factory=list, max_length=50)

    @field_validator("title", "summary", "content", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("category")
    @classmethod
    def _validate_category(cls, value: str) -> str:
        if value not in NEWS_CATEGORIES:
            raise ValueError("Invalid category")
        return value

    @field_validator("image_url")
    @classmethod
    def _validate_image_url(cls, value: Optional[str]) -> Optional[str]:
        return _validate_url(value, "Image URL must be a valid URL")


class VideoRequest(_Request):
    title: str = Field(..., min_length=5, max_length=200)
    youtube_url: str = Field(..., alias="youtubeUrl")
    category: str
    description: Optional[str] = Field(default=None, max_length=1000)
    thumbnail_url: Optional[str] = Field(default=None, alias="thumbnailUrl")
    duration: Optional[str] = Field(default=None, max_length=16)
    status: Literal["published", "draft"] = "draft"
    featured: bool = False

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("youtube_url")
    @classmethod
    def _validate_youtube_url(cls, value: str) -> str:
        return _validate_url(value, "Please provide a valid YouTube URL") or ""

    @field_validator("thumbnail_url")
    @classmethod
    def _validate_thumbnail_url(cls, value: Optional[str]) -> Optional[str]:
        return _validate_url(value, "Thumbnail URL must be a valid URL")

    @field_validator("category")
    @classmethod
    def _validate_category(cls, value: str) -> str:
        if value not in VIDEO_CATEGORIES:
            raise ValueError("Invalid category")
        return value


class YoutubeLookupRequest(_Request):
    youtube_url: str = Field(..., alias="youtubeUrl")

    @field_validator("youtube_url")
    @classmethod
    def _validate_youtube_url(cls, value: str) -> str:
        checked = _validate_url(value, "A valid YouTube URL is required")
        if not checked:
            raise ValueError("A valid YouTube URL is required")
        return checked
