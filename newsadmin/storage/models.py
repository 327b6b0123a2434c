from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def parse_datetime(raw: Any) -> Optional[datetime]:
    """Accept datetimes or ISO strings (postgres bodies hold strings)."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        value = raw
    else:
        value = datetime.fromisoformat(str(raw))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class ContentStatus(str, Enum):
    PUBLISHED = "published"
    DRAFT = "draft"


NEWS_CATEGORIES = (
    "Politics",
    "Technology",
    "Sports",
    "Entertainment",
    "Business",
    "Health",
)

VIDEO_CATEGORIES = (
    "News",
    "Analysis",
    "Interview",
    "Documentary",
    "Live",
    "Entertainment",
)

_DATETIME_FIELDS = frozenset(
    {"created_at", "updated_at", "lock_until", "last_login", "last_active_at"}
)


class _Document:
    """Mixin converting dataclass records to and from store documents."""

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
        kwargs: Dict[str, Any] = {}
        for key, value in doc.items():
            if key not in known:
                continue
            if key in _DATETIME_FIELDS:
                value = parse_datetime(value)
            kwargs[key] = value
        return cls(**kwargs)

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]


@dataclass
class User(_Document):
    id: str
    name: str
    email: str
    role: Role = Role.USER
    status: UserStatus = UserStatus.ACTIVE
    phone: Optional[str] = None
    avatar: Optional[str] = None
    email_verified: bool = False
    failed_attempts: int = 0
    lock_until: Optional[datetime] = None
    last_login: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.role = Role(self.role)
        self.status = UserStatus(self.status)
        self.email = self.email.strip().lower()

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        return self.lock_until is not None and self.lock_until > (now or utcnow())


@dataclass
class NewsArticle(_Document):
    id: str
    title: str
    summary: str
    content: str
    category: str
    created_by: Optional[str] = None
    image_url: Optional[str] = None
    status: ContentStatus = ContentStatus.DRAFT
    featured: bool = False
    tags: List[str] = field(default_factory=list)
    views: int = 0
    shares: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.status = ContentStatus(self.status)


@dataclass
class Video(_Document):
    id: str
    title: str
    youtube_url: str
    youtube_id: str
    category: str
    created_by: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None
    status: ContentStatus = ContentStatus.DRAFT
    featured: bool = False
    views: int = 0
    likes: int = 0
    shares: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.status = ContentStatus(self.status)


@dataclass
class Feedback(_Document):
    id: str
    feedback: str
    rating: Optional[int] = None
    user: Optional[str] = None
    device_info: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
