from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from clipvault.exceptions import ValidationError


class ContentType(str, Enum):
    TEXT = "text"
    URL = "url"
    EMAIL = "email"
    NUMERIC = "numeric"


class SyncStatus(str, Enum):
    LOCAL = "local"
    SYNCED = "synced"


class RetentionCadence(str, Enum):
    NEVER = "never"
    EVERY_24_HOURS = "every_24_hours"
    EVERY_3_DAYS = "every_3_days"
    EVERY_WEEK = "every_week"
    EVERY_MONTH = "every_month"

    @property
    def duration(self) -> timedelta | None:
        return _CADENCE_DURATIONS[self]

    @property
    def display_name(self) -> str:
        return _CADENCE_DISPLAY[self]

    @classmethod
    def parse(cls, value: "str | RetentionCadence") -> "RetentionCadence":
        """Parse a canonical value, a display string or a short alias."""
        if isinstance(value, RetentionCadence):
            return value
        key = " ".join(str(value).strip().lower().split())
        cadence = _CADENCE_ALIASES.get(key)
        if cadence is None:
            raise ValidationError(f"Invalid retention cadence: {value!r}")
        return cadence

    @classmethod
    def display_options(cls) -> list[str]:
        return [c.display_name for c in cls]


_CADENCE_DURATIONS = {
    RetentionCadence.NEVER: None,
    RetentionCadence.EVERY_24_HOURS: timedelta(hours=24),
    RetentionCadence.EVERY_3_DAYS: timedelta(days=3),
    RetentionCadence.EVERY_WEEK: timedelta(days=7),
    RetentionCadence.EVERY_MONTH: timedelta(days=30),
}

_CADENCE_DISPLAY = {
    RetentionCadence.NEVER: "Never",
    RetentionCadence.EVERY_24_HOURS: "Every 24 hours",
    RetentionCadence.EVERY_3_DAYS: "Every 3 days",
    RetentionCadence.EVERY_WEEK: "Every week",
    RetentionCadence.EVERY_MONTH: "Every month",
}

_CADENCE_ALIASES = {
    "never": RetentionCadence.NEVER,
    "every_24_hours": RetentionCadence.EVERY_24_HOURS,
    "every 24 hours": RetentionCadence.EVERY_24_HOURS,
    "24h": RetentionCadence.EVERY_24_HOURS,
    "24hours": RetentionCadence.EVERY_24_HOURS,
    "every_3_days": RetentionCadence.EVERY_3_DAYS,
    "every 3 days": RetentionCadence.EVERY_3_DAYS,
    "3d": RetentionCadence.EVERY_3_DAYS,
    "3days": RetentionCadence.EVERY_3_DAYS,
    "every_week": RetentionCadence.EVERY_WEEK,
    "every week": RetentionCadence.EVERY_WEEK,
    "7d": RetentionCadence.EVERY_WEEK,
    "7days": RetentionCadence.EVERY_WEEK,
    "weekly": RetentionCadence.EVERY_WEEK,
    "every_month": RetentionCadence.EVERY_MONTH,
    "every month": RetentionCadence.EVERY_MONTH,
    "30d": RetentionCadence.EVERY_MONTH,
    "30days": RetentionCadence.EVERY_MONTH,
    "monthly": RetentionCadence.EVERY_MONTH,
}


@dataclass
class ClipboardEntry:
    id: int | None
    tenant_id: str
    content: str
    content_type: ContentType
    content_hash: str
    source_app: str
    source_window: str
    captured_at: datetime
    created_at: datetime
    tags: list[str] = field(default_factory=list)
    pinned: bool = False
    sync_status: SyncStatus = SyncStatus.LOCAL
    remote_id: int | None = None
    revision: int = 0

    @property
    def is_synced(self) -> bool:
        return self.sync_status == SyncStatus.SYNCED and self.remote_id is not None


@dataclass
class Tag:
    id: int | None
    tenant_id: str
    name: str
    color: str
    created_at: datetime
    updated_at: datetime
    sync_status: SyncStatus = SyncStatus.LOCAL
    remote_id: int | None = None
    revision: int = 0


@dataclass
class TenantSettings:
    user_id: str
    tenant_id: str
    cadence: RetentionCadence = RetentionCadence.NEVER
    retain_tags: bool = False
    updated_at: datetime | None = None

    def same_policy(self, other: "TenantSettings | None") -> bool:
        if other is None:
            return False
        return (
            self.tenant_id == other.tenant_id
            and self.cadence == other.cadence
            and self.retain_tags == other.retain_tags
        )


@dataclass
class InsertResult:
    """Result of a local insert. ``created`` is False for a duplicate hash."""

    entry_id: int
    created: bool


class UpsertOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
