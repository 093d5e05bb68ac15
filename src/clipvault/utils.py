import json
import logging
from datetime import datetime, timezone

from clipvault.config import DATA_DIR

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    # Naive datetimes are taken to already be UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_ts(dt: datetime) -> str:
    """Fixed-width UTC ISO string, so stored timestamps sort lexicographically."""
    return to_utc(dt).isoformat(timespec="microseconds")


def parse_ts(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.fromisoformat(value))


def truncate_text(text: str, max_len: int) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max_len - 3] + "..."


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def tags_to_json(tag_names: list[str]) -> str | None:
    """Serialize an ordered tag set; an empty set is stored as NULL."""
    unique: list[str] = []
    for name in tag_names:
        if name not in unique:
            unique.append(name)
    if not unique:
        return None
    return json.dumps(unique)


def json_to_tags(tags_json: str | None) -> list[str]:
    if tags_json is None or not tags_json.strip():
        return []
    try:
        value = json.loads(tags_json)
    except json.JSONDecodeError:
        logger.warning("Unparseable tag list %r, treating as a single tag", tags_json)
        return [tags_json.strip()]
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if str(v).strip()]


def escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
