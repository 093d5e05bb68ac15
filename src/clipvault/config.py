import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPVAULT_DATA_DIR", Path.home() / ".local" / "share" / "clipvault"))
DB_PATH = DATA_DIR / "clipvault.db"
LOG_PATH = DATA_DIR / "clipvault.log"

REMOTE_URL = os.environ.get("CLIPVAULT_REMOTE_URL")  # e.g. postgresql+psycopg://user:pw@host/db

POLL_INTERVAL = 1.0  # seconds between clipboard checks
MAX_TEXT_SIZE = 1_000_000  # 1MB text limit
PREVIEW_LENGTH = 60  # characters shown in listings
DEFAULT_LIST_LIMIT = 100
DEFAULT_TAG_COLOR = "#6B7280"
MAX_TAG_NAME_LENGTH = 50


def _parse_int_env(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


SYNC_INTERVAL = _parse_int_env("CLIPVAULT_SYNC_INTERVAL", 60, 10, 3600)  # seconds
RETENTION_INTERVAL = _parse_int_env("CLIPVAULT_RETENTION_INTERVAL", 3600, 60, 86400)  # seconds
SYNC_BATCH_SIZE = _parse_int_env("CLIPVAULT_SYNC_BATCH_SIZE", 500, 1, 5000)
REMOTE_CONNECT_TIMEOUT = _parse_int_env("CLIPVAULT_REMOTE_CONNECT_TIMEOUT", 30, 1, 120)  # seconds
REMOTE_POOL_SIZE = 5
