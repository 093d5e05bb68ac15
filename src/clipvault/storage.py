import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from clipvault.config import DB_PATH, DEFAULT_LIST_LIMIT
from clipvault.exceptions import DuplicateEntryError, DuplicateTagError, LocalStoreUnavailableError, ValidationError
from clipvault.identity import identify
from clipvault.models import (
    ClipboardEntry,
    ContentType,
    InsertResult,
    RetentionCadence,
    SyncStatus,
    Tag,
    TenantSettings,
    UpsertOutcome,
)
from clipvault.utils import escape_like, format_ts, json_to_tags, parse_ts, tags_to_json, utcnow

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS clipboard_entries (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id     TEXT NOT NULL,
    content       TEXT NOT NULL,
    content_type  TEXT NOT NULL DEFAULT 'text' CHECK(content_type IN ('text', 'url', 'email', 'numeric')),
    content_hash  TEXT NOT NULL UNIQUE,
    source_app    TEXT NOT NULL DEFAULT 'Unknown',
    source_window TEXT NOT NULL DEFAULT 'Unknown',
    captured_at   TEXT NOT NULL,
    created_at    TEXT NOT NULL,
    tags          TEXT,
    pinned        INTEGER NOT NULL DEFAULT 0,
    sync_status   TEXT NOT NULL DEFAULT 'local' CHECK(sync_status IN ('local', 'synced')),
    remote_id     INTEGER,
    revision      INTEGER NOT NULL DEFAULT 0,
    CHECK (sync_status = 'local' OR remote_id IS NOT NULL)
);

CREATE INDEX IF NOT EXISTS idx_entries_tenant_created ON clipboard_entries(tenant_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_entries_sync_status ON clipboard_entries(sync_status);
CREATE INDEX IF NOT EXISTS idx_entries_remote_id ON clipboard_entries(remote_id);

CREATE TABLE IF NOT EXISTS tags (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id   TEXT NOT NULL,
    name        TEXT NOT NULL,
    color       TEXT NOT NULL DEFAULT '#6B7280',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    sync_status TEXT NOT NULL DEFAULT 'local' CHECK(sync_status IN ('local', 'synced')),
    remote_id   INTEGER,
    revision    INTEGER NOT NULL DEFAULT 0,
    CHECK (sync_status = 'local' OR remote_id IS NOT NULL)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_tags_tenant_name ON tags(tenant_id, LOWER(name));
CREATE INDEX IF NOT EXISTS idx_tags_sync_status ON tags(sync_status);

CREATE TABLE IF NOT EXISTS tenant_settings (
    user_id     TEXT PRIMARY KEY,
    tenant_id   TEXT NOT NULL,
    cadence     TEXT NOT NULL DEFAULT 'never',
    retain_tags INTEGER NOT NULL DEFAULT 0,
    updated_at  TEXT NOT NULL
);
"""

ENTRY_COLUMNS = (
    "tenant_id, content, content_type, content_hash, source_app, source_window, "
    "captured_at, created_at, tags, pinned, sync_status, remote_id"
)


class LocalStore:
    """Device-local repository. Always available, always authoritative for this device.

    A single connection is shared between threads; statements are serialized
    with a re-entrant lock.
    """

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self.init_db()
        except sqlite3.Error as e:
            raise LocalStoreUnavailableError(f"Cannot open local database at {self._db_path}: {e}") from e

    @property
    def db_path(self) -> str:
        return self._db_path

    def init_db(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._migrate_schema()
            self._conn.commit()

    def _migrate_schema(self) -> None:
        """Add columns that databases from earlier releases lack."""
        for table in ("clipboard_entries", "tags"):
            cursor = self._conn.execute(f"PRAGMA table_info({table})")
            columns = {row[1] for row in cursor.fetchall()}
            if "revision" not in columns:
                self._conn.execute(f"ALTER TABLE {table} ADD COLUMN revision INTEGER NOT NULL DEFAULT 0")
            if table == "clipboard_entries" and "source_window" not in columns:
                self._conn.execute(
                    "ALTER TABLE clipboard_entries ADD COLUMN source_window TEXT NOT NULL DEFAULT 'Unknown'"
                )

    @contextmanager
    def _transaction(self):
        with self._lock:
            try:
                yield self._conn
            except Exception:
                self._conn.rollback()
                raise
            else:
                self._conn.commit()

    # Entries

    def insert_entry(self, entry: ClipboardEntry) -> InsertResult:
        if not entry.tenant_id:
            raise ValidationError("Entry has no tenant")
        with self._transaction() as conn:
            cursor = conn.execute(
                f"""INSERT INTO clipboard_entries ({ENTRY_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(content_hash) DO NOTHING""",
                self._entry_params(entry),
            )
            if cursor.rowcount == 1:
                return InsertResult(entry_id=cursor.lastrowid, created=True)
            row = conn.execute(
                "SELECT id FROM clipboard_entries WHERE content_hash = ?", (entry.content_hash,)
            ).fetchone()
        logger.debug("Duplicate content hash %s, keeping entry %d", entry.content_hash[:12], row["id"])
        return InsertResult(entry_id=row["id"], created=False)

    def list_entries(self, tenant_id: str, limit: int | None = DEFAULT_LIST_LIMIT) -> list[ClipboardEntry]:
        with self._lock:
            rows = self._conn.execute(
                """SELECT * FROM clipboard_entries WHERE tenant_id = ?
                   ORDER BY created_at DESC, id DESC LIMIT ?""",
                (tenant_id, -1 if limit is None else limit),
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def get_entry(self, entry_id: int, tenant_id: str | None = None) -> ClipboardEntry | None:
        sql = "SELECT * FROM clipboard_entries WHERE id = ?"
        params: tuple = (entry_id,)
        if tenant_id is not None:
            sql += " AND tenant_id = ?"
            params += (tenant_id,)
        with self._lock:
            row = self._conn.execute(sql, params).fetchone()
        return self._row_to_entry(row) if row else None

    def get_by_remote_id(self, remote_id: int, tenant_id: str | None = None) -> ClipboardEntry | None:
        sql = "SELECT * FROM clipboard_entries WHERE remote_id = ?"
        params: tuple = (remote_id,)
        if tenant_id is not None:
            sql += " AND tenant_id = ?"
            params += (tenant_id,)
        with self._lock:
            row = self._conn.execute(sql + " LIMIT 1", params).fetchone()
        return self._row_to_entry(row) if row else None

    def find_by_hash(self, content_hash: str) -> ClipboardEntry | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM clipboard_entries WHERE content_hash = ?", (content_hash,)
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def search(self, tenant_id: str, query: str, limit: int = 25) -> list[ClipboardEntry]:
        if not query.strip():
            return []
        pattern = f"%{escape_like(query.lower())}%"
        with self._lock:
            rows = self._conn.execute(
                r"""SELECT * FROM clipboard_entries
                    WHERE tenant_id = ? AND LOWER(content) LIKE ? ESCAPE '\'
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?""",
                (tenant_id, pattern, limit),
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def update_entry(
        self,
        entry_id: int,
        pinned: bool | None = None,
        tags: list[str] | None = None,
        tenant_id: str | None = None,
    ) -> ClipboardEntry | None:
        """Change pin state and/or tags. Any change puts the row back to ``local``."""
        if pinned is None and tags is None:
            return self.get_entry(entry_id, tenant_id)
        sets = ["sync_status = 'local'", "revision = revision + 1"]
        params: list = []
        if pinned is not None:
            sets.append("pinned = ?")
            params.append(int(pinned))
        if tags is not None:
            sets.append("tags = ?")
            params.append(tags_to_json(tags))
        sql = f"UPDATE clipboard_entries SET {', '.join(sets)} WHERE id = ?"
        params.append(entry_id)
        if tenant_id is not None:
            sql += " AND tenant_id = ?"
            params.append(tenant_id)
        with self._transaction() as conn:
            conn.execute(sql, params)
        return self.get_entry(entry_id, tenant_id)

    def toggle_pin(self, entry_id: int, tenant_id: str | None = None) -> bool:
        entry = self.get_entry(entry_id, tenant_id)
        if not entry:
            return False
        new_pinned = not entry.pinned
        self.update_entry(entry_id, pinned=new_pinned, tenant_id=tenant_id)
        return new_pinned

    def update_content(self, entry_id: int, content: str, tenant_id: str | None = None) -> ClipboardEntry | None:
        content_hash, content_type = identify(content)
        sql = """UPDATE clipboard_entries
                 SET content = ?, content_hash = ?, content_type = ?, captured_at = ?,
                     sync_status = 'local', revision = revision + 1
                 WHERE id = ?"""
        params: list = [content, content_hash, content_type.value, format_ts(utcnow()), entry_id]
        if tenant_id is not None:
            sql += " AND tenant_id = ?"
            params.append(tenant_id)
        try:
            with self._transaction() as conn:
                conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise DuplicateEntryError("Another entry already has this content") from e
        return self.get_entry(entry_id, tenant_id)

    def update_timestamp(self, entry_id: int, when: datetime | None = None) -> None:
        """Move an entry to the top of the history without touching its sync state."""
        ts = format_ts(when or utcnow())
        with self._transaction() as conn:
            conn.execute(
                "UPDATE clipboard_entries SET created_at = ?, captured_at = ? WHERE id = ?",
                (ts, ts, entry_id),
            )

    def delete_entry(self, entry_id: int, tenant_id: str | None = None) -> bool:
        sql = "DELETE FROM clipboard_entries WHERE id = ?"
        params: tuple = (entry_id,)
        if tenant_id is not None:
            sql += " AND tenant_id = ?"
            params += (tenant_id,)
        with self._transaction() as conn:
            cursor = conn.execute(sql, params)
        return cursor.rowcount > 0

    def list_unsynced(self, tenant_id: str, limit: int = 500) -> list[ClipboardEntry]:
        with self._lock:
            rows = self._conn.execute(
                """SELECT * FROM clipboard_entries
                   WHERE tenant_id = ? AND sync_status = 'local'
                   ORDER BY created_at ASC, id ASC
                   LIMIT ?""",
                (tenant_id, limit),
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def mark_synced(self, local_id: int, remote_id: int, revision: int | None = None) -> bool:
        """Flip a row to ``synced``.

        With ``revision`` the flip only applies if the row has not been
        modified since it was read; otherwise it stays ``local``.
        """
        sql = "UPDATE clipboard_entries SET sync_status = 'synced', remote_id = ? WHERE id = ?"
        params: tuple = (remote_id, local_id)
        if revision is not None:
            sql += " AND revision = ?"
            params += (revision,)
        with self._transaction() as conn:
            cursor = conn.execute(sql, params)
        return cursor.rowcount > 0

    def upsert_from_remote(self, remote: ClipboardEntry) -> tuple[UpsertOutcome, int]:
        """Mirror a remote row locally, keyed by its remote id.

        Falls back to adopting a local row with the same content hash, then to
        inserting a new row already marked ``synced``.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM clipboard_entries WHERE remote_id = ? AND tenant_id = ? LIMIT 1",
                (remote.id, remote.tenant_id),
            ).fetchone()
            if row is None:
                row = conn.execute(
                    "SELECT * FROM clipboard_entries WHERE content_hash = ?", (remote.content_hash,)
                ).fetchone()

            if row is None:
                mirrored = ClipboardEntry(
                    id=None,
                    tenant_id=remote.tenant_id,
                    content=remote.content,
                    content_type=remote.content_type,
                    content_hash=remote.content_hash,
                    source_app=remote.source_app,
                    source_window=remote.source_window,
                    captured_at=remote.captured_at,
                    created_at=remote.created_at,
                    tags=list(remote.tags),
                    pinned=remote.pinned,
                    sync_status=SyncStatus.SYNCED,
                    remote_id=remote.id,
                )
                cursor = conn.execute(
                    f"INSERT INTO clipboard_entries ({ENTRY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    self._entry_params(mirrored),
                )
                return UpsertOutcome.INSERTED, cursor.lastrowid

            current = self._row_to_entry(row)
            if current.tenant_id != remote.tenant_id:
                raise DuplicateEntryError(f"Content hash {remote.content_hash[:12]} belongs to another tenant")
            if self._mirrors(current, remote):
                return UpsertOutcome.UNCHANGED, current.id

            conn.execute(
                """UPDATE clipboard_entries
                   SET content = ?, content_type = ?, content_hash = ?, source_app = ?, source_window = ?,
                       captured_at = ?, tags = ?, pinned = ?, sync_status = 'synced', remote_id = ?,
                       revision = revision + 1
                   WHERE id = ?""",
                (
                    remote.content,
                    remote.content_type.value,
                    remote.content_hash,
                    remote.source_app,
                    remote.source_window,
                    format_ts(remote.captured_at),
                    tags_to_json(remote.tags),
                    int(remote.pinned),
                    remote.id,
                    current.id,
                ),
            )
            return UpsertOutcome.UPDATED, current.id

    @staticmethod
    def _mirrors(local: ClipboardEntry, remote: ClipboardEntry) -> bool:
        return (
            local.sync_status == SyncStatus.SYNCED
            and local.remote_id == remote.id
            and local.content == remote.content
            and local.content_hash == remote.content_hash
            and local.content_type == remote.content_type
            and local.source_app == remote.source_app
            and local.source_window == remote.source_window
            and local.captured_at == remote.captured_at
            and local.tags == remote.tags
            and local.pinned == remote.pinned
        )

    def purge_aged(self, tenant_id: str, older_than: datetime, keep_tagged: bool = False) -> int:
        sql = """DELETE FROM clipboard_entries
                 WHERE tenant_id = ? AND pinned = 0 AND created_at < ?"""
        if keep_tagged:
            sql += " AND tags IS NULL"
        with self._transaction() as conn:
            cursor = conn.execute(sql, (tenant_id, format_ts(older_than)))
        return cursor.rowcount

    def replace_tag_in_entries(self, tenant_id: str, old_name: str, new_name: str | None) -> int:
        """Rename (or drop, when ``new_name`` is None) a tag on every entry of a tenant."""
        with self._transaction() as conn:
            return self._replace_tag(conn, tenant_id, old_name, new_name)

    @staticmethod
    def _replace_tag(conn: sqlite3.Connection, tenant_id: str, old_name: str, new_name: str | None) -> int:
        changed = 0
        rows = conn.execute(
            "SELECT id, tags FROM clipboard_entries WHERE tenant_id = ? AND tags IS NOT NULL",
            (tenant_id,),
        ).fetchall()
        for row in rows:
            tags = json_to_tags(row["tags"])
            if old_name not in tags:
                continue
            if new_name is None:
                updated = [t for t in tags if t != old_name]
            else:
                updated = [new_name if t == old_name else t for t in tags]
            conn.execute(
                """UPDATE clipboard_entries
                   SET tags = ?, sync_status = 'local', revision = revision + 1
                   WHERE id = ?""",
                (tags_to_json(updated), row["id"]),
            )
            changed += 1
        return changed

    def count(self, tenant_id: str | None = None) -> int:
        with self._lock:
            if tenant_id is None:
                row = self._conn.execute("SELECT COUNT(*) AS cnt FROM clipboard_entries").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) AS cnt FROM clipboard_entries WHERE tenant_id = ?", (tenant_id,)
                ).fetchone()
        return row["cnt"]

    def count_unsynced(self, tenant_id: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS cnt FROM clipboard_entries WHERE tenant_id = ? AND sync_status = 'local'",
                (tenant_id,),
            ).fetchone()
        return row["cnt"]

    def clear_tenant(self, tenant_id: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM clipboard_entries WHERE tenant_id = ?", (tenant_id,))
        return cursor.rowcount

    # Tags

    def insert_tag(self, tag: Tag) -> Tag:
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """INSERT INTO tags (tenant_id, name, color, created_at, updated_at, sync_status, remote_id)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        tag.tenant_id,
                        tag.name,
                        tag.color,
                        format_ts(tag.created_at),
                        format_ts(tag.updated_at),
                        tag.sync_status.value,
                        tag.remote_id,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateTagError(f"Tag '{tag.name}' already exists") from e
        return self.get_tag(cursor.lastrowid)

    def list_tags(self, tenant_id: str) -> list[Tag]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM tags WHERE tenant_id = ? ORDER BY name COLLATE NOCASE ASC", (tenant_id,)
            ).fetchall()
        return [self._row_to_tag(r) for r in rows]

    def get_tag(self, tag_id: int, tenant_id: str | None = None) -> Tag | None:
        sql = "SELECT * FROM tags WHERE id = ?"
        params: tuple = (tag_id,)
        if tenant_id is not None:
            sql += " AND tenant_id = ?"
            params += (tenant_id,)
        with self._lock:
            row = self._conn.execute(sql, params).fetchone()
        return self._row_to_tag(row) if row else None

    def find_tag_by_name(self, tenant_id: str, name: str) -> Tag | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM tags WHERE tenant_id = ? AND LOWER(name) = LOWER(?)", (tenant_id, name)
            ).fetchone()
        return self._row_to_tag(row) if row else None

    def get_tag_by_remote_id(self, remote_id: int, tenant_id: str) -> Tag | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM tags WHERE remote_id = ? AND tenant_id = ? LIMIT 1", (remote_id, tenant_id)
            ).fetchone()
        return self._row_to_tag(row) if row else None

    def update_tag(
        self, tag_id: int, tenant_id: str, name: str | None = None, color: str | None = None
    ) -> Tag | None:
        current = self.get_tag(tag_id, tenant_id)
        if current is None:
            return None
        try:
            with self._transaction() as conn:
                conn.execute(
                    """UPDATE tags
                       SET name = ?, color = ?, updated_at = ?, sync_status = 'local', revision = revision + 1
                       WHERE id = ? AND tenant_id = ?""",
                    (
                        name if name is not None else current.name,
                        color if color is not None else current.color,
                        format_ts(utcnow()),
                        tag_id,
                        tenant_id,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateTagError(f"Tag '{name}' already exists") from e
        return self.get_tag(tag_id, tenant_id)

    def delete_tag(self, tag_id: int, tenant_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM tags WHERE id = ? AND tenant_id = ?", (tag_id, tenant_id))
        return cursor.rowcount > 0

    def list_unsynced_tags(self, tenant_id: str, limit: int = 500) -> list[Tag]:
        with self._lock:
            rows = self._conn.execute(
                """SELECT * FROM tags WHERE tenant_id = ? AND sync_status = 'local'
                   ORDER BY id ASC LIMIT ?""",
                (tenant_id, limit),
            ).fetchall()
        return [self._row_to_tag(r) for r in rows]

    def mark_tag_synced(self, local_id: int, remote_id: int, revision: int | None = None) -> bool:
        sql = "UPDATE tags SET sync_status = 'synced', remote_id = ? WHERE id = ?"
        params: tuple = (remote_id, local_id)
        if revision is not None:
            sql += " AND revision = ?"
            params += (revision,)
        with self._transaction() as conn:
            cursor = conn.execute(sql, params)
        return cursor.rowcount > 0

    def upsert_tag_from_remote(self, remote: Tag) -> tuple[UpsertOutcome, int]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM tags WHERE remote_id = ? AND tenant_id = ? LIMIT 1", (remote.id, remote.tenant_id)
            ).fetchone()
            if row is None:
                row = conn.execute(
                    "SELECT * FROM tags WHERE tenant_id = ? AND LOWER(name) = LOWER(?)",
                    (remote.tenant_id, remote.name),
                ).fetchone()

            if row is None:
                cursor = conn.execute(
                    """INSERT INTO tags (tenant_id, name, color, created_at, updated_at, sync_status, remote_id)
                       VALUES (?, ?, ?, ?, ?, 'synced', ?)""",
                    (
                        remote.tenant_id,
                        remote.name,
                        remote.color,
                        format_ts(remote.created_at),
                        format_ts(remote.updated_at),
                        remote.id,
                    ),
                )
                return UpsertOutcome.INSERTED, cursor.lastrowid

            current = self._row_to_tag(row)
            if (
                current.sync_status == SyncStatus.SYNCED
                and current.remote_id == remote.id
                and current.name == remote.name
                and current.color == remote.color
            ):
                return UpsertOutcome.UNCHANGED, current.id

            conn.execute(
                """UPDATE tags
                   SET name = ?, color = ?, updated_at = ?, sync_status = 'synced', remote_id = ?,
                       revision = revision + 1
                   WHERE id = ?""",
                (remote.name, remote.color, format_ts(remote.updated_at), remote.id, current.id),
            )
            if current.name != remote.name:
                self._replace_tag(conn, remote.tenant_id, current.name, remote.name)
            return UpsertOutcome.UPDATED, current.id

    # Tenant settings

    def get_settings(self, user_id: str) -> TenantSettings | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM tenant_settings WHERE user_id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return TenantSettings(
            user_id=row["user_id"],
            tenant_id=row["tenant_id"],
            cadence=RetentionCadence(row["cadence"]),
            retain_tags=bool(row["retain_tags"]),
            updated_at=parse_ts(row["updated_at"]),
        )

    def save_settings(self, settings: TenantSettings) -> TenantSettings:
        updated_at = settings.updated_at or utcnow()
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO tenant_settings (user_id, tenant_id, cadence, retain_tags, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                       tenant_id = excluded.tenant_id,
                       cadence = excluded.cadence,
                       retain_tags = excluded.retain_tags,
                       updated_at = excluded.updated_at""",
                (
                    settings.user_id,
                    settings.tenant_id,
                    settings.cadence.value,
                    int(settings.retain_tags),
                    format_ts(updated_at),
                ),
            )
        return self.get_settings(settings.user_id)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @staticmethod
    def _entry_params(entry: ClipboardEntry) -> tuple:
        return (
            entry.tenant_id,
            entry.content,
            entry.content_type.value,
            entry.content_hash,
            entry.source_app,
            entry.source_window,
            format_ts(entry.captured_at),
            format_ts(entry.created_at),
            tags_to_json(entry.tags),
            int(entry.pinned),
            entry.sync_status.value,
            entry.remote_id,
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> ClipboardEntry:
        return ClipboardEntry(
            id=row["id"],
            tenant_id=row["tenant_id"],
            content=row["content"],
            content_type=ContentType(row["content_type"]),
            content_hash=row["content_hash"],
            source_app=row["source_app"],
            source_window=row["source_window"],
            captured_at=parse_ts(row["captured_at"]),
            created_at=parse_ts(row["created_at"]),
            tags=json_to_tags(row["tags"]),
            pinned=bool(row["pinned"]),
            sync_status=SyncStatus(row["sync_status"]),
            remote_id=row["remote_id"],
            revision=row["revision"],
        )

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> Tag:
        return Tag(
            id=row["id"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            color=row["color"],
            created_at=parse_ts(row["created_at"]),
            updated_at=parse_ts(row["updated_at"]),
            sync_status=SyncStatus(row["sync_status"]),
            remote_id=row["remote_id"],
            revision=row["revision"],
        )
