"""Cloud-side repository shared by every device of a tenant.

Built on SQLAlchemy Core over a pooled engine. PostgreSQL is the production
backend; SQLite is accepted as well (tests run against it). Writes from the
sync path are idempotent upserts keyed by the natural uniqueness constraints,
(tenant, content hash) for entries and (tenant, lower(name)) for tags, so a
retried push never creates a second row.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Engine,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    false,
    func,
    select,
    update,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, SQLAlchemyError

from clipvault.config import REMOTE_CONNECT_TIMEOUT, REMOTE_POOL_SIZE
from clipvault.exceptions import CloudUnavailableError, ConfigurationError, ValidationError
from clipvault.models import ClipboardEntry, ContentType, RetentionCadence, SyncStatus, Tag, TenantSettings
from clipvault.utils import escape_like, json_to_tags, tags_to_json, to_utc, utcnow

logger = logging.getLogger(__name__)

metadata = MetaData()

# SQLite only autoincrements INTEGER primary keys.
_RowId = BigInteger().with_variant(Integer, "sqlite")

clipboard_entries = Table(
    "clipboard_entries",
    metadata,
    Column("id", _RowId, primary_key=True, autoincrement=True),
    Column("tenant_id", String(255), nullable=False),
    Column("content", Text, nullable=False),
    Column("content_type", String(50), nullable=False, server_default="text"),
    Column("content_hash", String(64), nullable=False),
    Column("source_app", Text, nullable=False),
    Column("source_window", Text, nullable=False),
    Column("captured_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("tags", Text),
    Column("is_pinned", Boolean, nullable=False, server_default=false()),
    UniqueConstraint("tenant_id", "content_hash", name="uq_entries_tenant_hash"),
    Index("idx_entries_tenant_created", "tenant_id", "created_at"),
)

tags_table = Table(
    "tags",
    metadata,
    Column("id", _RowId, primary_key=True, autoincrement=True),
    Column("tenant_id", String(255), nullable=False),
    Column("name", String(100), nullable=False),
    # lower(name); the unique key that keeps tag names case-insensitive per tenant
    Column("name_key", String(100), nullable=False),
    Column("color", String(7), nullable=False, server_default="#6B7280"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("tenant_id", "name_key", name="uq_tags_tenant_name"),
)

tenant_settings = Table(
    "tenant_settings",
    metadata,
    Column("user_id", String(255), primary_key=True),
    Column("tenant_id", String(255), nullable=False, index=True),
    Column(
        "cadence",
        SAEnum(
            RetentionCadence,
            name="retention_cadence",
            native_enum=False,
            create_constraint=True,
            length=32,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        server_default=RetentionCadence.NEVER.value,
    ),
    Column("retain_tags", Boolean, nullable=False, server_default=false()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class RemoteStore:
    def __init__(self, engine: Engine):
        dialect = engine.dialect.name
        if dialect not in _INSERT_BY_DIALECT:
            raise ConfigurationError(f"Unsupported remote database dialect: {dialect}")
        self._engine = engine
        self._insert = _INSERT_BY_DIALECT[dialect]

    @classmethod
    def connect(
        cls, url: str, timeout: float = REMOTE_CONNECT_TIMEOUT, create_schema: bool = True
    ) -> "RemoteStore":
        """Open the remote store, failing with CloudUnavailableError after ``timeout`` seconds."""
        try:
            engine = create_engine(url, **_engine_options(url, timeout))
        except (ArgumentError, NoSuchModuleError) as e:
            raise ConfigurationError(f"Invalid remote database URL: {e}") from e

        store = cls(engine)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="clipvault-connect")
        future = executor.submit(store._probe, create_schema)
        try:
            future.result(timeout=timeout)
        except FutureTimeout:
            engine.dispose()
            raise CloudUnavailableError(f"Remote database connection timed out after {timeout}s") from None
        except SQLAlchemyError as e:
            engine.dispose()
            raise CloudUnavailableError(f"Remote database connection failed: {e}") from e
        finally:
            executor.shutdown(wait=False)

        logger.info("Connected to remote store (%s)", engine.dialect.name)
        return store

    def _probe(self, create_schema: bool) -> None:
        with self._engine.begin() as conn:
            conn.execute(select(1))
        if create_schema:
            metadata.create_all(self._engine)

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError as e:
            logger.warning("Remote store ping failed: %s", e)
            return False
        return True

    def dispose(self) -> None:
        self._engine.dispose()

    # Entries

    def upsert_entry(self, tenant_id: str, entry: ClipboardEntry) -> ClipboardEntry:
        """Insert, or update in place when the tenant already has this content hash."""
        stmt = self._insert(clipboard_entries).values(
            tenant_id=tenant_id,
            content=entry.content,
            content_type=entry.content_type.value,
            content_hash=entry.content_hash,
            source_app=entry.source_app,
            source_window=entry.source_window,
            captured_at=to_utc(entry.captured_at),
            created_at=to_utc(entry.created_at),
            # An untagged entry is written as "[]" so the conflict update clears stored tags.
            tags=tags_to_json(entry.tags) or "[]",
            is_pinned=entry.pinned,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[clipboard_entries.c.tenant_id, clipboard_entries.c.content_hash],
            set_={
                "content": stmt.excluded.content,
                "content_type": stmt.excluded.content_type,
                "source_app": stmt.excluded.source_app,
                "source_window": stmt.excluded.source_window,
                "captured_at": stmt.excluded.captured_at,
                "tags": stmt.excluded.tags,
                "is_pinned": stmt.excluded.is_pinned,
            },
        ).returning(*clipboard_entries.c)
        with self._engine.begin() as conn:
            row = conn.execute(stmt).mappings().one()
        return self._row_to_entry(row)

    def list_entries(self, tenant_id: str, limit: int | None = None) -> list[ClipboardEntry]:
        stmt = (
            select(clipboard_entries)
            .where(clipboard_entries.c.tenant_id == tenant_id)
            .order_by(clipboard_entries.c.created_at.desc(), clipboard_entries.c.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [self._row_to_entry(r) for r in rows]

    def get_entry(self, entry_id: int, tenant_id: str) -> ClipboardEntry | None:
        stmt = select(clipboard_entries).where(
            clipboard_entries.c.id == entry_id,
            clipboard_entries.c.tenant_id == tenant_id,
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return self._row_to_entry(row) if row else None

    def search(self, tenant_id: str, query: str, limit: int = 25) -> list[ClipboardEntry]:
        if not query.strip():
            return []
        pattern = f"%{escape_like(query.lower())}%"
        stmt = (
            select(clipboard_entries)
            .where(
                clipboard_entries.c.tenant_id == tenant_id,
                func.lower(clipboard_entries.c.content).like(pattern, escape="\\"),
            )
            .order_by(clipboard_entries.c.created_at.desc(), clipboard_entries.c.id.desc())
            .limit(limit)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [self._row_to_entry(r) for r in rows]

    def update_entry(
        self,
        entry_id: int,
        pinned: bool | None = None,
        tags: list[str] | None = None,
        tenant_id: str | None = None,
    ) -> ClipboardEntry | None:
        if tenant_id is None:
            raise ValidationError("Remote updates must be scoped to a tenant")
        values: dict = {}
        if pinned is not None:
            values["is_pinned"] = pinned
        if tags is not None:
            values["tags"] = tags_to_json(tags)
        if not values:
            return self.get_entry(entry_id, tenant_id)
        stmt = (
            update(clipboard_entries)
            .where(clipboard_entries.c.id == entry_id, clipboard_entries.c.tenant_id == tenant_id)
            .values(**values)
            .returning(*clipboard_entries.c)
        )
        with self._engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        return self._row_to_entry(row) if row else None

    def delete_entry(self, entry_id: int, tenant_id: str) -> bool:
        stmt = delete(clipboard_entries).where(
            clipboard_entries.c.id == entry_id,
            clipboard_entries.c.tenant_id == tenant_id,
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount > 0

    def count(self, tenant_id: str) -> int:
        stmt = select(func.count()).select_from(clipboard_entries).where(clipboard_entries.c.tenant_id == tenant_id)
        with self._engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    # Tags

    def upsert_tag(self, tenant_id: str, tag: Tag) -> Tag:
        """Write a tag; renames follow the known remote id, otherwise upsert on the name."""
        now = utcnow()
        with self._engine.begin() as conn:
            if tag.remote_id is not None:
                row = conn.execute(
                    update(tags_table)
                    .where(tags_table.c.id == tag.remote_id, tags_table.c.tenant_id == tenant_id)
                    .values(name=tag.name, name_key=tag.name.lower(), color=tag.color, updated_at=now)
                    .returning(*tags_table.c)
                ).mappings().first()
                if row is not None:
                    return self._row_to_tag(row)

            stmt = self._insert(tags_table).values(
                tenant_id=tenant_id,
                name=tag.name,
                name_key=tag.name.lower(),
                color=tag.color,
                created_at=to_utc(tag.created_at),
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[tags_table.c.tenant_id, tags_table.c.name_key],
                set_={
                    "name": stmt.excluded.name,
                    "color": stmt.excluded.color,
                    "updated_at": stmt.excluded.updated_at,
                },
            ).returning(*tags_table.c)
            row = conn.execute(stmt).mappings().one()
        return self._row_to_tag(row)

    def list_tags(self, tenant_id: str) -> list[Tag]:
        stmt = select(tags_table).where(tags_table.c.tenant_id == tenant_id).order_by(tags_table.c.name_key.asc())
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [self._row_to_tag(r) for r in rows]

    def delete_tag(self, tag_id: int, tenant_id: str) -> bool:
        stmt = delete(tags_table).where(tags_table.c.id == tag_id, tags_table.c.tenant_id == tenant_id)
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount > 0

    # Tenant settings

    def get_settings(self, user_id: str) -> TenantSettings | None:
        stmt = select(tenant_settings).where(tenant_settings.c.user_id == user_id)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return TenantSettings(
            user_id=row["user_id"],
            tenant_id=row["tenant_id"],
            cadence=RetentionCadence(row["cadence"]),
            retain_tags=bool(row["retain_tags"]),
            updated_at=to_utc(row["updated_at"]),
        )

    def save_settings(self, settings: TenantSettings) -> TenantSettings:
        stmt = self._insert(tenant_settings).values(
            user_id=settings.user_id,
            tenant_id=settings.tenant_id,
            cadence=settings.cadence,
            retain_tags=settings.retain_tags,
            updated_at=to_utc(settings.updated_at or utcnow()),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[tenant_settings.c.user_id],
            set_={
                "tenant_id": stmt.excluded.tenant_id,
                "cadence": stmt.excluded.cadence,
                "retain_tags": stmt.excluded.retain_tags,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)
        return self.get_settings(settings.user_id)

    @staticmethod
    def _row_to_entry(row) -> ClipboardEntry:
        return ClipboardEntry(
            id=row["id"],
            tenant_id=row["tenant_id"],
            content=row["content"],
            content_type=ContentType(row["content_type"]),
            content_hash=row["content_hash"],
            source_app=row["source_app"],
            source_window=row["source_window"],
            captured_at=to_utc(row["captured_at"]),
            created_at=to_utc(row["created_at"]),
            tags=json_to_tags(row["tags"]),
            pinned=bool(row["is_pinned"]),
            sync_status=SyncStatus.SYNCED,
            remote_id=row["id"],
        )

    @staticmethod
    def _row_to_tag(row) -> Tag:
        return Tag(
            id=row["id"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            color=row["color"],
            created_at=to_utc(row["created_at"]),
            updated_at=to_utc(row["updated_at"]),
            sync_status=SyncStatus.SYNCED,
            remote_id=row["id"],
        )


def _engine_options(url: str, timeout: float) -> dict:
    options: dict = {"pool_pre_ping": True}
    if url.startswith("postgresql"):
        options["pool_size"] = REMOTE_POOL_SIZE
        options["pool_timeout"] = timeout
        options["connect_args"] = {"connect_timeout": int(timeout)}
    return options
