import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from clipvault import __version__
from clipvault.config import (
    DEFAULT_LIST_LIMIT,
    MAX_TEXT_SIZE,
    POLL_INTERVAL,
    REMOTE_CONNECT_TIMEOUT,
    REMOTE_URL,
    RETENTION_INTERVAL,
    SYNC_BATCH_SIZE,
    SYNC_INTERVAL,
)
from clipvault.exceptions import (
    CloudUnavailableError,
    ConfigurationError,
    DuplicateEntryError,
    NotFoundError,
    ValidationError,
)
from clipvault.identity import identify
from clipvault.models import ClipboardEntry, RetentionCadence, Tag, TenantSettings
from clipvault.monitor import ClipboardMonitor, ClipboardReader
from clipvault.remote import RemoteStore
from clipvault.repository import EntryRepository, TagRepository
from clipvault.retention import RetentionEngine
from clipvault.storage import LocalStore
from clipvault.sync import SyncCoordinator, SyncReport
from clipvault.tags import TagService, validate_tag_name
from clipvault.tenancy import TenancyContext, TenancySession
from clipvault.utils import ensure_dirs, utcnow

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a user-triggered sync or bootstrap, ready to show in the UI."""

    success: bool
    message: str
    report: SyncReport | None = None


@dataclass
class AppStatus:
    version: str
    logged_in: bool
    user_id: str | None
    tenant_id: str | None
    online: bool
    local_count: int
    unsynced_count: int
    remote_count: int | None
    db_path: str


class ClipVaultApp:
    """Wires the stores together and exposes the operations the UI calls.

    The local store is required; failing to open it raises
    ``LocalStoreUnavailableError``. The remote store is optional: when it is
    not configured or cannot be reached within the connect timeout the app
    runs local-only and the sync worker keeps trying to reconnect.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        remote_url: str | None = REMOTE_URL,
        reader: ClipboardReader | None = None,
        remote: RemoteStore | None = None,
        connect_timeout: float = REMOTE_CONNECT_TIMEOUT,
    ):
        self._remote_url = remote_url
        self._connect_timeout = connect_timeout
        self._reader = reader
        self._init_app(db_path, remote)

    def _init_app(self, db_path: str | Path | None, remote: RemoteStore | None) -> None:
        """Initialize app components. Separated for testability."""
        if db_path is None:
            ensure_dirs()
        self._local = LocalStore(db_path)
        self._session = TenancySession()
        self._stop = threading.Event()
        self._workers: list[threading.Thread] = []
        self._sync = SyncCoordinator(self._local, remote, batch_size=SYNC_BATCH_SIZE, stop_event=self._stop)
        self._tags = TagService(self._local)
        self._retention = RetentionEngine(self._local)
        self._monitor = ClipboardMonitor(self._local, self._session, reader=self._reader)
        if remote is None:
            self._connect_remote()

    @property
    def local(self) -> LocalStore:
        return self._local

    @property
    def remote(self) -> RemoteStore | None:
        return self._sync.remote

    @property
    def monitor(self) -> ClipboardMonitor:
        return self._monitor

    @property
    def session(self) -> TenancySession:
        return self._session

    @property
    def is_online(self) -> bool:
        return self._sync.remote is not None

    def _connect_remote(self) -> RemoteStore | None:
        if not self._remote_url:
            return None
        try:
            remote = RemoteStore.connect(self._remote_url, timeout=self._connect_timeout)
        except CloudUnavailableError as e:
            logger.warning("%s (%s)", CloudUnavailableError.user_message, e)
            return None
        except ConfigurationError as e:
            logger.error("Remote store disabled: %s", e)
            self._remote_url = None
            return None
        self._sync.set_remote(remote)
        return remote

    # Session

    def login(self, user_id: str, tenant_id: str, email: str = "", bootstrap: bool = True) -> TenancyContext:
        """Start a session. With ``bootstrap`` the tenant's cloud history is pulled first when online."""
        context = TenancyContext(user_id=user_id, tenant_id=tenant_id, email=email)
        self._session.login(context)
        logger.info("Logged in as %s (tenant %s)", user_id, tenant_id)
        if bootstrap and self.is_online:
            result = self.bootstrap_now()
            if not result.success:
                logger.warning("Bootstrap after login failed: %s", result.message)
        return context

    def logout(self) -> None:
        previous = self._session.logout()
        if previous is not None:
            logger.info("Logged out %s", previous.user_id)

    # Entries

    def list_entries(self, limit: int | None = DEFAULT_LIST_LIMIT) -> list[ClipboardEntry]:
        tenant = self._session.require()
        return self._local.list_entries(tenant.tenant_id, limit=limit)

    def search_entries(self, query: str, limit: int = 25) -> list[ClipboardEntry]:
        tenant = self._session.require()
        return self._local.search(tenant.tenant_id, query, limit=limit)

    def get_entry(self, entry_id: int) -> ClipboardEntry:
        tenant = self._session.require()
        entry = self._local.get_entry(entry_id, tenant.tenant_id)
        if entry is None:
            raise NotFoundError(f"Entry {entry_id} not found")
        return entry

    def create_entry(self, content: str, source_app: str = "Manual", source_window: str = "Unknown") -> ClipboardEntry:
        tenant = self._session.require()
        _validate_content(content)
        content_hash, content_type = identify(content)
        now = utcnow()
        result = self._local.insert_entry(
            ClipboardEntry(
                id=None,
                tenant_id=tenant.tenant_id,
                content=content,
                content_type=content_type,
                content_hash=content_hash,
                source_app=source_app,
                source_window=source_window,
                captured_at=now,
                created_at=now,
            )
        )
        entry = self._local.get_entry(result.entry_id, tenant.tenant_id)
        if entry is None:
            raise DuplicateEntryError("This content is already stored for another account on this device")
        return entry

    def update_entry(self, entry_id: int, pinned: bool | None = None, tags: list[str] | None = None) -> ClipboardEntry:
        if tags is not None:
            tags = [validate_tag_name(t) for t in tags]
        self.get_entry(entry_id)
        tenant = self._session.require()
        return self._local.update_entry(entry_id, pinned=pinned, tags=tags, tenant_id=tenant.tenant_id)

    def toggle_pin(self, entry_id: int) -> bool:
        entry = self.get_entry(entry_id)
        return self._local.toggle_pin(entry.id, entry.tenant_id)

    def update_entry_content(self, entry_id: int, content: str) -> ClipboardEntry:
        _validate_content(content)
        entry = self.get_entry(entry_id)
        return self._local.update_content(entry.id, content, tenant_id=entry.tenant_id)

    def delete_entry(self, entry_id: int) -> bool:
        """Delete locally; also delete the cloud copy when it is known and reachable."""
        entry = self.get_entry(entry_id)
        deleted = self._local.delete_entry(entry.id, entry.tenant_id)
        remote: EntryRepository | None = self._sync.remote
        if deleted and remote is not None and entry.remote_id is not None:
            try:
                remote.delete_entry(entry.remote_id, entry.tenant_id)
            except SQLAlchemyError as e:
                logger.warning("Remote delete of entry %d failed: %s", entry.remote_id, e)
        return deleted

    # Tags

    def list_tags(self) -> list[Tag]:
        return self._tags.list_tags(self._session.require().tenant_id)

    def create_tag(self, name: str, color: str | None = None) -> Tag:
        return self._tags.create_tag(self._session.require().tenant_id, name, color)

    def update_tag(self, tag_id: int, name: str | None = None, color: str | None = None) -> Tag:
        return self._tags.update_tag(self._session.require().tenant_id, tag_id, name=name, color=color)

    def delete_tag(self, tag_id: int) -> bool:
        tenant = self._session.require()
        tag = self._local.get_tag(tag_id, tenant.tenant_id)
        if tag is None or not self._tags.delete_tag(tenant.tenant_id, tag_id):
            return False
        remote: TagRepository | None = self._sync.remote
        if remote is not None and tag.remote_id is not None:
            try:
                remote.delete_tag(tag.remote_id, tenant.tenant_id)
            except SQLAlchemyError as e:
                logger.warning("Remote delete of tag %r failed: %s", tag.name, e)
        return True

    def assign_tag(self, entry_id: int, name: str) -> ClipboardEntry:
        return self._tags.assign_tag(self._session.require().tenant_id, entry_id, name)

    def remove_tag(self, entry_id: int, name: str) -> ClipboardEntry:
        return self._tags.remove_tag(self._session.require().tenant_id, entry_id, name)

    def tag_stats(self) -> dict[str, int]:
        return self._tags.tag_stats(self._session.require().tenant_id)

    # Sync

    def sync_now(self) -> CommandResult:
        tenant = self._session.require()
        if not self.is_online:
            self._connect_remote()
        try:
            report = self._sync.sync_now(tenant)
        except CloudUnavailableError as e:
            logger.warning("Sync failed: %s", e)
            return CommandResult(False, CloudUnavailableError.user_message)
        return CommandResult(True, report.summary(), report)

    def bootstrap_now(self) -> CommandResult:
        tenant = self._session.require()
        if not self.is_online:
            self._connect_remote()
        try:
            report = self._sync.bootstrap(tenant)
        except CloudUnavailableError as e:
            logger.warning("Bootstrap failed: %s", e)
            return CommandResult(False, CloudUnavailableError.user_message)
        return CommandResult(True, report.summary(), report)

    # Retention

    def get_retention_settings(self) -> TenantSettings:
        tenant = self._session.require()
        settings = self._local.get_settings(tenant.user_id)
        if settings is None:
            return TenantSettings(user_id=tenant.user_id, tenant_id=tenant.tenant_id)
        return settings

    def update_retention_settings(
        self, cadence: str | RetentionCadence, retain_tags: bool | None = None
    ) -> TenantSettings:
        tenant = self._session.require()
        parsed = RetentionCadence.parse(cadence)
        current = self.get_retention_settings()
        saved = self._local.save_settings(
            TenantSettings(
                user_id=tenant.user_id,
                tenant_id=tenant.tenant_id,
                cadence=parsed,
                retain_tags=current.retain_tags if retain_tags is None else retain_tags,
                updated_at=utcnow(),
            )
        )
        if self.is_online:
            try:
                self._sync.sync_settings(tenant)
            except CloudUnavailableError as e:
                logger.warning("Settings kept locally, cloud update failed: %s", e)
        return saved

    def run_retention_now(self) -> int:
        return self._retention.run_for(self._session.require())

    def status(self) -> AppStatus:
        tenant = self._session.current()
        remote_count = None
        remote = self._sync.remote
        if tenant is not None and remote is not None:
            try:
                remote_count = remote.count(tenant.tenant_id)
            except SQLAlchemyError as e:
                logger.warning("Could not count remote entries: %s", e)
        return AppStatus(
            version=__version__,
            logged_in=tenant is not None,
            user_id=tenant.user_id if tenant else None,
            tenant_id=tenant.tenant_id if tenant else None,
            online=remote is not None,
            local_count=self._local.count(tenant.tenant_id) if tenant else self._local.count(),
            unsynced_count=self._local.count_unsynced(tenant.tenant_id) if tenant else 0,
            remote_count=remote_count,
            db_path=self._local.db_path,
        )

    # Background workers

    def start(self) -> None:
        if self._workers:
            return
        self._stop.clear()
        targets = [("clipvault-sync", self._sync_loop), ("clipvault-retention", self._retention_loop)]
        if self._reader is not None:
            targets.insert(0, ("clipvault-capture", self._capture_loop))
        for name, target in targets:
            thread = threading.Thread(target=target, name=name, daemon=True)
            thread.start()
            self._workers.append(thread)
        logger.info("Started %d background workers", len(self._workers))

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        for thread in self._workers:
            thread.join(timeout=timeout)
        self._workers.clear()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until ``stop()`` is called. Returns True once stopped."""
        return self._stop.wait(timeout)

    def close(self) -> None:
        self.stop()
        remote = self._sync.remote
        if remote is not None:
            remote.dispose()
        self._local.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _capture_loop(self) -> None:
        while not self._stop.wait(POLL_INTERVAL):
            try:
                self._monitor.check_clipboard()
            except Exception:
                logger.exception("Error in capture worker")

    def _sync_loop(self) -> None:
        while not self._stop.wait(SYNC_INTERVAL):
            try:
                self.run_sync_cycle()
            except Exception:
                logger.exception("Error in sync worker")

    def _retention_loop(self) -> None:
        while not self._stop.wait(RETENTION_INTERVAL):
            try:
                self.run_retention_cycle()
            except Exception:
                logger.exception("Error in retention worker")

    def run_sync_cycle(self) -> SyncReport | None:
        """One pass of the sync worker. Never raises for an unreachable cloud."""
        tenant = self._session.current()
        if tenant is None:
            return None
        if not self.is_online and self._connect_remote() is None:
            return None
        try:
            return self._sync.sync_now(tenant)
        except CloudUnavailableError as e:
            logger.warning("Background sync skipped: %s", e)
            return None

    def run_retention_cycle(self) -> int:
        tenant = self._session.current()
        if tenant is None:
            return 0
        return self._retention.run_for(tenant)


def _validate_content(content: str) -> None:
    if not content or not content.strip():
        raise ValidationError("Content cannot be empty")
    if len(content.encode("utf-8")) > MAX_TEXT_SIZE:
        raise ValidationError(f"Content exceeds {MAX_TEXT_SIZE} bytes")
