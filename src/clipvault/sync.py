"""Replication between the local and the remote store.

Two independent passes per tenant:

* push: unsynced local rows, oldest first, are upserted remotely and then
  marked ``synced`` with the returned remote id;
* pull (bootstrap): every remote row of the tenant is mirrored locally,
  matched on the remote id.

The side performing the write wins for the fields it writes; there is no
timestamp comparison. A failing row never aborts a pass: it is reported as a
``skipped`` outcome, keeps its previous sync state and is retried on the next
pass. Only an unreachable remote store ends a pass early, as a single
:class:`~clipvault.exceptions.CloudUnavailableError`.
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from clipvault.config import SYNC_BATCH_SIZE
from clipvault.exceptions import ClipVaultError, CloudUnavailableError
from clipvault.models import UpsertOutcome
from clipvault.remote import RemoteStore
from clipvault.repository import SettingsRepository
from clipvault.storage import LocalStore
from clipvault.tenancy import TenancyContext

logger = logging.getLogger(__name__)

# Failures that only concern the row being processed.
ROW_ERRORS = (SQLAlchemyError, sqlite3.Error, ClipVaultError, ValueError)


class RowStatus(str, Enum):
    SYNCED = "synced"  # pushed and marked synced
    INSERTED = "inserted"  # pulled into a new local row
    UPDATED = "updated"  # pulled over an existing local row
    UNCHANGED = "unchanged"
    STALE = "stale"  # pushed, but edited locally meanwhile; stays local
    SKIPPED = "skipped"


WRITE_STATUSES = frozenset({RowStatus.SYNCED, RowStatus.INSERTED, RowStatus.UPDATED})


@dataclass
class RowOutcome:
    kind: str  # "entry", "tag" or "settings"
    local_id: int | None
    remote_id: int | None
    status: RowStatus
    reason: str | None = None


@dataclass
class SyncReport:
    operation: str
    tenant_id: str
    outcomes: list[RowOutcome] = field(default_factory=list)

    def add(self, outcome: RowOutcome) -> None:
        self.outcomes.append(outcome)

    def merge(self, other: "SyncReport") -> "SyncReport":
        self.outcomes.extend(other.outcomes)
        return self

    def count(self, status: RowStatus, kind: str | None = None) -> int:
        return sum(1 for o in self.outcomes if o.status == status and (kind is None or o.kind == kind))

    @property
    def written_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status in WRITE_STATUSES)

    @property
    def skipped_count(self) -> int:
        return self.count(RowStatus.SKIPPED)

    def summary(self) -> str:
        return (
            f"{self.operation}: {self.written_count} written, "
            f"{self.count(RowStatus.UNCHANGED)} unchanged, "
            f"{self.count(RowStatus.STALE)} stale, {self.skipped_count} skipped"
        )


class SyncCoordinator:
    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore | None = None,
        batch_size: int = SYNC_BATCH_SIZE,
        stop_event: threading.Event | None = None,
    ):
        self._local = local
        self._remote = remote
        self._batch_size = batch_size
        # Checked between rows; a set event ends the current pass early.
        self._stop_event = stop_event

    @property
    def remote(self) -> RemoteStore | None:
        return self._remote

    def set_remote(self, remote: RemoteStore | None) -> None:
        self._remote = remote

    def _stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def _require_remote(self) -> RemoteStore:
        remote = self._remote
        if remote is None:
            raise CloudUnavailableError("No remote store configured or connected")
        if not remote.ping():
            raise CloudUnavailableError("Remote store is not reachable")
        return remote

    # Top-level operations

    def sync_now(self, tenant: TenancyContext) -> SyncReport:
        """Push tags, then entries, then settings."""
        remote = self._require_remote()
        report = SyncReport("sync", tenant.tenant_id)
        report.merge(self._push_tags(remote, tenant))
        report.merge(self._push_entries(remote, tenant))
        report.add(self._push_settings(remote, tenant))
        logger.info("Sync for tenant %s finished: %s", tenant.tenant_id, report.summary())
        return report

    def bootstrap(self, tenant: TenancyContext) -> SyncReport:
        """Pull tags, entries and settings of the tenant into the local store."""
        remote = self._require_remote()
        report = SyncReport("bootstrap", tenant.tenant_id)
        report.merge(self._pull_tags(remote, tenant))
        report.merge(self._pull_entries(remote, tenant))
        report.add(self._pull_settings(remote, tenant))
        logger.info("Bootstrap for tenant %s finished: %s", tenant.tenant_id, report.summary())
        return report

    def push_entries(self, tenant: TenancyContext) -> SyncReport:
        return self._push_entries(self._require_remote(), tenant)

    def pull_entries(self, tenant: TenancyContext) -> SyncReport:
        return self._pull_entries(self._require_remote(), tenant)

    def push_tags(self, tenant: TenancyContext) -> SyncReport:
        return self._push_tags(self._require_remote(), tenant)

    def pull_tags(self, tenant: TenancyContext) -> SyncReport:
        return self._pull_tags(self._require_remote(), tenant)

    def sync_settings(self, tenant: TenancyContext) -> RowOutcome:
        return self._push_settings(self._require_remote(), tenant)

    def pull_settings(self, tenant: TenancyContext) -> RowOutcome:
        return self._pull_settings(self._require_remote(), tenant)

    # Entries

    def _push_entries(self, remote: RemoteStore, tenant: TenancyContext) -> SyncReport:
        report = SyncReport("push", tenant.tenant_id)
        pending = self._local.list_unsynced(tenant.tenant_id, limit=self._batch_size)
        for entry in pending:
            if self._stopping():
                break
            try:
                saved = remote.upsert_entry(tenant.tenant_id, entry)
                marked = self._local.mark_synced(entry.id, saved.id, revision=entry.revision)
            except ROW_ERRORS as e:
                logger.warning("Push of entry %d skipped: %s", entry.id, e)
                report.add(RowOutcome("entry", entry.id, entry.remote_id, RowStatus.SKIPPED, str(e)))
                continue
            if marked:
                report.add(RowOutcome("entry", entry.id, saved.id, RowStatus.SYNCED))
            else:
                logger.debug("Entry %d changed during push, left for the next pass", entry.id)
                report.add(RowOutcome("entry", entry.id, saved.id, RowStatus.STALE, "modified during push"))
        return report

    def _pull_entries(self, remote: RemoteStore, tenant: TenancyContext) -> SyncReport:
        report = SyncReport("pull", tenant.tenant_id)
        try:
            remote_entries = remote.list_entries(tenant.tenant_id)
        except SQLAlchemyError as e:
            raise CloudUnavailableError(f"Could not fetch remote entries: {e}") from e

        for remote_entry in reversed(remote_entries):
            if self._stopping():
                break
            if remote_entry.tenant_id != tenant.tenant_id:
                report.add(
                    RowOutcome("entry", None, remote_entry.id, RowStatus.SKIPPED, "belongs to another tenant")
                )
                continue
            try:
                outcome, local_id = self._local.upsert_from_remote(remote_entry)
            except ROW_ERRORS as e:
                logger.warning("Pull of remote entry %d skipped: %s", remote_entry.id, e)
                report.add(RowOutcome("entry", None, remote_entry.id, RowStatus.SKIPPED, str(e)))
                continue
            report.add(RowOutcome("entry", local_id, remote_entry.id, _PULL_STATUS[outcome]))
        return report

    # Tags

    def _push_tags(self, remote: RemoteStore, tenant: TenancyContext) -> SyncReport:
        report = SyncReport("push", tenant.tenant_id)
        for tag in self._local.list_unsynced_tags(tenant.tenant_id, limit=self._batch_size):
            if self._stopping():
                break
            try:
                saved = remote.upsert_tag(tenant.tenant_id, tag)
                marked = self._local.mark_tag_synced(tag.id, saved.id, revision=tag.revision)
            except ROW_ERRORS as e:
                logger.warning("Push of tag %r skipped: %s", tag.name, e)
                report.add(RowOutcome("tag", tag.id, tag.remote_id, RowStatus.SKIPPED, str(e)))
                continue
            status = RowStatus.SYNCED if marked else RowStatus.STALE
            report.add(RowOutcome("tag", tag.id, saved.id, status))
        return report

    def _pull_tags(self, remote: RemoteStore, tenant: TenancyContext) -> SyncReport:
        report = SyncReport("pull", tenant.tenant_id)
        try:
            remote_tags = remote.list_tags(tenant.tenant_id)
        except SQLAlchemyError as e:
            raise CloudUnavailableError(f"Could not fetch remote tags: {e}") from e

        for remote_tag in remote_tags:
            if self._stopping():
                break
            try:
                outcome, local_id = self._local.upsert_tag_from_remote(remote_tag)
            except ROW_ERRORS as e:
                logger.warning("Pull of remote tag %r skipped: %s", remote_tag.name, e)
                report.add(RowOutcome("tag", None, remote_tag.id, RowStatus.SKIPPED, str(e)))
                continue
            report.add(RowOutcome("tag", local_id, remote_tag.id, _PULL_STATUS[outcome]))
        return report

    # Settings

    def _push_settings(self, remote: RemoteStore, tenant: TenancyContext) -> RowOutcome:
        # A user with no settings on this device leaves the cloud copy alone.
        return _copy_settings(self._local, remote, tenant.user_id, "push", RowStatus.SYNCED)

    def _pull_settings(self, remote: RemoteStore, tenant: TenancyContext) -> RowOutcome:
        return _copy_settings(remote, self._local, tenant.user_id, "pull", RowStatus.UPDATED)


def _copy_settings(
    source: SettingsRepository,
    target: SettingsRepository,
    user_id: str,
    direction: str,
    written: RowStatus,
) -> RowOutcome:
    """Copy a user's retention settings when the source has some and they differ."""
    try:
        settings = source.get_settings(user_id)
        if settings is None or settings.same_policy(target.get_settings(user_id)):
            return RowOutcome("settings", None, None, RowStatus.UNCHANGED)
        target.save_settings(settings)
    except ROW_ERRORS as e:
        logger.warning("Settings %s for user %s skipped: %s", direction, user_id, e)
        return RowOutcome("settings", None, None, RowStatus.SKIPPED, str(e))
    logger.info("Settings %s for user %s (%s)", direction, user_id, settings.cadence.value)
    return RowOutcome("settings", None, None, written)


_PULL_STATUS = {
    UpsertOutcome.INSERTED: RowStatus.INSERTED,
    UpsertOutcome.UPDATED: RowStatus.UPDATED,
    UpsertOutcome.UNCHANGED: RowStatus.UNCHANGED,
}
