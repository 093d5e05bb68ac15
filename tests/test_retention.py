from datetime import timedelta

import pytest

from clipvault.models import RetentionCadence, TenantSettings
from clipvault.retention import RetentionEngine
from clipvault.utils import utcnow


@pytest.fixture
def engine(storage):
    return RetentionEngine(storage)


class TestRun:
    def test_24_hour_cadence(self, engine, storage, make_entry):
        now = utcnow()
        for hours in (10, 30, 50):
            storage.insert_entry(make_entry(f"{hours}h old", created_at=now - timedelta(hours=hours)))
        deleted = engine.run("tenant-a", RetentionCadence.EVERY_24_HOURS, now=now)
        assert deleted == 2
        assert [e.content for e in storage.list_entries("tenant-a")] == ["10h old"]

    def test_never_is_noop(self, engine, storage, make_entry):
        storage.insert_entry(make_entry("ancient", created_at=utcnow() - timedelta(days=400)))
        assert engine.run("tenant-a", RetentionCadence.NEVER) == 0
        assert storage.count() == 1

    def test_pinned_survive(self, engine, storage, make_entry):
        old = utcnow() - timedelta(days=10)
        storage.insert_entry(make_entry("pinned", created_at=old, pinned=True))
        assert engine.run("tenant-a", RetentionCadence.EVERY_WEEK) == 0

    def test_keep_tagged(self, engine, storage, make_entry):
        old = utcnow() - timedelta(days=10)
        storage.insert_entry(make_entry("tagged", created_at=old, tags=["keep"]))
        storage.insert_entry(make_entry("plain", created_at=old))
        assert engine.run("tenant-a", RetentionCadence.EVERY_3_DAYS, keep_tagged=True) == 1
        assert [e.content for e in storage.list_entries("tenant-a")] == ["tagged"]

    def test_other_tenant_untouched(self, engine, storage, make_entry):
        old = utcnow() - timedelta(days=10)
        storage.insert_entry(make_entry("other", tenant_id="tenant-b", created_at=old))
        assert engine.run("tenant-a", RetentionCadence.EVERY_24_HOURS) == 0
        assert storage.count("tenant-b") == 1

    def test_remote_not_touched(self, engine, storage, remote, make_entry):
        old = utcnow() - timedelta(days=10)
        entry = make_entry("synced and old", created_at=old)
        result = storage.insert_entry(entry)
        saved = remote.upsert_entry("tenant-a", entry)
        storage.mark_synced(result.entry_id, saved.id)
        assert engine.run("tenant-a", RetentionCadence.EVERY_24_HOURS) == 1
        assert remote.count("tenant-a") == 1


class TestRunFor:
    def test_without_settings(self, engine, storage, tenant, make_entry):
        storage.insert_entry(make_entry("old", created_at=utcnow() - timedelta(days=60)))
        assert engine.run_for(tenant) == 0

    def test_uses_saved_settings(self, engine, storage, tenant, make_entry):
        old = utcnow() - timedelta(days=60)
        storage.insert_entry(make_entry("old tagged", created_at=old, tags=["x"]))
        storage.insert_entry(make_entry("old plain", created_at=old))
        storage.save_settings(
            TenantSettings(tenant.user_id, tenant.tenant_id, RetentionCadence.EVERY_MONTH, retain_tags=True)
        )
        assert engine.run_for(tenant) == 1

    def test_reads_policy_from_given_settings_store(self, storage, remote, tenant, make_entry):
        storage.insert_entry(make_entry("old", created_at=utcnow() - timedelta(days=2)))
        remote.save_settings(TenantSettings(tenant.user_id, tenant.tenant_id, RetentionCadence.EVERY_24_HOURS))
        assert RetentionEngine(storage).run_for(tenant) == 0
        assert RetentionEngine(storage, settings=remote).run_for(tenant) == 1
        assert storage.count() == 0
