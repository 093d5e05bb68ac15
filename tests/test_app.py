from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from clipvault.app import ClipVaultApp
from clipvault.exceptions import (
    CloudUnavailableError,
    DuplicateEntryError,
    NotFoundError,
    NotLoggedInError,
    ValidationError,
)
from clipvault.models import RetentionCadence, SyncStatus
from clipvault.utils import utcnow


@pytest.fixture
def offline_app():
    app = ClipVaultApp(db_path=":memory:", remote_url=None)
    yield app
    app.close()


@pytest.fixture
def app(remote):
    app = ClipVaultApp(db_path=":memory:", remote_url=None, remote=remote)
    yield app
    app.stop()
    app.local.close()


@pytest.fixture
def logged_in(app):
    app.login("user-1", "tenant-a", "a@example.com")
    return app


class TestStartup:
    def test_offline_without_url(self, offline_app):
        assert offline_app.is_online is False

    def test_unreachable_cloud_degrades(self):
        with patch("clipvault.app.RemoteStore.connect", side_effect=CloudUnavailableError("timeout")):
            app = ClipVaultApp(db_path=":memory:", remote_url="postgresql+psycopg://h/db")
        try:
            assert app.is_online is False
        finally:
            app.close()

    def test_bad_url_disables_remote(self):
        app = ClipVaultApp(db_path=":memory:", remote_url="not a url")
        try:
            assert app.is_online is False
            assert app._remote_url is None
        finally:
            app.close()

    def test_connects_with_url(self, tmp_path):
        app = ClipVaultApp(db_path=":memory:", remote_url=f"sqlite:///{tmp_path / 'cloud.db'}")
        try:
            assert app.is_online is True
        finally:
            app.close()


class TestSession:
    def test_requires_login(self, offline_app):
        with pytest.raises(NotLoggedInError):
            offline_app.list_entries()

    def test_login_bootstraps(self, app, remote, make_entry):
        remote.upsert_entry("tenant-a", make_entry("from cloud"))
        app.login("user-1", "tenant-a")
        assert [e.content for e in app.list_entries()] == ["from cloud"]

    def test_login_without_bootstrap(self, app, remote, make_entry):
        remote.upsert_entry("tenant-a", make_entry("from cloud"))
        app.login("user-1", "tenant-a", bootstrap=False)
        assert app.list_entries() == []

    def test_logout(self, logged_in):
        logged_in.logout()
        assert logged_in.session.current() is None


class TestEntries:
    def test_create_and_get(self, logged_in):
        entry = logged_in.create_entry("note to self")
        assert logged_in.get_entry(entry.id).content == "note to self"

    def test_create_blank(self, logged_in):
        with pytest.raises(ValidationError):
            logged_in.create_entry("  ")

    def test_create_duplicate_returns_existing(self, logged_in):
        first = logged_in.create_entry("same")
        assert logged_in.create_entry("same").id == first.id

    def test_create_owned_by_other_tenant(self, logged_in, make_entry):
        logged_in.local.insert_entry(make_entry("shared", tenant_id="tenant-b"))
        with pytest.raises(DuplicateEntryError):
            logged_in.create_entry("shared")

    def test_get_other_tenant(self, logged_in, make_entry):
        result = logged_in.local.insert_entry(make_entry("theirs", tenant_id="tenant-b"))
        with pytest.raises(NotFoundError):
            logged_in.get_entry(result.entry_id)

    def test_search(self, logged_in):
        logged_in.create_entry("find the needle")
        logged_in.create_entry("haystack")
        assert [e.content for e in logged_in.search_entries("needle")] == ["find the needle"]

    def test_update_entry(self, logged_in):
        entry = logged_in.create_entry("pin me")
        updated = logged_in.update_entry(entry.id, pinned=True, tags=[" a "])
        assert updated.pinned is True
        assert updated.tags == ["a"]

    def test_update_entry_bad_tag(self, logged_in):
        entry = logged_in.create_entry("pin me")
        with pytest.raises(ValidationError):
            logged_in.update_entry(entry.id, tags=[""])

    def test_toggle_pin(self, logged_in):
        entry = logged_in.create_entry("toggle")
        assert logged_in.toggle_pin(entry.id) is True

    def test_update_content(self, logged_in):
        entry = logged_in.create_entry("abc")
        assert logged_in.update_entry_content(entry.id, "abcd").content == "abcd"

    def test_delete_also_deletes_remote(self, logged_in, remote):
        entry = logged_in.create_entry("gone soon")
        logged_in.sync_now()
        synced = logged_in.get_entry(entry.id)
        assert logged_in.delete_entry(entry.id) is True
        assert remote.get_entry(synced.remote_id, "tenant-a") is None

    def test_delete_survives_remote_failure(self, logged_in, remote):
        entry = logged_in.create_entry("gone soon")
        logged_in.sync_now()
        with patch.object(remote, "delete_entry", side_effect=OperationalError("DELETE", {}, Exception("x"))):
            assert logged_in.delete_entry(entry.id) is True
        assert logged_in.local.count("tenant-a") == 0


class TestTags:
    def test_tag_flow(self, logged_in):
        tag = logged_in.create_tag("Work", "#00ff00")
        entry = logged_in.create_entry("tag me")
        logged_in.assign_tag(entry.id, "Work")
        assert logged_in.tag_stats() == {"Work": 1}
        logged_in.update_tag(tag.id, name="Office")
        assert logged_in.get_entry(entry.id).tags == ["Office"]
        assert logged_in.remove_tag(entry.id, "Office").tags == []
        assert [t.name for t in logged_in.list_tags()] == ["Office"]

    def test_delete_tag_removes_remote(self, logged_in, remote):
        tag = logged_in.create_tag("Work")
        logged_in.sync_now()
        assert len(remote.list_tags("tenant-a")) == 1
        assert logged_in.delete_tag(tag.id) is True
        assert remote.list_tags("tenant-a") == []

    def test_delete_missing_tag(self, logged_in):
        assert logged_in.delete_tag(404) is False


class TestSync:
    def test_sync_now(self, logged_in, remote):
        logged_in.create_entry("push me")
        result = logged_in.sync_now()
        assert result.success is True
        assert result.report.written_count == 1
        assert remote.count("tenant-a") == 1

    def test_sync_offline_message(self, offline_app):
        offline_app.login("user-1", "tenant-a")
        result = offline_app.sync_now()
        assert result.success is False
        assert result.message == "No cloud connection, working offline"

    def test_bootstrap_offline_message(self, offline_app):
        offline_app.login("user-1", "tenant-a")
        assert offline_app.bootstrap_now().message == "No cloud connection, working offline"

    def test_sync_cycle_logged_out(self, app):
        assert app.run_sync_cycle() is None

    def test_sync_cycle(self, logged_in):
        logged_in.create_entry("background")
        report = logged_in.run_sync_cycle()
        assert report.written_count == 1
        assert logged_in.local.list_entries("tenant-a")[0].sync_status == SyncStatus.SYNCED


class TestRetention:
    def test_default_settings(self, logged_in):
        settings = logged_in.get_retention_settings()
        assert settings.cadence == RetentionCadence.NEVER
        assert settings.retain_tags is False

    def test_update_settings_pushes(self, logged_in, remote):
        logged_in.update_retention_settings("Every week", retain_tags=True)
        assert logged_in.get_retention_settings().cadence == RetentionCadence.EVERY_WEEK
        cloud = remote.get_settings("user-1")
        assert cloud.cadence == RetentionCadence.EVERY_WEEK
        assert cloud.retain_tags is True

    def test_invalid_cadence(self, logged_in):
        with pytest.raises(ValidationError):
            logged_in.update_retention_settings("fortnightly")

    def test_run_retention_now(self, logged_in, make_entry):
        logged_in.local.insert_entry(make_entry("old", created_at=utcnow() - timedelta(days=2)))
        logged_in.create_entry("new")
        logged_in.update_retention_settings("24h")
        assert logged_in.run_retention_now() == 1
        assert logged_in.run_retention_cycle() == 0


class TestStatus:
    def test_logged_out(self, offline_app):
        status = offline_app.status()
        assert status.logged_in is False
        assert status.online is False
        assert status.remote_count is None

    def test_logged_in(self, logged_in):
        logged_in.create_entry("counted")
        status = logged_in.status()
        assert status.tenant_id == "tenant-a"
        assert status.local_count == 1
        assert status.unsynced_count == 1
        assert status.remote_count == 0


class TestWorkers:
    def test_start_stop(self, logged_in):
        with patch("clipvault.app.SYNC_INTERVAL", 0.01), patch("clipvault.app.RETENTION_INTERVAL", 0.01):
            logged_in.start()
            assert len(logged_in._workers) == 2
            logged_in.stop()
        assert logged_in._workers == []

    def test_capture_worker_started_with_reader(self, remote):
        app = ClipVaultApp(db_path=":memory:", remote_url=None, remote=remote, reader=lambda: None)
        try:
            app.start()
            assert [t.name for t in app._workers][0] == "clipvault-capture"
        finally:
            app.close()

    @pytest.mark.parametrize(
        "loop,cycle,interval",
        [
            ("_sync_loop", "run_sync_cycle", "SYNC_INTERVAL"),
            ("_retention_loop", "run_retention_cycle", "RETENTION_INTERVAL"),
        ],
    )
    def test_worker_survives_unexpected_error(self, logged_in, loop, cycle, interval):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            logged_in._stop.set()

        with patch(f"clipvault.app.{interval}", 0), patch.object(logged_in, cycle, side_effect=flaky):
            getattr(logged_in, loop)()
        assert len(calls) == 2
