import pytest

from clipvault.exceptions import DuplicateTagError, NotFoundError, ValidationError
from clipvault.models import SyncStatus, Tag
from clipvault.tags import TagService, normalize_color, tag_usage, validate_tag_name
from clipvault.utils import utcnow


@pytest.fixture
def tags(storage):
    return TagService(storage)


class TestValidation:
    def test_name_trimmed(self):
        assert validate_tag_name("  work ") == "work"

    def test_empty_name(self):
        with pytest.raises(ValidationError, match="cannot be empty"):
            validate_tag_name("   ")

    def test_name_too_long(self):
        assert validate_tag_name("x" * 50) == "x" * 50
        with pytest.raises(ValidationError, match="50"):
            validate_tag_name("x" * 51)

    @pytest.mark.parametrize(
        "color,expected",
        [("#ff0000", "#FF0000"), ("00ff00", "#00FF00"), (" #AbCdEf ", "#ABCDEF"), (None, "#6B7280")],
    )
    def test_normalize_color(self, color, expected):
        assert normalize_color(color) == expected

    @pytest.mark.parametrize("color", ["red", "#fff", "#GGGGGG", "##123456", "1234567"])
    def test_invalid_color(self, color):
        with pytest.raises(ValidationError):
            normalize_color(color)


class TestCrud:
    def test_create(self, tags):
        tag = tags.create_tag("tenant-a", " Work ", "ff0000")
        assert tag.name == "Work"
        assert tag.color == "#FF0000"
        assert tag.sync_status == SyncStatus.LOCAL

    def test_create_duplicate(self, tags):
        tags.create_tag("tenant-a", "Work")
        with pytest.raises(DuplicateTagError):
            tags.create_tag("tenant-a", "WORK")

    def test_invalid_input_writes_nothing(self, tags, storage):
        with pytest.raises(ValidationError):
            tags.create_tag("tenant-a", "ok", "nope")
        assert storage.list_tags("tenant-a") == []

    def test_update_renames_on_entries(self, tags, storage, make_entry):
        tag = tags.create_tag("tenant-a", "Work")
        result = storage.insert_entry(make_entry("note", tags=["Work"]))
        storage.mark_synced(result.entry_id, 1)
        updated = tags.update_tag("tenant-a", tag.id, name="Office", color="#000000")
        assert updated.name == "Office"
        assert updated.color == "#000000"
        entry = storage.get_entry(result.entry_id)
        assert entry.tags == ["Office"]
        assert entry.sync_status == SyncStatus.LOCAL

    def test_update_case_only_rename(self, tags):
        tag = tags.create_tag("tenant-a", "work")
        assert tags.update_tag("tenant-a", tag.id, name="Work").name == "Work"

    def test_update_clash(self, tags):
        tags.create_tag("tenant-a", "Work")
        other = tags.create_tag("tenant-a", "Home")
        with pytest.raises(DuplicateTagError):
            tags.update_tag("tenant-a", other.id, name="work")

    def test_update_missing(self, tags):
        with pytest.raises(NotFoundError):
            tags.update_tag("tenant-a", 999, name="x")

    def test_delete_strips_entries(self, tags, storage, make_entry):
        tag = tags.create_tag("tenant-a", "Work")
        result = storage.insert_entry(make_entry("note", tags=["Work", "Other"]))
        assert tags.delete_tag("tenant-a", tag.id) is True
        assert storage.get_entry(result.entry_id).tags == ["Other"]
        assert tags.list_tags("tenant-a") == []

    def test_delete_other_tenant(self, tags):
        tag = tags.create_tag("tenant-a", "Work")
        assert tags.delete_tag("tenant-b", tag.id) is False


class TestAssignment:
    def test_assign(self, tags, storage, make_entry):
        tags.create_tag("tenant-a", "Work")
        result = storage.insert_entry(make_entry("note"))
        entry = tags.assign_tag("tenant-a", result.entry_id, "work")
        assert entry.tags == ["Work"]
        assert tags.assign_tag("tenant-a", result.entry_id, "Work").tags == ["Work"]

    def test_assign_unknown_tag(self, tags, storage, make_entry):
        result = storage.insert_entry(make_entry("note"))
        with pytest.raises(NotFoundError):
            tags.assign_tag("tenant-a", result.entry_id, "nope")

    def test_assign_other_tenant_entry(self, tags, storage, make_entry):
        tags.create_tag("tenant-a", "Work")
        result = storage.insert_entry(make_entry("note", tenant_id="tenant-b"))
        with pytest.raises(NotFoundError):
            tags.assign_tag("tenant-a", result.entry_id, "Work")

    def test_remove(self, tags, storage, make_entry):
        result = storage.insert_entry(make_entry("note", tags=["Work", "Home"]))
        assert tags.remove_tag("tenant-a", result.entry_id, "work").tags == ["Home"]

    def test_remove_absent_is_noop(self, tags, storage, make_entry):
        result = storage.insert_entry(make_entry("note", tags=["Home"]))
        entry = tags.remove_tag("tenant-a", result.entry_id, "Work")
        assert entry.revision == 0

    def test_stats(self, tags, storage, make_entry):
        tags.create_tag("tenant-a", "Work")
        tags.create_tag("tenant-a", "Idle")
        storage.insert_entry(make_entry("one", tags=["Work"]))
        storage.insert_entry(make_entry("two", tags=["Work"]))
        assert tags.tag_stats("tenant-a") == {"Idle": 0, "Work": 2}

    def test_usage_counts_remote_store(self, remote, make_entry):
        now = utcnow()
        remote.upsert_tag("tenant-a", Tag(None, "tenant-a", "Work", "#FF0000", now, now))
        remote.upsert_entry("tenant-a", make_entry("one", tags=["Work"]))
        remote.upsert_entry("tenant-a", make_entry("two"))
        assert tag_usage(remote, remote, "tenant-a") == {"Work": 1}
