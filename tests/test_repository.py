import pytest

from clipvault.repository import EntryRepository, SettingsRepository, TagRepository


@pytest.mark.parametrize("protocol", [EntryRepository, TagRepository, SettingsRepository])
def test_both_stores_implement_contract(storage, remote, protocol):
    assert isinstance(storage, protocol)
    assert isinstance(remote, protocol)


@pytest.mark.parametrize("backend", ["storage", "remote"])
def test_same_calls_work_on_either_store(request, backend, make_entry):
    repo = request.getfixturevalue(backend)
    if backend == "storage":
        entry_id = repo.insert_entry(make_entry("shared contract")).entry_id
    else:
        entry_id = repo.upsert_entry("tenant-a", make_entry("shared contract")).id

    updated = repo.update_entry(entry_id, pinned=True, tags=["x"], tenant_id="tenant-a")
    assert updated.pinned is True
    assert updated.tags == ["x"]
    assert [e.content for e in repo.search("tenant-a", "contract")] == ["shared contract"]
    assert repo.count("tenant-a") == 1
    assert repo.delete_entry(entry_id, "tenant-a") is True
    assert repo.get_entry(entry_id, "tenant-a") is None
