"""The repository contract shared by the local and the remote store.

Both :class:`clipvault.storage.LocalStore` and
:class:`clipvault.remote.RemoteStore` satisfy these protocols, so code that
only reads, pins, tags or deletes can take either backend. Store-specific
operations (sync markers on the local side, idempotent upserts on the remote
side) live on the concrete classes.
"""

from typing import Protocol, runtime_checkable

from clipvault.models import ClipboardEntry, Tag, TenantSettings


@runtime_checkable
class EntryRepository(Protocol):
    def list_entries(self, tenant_id: str, limit: int | None = ...) -> list[ClipboardEntry]: ...

    def get_entry(self, entry_id: int, tenant_id: str) -> ClipboardEntry | None: ...

    def search(self, tenant_id: str, query: str, limit: int = ...) -> list[ClipboardEntry]: ...

    def update_entry(
        self,
        entry_id: int,
        pinned: bool | None = ...,
        tags: list[str] | None = ...,
        tenant_id: str = ...,
    ) -> ClipboardEntry | None: ...

    def delete_entry(self, entry_id: int, tenant_id: str) -> bool: ...

    def count(self, tenant_id: str) -> int: ...


@runtime_checkable
class TagRepository(Protocol):
    def list_tags(self, tenant_id: str) -> list[Tag]: ...

    def delete_tag(self, tag_id: int, tenant_id: str) -> bool: ...


@runtime_checkable
class SettingsRepository(Protocol):
    def get_settings(self, user_id: str) -> TenantSettings | None: ...

    def save_settings(self, settings: TenantSettings) -> TenantSettings: ...
