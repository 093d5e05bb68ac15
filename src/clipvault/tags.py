import logging
import re
from collections import Counter

from clipvault.config import DEFAULT_TAG_COLOR, MAX_TAG_NAME_LENGTH
from clipvault.exceptions import DuplicateTagError, NotFoundError, ValidationError
from clipvault.models import ClipboardEntry, SyncStatus, Tag
from clipvault.repository import EntryRepository, TagRepository
from clipvault.storage import LocalStore
from clipvault.utils import utcnow

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")


def validate_tag_name(name: str) -> str:
    """Return the trimmed tag name or raise ``ValidationError``."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Tag name cannot be empty")
    if len(trimmed) > MAX_TAG_NAME_LENGTH:
        raise ValidationError(f"Tag name cannot exceed {MAX_TAG_NAME_LENGTH} characters")
    return trimmed


def normalize_color(color: str | None) -> str:
    """Normalize ``abc123`` / ``#ABC123`` to ``#ABC123``. None gives the default color."""
    if color is None:
        return DEFAULT_TAG_COLOR
    match = _HEX_COLOR.match(color.strip())
    if match is None:
        raise ValidationError("Invalid color format. Use hex format like #FF0000")
    return f"#{match.group(1).upper()}"


def tag_usage(entries: EntryRepository, tags: TagRepository, tenant_id: str) -> dict[str, int]:
    """Count the entries carrying each tag of a tenant, in either store."""
    usage: Counter[str] = Counter()
    for entry in entries.list_entries(tenant_id, limit=None):
        usage.update(entry.tags)
    return {tag.name: usage.get(tag.name, 0) for tag in tags.list_tags(tenant_id)}


class TagService:
    """Tag CRUD and assignment of tags to entries, scoped to one tenant per call.

    All input is validated before the store is touched. Renaming or deleting a
    tag also rewrites the entries carrying it, which puts them back to ``local``
    so the change replicates.
    """

    def __init__(self, local: LocalStore):
        self._local = local

    def list_tags(self, tenant_id: str) -> list[Tag]:
        return self._local.list_tags(tenant_id)

    def create_tag(self, tenant_id: str, name: str, color: str | None = None) -> Tag:
        name = validate_tag_name(name)
        color = normalize_color(color)
        if self._local.find_tag_by_name(tenant_id, name) is not None:
            raise DuplicateTagError(f"Tag '{name}' already exists")
        now = utcnow()
        tag = self._local.insert_tag(
            Tag(
                id=None,
                tenant_id=tenant_id,
                name=name,
                color=color,
                created_at=now,
                updated_at=now,
                sync_status=SyncStatus.LOCAL,
            )
        )
        logger.info("Created tag %r for tenant %s", name, tenant_id)
        return tag

    def update_tag(self, tenant_id: str, tag_id: int, name: str | None = None, color: str | None = None) -> Tag:
        new_name = validate_tag_name(name) if name is not None else None
        new_color = normalize_color(color) if color is not None else None

        current = self._local.get_tag(tag_id, tenant_id)
        if current is None:
            raise NotFoundError(f"Tag {tag_id} not found")
        if new_name is not None and new_name.lower() != current.name.lower():
            clash = self._local.find_tag_by_name(tenant_id, new_name)
            if clash is not None:
                raise DuplicateTagError(f"Tag '{new_name}' already exists")

        updated = self._local.update_tag(tag_id, tenant_id, name=new_name, color=new_color)
        if new_name is not None and new_name != current.name:
            changed = self._local.replace_tag_in_entries(tenant_id, current.name, new_name)
            logger.info("Renamed tag %r to %r on %d entries", current.name, new_name, changed)
        return updated

    def delete_tag(self, tenant_id: str, tag_id: int) -> bool:
        current = self._local.get_tag(tag_id, tenant_id)
        if current is None:
            return False
        self._local.delete_tag(tag_id, tenant_id)
        changed = self._local.replace_tag_in_entries(tenant_id, current.name, None)
        logger.info("Deleted tag %r, removed from %d entries", current.name, changed)
        return True

    def assign_tag(self, tenant_id: str, entry_id: int, name: str) -> ClipboardEntry:
        name = validate_tag_name(name)
        tag = self._local.find_tag_by_name(tenant_id, name)
        if tag is None:
            raise NotFoundError(f"Tag '{name}' does not exist")
        entry = self._require_entry(tenant_id, entry_id)
        if tag.name in entry.tags:
            return entry
        return self._local.update_entry(entry_id, tags=[*entry.tags, tag.name], tenant_id=tenant_id)

    def remove_tag(self, tenant_id: str, entry_id: int, name: str) -> ClipboardEntry:
        name = validate_tag_name(name)
        entry = self._require_entry(tenant_id, entry_id)
        remaining = [t for t in entry.tags if t.lower() != name.lower()]
        if len(remaining) == len(entry.tags):
            return entry
        return self._local.update_entry(entry_id, tags=remaining, tenant_id=tenant_id)

    def tag_stats(self, tenant_id: str) -> dict[str, int]:
        """Usage count per tag. Tags without entries are reported with 0."""
        return tag_usage(self._local, self._local, tenant_id)

    def _require_entry(self, tenant_id: str, entry_id: int) -> ClipboardEntry:
        entry = self._local.get_entry(entry_id, tenant_id)
        if entry is None:
            raise NotFoundError(f"Entry {entry_id} not found")
        return entry
