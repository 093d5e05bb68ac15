from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from clipvault.identity import identify
from clipvault.models import ClipboardEntry
from clipvault.remote import RemoteStore, metadata
from clipvault.storage import LocalStore
from clipvault.tenancy import TenancyContext
from clipvault.utils import utcnow


@pytest.fixture
def storage():
    store = LocalStore(db_path=":memory:")
    yield store
    store.close()


@pytest.fixture
def remote_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def remote(remote_engine):
    return RemoteStore(remote_engine)


@pytest.fixture
def tenant():
    return TenancyContext(user_id="user-1", tenant_id="tenant-a", email="a@example.com")


@pytest.fixture
def other_tenant():
    return TenancyContext(user_id="user-2", tenant_id="tenant-b", email="b@example.com")


@pytest.fixture
def make_entry():
    """Factory fixture to create ClipboardEntry instances for testing."""

    def _make_entry(
        text: str = "hello world",
        tenant_id: str = "tenant-a",
        created_at: datetime | None = None,
        pinned: bool = False,
        tags: list[str] | None = None,
        source_app: str = "Terminal",
    ) -> ClipboardEntry:
        content_hash, content_type = identify(text)
        when = created_at or utcnow()
        return ClipboardEntry(
            id=None,
            tenant_id=tenant_id,
            content=text,
            content_type=content_type,
            content_hash=content_hash,
            source_app=source_app,
            source_window="Unknown",
            captured_at=when,
            created_at=when,
            tags=list(tags or []),
            pinned=pinned,
        )

    return _make_entry
