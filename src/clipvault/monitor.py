import logging
from collections.abc import Callable
from datetime import datetime

from clipvault.config import MAX_TEXT_SIZE
from clipvault.exceptions import ClipVaultError
from clipvault.identity import identify
from clipvault.models import ClipboardEntry, InsertResult
from clipvault.storage import LocalStore
from clipvault.tenancy import TenancySession
from clipvault.utils import to_utc, utcnow

logger = logging.getLogger(__name__)

# Returns (text, source_app, source_window), or None when the clipboard holds no text.
ClipboardReader = Callable[[], tuple[str, str, str] | None]


class ClipboardMonitor:
    def __init__(
        self,
        storage: LocalStore,
        session: TenancySession,
        reader: ClipboardReader | None = None,
        on_change: Callable[[], None] | None = None,
    ):
        self._storage = storage
        self._session = session
        self._reader = reader
        self._on_change = on_change
        self._last_text: str | None = None

    def check_clipboard(self) -> bool:
        if self._reader is None:
            return False
        try:
            clip = self._reader()
        except Exception:
            logger.exception("Error reading clipboard")
            return False
        if clip is None:
            return False
        text, source_app, source_window = clip
        try:
            return self.capture(text, source_app, source_window) is not None
        except ClipVaultError:
            logger.exception("Error storing clipboard entry")
            return False

    def capture(
        self,
        text: str,
        source_app: str = "Unknown",
        source_window: str = "Unknown",
        captured_at: datetime | None = None,
    ) -> InsertResult | None:
        """Record a piece of copied text for the logged-in tenant.

        Returns None when the text was ignored: blank, too large, the same as
        the previous capture, or copied while nobody is logged in.
        """
        if not text or not text.strip():
            return None
        if len(text.encode("utf-8")) > MAX_TEXT_SIZE:
            logger.warning("Clipboard text too large (%d chars), skipping", len(text))
            return None
        if text == self._last_text:
            return None
        self._last_text = text

        tenant = self._session.current()
        if tenant is None:
            logger.debug("Clipboard changed while logged out, not recording")
            return None

        when = to_utc(captured_at) if captured_at else utcnow()
        content_hash, content_type = identify(text)
        result = self._storage.insert_entry(
            ClipboardEntry(
                id=None,
                tenant_id=tenant.tenant_id,
                content=text,
                content_type=content_type,
                content_hash=content_hash,
                source_app=source_app or "Unknown",
                source_window=source_window or "Unknown",
                captured_at=when,
                created_at=utcnow(),
            )
        )
        if not result.created:
            # Content hashes are unique per device, so the row may belong to another tenant.
            if self._storage.get_entry(result.entry_id, tenant.tenant_id) is None:
                logger.info("Copied text already stored for another tenant, not recording")
                return None
            self._storage.update_timestamp(result.entry_id)

        if self._on_change:
            self._on_change()
        return result

    def forget_last(self) -> None:
        """Allow the next capture of the last seen text, e.g. after it was copied back from history."""
        self._last_text = None
