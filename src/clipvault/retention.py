import logging
from datetime import datetime

from clipvault.models import RetentionCadence
from clipvault.repository import SettingsRepository
from clipvault.storage import LocalStore
from clipvault.tenancy import TenancyContext
from clipvault.utils import to_utc, utcnow

logger = logging.getLogger(__name__)


class RetentionEngine:
    """Deletes aged, unpinned history from the local store.

    Retention is local hygiene only: the remote store keeps the canonical
    history and is never purged from here.
    """

    def __init__(self, local: LocalStore, settings: SettingsRepository | None = None):
        self._local = local
        # Where the retention policy is read from; the local store unless told otherwise.
        self._settings: SettingsRepository = settings if settings is not None else local

    def run(
        self,
        tenant_id: str,
        cadence: RetentionCadence,
        keep_tagged: bool = False,
        now: datetime | None = None,
    ) -> int:
        duration = cadence.duration
        if duration is None:
            return 0
        threshold = to_utc(now or utcnow()) - duration
        deleted = self._local.purge_aged(tenant_id, threshold, keep_tagged=keep_tagged)
        if deleted:
            logger.info(
                "Retention (%s) removed %d entries for tenant %s", cadence.value, deleted, tenant_id
            )
        return deleted

    def run_for(self, tenant: TenancyContext, now: datetime | None = None) -> int:
        settings = self._settings.get_settings(tenant.user_id)
        if settings is None:
            return 0
        return self.run(tenant.tenant_id, settings.cadence, keep_tagged=settings.retain_tags, now=now)
