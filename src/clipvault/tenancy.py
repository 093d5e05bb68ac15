import threading
from dataclasses import dataclass

from clipvault.exceptions import NotLoggedInError, ValidationError


@dataclass(frozen=True)
class TenancyContext:
    """Who an operation runs for. Supplied by the authentication layer and trusted as given."""

    user_id: str
    tenant_id: str
    email: str = ""

    def __post_init__(self):
        if not self.user_id or not self.tenant_id:
            raise ValidationError("Tenancy requires both a user id and a tenant id")


class TenancySession:
    """Holds the logged-in identity.

    Set at login, cleared at logout. Readers get the immutable context value
    itself, so a concurrent logout never yields a half-cleared identity.
    """

    def __init__(self, context: TenancyContext | None = None):
        self._lock = threading.Lock()
        self._context = context

    def login(self, context: TenancyContext) -> None:
        with self._lock:
            self._context = context

    def logout(self) -> TenancyContext | None:
        with self._lock:
            previous, self._context = self._context, None
        return previous

    def current(self) -> TenancyContext | None:
        with self._lock:
            return self._context

    def require(self) -> TenancyContext:
        context = self.current()
        if context is None:
            raise NotLoggedInError()
        return context

    @property
    def is_logged_in(self) -> bool:
        return self.current() is not None
