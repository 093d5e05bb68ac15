"""Exception hierarchy for clipvault.

Row-level sync failures are never raised; they are reported as outcomes by
:mod:`clipvault.sync`. Everything here is either fatal, degrading or a
rejected input.
"""


class ClipVaultError(Exception):
    """Base class for all clipvault errors."""


class LocalStoreUnavailableError(ClipVaultError):
    """The on-device database cannot be opened. Nothing works without it."""


class CloudUnavailableError(ClipVaultError):
    """The remote store is unreachable or timed out; run local-only."""

    user_message = "No cloud connection, working offline"


class ValidationError(ClipVaultError):
    """Input rejected before any store was touched."""


class NotLoggedInError(ClipVaultError):
    def __init__(self, message: str = "User not logged in"):
        super().__init__(message)


class NotFoundError(ClipVaultError):
    pass


class DuplicateEntryError(ClipVaultError):
    """Another entry already holds this content hash."""


class DuplicateTagError(ValidationError):
    """A tag with the same name (case-insensitive) exists for the tenant."""


class ConfigurationError(ClipVaultError):
    pass
