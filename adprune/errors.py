"""Error taxonomy.

Fatal errors (configuration, discovery, report write) abort the run.
``DirectoryError`` subclasses describe a single failed directory call; the
remediation executor records them per item and keeps going.
"""
from __future__ import annotations


class AdPruneError(Exception):
    """Base class for all errors raised by adprune."""


class ConfigurationError(AdPruneError):
    """Unsupported search mode or remediation action for the object kind."""


class DiscoveryError(AdPruneError):
    """Directory query failed; no candidate set is produced."""


class ReportWriteError(AdPruneError):
    """The report destination could not be written."""


class DirectoryError(AdPruneError):
    reason = "failed"

    def __init__(self, identity: str, detail: str = "") -> None:
        self.identity = identity
        self.detail = detail
        msg = f"{identity}: {detail}" if detail else identity
        super().__init__(msg)


class ObjectNotFoundError(DirectoryError):
    reason = "not-found"


class AccessDeniedError(DirectoryError):
    reason = "access-denied"


class ProtectedFromDeletionError(DirectoryError):
    reason = "protected"


class DirectoryTransportError(DirectoryError):
    reason = "transport"


class DirectoryOperationError(DirectoryError):
    reason = "failed"
