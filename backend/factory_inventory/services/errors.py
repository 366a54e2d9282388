from __future__ import annotations


class MaterialNotFound(LookupError):
    pass


class BatchNotFound(LookupError):
    pass


class BatchMaterialNotFound(LookupError):
    pass


class UsageLogNotFound(LookupError):
    pass


class MaterialInUse(ValueError):
    def __init__(self, message: str, detail: dict) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ReferenceCleanupFailed(RuntimeError):
    """Detaching log rows from a material failed; the delete was not attempted."""


class LedgerUnavailable(RuntimeError):
    """The ledger could not be rebuilt from a consistent read; nothing partial is returned."""
