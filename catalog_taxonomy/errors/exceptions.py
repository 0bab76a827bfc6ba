"""Custom exception hierarchy for taxonomy reconciliation errors."""
from typing import Any, Dict, Optional


class TaxonomyError(Exception):
    """Base exception for all taxonomy reconciliation errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with message and optional structured details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


class TaxonomyConfigError(TaxonomyError):
    """Raised when the taxonomy tree is missing, unreadable or invalid.

    Fatal: the run aborts before any item is processed.
    """
    pass


class RuleTableError(TaxonomyError):
    """Raised when a rule table does not validate against the taxonomy."""

    def __init__(self, message: str, issues: Optional[list] = None):
        self.issues = list(issues or [])
        super().__init__(message, details={"issues": [str(issue) for issue in self.issues]})


class CatalogReadError(TaxonomyError):
    """Raised when the bulk candidate read fails."""
    pass


class CatalogWriteError(TaxonomyError):
    """Raised when a single item write fails. Recoverable per item."""

    def __init__(self, message: str, item_id: Optional[str] = None):
        self.item_id = item_id
        super().__init__(message, details={"item_id": item_id})


class ItemNotFoundError(CatalogWriteError):
    """Raised when the item to update no longer exists."""
    pass


class ConstraintViolationError(CatalogWriteError):
    """Raised when the store rejects a write (constraint or invariant check)."""
    pass
