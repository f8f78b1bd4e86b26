"""
Domain errors for the sync engine.

Every error carries a human-readable message, a machine-readable code and a
details dict so the HTTP layer can render a specific, actionable response.
NotFound and AccessDenied are rendered identically at the HTTP boundary.
"""

from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base class for all sync-engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dict for API responses."""
        return {"error": self.error_code, "message": self.message, "details": self.details}


class NotFound(SyncError):
    """Workspace or file does not exist."""

    def __init__(self, message: str = "Not found", resource: Optional[str] = None) -> None:
        super().__init__(message, "NOT_FOUND")
        if resource:
            self.details["resource"] = resource


class AccessDenied(SyncError):
    """Workspace is owned by a different principal."""

    def __init__(self, message: str = "Access denied: workspace belongs to different user") -> None:
        super().__init__(message, "ACCESS_DENIED")


class QuotaExceeded(SyncError):
    """Write would push the workspace over its storage limit."""

    def __init__(self, needed: int, limit: int) -> None:
        super().__init__(
            f"storage limit exceeded: need {needed} bytes, limit {limit} bytes",
            "QUOTA_EXCEEDED",
            {"needed": needed, "limit": limit},
        )
        self.needed = needed
        self.limit = limit


class InvalidPath(SyncError):
    """Logical path is empty, too long or contains unsafe segments."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "INVALID_PATH")


class WorkspaceLimitExceeded(SyncError):
    """Principal already owns the maximum number of workspaces for their tier."""

    def __init__(self, tier: str, current: int, maximum: int) -> None:
        super().__init__(
            f"workspace limit reached for {tier} tier: {current}/{maximum}",
            "WORKSPACE_LIMIT_EXCEEDED",
            {"tier": tier, "current": current, "maximum": maximum},
        )


class TransactionFailure(SyncError):
    """Persistence error inside the atomic write path (rolled back)."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(message, "TRANSACTION_FAILURE")
        if operation:
            self.details["operation"] = operation


class VersioningFailure(SyncError):
    """Version snapshot could not be written. Logged only."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "VERSIONING_FAILURE")


class MetadataFailure(SyncError):
    """Background metadata extraction failed. Logged only."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "METADATA_FAILURE")
