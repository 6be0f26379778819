"""
Gatekeeper Errors

Structured exceptions for catalog loading, resolution and the credential
store. Every error carries a stable code and a details dict so callers can
decide their own fallback (the core never turns an error into a deny mask).
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException, status


class GatekeeperError(Exception):
    """Base exception for all gatekeeper errors."""

    def __init__(
        self,
        message: str,
        code: str = "GATEKEEPER_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to FastAPI HTTPException."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "code": self.code,
                "message": self.message,
                "details": self.details
            }
        )


class ConfigError(GatekeeperError):
    """Raised when a configuration layer is malformed."""

    def __init__(self, message: str, source: Optional[str] = None, details: Optional[Dict] = None):
        error_details = dict(details or {})
        if source:
            error_details["source"] = source

        super().__init__(
            message=message,
            code="CONFIG_ERROR",
            details=error_details
        )


class UnknownRoleError(GatekeeperError, KeyError):
    """Raised when a role was never declared by any layer."""

    def __init__(self, role: str):
        self.role = role
        super().__init__(
            message=f"Unknown role: {role}",
            code="UNKNOWN_ROLE",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"role": role}
        )

    def __str__(self) -> str:
        return self.message


class UnknownPermissionError(GatekeeperError, KeyError):
    """Raised when a mask names permissions the catalog does not declare."""

    def __init__(self, names):
        self.names = sorted(names)
        super().__init__(
            message=f"Unknown permission(s): {', '.join(self.names)}",
            code="UNKNOWN_PERMISSION",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"permissions": self.names}
        )

    def __str__(self) -> str:
        return self.message


class HookError(GatekeeperError):
    """Raised when an override hook fails or returns an invalid result."""

    def __init__(
        self,
        message: str,
        scope: str,
        table: Optional[str] = None,
        field: Optional[str] = None
    ):
        self.scope = scope
        self.table = table
        self.field = field
        details = {"scope": scope, "table": table}
        if field is not None:
            details["field"] = field

        super().__init__(
            message=message,
            code="HOOK_ERROR",
            details=details
        )


class CredentialStoreError(GatekeeperError):
    """Raised when a credential store database operation fails."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="STORAGE_ERROR",
            details=details
        )


__all__ = [
    "GatekeeperError",
    "ConfigError",
    "UnknownRoleError",
    "UnknownPermissionError",
    "HookError",
    "CredentialStoreError",
]
