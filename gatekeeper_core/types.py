"""
Gatekeeper Types

Core type definitions for permission resolution.
"""

from enum import Enum
from types import MappingProxyType
from typing import Optional, Any, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime


class Scope(str, Enum):
    """Resolution scopes, in increasing order of specificity"""
    APPLICATION = "application"
    TABLE = "table"
    RECORD = "record"
    FIELD = "field"


# Fixed walk order for the resolver
SCOPE_ORDER = (Scope.APPLICATION, Scope.TABLE, Scope.RECORD, Scope.FIELD)


@dataclass(frozen=True)
class AuthenticatedUser:
    """
    Attributes of the authenticated user, as passed to override hooks

    Attributes:
        auth_user_id: Stable user identifier
        handle: Login name
        is_active: Whether the account is active
        last_login: Time of the previous login, if known
        attributes: Any extra columns/claims (e.g. {"role": "ADMIN"})
    """
    auth_user_id: str
    handle: str
    is_active: bool = True
    last_login: Optional[datetime] = None
    attributes: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def get(self, name: str, default: Any = None) -> Any:
        """Look up an extra attribute"""
        return self.attributes.get(name, default)


@dataclass(frozen=True)
class ResolutionContext:
    """
    Inputs of one access-control decision

    Attributes:
        table: Table identifier
        user: Authenticated user, or None for anonymous access
        record: Record instance, or None when no record is involved
        field: Field name, or None when no field is involved
    """
    table: str
    user: Optional[AuthenticatedUser] = None
    record: Optional[Any] = field(default=None, hash=False)
    field: Optional[str] = None

    def with_field(self, field_name: Optional[str]) -> "ResolutionContext":
        return replace(self, field=field_name)


__all__ = [
    "Scope",
    "SCOPE_ORDER",
    "AuthenticatedUser",
    "ResolutionContext",
]
