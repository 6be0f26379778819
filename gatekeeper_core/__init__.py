"""
Gatekeeper Core

Layered permission resolution: a catalog of permission names and roles
loaded from configuration layers, and a resolver that merges application,
table, record and field overrides into one effective 0/1 mask.

Public API:
- Types: Scope, ResolutionContext, AuthenticatedUser
- Masks: PermissionMask, Full, Partial, NO_OPINION
- Catalog: PermissionCatalog
- Resolver: PermissionResolver, resolve, HookRegistry
- Errors: GatekeeperError, ConfigError, UnknownRoleError,
  UnknownPermissionError, HookError, CredentialStoreError
- Submodules: config, credentials, dependencies
"""

from .types import Scope, SCOPE_ORDER, ResolutionContext, AuthenticatedUser
from .masks import PermissionMask, HookResult, Full, Partial, NO_OPINION
from .catalog import PermissionCatalog
from .registry import HookRegistry
from .resolver import PermissionResolver, Resolution, ScopeStep, resolve, trace
from .errors import (
    GatekeeperError,
    ConfigError,
    UnknownRoleError,
    UnknownPermissionError,
    HookError,
    CredentialStoreError,
)
from .credentials import AuthCredentialStore
from . import config
from . import dependencies

__version__ = "0.1.0"

__all__ = [
    # Types
    "Scope",
    "SCOPE_ORDER",
    "ResolutionContext",
    "AuthenticatedUser",
    # Masks
    "PermissionMask",
    "HookResult",
    "Full",
    "Partial",
    "NO_OPINION",
    # Catalog
    "PermissionCatalog",
    # Resolver
    "HookRegistry",
    "PermissionResolver",
    "Resolution",
    "ScopeStep",
    "resolve",
    "trace",
    # Errors
    "GatekeeperError",
    "ConfigError",
    "UnknownRoleError",
    "UnknownPermissionError",
    "HookError",
    "CredentialStoreError",
    # Credential store
    "AuthCredentialStore",
    # Submodules
    "config",
    "dependencies",
]
