"""
Core Permission Baselines

The core defaults layer: the permission names every application starts with
and the standard roles built from them. Module and application layers are
applied on top of this one and may add names, add roles, or redefine any
key of these roles.

Roles (in order of privilege):
- NO_ACCESS: derived, every permission 0 (not declared here)
- READ_ONLY: view/list/find/export
- EDIT: READ_ONLY plus new/edit/history
- DELETE: EDIT plus delete
- ALL: derived, every permission 1 (not declared here)
"""

from typing import Dict, Any


# Names of the derived roles, computed from the live catalog
ALL_ROLE = "ALL"
NO_ACCESS_ROLE = "NO_ACCESS"
DERIVED_ROLES = frozenset([ALL_ROLE, NO_ACCESS_ROLE])


CORE_PERMISSIONS: Dict[str, str] = {
    'view': 'View a record',
    'list': 'List records of a table',
    'find': 'Search records of a table',
    'export': 'Export records',
    'new': 'Create new records',
    'edit': 'Edit existing records',
    'history': 'View the change history of a record',
    'delete': 'Delete records',
    'import': 'Import records',
}


CORE_ROLES: Dict[str, Dict[str, Any]] = {
    'READ_ONLY': {
        'view': 1,
        'list': 1,
        'find': 1,
        'export': 1,
    },
    'EDIT': {
        'extends': 'READ_ONLY',
        'new': 1,
        'edit': 1,
        'history': 1,
    },
    'DELETE': {
        'extends': 'EDIT',
        'delete': 1,
    },
}


def get_core_layer() -> Dict[str, Any]:
    """
    Get the core defaults as a configuration layer.

    Returns a fresh copy, so callers may not mutate the module constants.

    Returns:
        Layer mapping with "permissions" and "roles" sections
    """
    return {
        'permissions': dict(CORE_PERMISSIONS),
        'roles': {name: dict(section) for name, section in CORE_ROLES.items()},
    }


__all__ = [
    'ALL_ROLE',
    'NO_ACCESS_ROLE',
    'DERIVED_ROLES',
    'CORE_PERMISSIONS',
    'CORE_ROLES',
    'get_core_layer',
]
