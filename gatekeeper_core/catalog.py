"""
Permission Catalog

Holds every declared permission name and every named role, built by merging
configuration layers in order:

1. Core defaults (baselines.get_core_layer())
2. Module layers
3. Application layer (last, so it can override anything)

Merge rules:
- New permission names are added; a redeclared name takes the later
  description.
- Role sections merge key by key: a key in a later layer overwrites the
  same key from an earlier layer, unmentioned keys are preserved.
- "extends" is merged like any other key (last writer wins).

The catalog is immutable once built. ALL and NO_ACCESS are derived from the
declared names, never configured, so they always track the catalog content.
"""

import logging
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Any, Optional, Tuple

from .baselines import ALL_ROLE, NO_ACCESS_ROLE, get_core_layer
from .errors import ConfigError, UnknownPermissionError, UnknownRoleError
from .loader import LayerSource, ParsedLayer, RoleSection, parse_layer
from .masks import Full, Partial, PermissionMask

logger = logging.getLogger(__name__)


class PermissionCatalog:
    """
    Immutable catalog of permission names and roles

    Build with PermissionCatalog.load(); the constructor takes already
    parsed layers.
    """

    def __init__(self, layers: Iterable[ParsedLayer] = ()):
        self._layers: Tuple[ParsedLayer, ...] = tuple(layers)

        permissions, sections = _merge_layers(self._layers)
        self._descriptions: Mapping[str, str] = MappingProxyType(permissions)
        self._names: FrozenSet[str] = frozenset(permissions)

        self._all = PermissionMask({name: 1 for name in permissions})
        self._no_access = PermissionMask({name: 0 for name in permissions})
        self._roles: Mapping[str, PermissionMask] = MappingProxyType(
            self._materialize(sections)
        )

    # ===== Construction =====

    @classmethod
    def load(
        cls,
        sources: Iterable[LayerSource],
        include_core_defaults: bool = False
    ) -> "PermissionCatalog":
        """
        Load a catalog from an ordered list of configuration layers.

        Args:
            sources: Layer files or mappings, least specific first
            include_core_defaults: Prepend the core defaults layer

        Returns:
            PermissionCatalog

        Raises:
            ConfigError: if any layer is malformed (nothing is built)
        """
        layers: List[ParsedLayer] = []
        if include_core_defaults:
            layers.append(parse_layer(get_core_layer(), label="<core defaults>"))

        for index, source in enumerate(sources):
            label = None if not isinstance(source, Mapping) else f"<layer {index}>"
            layers.append(parse_layer(source, label=label))

        catalog = cls(layers)
        logger.info(
            f"Loaded permission catalog from {len(layers)} layer(s): "
            f"{len(catalog.all_permissions())} permissions, {len(catalog.role_names())} roles"
        )
        return catalog

    @classmethod
    def core(cls) -> "PermissionCatalog":
        """Catalog holding only the core defaults"""
        return cls.load([], include_core_defaults=True)

    def extend(self, sources: Iterable[LayerSource]) -> "PermissionCatalog":
        """
        Build a new catalog with extra layers applied on top of this one.

        This catalog is left untouched.
        """
        extra = [parse_layer(source) for source in sources]
        return type(self)(self._layers + tuple(extra))

    def _materialize(self, sections: Dict[str, RoleSection]) -> Dict[str, PermissionMask]:
        """Resolve 'extends' chains and expand every role over all names"""
        for role_name, section in sections.items():
            unknown = set(section.grants) - self._names
            if unknown:
                raise ConfigError(
                    f"Role '{role_name}' names undeclared permission(s): "
                    f"{', '.join(sorted(unknown))}",
                    details={"role": role_name, "permissions": sorted(unknown)}
                )

        resolved: Dict[str, PermissionMask] = {}

        def resolve(role_name: str, chain: Tuple[str, ...]) -> PermissionMask:
            if role_name in resolved:
                return resolved[role_name]
            if role_name == ALL_ROLE:
                return self._all
            if role_name == NO_ACCESS_ROLE:
                return self._no_access
            if role_name in chain:
                cycle = " -> ".join(chain + (role_name,))
                raise ConfigError(f"Cyclic role inheritance: {cycle}", details={"cycle": list(chain)})
            if role_name not in sections:
                raise ConfigError(
                    f"Role '{chain[-1]}' extends unknown role '{role_name}'",
                    details={"role": chain[-1], "extends": role_name}
                )

            section = sections[role_name]
            if section.extends:
                base = resolve(section.extends, chain + (role_name,))
            else:
                base = self._no_access
            resolved[role_name] = base.merge(section.grants)
            return resolved[role_name]

        for role_name in sections:
            resolve(role_name, ())

        return resolved

    # ===== Lookups =====

    def all_permissions(self) -> FrozenSet[str]:
        return self._names

    def description(self, name: str) -> str:
        if name not in self._descriptions:
            raise UnknownPermissionError([name])
        return self._descriptions[name]

    def role_names(self) -> Tuple[str, ...]:
        """Declared role names (the derived ALL/NO_ACCESS are not listed)"""
        return tuple(self._roles)

    def has_role(self, name: str) -> bool:
        return name in self._roles or name in (ALL_ROLE, NO_ACCESS_ROLE)

    def role(self, name: str) -> PermissionMask:
        """
        Get a role's mask, covering every catalog permission.

        Raises:
            UnknownRoleError: if no layer declared the role
        """
        if name == ALL_ROLE:
            return self._all
        if name == NO_ACCESS_ROLE:
            return self._no_access
        try:
            return self._roles[name]
        except KeyError:
            raise UnknownRoleError(name) from None

    def ALL(self) -> PermissionMask:
        return self._all

    def NO_ACCESS(self) -> PermissionMask:
        return self._no_access

    @property
    def sources(self) -> Tuple[str, ...]:
        return tuple(layer.source for layer in self._layers)

    # ===== Validated mask construction =====

    def validate(self, names: Iterable[str]) -> None:
        """Raise UnknownPermissionError if any name is not declared"""
        unknown = set(names) - self._names
        if unknown:
            raise UnknownPermissionError(unknown)

    def mask(self, values: Optional[Mapping[str, Any]] = None, base: str = NO_ACCESS_ROLE) -> PermissionMask:
        """
        Build a total mask: `values` applied on top of role `base`.

        Example:
            catalog.mask({"view": 1})            # view only
            catalog.mask({"delete": 0}, "ALL")   # everything but delete
        """
        values = values or {}
        self.validate(values)
        return self.role(base).merge(values)

    def full(self, values: Optional[Mapping[str, Any]] = None, base: str = NO_ACCESS_ROLE) -> Full:
        """Hook result replacing the whole mask"""
        return Full(self.mask(values, base))

    def partial(self, values: Mapping[str, Any]) -> Partial:
        """Hook result overwriting only the named permissions"""
        self.validate(values)
        return Partial(values)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __repr__(self) -> str:
        return (
            f"PermissionCatalog({len(self._names)} permissions, "
            f"roles={list(self._roles)})"
        )


def _merge_layers(layers: Iterable[ParsedLayer]) -> Tuple[Dict[str, str], Dict[str, RoleSection]]:
    permissions: Dict[str, str] = {}
    sections: Dict[str, RoleSection] = {}

    for layer in layers:
        permissions.update(layer.permissions)

        for role_name, section in layer.roles.items():
            merged = sections.setdefault(role_name, RoleSection())
            merged.grants.update(section.grants)
            if section.extends is not None:
                merged.extends = section.extends

    return permissions, sections


__all__ = [
    "PermissionCatalog",
]
