"""
Configuration Layer Loader

Parses one configuration layer (YAML, JSON or INI file, or an in-memory
mapping) into a ParsedLayer. Parsing never touches the catalog: the catalog
merges already-parsed layers, so a malformed layer aborts the whole load
before anything is built.

YAML / JSON / mapping layout:

    permissions:
      view: View a record
      edit: Edit existing records
    roles:
      READ_ONLY:
        view: 1
      EDIT:
        extends: READ_ONLY
        edit: 1

Grant values are 0, 1, true or false (YAML yes/no/on/off are rejected).

INI layout:

    [permissions]
    view = View a record

    [READ_ONLY]
    view = 1

    [EDIT extends READ_ONLY]
    edit = 1
"""

import configparser
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .baselines import DERIVED_ROLES
from .errors import ConfigError
from .masks import to_flag

logger = logging.getLogger(__name__)

LayerSource = Union[str, Path, Mapping[str, Any]]

# Reserved key inside a role section
EXTENDS_KEY = "extends"

PERMISSIONS_SECTION = "permissions"
ROLES_SECTION = "roles"

_INI_EXTENDS = re.compile(r"^(?P<role>\S.*?)\s+extends\s+(?P<base>\S.*?)\s*$")

_YAML_BOOL_TAG = "tag:yaml.org,2002:bool"


class _LayerLoader(yaml.SafeLoader):
    """SafeLoader that only reads true/false as booleans, not yes/no/on/off"""


_LayerLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _YAML_BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_LayerLoader.add_implicit_resolver(
    _YAML_BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


@dataclass
class RoleSection:
    """
    One role section of one layer

    Attributes:
        grants: permission name -> 0/1, only the keys this layer mentions
        extends: base role name, or None if this layer does not set it
    """
    grants: Dict[str, int] = field(default_factory=dict)
    extends: Optional[str] = None


@dataclass
class ParsedLayer:
    """A parsed configuration layer"""
    source: str
    permissions: Dict[str, str] = field(default_factory=dict)
    roles: Dict[str, RoleSection] = field(default_factory=dict)


def parse_layer(source: LayerSource, label: Optional[str] = None) -> ParsedLayer:
    """
    Parse a configuration layer.

    Args:
        source: Path to a .yaml/.yml/.json/.ini file, or a mapping
        label: Name used in error messages (defaults to the path)

    Returns:
        ParsedLayer

    Raises:
        ConfigError: if the file is missing, unparsable or malformed
    """
    if isinstance(source, Mapping):
        layer = _parse_mapping(source, label or "<mapping>")
    else:
        layer = _parse_file(Path(source), label)

    logger.debug(
        f"Parsed config layer {layer.source}: "
        f"{len(layer.permissions)} permissions, {len(layer.roles)} roles"
    )
    return layer


def _parse_file(path: Path, label: Optional[str]) -> ParsedLayer:
    label = label or str(path)

    if not path.exists():
        raise ConfigError(f"Config layer not found: {path}", source=label)

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _parse_mapping(_read_yaml(path, label), label)
    if suffix == ".json":
        return _parse_mapping(_read_json(path, label), label)
    if suffix == ".ini":
        return _parse_ini(path, label)

    raise ConfigError(f"Unsupported config layer format: {path.suffix}", source=label)


def _read_yaml(path: Path, label: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.load(f, Loader=_LayerLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"Unparsable YAML layer: {e}", source=label) from e
    except OSError as e:
        raise ConfigError(f"Could not read config layer: {e}", source=label) from e


def _read_json(path: Path, label: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Unparsable JSON layer: {e}", source=label) from e
    except OSError as e:
        raise ConfigError(f"Could not read config layer: {e}", source=label) from e


def _parse_mapping(data: Any, label: str) -> ParsedLayer:
    layer = ParsedLayer(source=label)

    # Empty file
    if data is None:
        return layer

    if not isinstance(data, Mapping):
        raise ConfigError("Config layer must be a mapping", source=label)

    unknown = set(data) - {PERMISSIONS_SECTION, ROLES_SECTION}
    if unknown:
        raise ConfigError(
            f"Unknown section(s): {', '.join(sorted(map(str, unknown)))}",
            source=label
        )

    permissions = data.get(PERMISSIONS_SECTION) or {}
    if isinstance(permissions, list):
        permissions = {name: "" for name in permissions}
    if not isinstance(permissions, Mapping):
        raise ConfigError("'permissions' must map names to descriptions", source=label)

    for name, description in permissions.items():
        _check_permission_name(name, label)
        layer.permissions[name] = "" if description is None else str(description)

    roles = data.get(ROLES_SECTION) or {}
    if not isinstance(roles, Mapping):
        raise ConfigError("'roles' must map role names to sections", source=label)

    for role_name, section in roles.items():
        _check_role_name(role_name, label)
        if section is None:
            section = {}
        if not isinstance(section, Mapping):
            raise ConfigError(f"Role section '{role_name}' must be a mapping", source=label)

        parsed = RoleSection()
        for key, value in section.items():
            if key == EXTENDS_KEY:
                if not isinstance(value, str) or not value.strip():
                    raise ConfigError(
                        f"Role '{role_name}': 'extends' must name a role", source=label
                    )
                parsed.extends = value.strip()
                continue
            _check_permission_name(key, label)
            parsed.grants[key] = _flag(value, label, role_name, key)
        layer.roles[role_name] = parsed

    return layer


def _parse_ini(path: Path, label: str) -> ParsedLayer:
    # A sentinel default section keeps [DEFAULT] from leaking into every role
    parser = configparser.ConfigParser(
        interpolation=None,
        delimiters=("=",),
        default_section="\0defaults",
    )
    parser.optionxform = str

    try:
        with open(path, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except configparser.Error as e:
        raise ConfigError(f"Unparsable INI layer: {e}", source=label) from e
    except OSError as e:
        raise ConfigError(f"Could not read config layer: {e}", source=label) from e

    layer = ParsedLayer(source=label)

    for section_name in parser.sections():
        items = parser.items(section_name)

        if section_name.strip().lower() == PERMISSIONS_SECTION:
            for name, description in items:
                _check_permission_name(name, label)
                layer.permissions[name] = description or ""
            continue

        match = _INI_EXTENDS.match(section_name)
        role_name = match.group("role") if match else section_name.strip()
        _check_role_name(role_name, label)

        parsed = layer.roles.setdefault(role_name, RoleSection())
        if match:
            parsed.extends = match.group("base")
        for key, value in items:
            _check_permission_name(key, label)
            parsed.grants[key] = _flag(value, label, role_name, key)

    return layer


def _flag(value: Any, label: str, role_name: str, key: str) -> int:
    try:
        return to_flag(value)
    except ValueError:
        raise ConfigError(
            f"Role '{role_name}': value for '{key}' must be 0 or 1, got {value!r}",
            source=label,
            details={"role": role_name, "permission": key}
        ) from None


def _check_permission_name(name: Any, label: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Invalid permission name: {name!r}", source=label)
    if name == EXTENDS_KEY:
        raise ConfigError(f"'{EXTENDS_KEY}' is reserved and cannot name a permission", source=label)


def _check_role_name(name: Any, label: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Invalid role name: {name!r}", source=label)
    if name in DERIVED_ROLES:
        raise ConfigError(f"Role '{name}' is derived from the catalog and cannot be declared", source=label)


__all__ = [
    "LayerSource",
    "RoleSection",
    "ParsedLayer",
    "parse_layer",
]
