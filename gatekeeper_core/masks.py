"""
Permission Masks

PermissionMask is the immutable 0/1 grant mapping consumed by calling code.
Override hooks answer with one of three tagged results:

- Full(mask):      a total mask, every name is overwritten
- Partial(values): only the named permissions are overwritten
- NO_OPINION:      nothing is overwritten (defer to the less specific scope)

Masks never validate names on their own; PermissionCatalog.mask() and
PermissionCatalog.partial() build validated instances.
"""

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Any, FrozenSet


def to_flag(value: Any) -> int:
    """
    Normalize a grant value to 0 or 1.

    Accepts 0/1, booleans and their string spellings ("0", "1", "true",
    "false"). Raises ValueError for anything else.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int) and value in (0, 1):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true"):
            return 1
        if lowered in ("0", "false"):
            return 0
    raise ValueError(f"Not a 0/1 grant value: {value!r}")


class PermissionMask(Mapping[str, int]):
    """Immutable mapping of permission name -> 0/1"""

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values = MappingProxyType(
            {name: to_flag(value) for name, value in (values or {}).items()}
        )

    def __getitem__(self, name: str) -> int:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        granted = ", ".join(sorted(self.granted()))
        return f"PermissionMask({len(self)} permissions, granted=[{granted}])"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._values) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._values.items()))

    def allows(self, name: str) -> bool:
        return self._values.get(name, 0) == 1

    def granted(self) -> FrozenSet[str]:
        """Names set to 1"""
        return frozenset(name for name, value in self._values.items() if value)

    def denied(self) -> FrozenSet[str]:
        """Names set to 0"""
        return frozenset(name for name, value in self._values.items() if not value)

    def merge(self, override: Mapping[str, Any]) -> "PermissionMask":
        """
        Override-merge: names present with a non-null value in `override`
        replace the value in this mask, every other name is inherited.

        Args:
            override: Full or partial mapping of name -> 0/1/None

        Returns:
            New PermissionMask
        """
        merged: Dict[str, int] = dict(self._values)
        for name, value in override.items():
            if value is None:
                continue
            merged[name] = to_flag(value)
        return PermissionMask(merged)

    def to_dict(self) -> Dict[str, int]:
        return dict(self._values)


class HookResult:
    """Base class of the tagged results returned by override hooks"""

    kind = "abstract"
    __slots__ = ()

    def changes(self) -> Mapping[str, int]:
        """Names this result overwrites, with their new values"""
        raise NotImplementedError


class Full(HookResult):
    """A complete mask: every permission is overwritten"""

    kind = "full"
    __slots__ = ("mask",)

    def __init__(self, mask: Mapping[str, Any]):
        self.mask = mask if isinstance(mask, PermissionMask) else PermissionMask(mask)

    def changes(self) -> Mapping[str, int]:
        return self.mask

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Full) and self.mask == other.mask

    def __hash__(self) -> int:
        return hash((self.kind, self.mask))

    def __repr__(self) -> str:
        return f"Full({self.mask!r})"


class Partial(HookResult):
    """
    A partial override: only the named permissions are overwritten.

    None values are dropped (they mean "inherit"), so an explicit 0 and an
    omitted name only differ in the resolution trace.
    """

    kind = "partial"
    __slots__ = ("values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self.values = MappingProxyType({
            name: to_flag(value)
            for name, value in (values or {}).items()
            if value is not None
        })

    def changes(self) -> Mapping[str, int]:
        return self.values

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Partial) and dict(self.values) == dict(other.values)

    def __hash__(self) -> int:
        return hash((self.kind, frozenset(self.values.items())))

    def __repr__(self) -> str:
        return f"Partial({dict(self.values)!r})"


class NoOpinion(HookResult):
    """Defer entirely to the less specific scope"""

    kind = "no_opinion"
    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def changes(self) -> Mapping[str, int]:
        return MappingProxyType({})

    def __repr__(self) -> str:
        return "NO_OPINION"


NO_OPINION = NoOpinion()


def coerce_hook_result(value: Any) -> HookResult:
    """
    Normalize what a hook returned into a tagged HookResult.

    None -> NO_OPINION, PermissionMask -> Full, other mappings -> Partial.

    Raises:
        TypeError: if the value is none of the above
        ValueError: if a mapping holds a non 0/1 value
    """
    if isinstance(value, HookResult):
        return value
    if value is None:
        return NO_OPINION
    if isinstance(value, PermissionMask):
        return Full(value)
    if isinstance(value, Mapping):
        return Partial(value)
    raise TypeError(f"Hook returned unsupported result type: {type(value).__name__}")


__all__ = [
    "to_flag",
    "PermissionMask",
    "HookResult",
    "Full",
    "Partial",
    "NoOpinion",
    "NO_OPINION",
    "coerce_hook_result",
]
