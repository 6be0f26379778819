"""
Hook Registry

Explicit wiring of override hooks: (scope, table, field) -> hook. Built once
when the application sets up its tables, then handed to the resolver.

Hook signatures:
    application / table / record:  hook(context) -> HookResult
    field:                         hook(context, field_name) -> HookResult

A field hook registered without a field name is the table's default field
hook, used for every field that has no hook of its own.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .types import ResolutionContext, Scope

logger = logging.getLogger(__name__)

Hook = Callable[[ResolutionContext], Any]
FieldHook = Callable[[ResolutionContext, str], Any]


@dataclass(frozen=True)
class ScopeHooks:
    """The four hooks that apply to one (table, field) lookup"""
    application: Optional[Hook] = None
    table: Optional[Hook] = None
    record: Optional[Hook] = None
    field: Optional[FieldHook] = None

    def for_scope(self, scope: Scope) -> Optional[Callable[..., Any]]:
        return getattr(self, scope.value)


class HookRegistry:
    """Registry mapping (scope, table, optional field) to override hooks"""

    def __init__(self):
        self._application: Optional[Hook] = None
        self._table: Dict[str, Hook] = {}
        self._record: Dict[str, Hook] = {}
        self._field: Dict[Tuple[str, Optional[str]], FieldHook] = {}

    # ===== Registration =====

    def register_application(self, hook: Hook, replace: bool = False) -> Hook:
        if self._application is not None and not replace:
            raise ValueError("Application hook already registered")
        self._application = hook
        logger.debug("Registered application hook")
        return hook

    def register_table(self, table: str, hook: Hook, replace: bool = False) -> Hook:
        self._store(self._table, table, hook, replace, f"Table hook for '{table}'")
        return hook

    def register_record(self, table: str, hook: Hook, replace: bool = False) -> Hook:
        self._store(self._record, table, hook, replace, f"Record hook for '{table}'")
        return hook

    def register_field(
        self,
        table: str,
        hook: FieldHook,
        field: Optional[str] = None,
        replace: bool = False
    ) -> FieldHook:
        label = f"Field hook for '{table}.{field}'" if field else f"Default field hook for '{table}'"
        self._store(self._field, (table, field), hook, replace, label)
        return hook

    def _store(self, hooks: Dict, key: Any, hook: Callable, replace: bool, label: str) -> None:
        if key in hooks and not replace:
            raise ValueError(f"{label} already registered")
        hooks[key] = hook
        logger.debug(f"Registered {label[0].lower()}{label[1:]}")

    # ===== Decorator forms =====

    def application(self, hook: Hook) -> Hook:
        """
        Decorator registering the application hook.

        Usage:
            @registry.application
            def app_permissions(ctx):
                return NO_OPINION
        """
        return self.register_application(hook)

    def table(self, table: str) -> Callable[[Hook], Hook]:
        def decorator(hook: Hook) -> Hook:
            return self.register_table(table, hook)
        return decorator

    def record(self, table: str) -> Callable[[Hook], Hook]:
        def decorator(hook: Hook) -> Hook:
            return self.register_record(table, hook)
        return decorator

    def field(self, table: str, field: Optional[str] = None) -> Callable[[FieldHook], FieldHook]:
        def decorator(hook: FieldHook) -> FieldHook:
            return self.register_field(table, hook, field=field)
        return decorator

    # ===== Lookup =====

    def hooks_for(self, table: str, field: Optional[str] = None) -> ScopeHooks:
        """
        Get the hooks that apply to a table (and optionally a field).

        Missing hooks are None, which the resolver treats as NO_OPINION.
        """
        field_hook = None
        if field is not None:
            field_hook = self._field.get((table, field)) or self._field.get((table, None))

        return ScopeHooks(
            application=self._application,
            table=self._table.get(table),
            record=self._record.get(table),
            field=field_hook,
        )

    def tables(self) -> Tuple[str, ...]:
        """Tables with at least one registered hook"""
        names = set(self._table) | set(self._record) | {table for table, _ in self._field}
        return tuple(sorted(names))


__all__ = [
    "Hook",
    "FieldHook",
    "ScopeHooks",
    "HookRegistry",
]
