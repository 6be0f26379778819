"""
Permission Resolver

Computes the effective mask for one access-control decision:

1. Start from NO_ACCESS (no opinion anywhere means no access)
2. Application hook
3. Table hook
4. Record hook
5. Field hook (only when the context names a field)

Each hook answers Full, Partial or NO_OPINION. Names present in the answer
overwrite the running mask; everything else is inherited from the less
specific scope. More specific scopes run later, so they win.

Resolution is all-or-nothing: a failing hook raises HookError and no mask is
returned. The resolver never turns a failure into a deny decision; that
choice belongs to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .catalog import PermissionCatalog
from .config import get_settings
from .errors import HookError, UnknownPermissionError
from .masks import Full, HookResult, PermissionMask, coerce_hook_result
from .registry import HookRegistry, ScopeHooks
from .types import SCOPE_ORDER, ResolutionContext, Scope

logger = logging.getLogger(__name__)

_RECORD_SCOPES = (Scope.APPLICATION, Scope.TABLE, Scope.RECORD)


@dataclass(frozen=True)
class ScopeStep:
    """
    What one scope contributed to a resolution

    Attributes:
        scope: Scope that ran
        kind: "full", "partial" or "no_opinion"
        granted: Names this scope explicitly set to 1
        denied: Names this scope explicitly set to 0
    """
    scope: Scope
    kind: str
    granted: FrozenSet[str] = frozenset()
    denied: FrozenSet[str] = frozenset()

    def value_for(self, name: str) -> Optional[int]:
        if name in self.granted:
            return 1
        if name in self.denied:
            return 0
        return None


@dataclass(frozen=True)
class Resolution:
    """Effective mask plus the per-scope trace that produced it"""
    mask: PermissionMask
    steps: Tuple[ScopeStep, ...]

    def deciding_scope(self, name: str) -> Optional[Scope]:
        """Most specific scope that explicitly set `name`, None if defaulted"""
        for step in reversed(self.steps):
            if step.value_for(name) is not None:
                return step.scope
        return None


def resolve(
    context: ResolutionContext,
    catalog: PermissionCatalog,
    hooks: ScopeHooks
) -> PermissionMask:
    """
    Resolve the effective mask for a context.

    Args:
        context: User, table, record and field being checked
        catalog: Permission catalog
        hooks: Application/table/record/field hooks for this context

    Returns:
        PermissionMask covering every catalog permission

    Raises:
        HookError: if a hook raises or returns an invalid result
    """
    return trace(context, catalog, hooks).mask


def trace(
    context: ResolutionContext,
    catalog: PermissionCatalog,
    hooks: ScopeHooks
) -> Resolution:
    """Like resolve(), but also returns what each scope contributed"""
    return _walk(context, catalog, hooks, SCOPE_ORDER, catalog.NO_ACCESS(), ())


def _walk(
    context: ResolutionContext,
    catalog: PermissionCatalog,
    hooks: ScopeHooks,
    scopes: Iterable[Scope],
    effective: PermissionMask,
    steps: Tuple[ScopeStep, ...]
) -> Resolution:
    collected: List[ScopeStep] = list(steps)

    for scope in scopes:
        if scope is Scope.FIELD and context.field is None:
            continue

        result = _invoke(scope, hooks.for_scope(scope), context, catalog)
        changes = result.changes()
        if isinstance(result, Full):
            # A full mask is total: names it leaves out are denied
            changes = catalog.NO_ACCESS().merge(changes)

        effective = effective.merge(changes)
        step = ScopeStep(
            scope=scope,
            kind=result.kind,
            granted=frozenset(name for name, value in changes.items() if value),
            denied=frozenset(name for name, value in changes.items() if not value),
        )
        collected.append(step)

        logger.debug(
            f"{scope.value} scope on {context.table}"
            f"{'.' + context.field if context.field else ''}: {result.kind}, "
            f"granted={sorted(step.granted)} denied={sorted(step.denied)}"
        )

    return Resolution(mask=effective, steps=tuple(collected))


def _invoke(
    scope: Scope,
    hook: Optional[Any],
    context: ResolutionContext,
    catalog: PermissionCatalog
) -> HookResult:
    if hook is None:
        return coerce_hook_result(None)

    where = f"{scope.value} hook for {context.table}" + (
        f".{context.field}" if scope is Scope.FIELD else ""
    )

    try:
        if scope is Scope.FIELD:
            raw = hook(context, context.field)
        else:
            raw = hook(context)
    except HookError:
        raise
    except Exception as e:
        logger.error(f"{where} raised: {e}")
        raise _hook_error(f"{where} failed: {e}", scope, context) from e

    try:
        result = coerce_hook_result(raw)
        catalog.validate(result.changes())
    except UnknownPermissionError as e:
        logger.error(f"{where} returned {e.message}")
        raise _hook_error(f"{where} returned {e.message}", scope, context) from e
    except (TypeError, ValueError) as e:
        logger.error(f"{where} returned an invalid result: {e}")
        raise _hook_error(f"{where} returned an invalid result: {e}", scope, context) from e

    return result


def _hook_error(message: str, scope: Scope, context: ResolutionContext) -> HookError:
    return HookError(
        message,
        scope=scope.value,
        table=context.table,
        field=context.field if scope is Scope.FIELD else None,
    )


class PermissionResolver:
    """
    Resolver bound to a catalog and a hook registry

    Usage:
        resolver = PermissionResolver(catalog, registry)
        mask = resolver.resolve(ResolutionContext(table="posts", user=user, record=post))
        if mask.allows("edit"):
            ...
    """

    def __init__(
        self,
        catalog: PermissionCatalog,
        registry: Optional[HookRegistry] = None,
        explain_enabled: Optional[bool] = None
    ):
        self.catalog = catalog
        self.registry = registry if registry is not None else HookRegistry()
        if explain_enabled is None:
            explain_enabled = get_settings().perms_explain
        self.explain_enabled = explain_enabled

    def resolve(self, context: ResolutionContext) -> PermissionMask:
        return self.trace(context).mask

    def trace(self, context: ResolutionContext) -> Resolution:
        hooks = self.registry.hooks_for(context.table, context.field)
        return trace(context, self.catalog, hooks)

    def allows(self, context: ResolutionContext, permission: str) -> bool:
        """Resolve and check a single permission"""
        self.catalog.validate([permission])
        return self.resolve(context).allows(permission)

    def resolve_fields(
        self,
        context: ResolutionContext,
        fields: Iterable[str]
    ) -> Dict[str, PermissionMask]:
        """
        Resolve the mask of several fields of the same record.

        The application/table/record scopes run once; each field hook then
        runs independently on top of that record-level mask.

        Returns:
            Dict mapping field name -> effective mask
        """
        record_context = context.with_field(None)
        record_hooks = self.registry.hooks_for(context.table)
        record_level = _walk(
            record_context, self.catalog, record_hooks, _RECORD_SCOPES,
            self.catalog.NO_ACCESS(), ()
        )

        masks: Dict[str, PermissionMask] = {}
        for field_name in fields:
            field_context = context.with_field(field_name)
            field_hooks = self.registry.hooks_for(context.table, field_name)
            masks[field_name] = _walk(
                field_context, self.catalog, field_hooks, (Scope.FIELD,),
                record_level.mask, record_level.steps
            ).mask

        return masks

    def explain(self, context: ResolutionContext, permission: str) -> Dict[str, Any]:
        """
        Explain why a permission was granted or denied.

        Only enabled when GATEKEEPER_PERMS_EXPLAIN=1 (or explain_enabled=True).

        Returns:
            Dict with:
            - decision: "allow" or "deny"
            - permission, table, field, user
            - deciding_scope: most specific scope that set the permission,
              or None when it fell through to the NO_ACCESS default
            - reason: Human-readable explanation
            - steps: per-scope result kind and the value it set (or None)
        """
        if not self.explain_enabled:
            return {
                "error": "Diagnostics disabled. Set GATEKEEPER_PERMS_EXPLAIN=1 to enable."
            }

        self.catalog.validate([permission])
        resolution = self.trace(context)
        decision = resolution.mask.allows(permission)
        deciding = resolution.deciding_scope(permission)

        if deciding is None:
            reason = "No scope set this permission; default NO_ACCESS applies"
        else:
            verb = "granted" if decision else "denied"
            reason = f"Explicitly {verb} at {deciding.value} scope"

        return {
            "decision": "allow" if decision else "deny",
            "permission": permission,
            "table": context.table,
            "field": context.field,
            "user": context.user.handle if context.user else None,
            "deciding_scope": deciding.value if deciding else None,
            "reason": reason,
            "steps": [
                {
                    "scope": step.scope.value,
                    "kind": step.kind,
                    "value": step.value_for(permission),
                }
                for step in resolution.steps
            ],
        }


__all__ = [
    "ScopeStep",
    "Resolution",
    "resolve",
    "trace",
    "PermissionResolver",
]
