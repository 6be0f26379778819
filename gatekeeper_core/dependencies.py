"""
FastAPI Dependencies

Route-level enforcement on top of PermissionResolver.

Usage:
    def post_context(post_id: int, user: AuthenticatedUser = Depends(current_user)):
        return ResolutionContext(table="posts", user=user, record=load_post(post_id))

    @router.put("/posts/{post_id}")
    async def update_post(mask: PermissionMask = Depends(
        require_permission(resolver, "edit", post_context)
    )):
        ...
"""

import logging
from typing import Callable

from fastapi import Depends, HTTPException, status

from .errors import HookError
from .masks import PermissionMask
from .resolver import PermissionResolver
from .types import ResolutionContext

logger = logging.getLogger(__name__)


def require_permission(
    resolver: PermissionResolver,
    permission: str,
    context_dependency: Callable[..., ResolutionContext],
    deny_on_error: bool = True
) -> Callable[..., PermissionMask]:
    """
    Build a FastAPI dependency requiring a permission for a context

    Args:
        resolver: Resolver used for every request
        permission: Permission that must be granted (validated now)
        context_dependency: FastAPI dependency producing the ResolutionContext
        deny_on_error: Answer 403 when a hook fails; otherwise the HookError
            is converted with to_http_exception() (500)

    Returns:
        Dependency that returns the effective mask to the route
    """
    resolver.catalog.validate([permission])

    def dependency(context: ResolutionContext = Depends(context_dependency)) -> PermissionMask:
        try:
            mask = resolver.resolve(context)
        except HookError as e:
            if not deny_on_error:
                raise e.to_http_exception() from e
            logger.warning(f"Denying {permission} on {context.table}: {e.message}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required permission: {permission}"
            ) from e

        if not mask.allows(permission):
            handle = context.user.handle if context.user else "anonymous"
            logger.warning(f"Permission denied: {handle} attempted {permission} on {context.table}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required permission: {permission}"
            )

        return mask

    return dependency


__all__ = [
    "require_permission",
]
