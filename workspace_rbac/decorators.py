"""
RBAC Decorators - FastAPI dependencies for permission checking.

An upstream middleware (authentication, tenant resolution) is expected to put
the caller's workspace and role on ``request.state``; the mapping of end
users to roles is not handled here. The dependencies below deny on any
lookup error, so an unknown role or workspace never turns into a grant.
"""

import logging
import time
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, Request

from .service import RBACService
from .setup import get_rbac_service

logger = logging.getLogger(__name__)


def get_current_subject(request: Request) -> Tuple[str, str]:
    """
    Extract the workspace and role the request acts as.

    Args:
        request: FastAPI request object

    Returns:
        Tuple of (workspace_id, role_id)

    Raises:
        HTTPException: 401 if either is missing from request state
    """
    workspace_id = getattr(request.state, "workspace_id", None)
    role_id = getattr(request.state, "role_id", None)

    if not workspace_id or not role_id:
        logger.warning(
            "Workspace or role not found in request state - upstream middleware may not be configured",
            extra={"endpoint": request.url.path, "method": request.method},
        )
        raise HTTPException(
            status_code=401,
            detail="Authentication required - workspace and role not found in request state",
        )

    return workspace_id, role_id


def _extract_request_context(request: Request) -> dict:
    """Extract request context for logging."""
    return {
        "endpoint": request.url.path,
        "method": request.method,
        "ip_address": (
            getattr(request.client, "host", "unknown") if request.client else "unknown"
        ),
    }


def require_permissions(
    *permission_ids: str,
    require_all: bool = True,
    service: Optional[RBACService] = None,
):
    """
    FastAPI dependency requiring permissions for an endpoint.

    Args:
        *permission_ids: Permission IDs the endpoint needs.
        require_all: Require every permission (default) or any one of them.
        service: Service to check against. Defaults to the global service.

    Returns:
        A ``Depends`` marker that raises 403 when access is denied.

    Example:
        @app.get("/posts", dependencies=[require_permissions("post:read")])
        async def list_posts():
            pass

        @app.delete("/posts/{post_id}")
        async def delete_post(
            post_id: str,
            _: None = require_permissions("post:admin", "post:owner", require_all=False),
        ):
            pass
    """
    if not permission_ids:
        raise ValueError("require_permissions needs at least one permission id")

    async def check_permissions(request: Request) -> None:
        start_time = time.time()
        workspace_id, role_id = get_current_subject(request)
        rbac_service = service or get_rbac_service()
        context = _extract_request_context(request)

        decision = rbac_service.authorize(
            workspace_id, role_id, *permission_ids, require_all=require_all
        )

        if not decision.allowed:
            logger.warning(
                f"Access denied for role '{role_id}': {decision.reason}",
                extra={
                    **context,
                    "workspace_id": workspace_id,
                    "role_id": role_id,
                    "missing_permissions": decision.missing,
                    "error": decision.error,
                },
            )
            raise HTTPException(
                status_code=403,
                detail={
                    "error": "Insufficient permissions",
                    "required": list(permission_ids),
                    "missing": decision.missing,
                },
            )

        logger.debug(
            f"Permission check passed for role '{role_id}' "
            f"({time.time() - start_time:.3f}s)",
            extra={**context, "workspace_id": workspace_id, "role_id": role_id},
        )

    return Depends(check_permissions)
