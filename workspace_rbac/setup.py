"""
Service setup helpers for workspace-rbac.

This module builds RBACService instances from configuration, holds the
process-wide default instance, and seeds workspaces with a starter
role/permission hierarchy.
"""

import logging
from typing import Optional

from .errors import AlreadyExistsError
from .models import Permission, Role
from .service import RBACService
from .settings import Settings
from .store import Store

logger = logging.getLogger(__name__)


def create_service(
    settings: Optional[Settings] = None, store: Optional[Store] = None
) -> RBACService:
    """
    Build an RBAC service from settings.

    Args:
        settings: Configuration settings. If None, settings are loaded from the
            environment (RBAC_* variables and .env).
        store: Backing store. If None, an in-memory store is used.

    Returns:
        The configured RBACService.

    Raises:
        ValueError: If the configuration is invalid.

    Example:
        >>> service = create_service(Settings(cache_enabled=True, cache_ttl_seconds=30))
    """
    settings = settings or Settings()

    if settings.debug:
        logging.getLogger("workspace_rbac").setLevel(logging.DEBUG)

    try:
        return RBACService.from_settings(settings, store)
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise


# Global RBAC service instance
_rbac_service: Optional[RBACService] = None


def get_rbac_service() -> RBACService:
    """
    Get the global RBAC service instance.

    The service is created from environment settings on first access and
    reused for subsequent calls.

    Returns:
        The global RBACService instance.
    """
    global _rbac_service
    if _rbac_service is None:
        _rbac_service = create_service()
        logger.info("Global RBAC service created")
    return _rbac_service


def set_rbac_service(service: RBACService) -> None:
    """Install ``service`` as the global instance."""
    global _rbac_service
    _rbac_service = service


def reset_rbac_service() -> None:
    """
    Reset the global RBAC service instance.

    This is primarily useful for testing scenarios where you need
    a clean service state.
    """
    global _rbac_service
    _rbac_service = None
    logger.info("Global RBAC service reset")


def seed_workspace(service: RBACService, workspace_id: str) -> None:
    """
    Install a starter hierarchy in a workspace.

    Permissions: ``read``, ``write`` (inherits ``read``) and ``admin``
    (inherits ``write``). Roles: ``guest`` (``read``), ``member`` (inherits
    ``guest``, holds ``write``) and ``owner`` (inherits ``member``, holds
    ``admin``). Records that already exist are left untouched.

    Args:
        service: The service to seed through.
        workspace_id: Workspace to populate.

    Example:
        >>> seed_workspace(service, "acme")
        >>> service.has_permission("acme", "owner", "read")
        True
    """
    permissions = [
        Permission(workspace_id, "read", "Read"),
        Permission(workspace_id, "write", "Write", ["read"]),
        Permission(workspace_id, "admin", "Administer", ["write"]),
    ]
    roles = [
        Role(workspace_id, "guest", "Guest", direct_permission_ids=["read"]),
        Role(
            workspace_id,
            "member",
            "Member",
            parent_ids=["guest"],
            direct_permission_ids=["write"],
        ),
        Role(
            workspace_id,
            "owner",
            "Owner",
            parent_ids=["member"],
            direct_permission_ids=["admin"],
        ),
    ]

    for permission in permissions:
        try:
            service.create_permission(permission)
        except AlreadyExistsError as e:
            logger.warning(f"Skipping permission '{permission.id}': {e}")

    for role in roles:
        try:
            service.create_role(role)
        except AlreadyExistsError as e:
            logger.warning(f"Skipping role '{role.id}': {e}")

    logger.info(
        f"Seeded workspace '{workspace_id}' with {len(roles)} roles",
        extra={"workspace_id": workspace_id},
    )
