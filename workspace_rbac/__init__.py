"""
workspace-rbac: Workspace-scoped Role-Based Access Control engine

This package stores roles and permissions as two independent inheritance
graphs per workspace (tenant), resolves a role's effective permissions
across both hierarchies, and answers authorization queries from concurrent
callers with optional time-bounded caching.

Features:
    - Role inheritance and permission inheritance, each kept acyclic
    - Workspace isolation: (workspace, id) is the primary key
    - Cascading deletes that never leave dangling references
    - Optional TTL/LRU cache with role, workspace and global invalidation
    - Deny-on-error authorization decisions and a FastAPI dependency

Example:
    >>> from workspace_rbac import RBACService, seed_workspace
    >>>
    >>> service = RBACService(cache_ttl=60)
    >>> seed_workspace(service, "acme")
    >>> service.has_permission("acme", "owner", "read")
    True
    >>> [p.id for p in service.get_effective_permissions("acme", "owner")]
    ['admin', 'read', 'write']
"""

__version__ = "0.1.0"

from .caching import CacheKey, CacheStats, PermissionCache
from .errors import (
    AlreadyExistsError,
    CyclicInheritanceError,
    InvalidArgumentError,
    NotFoundError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    RBACError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
    StoreFailureError,
)
from .memory import MemoryStore
from .models import AccessDecision, EntityKey, Permission, Role
from .resolver import PermissionResolver
from .service import RBACService
from .settings import Settings
from .setup import (
    create_service,
    get_rbac_service,
    reset_rbac_service,
    seed_workspace,
    set_rbac_service,
)
from .store import PermissionStore, RoleStore, Store

__all__ = [
    "AccessDecision",
    "AlreadyExistsError",
    "CacheKey",
    "CacheStats",
    "CyclicInheritanceError",
    "EntityKey",
    "InvalidArgumentError",
    "MemoryStore",
    "NotFoundError",
    "Permission",
    "PermissionAlreadyExistsError",
    "PermissionCache",
    "PermissionNotFoundError",
    "PermissionResolver",
    "PermissionStore",
    "RBACError",
    "RBACService",
    "Role",
    "RoleAlreadyExistsError",
    "RoleNotFoundError",
    "RoleStore",
    "Settings",
    "Store",
    "StoreFailureError",
    "create_service",
    "get_rbac_service",
    "reset_rbac_service",
    "seed_workspace",
    "set_rbac_service",
]
