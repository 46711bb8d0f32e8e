"""
RBAC Service - public query facade over the store, resolver and cache.

This module implements the authorization entry points callers use to decide
whether to permit a request, plus mutation pass-throughs that keep the cache
coherent. Deployments with caching enabled should route every mutation
through the service rather than directly to the store; changes that bypass
the service stay invisible until the cached entries expire.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .caching import DEFAULT_MAX_ENTRIES, PermissionCache
from .errors import InvalidArgumentError, RBACError, require
from .memory import MemoryStore
from .models import AccessDecision, Permission, Role
from .resolver import PermissionResolver
from .settings import INVALIDATION_SCOPES, Settings
from .store import Store, find_cycle

logger = logging.getLogger(__name__)


def _require_permission_ids(permission_ids: tuple) -> List[str]:
    if not permission_ids:
        raise InvalidArgumentError("at least one permission id is required")
    for permission_id in permission_ids:
        require(permission_id, "permission id")
    return list(permission_ids)


class RBACService:
    """
    Authorization facade answering permission questions about workspace roles.

    Args:
        store: Backing store. Defaults to a fresh MemoryStore.
        cache_ttl: Lifetime of cached effective permission sets in seconds.
            None or a non-positive value disables caching, so every query
            recomputes from the store.
        cache_max_entries: Bound on cached (workspace, role) entries.
        invalidation_scope: What role mutations drop from the cache:
            "role" (that role only), "workspace" or "all".
        clock: Monotonic time source for cache expiry.

    Example:
        >>> service = RBACService(cache_ttl=60)
        >>> service.create_permission(Permission("acme", "read", "Read"))
        >>> service.create_role(Role("acme", "guest", "Guest", direct_permission_ids=["read"]))
        >>> service.has_permission("acme", "guest", "read")
        True

    Thread Safety:
        All methods may be called from concurrent threads. The store and the
        cache each guard their own state; the cache lock is never held while
        the resolver reads the store, so two concurrent misses for the same
        role may both recompute. A result resolved while an invalidation ran
        is returned to its caller but never cached.
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        *,
        cache_ttl: Optional[float] = None,
        cache_max_entries: int = DEFAULT_MAX_ENTRIES,
        invalidation_scope: str = "role",
        clock: Callable[[], float] = time.monotonic,
    ):
        if invalidation_scope not in INVALIDATION_SCOPES:
            raise ValueError(
                f"invalidation_scope must be one of {list(INVALIDATION_SCOPES)}"
            )

        self._store = store if store is not None else MemoryStore()
        self._resolver = PermissionResolver(self._store)
        self._cache: Optional[PermissionCache] = None
        if cache_ttl is not None and cache_ttl > 0:
            self._cache = PermissionCache(cache_ttl, cache_max_entries, clock)
        self.invalidation_scope = invalidation_scope

        self._stats_lock = threading.Lock()
        self._checks = 0
        self._denials = 0
        self._created_at = datetime.now(timezone.utc)

        logger.info(
            "RBAC service initialized with caching %s",
            f"enabled (ttl={cache_ttl}s)" if self._cache is not None else "disabled",
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, store: Optional[Store] = None
    ) -> "RBACService":
        """Build a service from validated Settings."""
        settings.validate_configuration()
        return cls(
            store,
            cache_ttl=settings.cache_ttl_seconds if settings.cache_enabled else None,
            cache_max_entries=settings.cache_max_entries,
            invalidation_scope=settings.invalidation_scope,
        )

    @property
    def store(self) -> Store:
        return self._store

    @property
    def cache(self) -> Optional[PermissionCache]:
        return self._cache

    # Resolution

    def _effective_permission_ids(
        self, workspace_id: str, role_id: str
    ) -> FrozenSet[str]:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")

        if self._cache is None:
            return self._resolver.effective_permission_ids(workspace_id, role_id)

        cached = self._cache.get(workspace_id, role_id)
        if cached is not None:
            return cached

        # An invalidation during resolution makes this result unsafe to cache.
        generation = self._cache.generation
        permission_ids = self._resolver.effective_permission_ids(
            workspace_id, role_id
        )
        self._cache.set(workspace_id, role_id, permission_ids, generation)
        return permission_ids

    def _record_check(self, allowed: bool) -> bool:
        with self._stats_lock:
            self._checks += 1
            if not allowed:
                self._denials += 1
        return allowed

    # Queries

    def has_permission(
        self, workspace_id: str, role_id: str, permission_id: str
    ) -> bool:
        """
        Check whether a role holds a permission, directly or by inheritance.

        Raises:
            InvalidArgumentError: If any identifier is empty.
            RoleNotFoundError: If the role does not exist.
        """
        require(permission_id, "permission id")
        effective = self._effective_permission_ids(workspace_id, role_id)
        return self._record_check(permission_id in effective)

    def has_any_permission(
        self, workspace_id: str, role_id: str, *permission_ids: str
    ) -> bool:
        """
        Check whether a role holds at least one of the given permissions.

        Raises:
            InvalidArgumentError: If an identifier is empty or no permission is given.
            RoleNotFoundError: If the role does not exist.
        """
        required = _require_permission_ids(permission_ids)
        effective = self._effective_permission_ids(workspace_id, role_id)
        return self._record_check(any(p in effective for p in required))

    def has_all_permissions(
        self, workspace_id: str, role_id: str, *permission_ids: str
    ) -> bool:
        """
        Check whether a role holds every one of the given permissions.

        Raises:
            InvalidArgumentError: If an identifier is empty or no permission is given.
            RoleNotFoundError: If the role does not exist.
        """
        required = _require_permission_ids(permission_ids)
        effective = self._effective_permission_ids(workspace_id, role_id)
        return self._record_check(effective.issuperset(required))

    def get_effective_permissions(
        self, workspace_id: str, role_id: str
    ) -> List[Permission]:
        """
        Return the full Permission records a role holds, sorted by ID.

        Raises:
            InvalidArgumentError: If workspace_id or role_id is empty.
            NotFoundError: If the role, or one of its resolved permissions,
                no longer exists.
        """
        permission_ids = self._effective_permission_ids(workspace_id, role_id)
        return [
            self._store.get_permission(workspace_id, permission_id)
            for permission_id in sorted(permission_ids)
        ]

    def authorize(
        self,
        workspace_id: str,
        role_id: str,
        *permission_ids: str,
        require_all: bool = True,
    ) -> AccessDecision:
        """
        Evaluate a request and return a decision instead of raising.

        Any RBACError (unknown role, empty identifier, ...) produces a denial
        carrying the error code; a failed lookup is never a grant.

        Args:
            workspace_id: Workspace of the role.
            role_id: Role the caller acts as.
            *permission_ids: Permissions the request needs.
            require_all: Require every permission (True) or any one (False).

        Returns:
            AccessDecision describing the outcome.
        """
        required = list(permission_ids)
        try:
            _require_permission_ids(permission_ids)
            effective = self._effective_permission_ids(workspace_id, role_id)
        except RBACError as e:
            self._record_check(False)
            logger.debug(
                f"Authorization for role '{role_id}' denied: {e}",
                extra={
                    "workspace_id": workspace_id,
                    "role_id": role_id,
                    "error": e.code,
                },
            )
            return AccessDecision(
                allowed=False,
                reason=str(e),
                workspace_id=workspace_id,
                role_id=role_id,
                required=required,
                missing=required,
                error=e.code,
            )

        missing = [p for p in required if p not in effective]
        if require_all:
            allowed = not missing
        else:
            allowed = len(missing) < len(required)

        if allowed:
            reason = f"Role '{role_id}' holds the required permissions"
        else:
            reason = f"Role '{role_id}' is missing: {', '.join(missing)}"

        self._record_check(allowed)
        logger.debug(
            f"Authorization for role '{role_id}' -> {'ALLOWED' if allowed else 'DENIED'}",
            extra={
                "workspace_id": workspace_id,
                "role_id": role_id,
                "required": required,
            },
        )
        return AccessDecision(
            allowed=allowed,
            reason=reason,
            workspace_id=workspace_id,
            role_id=role_id,
            required=required,
            missing=missing,
        )

    # Cache invalidation

    def invalidate_cache(self, workspace_id: str, role_id: str) -> int:
        """Drop the cached set of one role. Returns the number of entries removed."""
        if self._cache is None:
            return 0
        return self._cache.invalidate(workspace_id, role_id)

    def invalidate_workspace_cache(self, workspace_id: str) -> int:
        """Drop every cached set of a workspace."""
        if self._cache is None:
            return 0
        return self._cache.invalidate_workspace(workspace_id)

    def invalidate_all_cache(self) -> int:
        """Drop every cached set."""
        if self._cache is None:
            return 0
        return self._cache.clear()

    def _invalidate_role_change(self, workspace_id: str, role_id: str) -> None:
        if self.invalidation_scope == "all":
            self.invalidate_all_cache()
        elif self.invalidation_scope == "workspace":
            self.invalidate_workspace_cache(workspace_id)
        else:
            self.invalidate_cache(workspace_id, role_id)

    # Mutation pass-throughs

    def create_role(self, role: Role) -> None:
        self._store.create_role(role)
        self._invalidate_role_change(role.workspace_id, role.id)

    def update_role(self, role: Role) -> None:
        """Replace a role and invalidate its cached permissions."""
        self._store.update_role(role)
        self._invalidate_role_change(role.workspace_id, role.id)

    def delete_role(self, workspace_id: str, role_id: str) -> None:
        # Former children lose an inheritance edge.
        self._store.delete_role(workspace_id, role_id)
        self.invalidate_workspace_cache(workspace_id)

    def add_role_parent(self, workspace_id: str, role_id: str, parent_id: str) -> None:
        self._store.add_role_parent(workspace_id, role_id, parent_id)
        self._invalidate_role_change(workspace_id, role_id)

    def remove_role_parent(
        self, workspace_id: str, role_id: str, parent_id: str
    ) -> None:
        self._store.remove_role_parent(workspace_id, role_id, parent_id)
        self._invalidate_role_change(workspace_id, role_id)

    def add_permission_to_role(
        self, workspace_id: str, role_id: str, permission_id: str
    ) -> None:
        """Attach a direct permission and invalidate the role's cached permissions."""
        self._store.add_permission_to_role(workspace_id, role_id, permission_id)
        self._invalidate_role_change(workspace_id, role_id)

    def remove_permission_from_role(
        self, workspace_id: str, role_id: str, permission_id: str
    ) -> None:
        self._store.remove_permission_from_role(workspace_id, role_id, permission_id)
        self._invalidate_role_change(workspace_id, role_id)

    def create_permission(self, permission: Permission) -> None:
        self._store.create_permission(permission)

    def update_permission(self, permission: Permission) -> None:
        self._store.update_permission(permission)
        self.invalidate_workspace_cache(permission.workspace_id)

    def delete_permission(self, workspace_id: str, permission_id: str) -> None:
        self._store.delete_permission(workspace_id, permission_id)
        self.invalidate_workspace_cache(workspace_id)

    def add_permission_parent(
        self, workspace_id: str, permission_id: str, parent_id: str
    ) -> None:
        self._store.add_permission_parent(workspace_id, permission_id, parent_id)
        self.invalidate_workspace_cache(workspace_id)

    def remove_permission_parent(
        self, workspace_id: str, permission_id: str, parent_id: str
    ) -> None:
        self._store.remove_permission_parent(workspace_id, permission_id, parent_id)
        self.invalidate_workspace_cache(workspace_id)

    # Statistics and Monitoring

    def get_stats(self) -> Dict[str, Any]:
        """
        Get service statistics for monitoring.

        Returns:
            Dictionary with check counters and cache metrics.
        """
        with self._stats_lock:
            checks = self._checks
            denials = self._denials

        return {
            "permission_checks": checks,
            "denials": denials,
            "workspaces": self._store.workspaces(),
            "invalidation_scope": self.invalidation_scope,
            "cache": (
                self._cache.get_stats()
                if self._cache is not None
                else {"enabled": False}
            ),
            "uptime_seconds": (
                datetime.now(timezone.utc) - self._created_at
            ).total_seconds(),
        }

    def reset_stats(self) -> None:
        """Reset check counters while preserving store and cache contents."""
        with self._stats_lock:
            self._checks = 0
            self._denials = 0
            self._created_at = datetime.now(timezone.utc)
        logger.info("Service statistics reset")

    def health_check(self, workspace_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Re-verify the structural invariants of one or every workspace.

        Checks that every parent and direct-permission reference resolves and
        that neither inheritance graph contains a cycle. A healthy store never
        reports issues; a store written to by another process might.

        Returns:
            Dictionary with ``status`` ("healthy" or "unhealthy"), the list of
            ``issues`` found and the workspaces checked.
        """
        workspace_ids = [workspace_id] if workspace_id else self._store.workspaces()
        issues: List[str] = []

        for ws in workspace_ids:
            roles = {r.id: r for r in self._store.get_roles(ws)}
            permissions = {p.id: p for p in self._store.get_permissions(ws)}

            for role in roles.values():
                for parent_id in role.parent_ids:
                    if parent_id not in roles:
                        issues.append(
                            f"[{ws}] role '{role.id}' has unknown parent '{parent_id}'"
                        )
                for permission_id in role.direct_permission_ids:
                    if permission_id not in permissions:
                        issues.append(
                            f"[{ws}] role '{role.id}' has unknown permission "
                            f"'{permission_id}'"
                        )
                if find_cycle(roles, role.id, role.parent_ids) is not None:
                    issues.append(f"[{ws}] role '{role.id}' inherits from itself")

            for permission in permissions.values():
                for parent_id in permission.parent_ids:
                    if parent_id not in permissions:
                        issues.append(
                            f"[{ws}] permission '{permission.id}' has unknown "
                            f"parent '{parent_id}'"
                        )
                offending = find_cycle(
                    permissions, permission.id, permission.parent_ids
                )
                if offending is not None:
                    issues.append(
                        f"[{ws}] permission '{permission.id}' inherits from itself"
                    )

        return {
            "status": "healthy" if not issues else "unhealthy",
            "issues": issues,
            "workspaces": workspace_ids,
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }
