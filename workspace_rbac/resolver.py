"""
Permission resolution - computes effective permission sets from the store.

A role's effective permissions are the union of:
1. the direct permissions of the role and of every role it inherits from,
   transitively through the role graph, and
2. every permission-graph ancestor of each of those permissions.

The resolver only reads from the store; it never caches or mutates.
"""

import logging
from typing import Callable, FrozenSet, Iterable, List, Set

from .errors import require
from .store import Store

logger = logging.getLogger(__name__)


def _ancestors(start: str, parents_of: Callable[[str], Iterable[str]]) -> Set[str]:
    """Walk parent edges from ``start`` and return every ancestor (excluding start)."""
    visited = {start}
    stack = list(parents_of(start))
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        stack.extend(parents_of(current))
    visited.discard(start)
    return visited


class PermissionResolver:
    """
    Resolves role and permission hierarchies into effective permission sets.

    Example:
        >>> resolver = PermissionResolver(store)
        >>> sorted(resolver.effective_permission_ids("acme", "owner"))
        ['admin', 'read', 'write']
    """

    def __init__(self, store: Store):
        self.store = store

    def inherited_role_ids(self, workspace_id: str, role_id: str) -> Set[str]:
        """
        Return every role ``role_id`` inherits from, transitively.

        Raises:
            InvalidArgumentError: If workspace_id or role_id is empty.
            RoleNotFoundError: If the role, or a role on its parent chain, is missing.
        """
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        return _ancestors(
            role_id, lambda r: self.store.get_role(workspace_id, r).parent_ids
        )

    def implied_permission_ids(
        self, workspace_id: str, permission_id: str
    ) -> Set[str]:
        """
        Return every permission ``permission_id`` inherits from, transitively.

        Raises:
            InvalidArgumentError: If workspace_id or permission_id is empty.
            PermissionNotFoundError: If a permission on the chain is missing.
        """
        require(workspace_id, "workspace_id")
        require(permission_id, "permission id")
        return _ancestors(
            permission_id,
            lambda p: self.store.get_permission(workspace_id, p).parent_ids,
        )

    def effective_permission_ids(
        self, workspace_id: str, role_id: str
    ) -> FrozenSet[str]:
        """
        Compute the full set of permission IDs a role holds.

        Args:
            workspace_id: Workspace of the role.
            role_id: Role to resolve.

        Returns:
            Frozen set of permission IDs, without duplicates.

        Raises:
            InvalidArgumentError: If workspace_id or role_id is empty.
            NotFoundError: If the role does not exist.
        """
        require(workspace_id, "workspace_id")
        require(role_id, "role id")

        direct: Set[str] = set()
        visited_roles: Set[str] = set()
        stack: List[str] = [role_id]
        while stack:
            current = stack.pop()
            if current in visited_roles:
                continue
            visited_roles.add(current)
            role = self.store.get_role(workspace_id, current)
            direct.update(role.direct_permission_ids)
            stack.extend(role.parent_ids)

        effective = set(direct)
        # Independent visited set per top-level permission.
        for permission_id in direct:
            effective |= self.implied_permission_ids(workspace_id, permission_id)

        logger.debug(
            f"Resolved {len(effective)} effective permissions for role '{role_id}'",
            extra={"workspace_id": workspace_id, "role_id": role_id},
        )
        return frozenset(effective)
