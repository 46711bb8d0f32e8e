"""
Storage contract for roles and permissions.

Any backing implementation (in-memory, relational, document) must raise the
errors documented on each method exactly, because the resolver and the cache
invalidation protocol rely on them.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Union

from .models import Permission, Role

Record = Union[Role, Permission]


def find_cycle(
    records: Dict[str, Record], entity_id: str, parent_ids: Iterable[str]
) -> Optional[str]:
    """
    Return the first candidate parent that would make ``entity_id`` its own ancestor.

    Each candidate is walked depth-first along existing parent edges with its
    own visited set; reaching ``entity_id`` means the edge closes a cycle.

    Args:
        records: One workspace's records of a single graph (roles or permissions).
        entity_id: The entity receiving the parents.
        parent_ids: Candidate parent IDs.

    Returns:
        The offending parent ID, or None if the parent set is acyclic.
    """
    for candidate in parent_ids:
        visited = set()
        stack = [candidate]
        while stack:
            current = stack.pop()
            if current == entity_id:
                return candidate
            if current in visited:
                continue
            visited.add(current)
            record = records.get(current)
            if record is not None:
                stack.extend(record.parent_ids)
    return None


class RoleStore(ABC):
    @abstractmethod
    def create_role(self, role: Role) -> None:
        """Insert a new role.

        Raises InvalidArgumentError, RoleAlreadyExistsError, RoleNotFoundError
        (unknown parent), PermissionNotFoundError (unknown direct permission)
        or CyclicInheritanceError.
        """

    @abstractmethod
    def get_role(self, workspace_id: str, role_id: str) -> Role:
        """Return a copy of the role or raise RoleNotFoundError."""

    @abstractmethod
    def get_roles(self, workspace_id: str) -> List[Role]:
        """Return every role of the workspace, in no particular order."""

    @abstractmethod
    def update_role(self, role: Role) -> None:
        """Replace an existing role wholesale, re-validating references and cycles."""

    @abstractmethod
    def delete_role(self, workspace_id: str, role_id: str) -> None:
        """Delete a role and strip it from every other role's parent list."""

    @abstractmethod
    def add_role_parent(self, workspace_id: str, role_id: str, parent_id: str) -> None:
        """Add a role-inheritance edge. No-op if the edge already exists."""

    @abstractmethod
    def remove_role_parent(
        self, workspace_id: str, role_id: str, parent_id: str
    ) -> None:
        """Remove a role-inheritance edge. No-op if the edge does not exist."""

    @abstractmethod
    def get_role_parents(self, workspace_id: str, role_id: str) -> List[Role]:
        """Direct parents of a role."""

    @abstractmethod
    def get_role_children(self, workspace_id: str, role_id: str) -> List[Role]:
        """Roles that list this role as a direct parent."""

    @abstractmethod
    def add_permission_to_role(
        self, workspace_id: str, role_id: str, permission_id: str
    ) -> None:
        """Attach a direct permission to a role. No-op if already attached."""

    @abstractmethod
    def remove_permission_from_role(
        self, workspace_id: str, role_id: str, permission_id: str
    ) -> None:
        """Detach a direct permission from a role. No-op if not attached."""

    @abstractmethod
    def get_role_permissions(
        self, workspace_id: str, role_id: str
    ) -> List[Permission]:
        """Permissions directly attached to a role (not inherited ones)."""


class PermissionStore(ABC):
    @abstractmethod
    def create_permission(self, permission: Permission) -> None:
        """Insert a new permission.

        Raises InvalidArgumentError, PermissionAlreadyExistsError,
        PermissionNotFoundError (unknown parent) or CyclicInheritanceError.
        """

    @abstractmethod
    def get_permission(self, workspace_id: str, permission_id: str) -> Permission:
        """Return a copy of the permission or raise PermissionNotFoundError."""

    @abstractmethod
    def get_permissions(self, workspace_id: str) -> List[Permission]:
        """Return every permission of the workspace, in no particular order."""

    @abstractmethod
    def update_permission(self, permission: Permission) -> None:
        """Replace an existing permission wholesale."""

    @abstractmethod
    def delete_permission(self, workspace_id: str, permission_id: str) -> None:
        """Delete a permission, stripping it from parent lists and role attachments."""

    @abstractmethod
    def add_permission_parent(
        self, workspace_id: str, permission_id: str, parent_id: str
    ) -> None:
        """Add a permission-inheritance edge. No-op if the edge already exists."""

    @abstractmethod
    def remove_permission_parent(
        self, workspace_id: str, permission_id: str, parent_id: str
    ) -> None:
        """Remove a permission-inheritance edge. No-op if the edge does not exist."""

    @abstractmethod
    def get_permission_parents(
        self, workspace_id: str, permission_id: str
    ) -> List[Permission]:
        """Direct parents of a permission."""

    @abstractmethod
    def get_permission_children(
        self, workspace_id: str, permission_id: str
    ) -> List[Permission]:
        """Permissions that list this permission as a direct parent."""


class Store(RoleStore, PermissionStore):
    """Combined role and permission storage contract."""

    @abstractmethod
    def workspaces(self) -> List[str]:
        """IDs of the workspaces that currently hold at least one entity."""

    @abstractmethod
    def clear_workspace(self, workspace_id: str) -> int:
        """Drop every role and permission of a workspace; return how many."""
