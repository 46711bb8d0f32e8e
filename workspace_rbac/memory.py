"""
In-memory reference implementation of the RBAC store.

Records are nested per workspace (workspace_id -> entity_id -> record), so
the same entity ID can live in several workspaces without any key encoding.
Every call holds a single re-entrant lock for its whole duration, which makes
validate-then-write sequences atomic with respect to other callers.
"""

import logging
import threading
from typing import Dict, List

from .errors import (
    CyclicInheritanceError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
    require,
)
from .models import Permission, Role
from .store import Store, find_cycle

logger = logging.getLogger(__name__)


def _without(ids: List[str], removed: str) -> List[str]:
    return [i for i in ids if i != removed]


class MemoryStore(Store):
    """
    Thread-safe in-memory store for roles and permissions.

    Example:
        >>> store = MemoryStore()
        >>> store.create_permission(Permission("acme", "read", "Read"))
        >>> store.create_role(Role("acme", "guest", "Guest", direct_permission_ids=["read"]))
        >>> [p.id for p in store.get_role_permissions("acme", "guest")]
        ['read']
    """

    def __init__(self) -> None:
        self._roles: Dict[str, Dict[str, Role]] = {}
        self._permissions: Dict[str, Dict[str, Permission]] = {}
        self._lock = threading.RLock()

    # Internal helpers (callers hold the lock)

    def _workspace_roles(self, workspace_id: str) -> Dict[str, Role]:
        return self._roles.get(workspace_id, {})

    def _workspace_permissions(self, workspace_id: str) -> Dict[str, Permission]:
        return self._permissions.get(workspace_id, {})

    def _role(self, workspace_id: str, role_id: str) -> Role:
        role = self._workspace_roles(workspace_id).get(role_id)
        if role is None:
            raise RoleNotFoundError(workspace_id, role_id)
        return role

    def _permission(self, workspace_id: str, permission_id: str) -> Permission:
        permission = self._workspace_permissions(workspace_id).get(permission_id)
        if permission is None:
            raise PermissionNotFoundError(workspace_id, permission_id)
        return permission

    def _check_role_references(self, role: Role) -> None:
        roles = self._workspace_roles(role.workspace_id)
        for parent_id in role.parent_ids:
            if parent_id not in roles:
                raise RoleNotFoundError(role.workspace_id, parent_id)
        permissions = self._workspace_permissions(role.workspace_id)
        for permission_id in role.direct_permission_ids:
            if permission_id not in permissions:
                raise PermissionNotFoundError(role.workspace_id, permission_id)
        offending = find_cycle(roles, role.id, role.parent_ids)
        if offending is not None:
            raise CyclicInheritanceError(role.workspace_id, role.id, offending)

    def _check_permission_references(self, permission: Permission) -> None:
        permissions = self._workspace_permissions(permission.workspace_id)
        for parent_id in permission.parent_ids:
            if parent_id not in permissions:
                raise PermissionNotFoundError(permission.workspace_id, parent_id)
        offending = find_cycle(permissions, permission.id, permission.parent_ids)
        if offending is not None:
            raise CyclicInheritanceError(
                permission.workspace_id, permission.id, offending
            )

    def _prune(self, workspace_id: str) -> None:
        if not self._roles.get(workspace_id, True):
            del self._roles[workspace_id]
        if not self._permissions.get(workspace_id, True):
            del self._permissions[workspace_id]

    # Roles

    def create_role(self, role: Role) -> None:
        role.validate()
        with self._lock:
            if role.id in self._workspace_roles(role.workspace_id):
                raise RoleAlreadyExistsError(role.workspace_id, role.id)
            self._check_role_references(role)
            self._roles.setdefault(role.workspace_id, {})[role.id] = role.copy()

        logger.info(
            f"Created role '{role.id}' in workspace '{role.workspace_id}'",
            extra={"workspace_id": role.workspace_id, "role_id": role.id},
        )

    def get_role(self, workspace_id: str, role_id: str) -> Role:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        with self._lock:
            return self._role(workspace_id, role_id).copy()

    def get_roles(self, workspace_id: str) -> List[Role]:
        require(workspace_id, "workspace_id")
        with self._lock:
            return [r.copy() for r in self._workspace_roles(workspace_id).values()]

    def update_role(self, role: Role) -> None:
        role.validate()
        with self._lock:
            self._role(role.workspace_id, role.id)
            self._check_role_references(role)
            self._roles[role.workspace_id][role.id] = role.copy()

        logger.info(
            f"Updated role '{role.id}' in workspace '{role.workspace_id}'",
            extra={"workspace_id": role.workspace_id, "role_id": role.id},
        )

    def delete_role(self, workspace_id: str, role_id: str) -> None:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        with self._lock:
            self._role(workspace_id, role_id)
            roles = self._roles[workspace_id]
            del roles[role_id]
            detached = 0
            for other in roles.values():
                if role_id in other.parent_ids:
                    other.parent_ids = _without(other.parent_ids, role_id)
                    detached += 1
            self._prune(workspace_id)

        logger.info(
            f"Deleted role '{role_id}' from workspace '{workspace_id}'",
            extra={
                "workspace_id": workspace_id,
                "role_id": role_id,
                "detached_children": detached,
            },
        )

    def add_role_parent(self, workspace_id: str, role_id: str, parent_id: str) -> None:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        require(parent_id, "parent role id")
        with self._lock:
            role = self._role(workspace_id, role_id)
            self._role(workspace_id, parent_id)
            if parent_id in role.parent_ids:
                return
            roles = self._roles[workspace_id]
            if find_cycle(roles, role_id, [parent_id]) is not None:
                raise CyclicInheritanceError(workspace_id, role_id, parent_id)
            role.parent_ids.append(parent_id)

        logger.info(
            f"Role '{role_id}' now inherits from '{parent_id}'",
            extra={
                "workspace_id": workspace_id,
                "role_id": role_id,
                "parent_id": parent_id,
            },
        )

    def remove_role_parent(
        self, workspace_id: str, role_id: str, parent_id: str
    ) -> None:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        require(parent_id, "parent role id")
        with self._lock:
            role = self._role(workspace_id, role_id)
            if parent_id not in role.parent_ids:
                return
            role.parent_ids = _without(role.parent_ids, parent_id)

        logger.info(
            f"Role '{role_id}' no longer inherits from '{parent_id}'",
            extra={
                "workspace_id": workspace_id,
                "role_id": role_id,
                "parent_id": parent_id,
            },
        )

    def get_role_parents(self, workspace_id: str, role_id: str) -> List[Role]:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        with self._lock:
            role = self._role(workspace_id, role_id)
            roles = self._roles[workspace_id]
            return [roles[p].copy() for p in role.parent_ids if p in roles]

    def get_role_children(self, workspace_id: str, role_id: str) -> List[Role]:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        with self._lock:
            self._role(workspace_id, role_id)
            return [
                r.copy()
                for r in self._roles[workspace_id].values()
                if role_id in r.parent_ids
            ]

    def add_permission_to_role(
        self, workspace_id: str, role_id: str, permission_id: str
    ) -> None:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        require(permission_id, "permission id")
        with self._lock:
            role = self._role(workspace_id, role_id)
            self._permission(workspace_id, permission_id)
            if permission_id in role.direct_permission_ids:
                return
            role.direct_permission_ids.append(permission_id)

        logger.info(
            f"Attached permission '{permission_id}' to role '{role_id}'",
            extra={
                "workspace_id": workspace_id,
                "role_id": role_id,
                "permission_id": permission_id,
            },
        )

    def remove_permission_from_role(
        self, workspace_id: str, role_id: str, permission_id: str
    ) -> None:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        require(permission_id, "permission id")
        with self._lock:
            role = self._role(workspace_id, role_id)
            if permission_id not in role.direct_permission_ids:
                return
            role.direct_permission_ids = _without(
                role.direct_permission_ids, permission_id
            )

        logger.info(
            f"Detached permission '{permission_id}' from role '{role_id}'",
            extra={
                "workspace_id": workspace_id,
                "role_id": role_id,
                "permission_id": permission_id,
            },
        )

    def get_role_permissions(
        self, workspace_id: str, role_id: str
    ) -> List[Permission]:
        require(workspace_id, "workspace_id")
        require(role_id, "role id")
        with self._lock:
            role = self._role(workspace_id, role_id)
            permissions = self._workspace_permissions(workspace_id)
            return [
                permissions[p].copy()
                for p in role.direct_permission_ids
                if p in permissions
            ]

    # Permissions

    def create_permission(self, permission: Permission) -> None:
        permission.validate()
        with self._lock:
            if permission.id in self._workspace_permissions(permission.workspace_id):
                raise PermissionAlreadyExistsError(
                    permission.workspace_id, permission.id
                )
            self._check_permission_references(permission)
            self._permissions.setdefault(permission.workspace_id, {})[
                permission.id
            ] = permission.copy()

        logger.info(
            f"Created permission '{permission.id}' in workspace '{permission.workspace_id}'",
            extra={
                "workspace_id": permission.workspace_id,
                "permission_id": permission.id,
            },
        )

    def get_permission(self, workspace_id: str, permission_id: str) -> Permission:
        require(workspace_id, "workspace_id")
        require(permission_id, "permission id")
        with self._lock:
            return self._permission(workspace_id, permission_id).copy()

    def get_permissions(self, workspace_id: str) -> List[Permission]:
        require(workspace_id, "workspace_id")
        with self._lock:
            return [
                p.copy() for p in self._workspace_permissions(workspace_id).values()
            ]

    def update_permission(self, permission: Permission) -> None:
        permission.validate()
        with self._lock:
            self._permission(permission.workspace_id, permission.id)
            self._check_permission_references(permission)
            self._permissions[permission.workspace_id][permission.id] = (
                permission.copy()
            )

        logger.info(
            f"Updated permission '{permission.id}' in workspace '{permission.workspace_id}'",
            extra={
                "workspace_id": permission.workspace_id,
                "permission_id": permission.id,
            },
        )

    def delete_permission(self, workspace_id: str, permission_id: str) -> None:
        require(workspace_id, "workspace_id")
        require(permission_id, "permission id")
        with self._lock:
            self._permission(workspace_id, permission_id)
            permissions = self._permissions[workspace_id]
            del permissions[permission_id]
            for other in permissions.values():
                if permission_id in other.parent_ids:
                    other.parent_ids = _without(other.parent_ids, permission_id)
            for role in self._workspace_roles(workspace_id).values():
                if permission_id in role.direct_permission_ids:
                    role.direct_permission_ids = _without(
                        role.direct_permission_ids, permission_id
                    )
            self._prune(workspace_id)

        logger.info(
            f"Deleted permission '{permission_id}' from workspace '{workspace_id}'",
            extra={"workspace_id": workspace_id, "permission_id": permission_id},
        )

    def add_permission_parent(
        self, workspace_id: str, permission_id: str, parent_id: str
    ) -> None:
        require(workspace_id, "workspace_id")
        require(permission_id, "permission id")
        require(parent_id, "parent permission id")
        with self._lock:
            permission = self._permission(workspace_id, permission_id)
            self._permission(workspace_id, parent_id)
            if parent_id in permission.parent_ids:
                return
            if (
                find_cycle(self._permissions[workspace_id], permission_id, [parent_id])
                is not None
            ):
                raise CyclicInheritanceError(workspace_id, permission_id, parent_id)
            permission.parent_ids.append(parent_id)

        logger.info(
            f"Permission '{permission_id}' now inherits from '{parent_id}'",
            extra={
                "workspace_id": workspace_id,
                "permission_id": permission_id,
                "parent_id": parent_id,
            },
        )

    def remove_permission_parent(
        self, workspace_id: str, permission_id: str, parent_id: str
    ) -> None:
        require(workspace_id, "workspace_id")
        require(permission_id, "permission id")
        require(parent_id, "parent permission id")
        with self._lock:
            permission = self._permission(workspace_id, permission_id)
            if parent_id not in permission.parent_ids:
                return
            permission.parent_ids = _without(permission.parent_ids, parent_id)

        logger.info(
            f"Permission '{permission_id}' no longer inherits from '{parent_id}'",
            extra={
                "workspace_id": workspace_id,
                "permission_id": permission_id,
                "parent_id": parent_id,
            },
        )

    def get_permission_parents(
        self, workspace_id: str, permission_id: str
    ) -> List[Permission]:
        require(workspace_id, "workspace_id")
        require(permission_id, "permission id")
        with self._lock:
            permission = self._permission(workspace_id, permission_id)
            permissions = self._permissions[workspace_id]
            return [
                permissions[p].copy() for p in permission.parent_ids if p in permissions
            ]

    def get_permission_children(
        self, workspace_id: str, permission_id: str
    ) -> List[Permission]:
        require(workspace_id, "workspace_id")
        require(permission_id, "permission id")
        with self._lock:
            self._permission(workspace_id, permission_id)
            return [
                p.copy()
                for p in self._permissions[workspace_id].values()
                if permission_id in p.parent_ids
            ]

    # Workspaces

    def workspaces(self) -> List[str]:
        with self._lock:
            return sorted(set(self._roles) | set(self._permissions))

    def clear_workspace(self, workspace_id: str) -> int:
        require(workspace_id, "workspace_id")
        with self._lock:
            removed = len(self._roles.pop(workspace_id, {}))
            removed += len(self._permissions.pop(workspace_id, {}))

        logger.info(
            f"Cleared {removed} records from workspace '{workspace_id}'",
            extra={"workspace_id": workspace_id, "removed": removed},
        )
        return removed
