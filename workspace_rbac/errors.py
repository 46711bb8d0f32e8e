"""
RBAC errors - exception hierarchy for the authorization engine.

Every error carries a machine-readable ``code`` so callers (HTTP handlers,
RPC adapters) can map it to a response without string matching.
"""

from typing import Optional


class RBACError(Exception):
    """Base class for all RBAC engine errors."""

    code = "rbac_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class InvalidArgumentError(RBACError, ValueError):
    """A required identifier or permission list was empty."""

    code = "invalid_argument"


class NotFoundError(RBACError, LookupError):
    """A referenced role, permission or parent does not exist in the workspace."""

    code = "not_found"


class RoleNotFoundError(NotFoundError):
    def __init__(self, workspace_id: str, role_id: str):
        super().__init__(f"Role '{role_id}' not found in workspace '{workspace_id}'")
        self.workspace_id = workspace_id
        self.role_id = role_id


class PermissionNotFoundError(NotFoundError):
    def __init__(self, workspace_id: str, permission_id: str):
        super().__init__(
            f"Permission '{permission_id}' not found in workspace '{workspace_id}'"
        )
        self.workspace_id = workspace_id
        self.permission_id = permission_id


class AlreadyExistsError(RBACError):
    """An entity with the same (workspace, id) pair already exists."""

    code = "already_exists"


class RoleAlreadyExistsError(AlreadyExistsError):
    def __init__(self, workspace_id: str, role_id: str):
        super().__init__(
            f"Role '{role_id}' already exists in workspace '{workspace_id}'"
        )
        self.workspace_id = workspace_id
        self.role_id = role_id


class PermissionAlreadyExistsError(AlreadyExistsError):
    def __init__(self, workspace_id: str, permission_id: str):
        super().__init__(
            f"Permission '{permission_id}' already exists in workspace '{workspace_id}'"
        )
        self.workspace_id = workspace_id
        self.permission_id = permission_id


class CyclicInheritanceError(RBACError):
    """A proposed parent edge would make an entity its own ancestor."""

    code = "cyclic_inheritance"

    def __init__(self, workspace_id: str, entity_id: str, parent_id: str):
        super().__init__(
            f"Adding parent '{parent_id}' to '{entity_id}' in workspace "
            f"'{workspace_id}' would create an inheritance cycle"
        )
        self.workspace_id = workspace_id
        self.entity_id = entity_id
        self.parent_id = parent_id


class StoreFailureError(RBACError):
    """Generic backing-store failure. Never raised by the in-memory store."""

    code = "store_failure"


def require(value: Optional[str], name: str) -> str:
    """Return ``value`` or raise InvalidArgumentError if it is empty."""
    if not value:
        raise InvalidArgumentError(f"{name} cannot be empty")
    return value
