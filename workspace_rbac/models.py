"""
RBAC Models - Data structures for workspace-scoped Role-Based Access Control.

This module defines the records held by the entity store:
- Permission: a named right that may inherit from other permissions
- Role: a named bundle of direct permissions that may inherit from other roles
- EntityKey: the (workspace, id) composite primary key of both
- AccessDecision: the result of a deny-on-error authorization check
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from .errors import InvalidArgumentError, require


class EntityKey(NamedTuple):
    """Composite primary key of a role or permission."""

    workspace_id: str
    id: str


def _as_id_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        raise InvalidArgumentError(f"{field_name} must be a list of IDs, not a string")
    return list(value)


@dataclass
class Permission:
    """
    Represents a permission inside one workspace.

    Permissions form their own inheritance graph: holding a permission
    implies holding every permission listed in ``parent_ids``, transitively.

    Attributes:
        workspace_id: Tenant the permission belongs to.
        id: Identifier unique within the workspace (e.g. "post:write").
        name: Human-readable label (e.g. "Write posts").
        parent_ids: Ordered IDs of permissions this permission inherits from.

    Example:
        >>> read = Permission("acme", "post:read", "Read posts")
        >>> write = Permission("acme", "post:write", "Write posts", ["post:read"])
    """

    workspace_id: str
    id: str
    name: str
    parent_ids: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.parent_ids = _as_id_list(self.parent_ids, "parent_ids")

    @property
    def key(self) -> EntityKey:
        return EntityKey(self.workspace_id, self.id)

    def validate(self) -> None:
        """
        Check the required identifiers are present.

        Raises:
            InvalidArgumentError: If workspace_id, id or name is empty.
        """
        require(self.workspace_id, "workspace_id")
        require(self.id, "permission id")
        require(self.name, "permission name")

    def copy(self) -> "Permission":
        return Permission(
            self.workspace_id, self.id, self.name, list(self.parent_ids)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspace_id": self.workspace_id,
            "id": self.id,
            "name": self.name,
            "parent_ids": list(self.parent_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Permission":
        return cls(
            workspace_id=data.get("workspace_id", ""),
            id=data.get("id", ""),
            name=data.get("name", ""),
            parent_ids=data.get("parent_ids") or [],
        )


@dataclass
class Role:
    """
    Represents a role inside one workspace.

    A role holds the permissions in ``direct_permission_ids`` and, through
    ``parent_ids``, every permission its ancestor roles hold.

    Attributes:
        workspace_id: Tenant the role belongs to.
        id: Identifier unique within the workspace (e.g. "member").
        name: Human-readable label (e.g. "Member").
        parent_ids: Ordered IDs of roles this role inherits from.
        direct_permission_ids: IDs of permissions attached to this role itself.

    Example:
        >>> member = Role(
        ...     "acme", "member", "Member",
        ...     parent_ids=["guest"],
        ...     direct_permission_ids=["post:write"],
        ... )
    """

    workspace_id: str
    id: str
    name: str
    parent_ids: List[str] = field(default_factory=list)
    direct_permission_ids: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.parent_ids = _as_id_list(self.parent_ids, "parent_ids")
        self.direct_permission_ids = _as_id_list(
            self.direct_permission_ids, "direct_permission_ids"
        )

    @property
    def key(self) -> EntityKey:
        return EntityKey(self.workspace_id, self.id)

    def validate(self) -> None:
        """
        Check the required identifiers are present.

        Raises:
            InvalidArgumentError: If workspace_id, id or name is empty.
        """
        require(self.workspace_id, "workspace_id")
        require(self.id, "role id")
        require(self.name, "role name")

    def copy(self) -> "Role":
        return Role(
            self.workspace_id,
            self.id,
            self.name,
            list(self.parent_ids),
            list(self.direct_permission_ids),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspace_id": self.workspace_id,
            "id": self.id,
            "name": self.name,
            "parent_ids": list(self.parent_ids),
            "direct_permission_ids": list(self.direct_permission_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Role":
        return cls(
            workspace_id=data.get("workspace_id", ""),
            id=data.get("id", ""),
            name=data.get("name", ""),
            parent_ids=data.get("parent_ids") or [],
            direct_permission_ids=data.get("direct_permission_ids") or [],
        )


@dataclass
class AccessDecision:
    """
    Result of an authorization check that never raises for lookup errors.

    Attributes:
        allowed: Whether access is granted.
        reason: Human-readable explanation of the decision.
        workspace_id: Workspace the check ran in.
        role_id: Role that was checked.
        required: Permission IDs the caller asked for.
        missing: Required permission IDs the role does not hold.
        error: Error code when the check failed, None otherwise.
        evaluated_at: ISO-8601 UTC timestamp of the evaluation.

    Example:
        >>> decision = service.authorize("acme", "guest", "post:write")
        >>> decision.allowed, decision.missing
        (False, ['post:write'])
    """

    allowed: bool
    reason: str
    workspace_id: str = ""
    role_id: str = ""
    required: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    error: Optional[str] = None
    evaluated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "workspace_id": self.workspace_id,
            "role_id": self.role_id,
            "required": list(self.required),
            "missing": list(self.missing),
            "error": self.error,
            "evaluated_at": self.evaluated_at,
        }
