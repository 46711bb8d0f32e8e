"""
Tests for the in-memory store
"""

import threading

import pytest

from conftest import WORKSPACE, populate
from workspace_rbac import (
    AlreadyExistsError,
    CyclicInheritanceError,
    EntityKey,
    InvalidArgumentError,
    MemoryStore,
    NotFoundError,
    Permission,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    Role,
    RoleAlreadyExistsError,
    RoleNotFoundError,
)


class TestModels:
    """Test record data models"""

    def test_entity_key(self):
        """Test composite keys keep workspace and id apart"""
        role = Role("a:b", "c", "C")
        other = Role("a", "b:c", "C")
        assert role.key == EntityKey("a:b", "c")
        assert role.key != other.key

    def test_id_lists_reject_strings(self):
        """Test a bare string is not accepted as an ID list"""
        with pytest.raises(InvalidArgumentError):
            Permission(WORKSPACE, "write", "Write", "read")

    def test_none_id_lists(self):
        role = Role(WORKSPACE, "r", "R", None, None)
        assert role.parent_ids == []
        assert role.direct_permission_ids == []

    def test_dict_conversion(self):
        """Test to_dict/from_dict preserve every field"""
        role = Role(WORKSPACE, "member", "Member", ["guest"], ["write"])
        assert Role.from_dict(role.to_dict()) == role

        permission = Permission(WORKSPACE, "write", "Write", ["read"])
        assert Permission.from_dict(permission.to_dict()) == permission

    def test_error_hierarchy(self):
        """Test error classes expose codes and map onto builtin categories"""
        error = RoleNotFoundError(WORKSPACE, "ghost")
        assert isinstance(error, NotFoundError)
        assert isinstance(error, LookupError)
        assert error.code == "not_found"
        assert "ghost" in str(error)

        assert isinstance(InvalidArgumentError("x"), ValueError)
        assert PermissionAlreadyExistsError(WORKSPACE, "p").code == "already_exists"


class TestRoleCRUD:
    """Test role storage operations"""

    def setup_method(self):
        self.store = MemoryStore()
        populate(self.store)

    def test_create_and_get(self):
        role = self.store.get_role(WORKSPACE, "member")
        assert role.name == "Member"
        assert role.parent_ids == ["guest"]
        assert role.direct_permission_ids == ["write"]

    def test_get_returns_copy(self):
        """Test mutating a returned record does not change the store"""
        role = self.store.get_role(WORKSPACE, "guest")
        role.direct_permission_ids.append("admin")
        assert self.store.get_role(WORKSPACE, "guest").direct_permission_ids == [
            "read"
        ]

    def test_create_stores_copy(self):
        role = Role(WORKSPACE, "viewer", "Viewer", direct_permission_ids=["read"])
        self.store.create_role(role)
        role.parent_ids.append("owner")
        assert self.store.get_role(WORKSPACE, "viewer").parent_ids == []

    def test_create_duplicate(self):
        with pytest.raises(RoleAlreadyExistsError):
            self.store.create_role(Role(WORKSPACE, "guest", "Another guest"))

        assert isinstance(RoleAlreadyExistsError(WORKSPACE, "x"), AlreadyExistsError)

    @pytest.mark.parametrize(
        "role",
        [
            Role("", "r", "R"),
            Role(WORKSPACE, "", "R"),
            Role(WORKSPACE, "r", ""),
        ],
    )
    def test_create_requires_identifiers(self, role):
        with pytest.raises(InvalidArgumentError):
            self.store.create_role(role)

    def test_create_with_unknown_parent(self):
        with pytest.raises(RoleNotFoundError):
            self.store.create_role(Role(WORKSPACE, "r", "R", parent_ids=["ghost"]))
        with pytest.raises(RoleNotFoundError):
            self.store.get_role(WORKSPACE, "r")

    def test_create_with_unknown_permission(self):
        with pytest.raises(PermissionNotFoundError):
            self.store.create_role(
                Role(WORKSPACE, "r", "R", direct_permission_ids=["ghost"])
            )

    def test_get_missing(self):
        with pytest.raises(RoleNotFoundError):
            self.store.get_role(WORKSPACE, "ghost")

    def test_get_requires_identifiers(self):
        with pytest.raises(InvalidArgumentError):
            self.store.get_role("", "guest")
        with pytest.raises(InvalidArgumentError):
            self.store.get_role(WORKSPACE, "")

    def test_get_roles(self):
        ids = sorted(r.id for r in self.store.get_roles(WORKSPACE))
        assert ids == ["guest", "member", "owner"]
        assert self.store.get_roles("empty") == []

    def test_update_role(self):
        self.store.update_role(
            Role(WORKSPACE, "guest", "Visitor", direct_permission_ids=["write"])
        )
        role = self.store.get_role(WORKSPACE, "guest")
        assert role.name == "Visitor"
        assert role.direct_permission_ids == ["write"]

    def test_update_missing_role(self):
        with pytest.raises(RoleNotFoundError):
            self.store.update_role(Role(WORKSPACE, "ghost", "Ghost"))

    def test_update_rejects_cycle(self):
        """Test an update that closes a cycle leaves the role unchanged"""
        with pytest.raises(CyclicInheritanceError):
            self.store.update_role(Role(WORKSPACE, "guest", "Guest", ["owner"]))
        assert self.store.get_role(WORKSPACE, "guest").parent_ids == []

    def test_delete_role_detaches_children(self):
        self.store.delete_role(WORKSPACE, "guest")

        with pytest.raises(RoleNotFoundError):
            self.store.get_role(WORKSPACE, "guest")
        assert self.store.get_role(WORKSPACE, "member").parent_ids == []
        assert self.store.get_role(WORKSPACE, "owner").parent_ids == ["member"]

    def test_delete_missing_role(self):
        with pytest.raises(RoleNotFoundError):
            self.store.delete_role(WORKSPACE, "ghost")


class TestRoleInheritance:
    """Test role parent edges and cycle prevention"""

    def setup_method(self):
        self.store = MemoryStore()
        populate(self.store)

    def test_add_parent(self):
        self.store.create_role(Role(WORKSPACE, "auditor", "Auditor"))
        self.store.add_role_parent(WORKSPACE, "auditor", "guest")
        assert [r.id for r in self.store.get_role_parents(WORKSPACE, "auditor")] == [
            "guest"
        ]

    def test_add_parent_is_idempotent(self):
        self.store.add_role_parent(WORKSPACE, "member", "guest")
        assert self.store.get_role(WORKSPACE, "member").parent_ids == ["guest"]

    def test_add_parent_missing_endpoints(self):
        with pytest.raises(RoleNotFoundError):
            self.store.add_role_parent(WORKSPACE, "ghost", "guest")
        with pytest.raises(RoleNotFoundError):
            self.store.add_role_parent(WORKSPACE, "guest", "ghost")

    def test_self_parent_is_cycle(self):
        with pytest.raises(CyclicInheritanceError):
            self.store.add_role_parent(WORKSPACE, "guest", "guest")

    def test_transitive_cycle_leaves_graph_unchanged(self):
        """Test guest -> owner is rejected because owner inherits guest"""
        with pytest.raises(CyclicInheritanceError) as exc_info:
            self.store.add_role_parent(WORKSPACE, "guest", "owner")

        assert exc_info.value.parent_id == "owner"
        assert self.store.get_role(WORKSPACE, "guest").parent_ids == []

    def test_diamond_is_allowed(self):
        """Test two paths to the same ancestor are not a cycle"""
        self.store.create_role(Role(WORKSPACE, "editor", "Editor", ["guest"]))
        self.store.create_role(
            Role(WORKSPACE, "lead", "Lead", parent_ids=["member", "editor"])
        )
        parents = self.store.get_role_parents(WORKSPACE, "lead")
        assert [r.id for r in parents] == ["member", "editor"]

    def test_remove_parent(self):
        self.store.remove_role_parent(WORKSPACE, "member", "guest")
        assert self.store.get_role(WORKSPACE, "member").parent_ids == []

    def test_remove_missing_edge_is_noop(self):
        self.store.remove_role_parent(WORKSPACE, "guest", "owner")
        assert self.store.get_role(WORKSPACE, "guest").parent_ids == []

        with pytest.raises(RoleNotFoundError):
            self.store.remove_role_parent(WORKSPACE, "ghost", "guest")

    def test_children(self):
        self.store.create_role(Role(WORKSPACE, "editor", "Editor", ["guest"]))
        children = self.store.get_role_children(WORKSPACE, "guest")
        assert sorted(r.id for r in children) == ["editor", "member"]
        assert self.store.get_role_children(WORKSPACE, "owner") == []


class TestRolePermissions:
    """Test direct permission attachments"""

    def setup_method(self):
        self.store = MemoryStore()
        populate(self.store)

    def test_add_permission(self):
        self.store.add_permission_to_role(WORKSPACE, "guest", "write")
        permissions = self.store.get_role_permissions(WORKSPACE, "guest")
        assert [p.id for p in permissions] == ["read", "write"]

    def test_add_permission_is_idempotent(self):
        self.store.add_permission_to_role(WORKSPACE, "guest", "read")
        assert self.store.get_role(WORKSPACE, "guest").direct_permission_ids == [
            "read"
        ]

    def test_add_unknown_permission(self):
        with pytest.raises(PermissionNotFoundError):
            self.store.add_permission_to_role(WORKSPACE, "guest", "ghost")
        with pytest.raises(RoleNotFoundError):
            self.store.add_permission_to_role(WORKSPACE, "ghost", "read")

    def test_remove_permission(self):
        self.store.remove_permission_from_role(WORKSPACE, "guest", "read")
        assert self.store.get_role_permissions(WORKSPACE, "guest") == []

    def test_remove_unattached_permission_is_noop(self):
        self.store.remove_permission_from_role(WORKSPACE, "guest", "admin")
        assert self.store.get_role(WORKSPACE, "guest").direct_permission_ids == [
            "read"
        ]

    def test_role_permissions_are_direct_only(self):
        permissions = self.store.get_role_permissions(WORKSPACE, "owner")
        assert [p.id for p in permissions] == ["admin"]


class TestPermissionStore:
    """Test permission storage and the permission graph"""

    def setup_method(self):
        self.store = MemoryStore()
        populate(self.store)

    def test_create_duplicate(self):
        with pytest.raises(PermissionAlreadyExistsError):
            self.store.create_permission(Permission(WORKSPACE, "read", "Read"))

    def test_create_with_unknown_parent(self):
        with pytest.raises(PermissionNotFoundError):
            self.store.create_permission(Permission(WORKSPACE, "p", "P", ["ghost"]))

    def test_create_requires_name(self):
        with pytest.raises(InvalidArgumentError):
            self.store.create_permission(Permission(WORKSPACE, "p", ""))

    def test_get_permissions(self):
        ids = sorted(p.id for p in self.store.get_permissions(WORKSPACE))
        assert ids == ["admin", "read", "write"]

    def test_update_permission(self):
        self.store.update_permission(Permission(WORKSPACE, "admin", "Superuser"))
        permission = self.store.get_permission(WORKSPACE, "admin")
        assert permission.name == "Superuser"
        assert permission.parent_ids == []

    def test_update_rejects_cycle(self):
        with pytest.raises(CyclicInheritanceError):
            self.store.update_permission(
                Permission(WORKSPACE, "read", "Read", ["admin"])
            )
        assert self.store.get_permission(WORKSPACE, "read").parent_ids == []

    def test_add_parent_cycle(self):
        with pytest.raises(CyclicInheritanceError):
            self.store.add_permission_parent(WORKSPACE, "read", "admin")
        with pytest.raises(CyclicInheritanceError):
            self.store.add_permission_parent(WORKSPACE, "read", "read")
        assert self.store.get_permission(WORKSPACE, "read").parent_ids == []

    def test_add_and_remove_parent(self):
        self.store.create_permission(Permission(WORKSPACE, "audit", "Audit"))
        self.store.add_permission_parent(WORKSPACE, "admin", "audit")
        self.store.add_permission_parent(WORKSPACE, "admin", "audit")
        parents = self.store.get_permission_parents(WORKSPACE, "admin")
        assert [p.id for p in parents] == ["write", "audit"]

        self.store.remove_permission_parent(WORKSPACE, "admin", "audit")
        self.store.remove_permission_parent(WORKSPACE, "admin", "audit")
        assert self.store.get_permission(WORKSPACE, "admin").parent_ids == ["write"]

    def test_children(self):
        children = self.store.get_permission_children(WORKSPACE, "read")
        assert [p.id for p in children] == ["write"]
        with pytest.raises(PermissionNotFoundError):
            self.store.get_permission_children(WORKSPACE, "ghost")

    def test_delete_permission_cascades(self):
        """Test deleting a permission strips it from parents and roles"""
        self.store.delete_permission(WORKSPACE, "write")

        with pytest.raises(PermissionNotFoundError):
            self.store.get_permission(WORKSPACE, "write")
        assert self.store.get_permission(WORKSPACE, "admin").parent_ids == []
        assert self.store.get_role(WORKSPACE, "member").direct_permission_ids == []

    def test_delete_missing_permission(self):
        with pytest.raises(PermissionNotFoundError):
            self.store.delete_permission(WORKSPACE, "ghost")


class TestWorkspaceIsolation:
    """Test workspaces never see each other's records"""

    def setup_method(self):
        self.store = MemoryStore()
        populate(self.store, "acme")
        populate(self.store, "globex")

    def test_same_ids_in_two_workspaces(self):
        self.store.update_role(Role("globex", "guest", "Globex guest"))
        assert self.store.get_role("acme", "guest").name == "Guest"
        assert self.store.get_role("globex", "guest").name == "Globex guest"

    def test_references_are_workspace_local(self):
        self.store.create_permission(Permission("globex", "billing", "Billing"))
        with pytest.raises(PermissionNotFoundError):
            self.store.add_permission_to_role("acme", "guest", "billing")

    def test_delete_cascade_stays_in_workspace(self):
        self.store.delete_permission("acme", "write")
        assert self.store.get_role("globex", "member").direct_permission_ids == [
            "write"
        ]
        assert self.store.get_permission("globex", "admin").parent_ids == ["write"]

    def test_workspaces(self):
        assert self.store.workspaces() == ["acme", "globex"]

    def test_clear_workspace(self):
        assert self.store.clear_workspace("acme") == 6
        assert self.store.workspaces() == ["globex"]
        assert self.store.get_roles("acme") == []
        assert self.store.clear_workspace("acme") == 0

    def test_empty_workspace_is_pruned(self):
        store = MemoryStore()
        store.create_permission(Permission("tmp", "p", "P"))
        store.delete_permission("tmp", "p")
        assert store.workspaces() == []


class TestConcurrency:
    """Test concurrent writers keep the graph acyclic"""

    def test_concurrent_opposite_edges(self):
        """Test only one of a <- b and b <- a can win"""
        for _ in range(20):
            store = MemoryStore()
            store.create_role(Role(WORKSPACE, "a", "A"))
            store.create_role(Role(WORKSPACE, "b", "B"))
            errors = []

            def link(child, parent):
                try:
                    store.add_role_parent(WORKSPACE, child, parent)
                except CyclicInheritanceError as e:
                    errors.append(e)

            threads = [
                threading.Thread(target=link, args=("a", "b")),
                threading.Thread(target=link, args=("b", "a")),
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert len(errors) == 1
            edges = store.get_role(WORKSPACE, "a").parent_ids + store.get_role(
                WORKSPACE, "b"
            ).parent_ids
            assert len(edges) == 1
