import os
import sys

import pytest

# Ensure project root is on sys.path so tests can import the package under test
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from workspace_rbac import (  # noqa: E402
    MemoryStore,
    Permission,
    RBACService,
    Role,
    reset_rbac_service,
)

WORKSPACE = "acme"


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def populate(store, workspace_id: str = WORKSPACE) -> None:
    """Install read/write/admin and guest/member/owner in a workspace."""
    store.create_permission(Permission(workspace_id, "read", "Read"))
    store.create_permission(Permission(workspace_id, "write", "Write", ["read"]))
    store.create_permission(Permission(workspace_id, "admin", "Admin", ["write"]))
    store.create_role(
        Role(workspace_id, "guest", "Guest", direct_permission_ids=["read"])
    )
    store.create_role(
        Role(
            workspace_id,
            "member",
            "Member",
            parent_ids=["guest"],
            direct_permission_ids=["write"],
        )
    )
    store.create_role(
        Role(
            workspace_id,
            "owner",
            "Owner",
            parent_ids=["member"],
            direct_permission_ids=["admin"],
        )
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """Fresh in-memory store with the sample hierarchy"""
    store = MemoryStore()
    populate(store)
    return store


@pytest.fixture
def service(store):
    """Uncached service over the sample store"""
    return RBACService(store)


@pytest.fixture
def cached_service(store, clock):
    """Service caching for 60 fake seconds"""
    return RBACService(store, cache_ttl=60, clock=clock)


@pytest.fixture(autouse=True)
def clean_global_service():
    reset_rbac_service()
    yield
    reset_rbac_service()
