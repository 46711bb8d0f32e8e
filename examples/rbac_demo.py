"""
Workspace RBAC Demonstration - Protecting a FastAPI app per workspace

This example wires workspace-rbac into a small blog API:

1. A middleware copies the caller's workspace and role from request headers
   onto ``request.state`` (a real deployment derives them from a verified
   token instead).
2. Two workspaces are seeded with the starter hierarchy:
   - permissions: read, write (implies read), admin (implies write)
   - roles: guest (read), member (inherits guest, write), owner (inherits
     member, admin)
3. Endpoints declare the permissions they need with ``require_permissions``.

## Usage Instructions

1. **Start the server:**
   ```bash
   uvicorn examples.rbac_demo:app --reload
   ```

2. **Try the endpoints:**
   ```bash
   curl localhost:8000/posts -H "X-Workspace-ID: acme" -H "X-Role-ID: guest"
   curl -X POST localhost:8000/posts -H "X-Workspace-ID: acme" -H "X-Role-ID: guest"
   curl -X DELETE localhost:8000/posts/1 -H "X-Workspace-ID: acme" -H "X-Role-ID: owner"
   ```

   Requests without both headers get 401; roles lacking a permission get 403.
"""

import logging
from typing import Dict, List, Tuple

from fastapi import Depends, FastAPI, Request
from pydantic import BaseModel

from workspace_rbac import RBACError, RBACService, Settings, seed_workspace
from workspace_rbac.decorators import get_current_subject, require_permissions
from workspace_rbac.setup import create_service

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ================== CONFIGURATION ==================

settings = Settings(cache_enabled=True, cache_ttl_seconds=60)

service: RBACService = create_service(settings)

for workspace in ("acme", "globex"):
    seed_workspace(service, workspace)

app = FastAPI(
    title="Workspace RBAC Demo API",
    description="Demonstration of workspace-scoped role-based access control",
    version="1.0.0",
)


@app.middleware("http")
async def workspace_context(request: Request, call_next):
    """Expose the caller's workspace and role to the RBAC dependencies."""
    workspace_id = request.headers.get(settings.workspace_header)
    role_id = request.headers.get(settings.role_header)
    if workspace_id and role_id:
        request.state.workspace_id = workspace_id
        request.state.role_id = role_id
    return await call_next(request)


# ================== DATA MODELS ==================


class BlogPost(BaseModel):
    """Blog post data model."""

    id: str
    title: str
    content: str = ""


POSTS: Dict[str, List[BlogPost]] = {
    "acme": [BlogPost(id="1", title="Hello from Acme")],
    "globex": [BlogPost(id="1", title="Hello from Globex")],
}

# ================== ENDPOINTS ==================


@app.get("/")
async def root():
    """Public welcome page."""
    return {"message": "Workspace RBAC demo", "docs": "/docs"}


@app.get("/posts", dependencies=[require_permissions("read", service=service)])
async def list_posts(subject: Tuple[str, str] = Depends(get_current_subject)):
    workspace_id, _ = subject
    return {"posts": [p.model_dump() for p in POSTS.get(workspace_id, [])]}


@app.post("/posts", dependencies=[require_permissions("write", service=service)])
async def create_post(
    post: BlogPost, subject: Tuple[str, str] = Depends(get_current_subject)
):
    workspace_id, role_id = subject
    POSTS.setdefault(workspace_id, []).append(post)
    logger.info(f"Post '{post.id}' created by role '{role_id}' in '{workspace_id}'")
    return post


@app.delete(
    "/posts/{post_id}", dependencies=[require_permissions("admin", service=service)]
)
async def delete_post(
    post_id: str, subject: Tuple[str, str] = Depends(get_current_subject)
):
    workspace_id, _ = subject
    posts = POSTS.get(workspace_id, [])
    POSTS[workspace_id] = [p for p in posts if p.id != post_id]
    return {"deleted": post_id}


@app.get("/me/permissions")
async def my_permissions(subject: Tuple[str, str] = Depends(get_current_subject)):
    """List the caller's effective permissions."""
    workspace_id, role_id = subject
    try:
        permissions = service.get_effective_permissions(workspace_id, role_id)
    except RBACError as e:
        return {"role": role_id, "permissions": [], "error": e.code}
    return {"role": role_id, "permissions": [p.to_dict() for p in permissions]}


@app.get(
    "/admin/rbac/stats",
    dependencies=[
        require_permissions("admin", "write", require_all=False, service=service)
    ],
)
async def rbac_stats():
    return service.get_stats()


@app.get("/health")
async def health():
    return service.health_check()
