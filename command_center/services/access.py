"""Workspace-scoped authorization.

Every check is a pure read of workspace state. A principal without any
visibility into a workspace gets ``NotFoundError`` so callers cannot discover
which workspaces exist; ``ForbiddenError`` is reserved for principals who can
see the workspace but whose role is too low for the operation.
"""

from __future__ import annotations

from enum import Enum

from command_center import repositories
from command_center.errors import ForbiddenError, NotFoundError
from command_center.scope import Personal, Scope, Shared


class Role(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        return {Role.VIEWER: 1, Role.EDITOR: 2, Role.OWNER: 3}[self]

    @property
    def can_write(self) -> bool:
        return self.rank >= Role.EDITOR.rank


def resolve_scope(principal_id: str, workspace_id: str | None = None) -> Scope:
    if workspace_id:
        return Shared(workspace_id)
    return Personal(principal_id)


def role_in_workspace(workspace: dict, principal_id: str) -> Role | None:
    if workspace.get("owner_id") == principal_id:
        return Role.OWNER
    for member in workspace.get("members") or []:
        if member.get("user_id") == principal_id:
            try:
                return Role(member.get("role"))
            except ValueError:
                return None
    return None


async def authorize(principal_id: str, workspace_id: str) -> tuple[dict, Role]:
    workspace = await repositories.get_workspace(workspace_id)
    if not workspace:
        raise NotFoundError("Workspace not found")
    role = role_in_workspace(workspace, principal_id)
    if role is None:
        raise NotFoundError("Workspace not found")
    return workspace, role


async def require_role(principal_id: str, workspace_id: str, min_role: Role) -> tuple[dict, Role]:
    workspace, role = await authorize(principal_id, workspace_id)
    if role.rank < min_role.rank:
        if min_role is Role.OWNER:
            raise ForbiddenError("Only the workspace owner can do this")
        raise ForbiddenError("Insufficient permissions")
    return workspace, role


async def check_scope(principal_id: str, scope: Scope, write: bool = False) -> Role:
    """Gate used before touching any scoped record."""
    if isinstance(scope, Personal):
        if scope.account_id != principal_id:
            raise NotFoundError("Not found")
        return Role.OWNER
    _, role = await authorize(principal_id, scope.workspace_id)
    if write and not role.can_write:
        raise ForbiddenError("Insufficient permissions")
    return role
