from __future__ import annotations

import asyncio
import logging
import re

from command_center import repositories
from command_center.errors import InvalidInputError
from command_center.resource_kinds import RESOURCE_KINDS
from command_center.scope import Shared
from command_center.services import access
from command_center.services.access import Role

logger = logging.getLogger(__name__)

SHAREABLE_ROLES = {Role.EDITOR.value, Role.VIEWER.value}
REMOVE_ROLE = "remove"

_ACCOUNT_ID = re.compile(r"^[0-9a-f]{32}$")


async def create_workspace(principal_id: str, name: str, description: str | None = None) -> dict:
    workspace = await repositories.create_workspace(principal_id, name.strip(), description)
    logger.info("Workspace %s created by %s", workspace["id"], principal_id)
    return workspace


async def list_workspaces(principal_id: str) -> dict:
    items = await repositories.list_workspaces_for(principal_id)
    return {"data": [await _with_usernames(item) for item in items]}


async def _with_usernames(workspace: dict) -> dict:
    ids = [workspace["owner_id"]] + [member["user_id"] for member in workspace.get("members") or []]
    accounts = await repositories.list_accounts_by_ids(ids)
    payload = dict(workspace)
    payload["owner"] = accounts.get(workspace["owner_id"])
    payload["members"] = [
        {**member, "username": (accounts.get(member["user_id"]) or {}).get("username")}
        for member in workspace.get("members") or []
    ]
    return payload


async def get_workspace(principal_id: str, workspace_id: str) -> dict:
    workspace, role = await access.authorize(principal_id, workspace_id)
    return {**workspace, "role": role.value}


async def update_workspace(principal_id: str, workspace_id: str, patch: dict) -> dict:
    await access.require_role(principal_id, workspace_id, Role.EDITOR)
    clean = {key: patch[key] for key in ("name", "description") if key in patch}
    if clean.get("name") is not None:
        clean["name"] = clean["name"].strip()
    elif "name" in clean:
        clean.pop("name")
    return await repositories.update_workspace(workspace_id, clean)


async def delete_workspace(principal_id: str, workspace_id: str) -> None:
    """Owner-only. Scoped records are removed best-effort before the workspace row."""
    await access.require_role(principal_id, workspace_id, Role.OWNER)
    scope_key = Shared(workspace_id).key

    labels = ["daily_entries"] + [kind.collection for kind in RESOURCE_KINDS.values()]
    results = await asyncio.gather(
        repositories.delete_dailies_for_scope(scope_key),
        *(repositories.delete_resources_for_scope(kind, scope_key) for kind in RESOURCE_KINDS.values()),
        return_exceptions=True,
    )
    for label, result in zip(labels, results):
        if isinstance(result, Exception):
            logger.warning("Failed to delete %s of workspace %s: %s", label, workspace_id, result)

    await repositories.delete_workspace(workspace_id)
    logger.info("Workspace %s deleted by %s", workspace_id, principal_id)


async def share_workspace(principal_id: str, workspace_id: str, target_user_id: str, role: str) -> dict:
    workspace, _ = await access.require_role(principal_id, workspace_id, Role.OWNER)
    if not target_user_id or not _ACCOUNT_ID.match(target_user_id):
        raise InvalidInputError("Invalid userId")
    if target_user_id == workspace["owner_id"]:
        raise InvalidInputError("The owner is already part of the workspace")
    if role != REMOVE_ROLE and role not in SHAREABLE_ROLES:
        raise InvalidInputError("Role must be one of: editor, viewer, remove")
    if role != REMOVE_ROLE and not await repositories.get_account(target_user_id):
        raise InvalidInputError("Unknown userId")

    members = [dict(member) for member in workspace.get("members") or []]
    if role == REMOVE_ROLE:
        members = [member for member in members if member.get("user_id") != target_user_id]
    else:
        existing = next((member for member in members if member.get("user_id") == target_user_id), None)
        if existing:
            existing["role"] = role
        else:
            members.append({"user_id": target_user_id, "role": role})
    return await repositories.update_workspace(workspace_id, {"members": members})


async def list_members(principal_id: str, workspace_id: str) -> dict:
    workspace, _ = await access.authorize(principal_id, workspace_id)
    enriched = await _with_usernames(workspace)
    return {
        "owner": enriched["owner"],
        "members": [
            {"user": {"id": member["user_id"], "username": member.get("username")}, "role": member["role"]}
            for member in enriched["members"]
        ],
    }
