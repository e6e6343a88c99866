from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from command_center.auth import require_principal
from command_center.schemas import SharePayload, WorkspaceCreate, WorkspacePatch
from command_center.services import workspace_service

router = APIRouter()


@router.post("/v1/workspaces", status_code=201)
async def create_workspace(payload: WorkspaceCreate, principal_id: str = Depends(require_principal)):
    return await workspace_service.create_workspace(principal_id, payload.name, payload.description)


@router.get("/v1/workspaces")
async def list_workspaces(principal_id: str = Depends(require_principal)):
    return await workspace_service.list_workspaces(principal_id)


@router.get("/v1/workspaces/{workspace_id}")
async def get_workspace(workspace_id: str, principal_id: str = Depends(require_principal)):
    return await workspace_service.get_workspace(principal_id, workspace_id)


@router.put("/v1/workspaces/{workspace_id}")
async def update_workspace(
    workspace_id: str,
    payload: WorkspacePatch,
    principal_id: str = Depends(require_principal),
):
    return await workspace_service.update_workspace(principal_id, workspace_id, payload.model_dump(exclude_unset=True))


@router.delete("/v1/workspaces/{workspace_id}", status_code=204)
async def delete_workspace(workspace_id: str, principal_id: str = Depends(require_principal)):
    await workspace_service.delete_workspace(principal_id, workspace_id)
    return Response(status_code=204)


@router.post("/v1/workspaces/{workspace_id}/share")
async def share_workspace(
    workspace_id: str,
    payload: SharePayload,
    principal_id: str = Depends(require_principal),
):
    return await workspace_service.share_workspace(principal_id, workspace_id, payload.user_id, payload.role)


@router.get("/v1/workspaces/{workspace_id}/members")
async def list_members(workspace_id: str, principal_id: str = Depends(require_principal)):
    return await workspace_service.list_members(principal_id, workspace_id)
