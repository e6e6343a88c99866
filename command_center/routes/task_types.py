from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from command_center.auth import require_principal
from command_center.schemas import CustomFieldDefinition, CustomFieldRemove
from command_center.services import resources

router = APIRouter()


@router.post("/v1/task-types/{type_id}/fields")
async def add_custom_field(
    type_id: str,
    payload: CustomFieldDefinition,
    workspace_id: str | None = Query(default=None),
    principal_id: str = Depends(require_principal),
):
    return await resources.add_custom_field(principal_id, type_id, payload.model_dump(), workspace_id)


@router.delete("/v1/task-types/{type_id}/fields")
async def remove_custom_field(
    type_id: str,
    payload: CustomFieldRemove,
    workspace_id: str | None = Query(default=None),
    principal_id: str = Depends(require_principal),
):
    return await resources.remove_custom_field(principal_id, type_id, payload.field_name, workspace_id)
