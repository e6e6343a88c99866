from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Response

from command_center.auth import require_principal
from command_center.resource_kinds import (
    BACKEND_TOPIC,
    BOARD_TASK,
    DSA,
    JOB,
    MONTHLY,
    SECTION,
    SYSTEM_DESIGN,
    TASK_TYPE,
    WEEKLY,
    ResourceKind,
)
from command_center.schemas import SectionOrderPayload
from command_center.services import resources

router = APIRouter()

RESOURCE_PATHS = {
    "/v1/weekly": WEEKLY,
    "/v1/monthly": MONTHLY,
    "/v1/backend-topic": BACKEND_TOPIC,
    "/v1/system-design": SYSTEM_DESIGN,
    "/v1/dsa": DSA,
    "/v1/tasks": BOARD_TASK,
    "/v1/sections": SECTION,
    "/v1/jobs": JOB,
    "/v1/task-types": TASK_TYPE,
}


@router.post("/v1/sections/reorder")
async def reorder_sections(
    payload: SectionOrderPayload,
    workspace_id: str | None = Query(default=None),
    principal_id: str = Depends(require_principal),
):
    return await resources.reorder_resources(SECTION, principal_id, payload.order, workspace_id)


def _register(path: str, kind: ResourceKind) -> None:
    async def create_item(
        payload: dict = Body(...),
        workspace_id: str | None = Query(default=None),
        principal_id: str = Depends(require_principal),
    ):
        return await resources.create_resource(kind, principal_id, payload, workspace_id)

    async def list_items(
        page: int = Query(default=1, ge=1),
        limit: int | None = Query(default=None, ge=1),
        workspace_id: str | None = Query(default=None),
        principal_id: str = Depends(require_principal),
    ):
        return await resources.list_resources(kind, principal_id, workspace_id, page=page, limit=limit)

    async def get_item(
        item_id: str,
        workspace_id: str | None = Query(default=None),
        principal_id: str = Depends(require_principal),
    ):
        return await resources.get_resource(kind, principal_id, item_id, workspace_id)

    async def update_item(
        item_id: str,
        payload: dict = Body(...),
        workspace_id: str | None = Query(default=None),
        principal_id: str = Depends(require_principal),
    ):
        return await resources.update_resource(kind, principal_id, item_id, payload, workspace_id)

    async def delete_item(
        item_id: str,
        workspace_id: str | None = Query(default=None),
        principal_id: str = Depends(require_principal),
    ):
        await resources.delete_resource(kind, principal_id, item_id, workspace_id)
        return Response(status_code=204)

    router.add_api_route(path, create_item, methods=["POST"], status_code=201, name=f"create_{kind.name}")
    router.add_api_route(path, list_items, methods=["GET"], name=f"list_{kind.name}")
    router.add_api_route(f"{path}/{{item_id}}", get_item, methods=["GET"], name=f"get_{kind.name}")
    router.add_api_route(f"{path}/{{item_id}}", update_item, methods=["PUT"], name=f"update_{kind.name}")
    router.add_api_route(
        f"{path}/{{item_id}}", delete_item, methods=["DELETE"], status_code=204, name=f"delete_{kind.name}"
    )


for _path, _kind in RESOURCE_PATHS.items():
    _register(_path, _kind)
