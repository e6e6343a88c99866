from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from command_center.auth import require_principal
from command_center.schemas import (
    DailyEntryUpdate,
    DailyEntryUpsert,
    DailyTaskCreate,
    DailyTaskPatch,
    TaskOrderPayload,
)
from command_center.services import access, daily_service

router = APIRouter()


def _entry_fields(payload) -> dict:
    fields = payload.model_dump(mode="json", exclude_unset=True)
    fields.pop("date", None)
    return fields


@router.post("/v1/daily")
async def upsert_daily(
    payload: DailyEntryUpsert,
    workspace_id: str | None = Query(default=None),
    principal_id: str = Depends(require_principal),
):
    scope = access.resolve_scope(principal_id, workspace_id)
    return await daily_service.upsert_for_date(principal_id, scope, payload.date, _entry_fields(payload))


@router.get("/v1/daily")
async def list_daily(
    date: str | None = Query(default=None),
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    workspace_id: str | None = Query(default=None),
    principal_id: str = Depends(require_principal),
):
    scope = access.resolve_scope(principal_id, workspace_id)
    return await daily_service.list_entries(
        principal_id,
        scope,
        day=date,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/v1/daily/{entry_id}")
async def get_daily(entry_id: str, principal_id: str = Depends(require_principal)):
    return await daily_service.get_entry(entry_id, principal_id)


@router.put("/v1/daily/{entry_id}")
async def update_daily(entry_id: str, payload: DailyEntryUpdate, principal_id: str = Depends(require_principal)):
    patch = _entry_fields(payload)
    if payload.date is not None:
        patch["date"] = payload.date
    return await daily_service.update_entry(entry_id, principal_id, patch)


@router.delete("/v1/daily/{entry_id}", status_code=204)
async def delete_daily(entry_id: str, principal_id: str = Depends(require_principal)):
    await daily_service.delete_entry(entry_id, principal_id)
    return Response(status_code=204)


@router.post("/v1/daily/{entry_id}/tasks")
async def add_task(entry_id: str, payload: DailyTaskCreate, principal_id: str = Depends(require_principal)):
    return await daily_service.add_task(
        entry_id,
        principal_id,
        payload.title,
        payload.type,
        custom_fields=payload.custom_fields,
        assignee=payload.assignee,
    )


# Declared before the /{task_id} routes so "reorder" is never taken for a task id.
@router.post("/v1/daily/{entry_id}/tasks/reorder")
async def reorder_tasks(entry_id: str, payload: TaskOrderPayload, principal_id: str = Depends(require_principal)):
    return await daily_service.reorder_tasks(entry_id, principal_id, payload.order)


@router.put("/v1/daily/{entry_id}/tasks/{task_id}")
async def update_task(
    entry_id: str,
    task_id: str,
    payload: DailyTaskPatch,
    principal_id: str = Depends(require_principal),
):
    return await daily_service.update_task(entry_id, task_id, principal_id, payload.model_dump(exclude_unset=True))


@router.delete("/v1/daily/{entry_id}/tasks/{task_id}")
async def delete_task(entry_id: str, task_id: str, principal_id: str = Depends(require_principal)):
    return await daily_service.delete_task(entry_id, task_id, principal_id)


@router.patch("/v1/daily/{entry_id}/tasks/{task_id}/toggle")
async def toggle_task(entry_id: str, task_id: str, principal_id: str = Depends(require_principal)):
    return await daily_service.toggle_task(entry_id, task_id, principal_id)


@router.post("/v1/daily/{entry_id}/tasks/{task_id}/copy-to-today")
async def copy_task_to_today(entry_id: str, task_id: str, principal_id: str = Depends(require_principal)):
    return await daily_service.copy_task_to_today(entry_id, task_id, principal_id)
