from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from command_center.auth import require_admin
from command_center.services import backup_service

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/v1/backup/export")
async def export_backup():
    return await backup_service.export_all()


@router.post("/v1/backup/import")
async def import_backup(payload: dict = Body(...)):
    return await backup_service.import_all(payload)
