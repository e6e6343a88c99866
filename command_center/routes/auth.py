from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from command_center.auth import require_principal
from command_center.schemas import LoginPayload, RegisterPayload
from command_center.services import accounts

router = APIRouter()


@router.post("/v1/auth/register", status_code=201)
async def register(payload: RegisterPayload):
    return await accounts.register(payload.username, payload.password)


@router.post("/v1/auth/login")
async def login(payload: LoginPayload):
    return await accounts.login(payload.username, payload.password)


@router.get("/v1/auth/me")
async def me(principal_id: str = Depends(require_principal)):
    return await accounts.get_profile(principal_id)


@router.get("/v1/users/search")
async def search_users(
    q: str | None = Query(default=None),
    principal_id: str = Depends(require_principal),
):
    return await accounts.search_users(q)
