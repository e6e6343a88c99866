from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from command_center.db_init import init_db
from command_center.errors import DomainError
from command_center.routes import auth, backup, daily, resources, task_types, workspaces
from command_center.settings import get_settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.getenv("COMMAND_CENTER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    app = FastAPI(title="Career Command Center API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(daily.router)
    app.include_router(resources.router)
    app.include_router(task_types.router)
    app.include_router(workspaces.router)
    app.include_router(backup.router)

    @app.on_event("startup")
    async def _startup():
        await init_db()

    @app.exception_handler(DomainError)
    async def _domain_error_handler(request: Request, exc: DomainError):
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"kind": "validation", "detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logging.getLogger("command_center").exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"kind": "internal", "detail": "Internal error"})

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app


app = create_app()
