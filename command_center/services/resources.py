"""Scope-aware CRUD shared by every generically managed record kind.

Each operation takes the principal and the optional workspace id explicitly,
resolves the scope through the access evaluator and filters by ``scope_key``
so personal and workspace records never cross over.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from command_center import repositories
from command_center.errors import ConflictError, InvalidInputError, NotFoundError
from command_center.repositories import new_id, utcnow_iso
from command_center.resource_kinds import ResourceKind, TASK_TYPE
from command_center.scope import Scope
from command_center.services import access
from command_center.settings import get_settings

logger = logging.getLogger(__name__)


def validate_payload(schema: type[BaseModel], payload: dict, exclude_unset: bool = False) -> dict:
    try:
        model = schema.model_validate(payload or {})
    except PydanticValidationError as exc:
        raise InvalidInputError(
            "Invalid payload",
            errors=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from None
    return model.model_dump(mode="json", exclude_unset=exclude_unset)


def _conflict(kind: ResourceKind, data: dict) -> ConflictError:
    label = kind.name.replace("_", " ").capitalize()
    return ConflictError(f"{label} '{kind.unique_value(data)}' already exists")


async def _scope(principal_id: str, workspace_id: str | None, write: bool) -> Scope:
    scope = access.resolve_scope(principal_id, workspace_id)
    await access.check_scope(principal_id, scope, write=write)
    return scope


async def create_resource(
    kind: ResourceKind,
    principal_id: str,
    payload: dict,
    workspace_id: str | None = None,
) -> dict:
    scope = await _scope(principal_id, workspace_id, write=True)
    data = kind.apply_derived(validate_payload(kind.create_schema, payload))
    now = utcnow_iso()
    record = {
        "id": new_id(),
        "scope_key": scope.key,
        **scope.columns(),
        "data": data,
        "created_at": now,
        "updated_at": now,
    }
    try:
        await repositories.insert_resource(kind, record)
    except IntegrityError:
        raise _conflict(kind, data) from None
    logger.debug("Created %s %s in %s", kind.name, record["id"], scope.key)
    return await get_resource(kind, principal_id, record["id"], workspace_id)


async def list_resources(
    kind: ResourceKind,
    principal_id: str,
    workspace_id: str | None = None,
    page: int = 1,
    limit: int | None = None,
) -> dict:
    scope = await _scope(principal_id, workspace_id, write=False)
    limit = get_settings().clamp_page_limit(limit)
    page = max(1, int(page or 1))
    items, total = await repositories.list_resources(kind, scope.key, (page - 1) * limit, limit)
    return {"data": items, "total": total}


async def get_resource(
    kind: ResourceKind,
    principal_id: str,
    resource_id: str,
    workspace_id: str | None = None,
) -> dict:
    scope = await _scope(principal_id, workspace_id, write=False)
    record = await repositories.get_resource(kind, scope.key, resource_id)
    if not record:
        raise NotFoundError("Not found")
    return record


def _document(record: dict) -> dict:
    return {
        key: value
        for key, value in record.items()
        if key not in {"id", "user_id", "workspace_id", "created_at", "updated_at"}
    }


async def update_resource(
    kind: ResourceKind,
    principal_id: str,
    resource_id: str,
    patch: dict,
    workspace_id: str | None = None,
) -> dict:
    scope = await _scope(principal_id, workspace_id, write=True)
    existing = await repositories.get_resource(kind, scope.key, resource_id)
    if not existing:
        raise NotFoundError("Not found")
    changes = validate_payload(kind.patch_schema, patch, exclude_unset=True)
    # Re-validate the merged document so required fields cannot be nulled out.
    data = kind.apply_derived(validate_payload(kind.create_schema, {**_document(existing), **changes}))
    try:
        updated = await repositories.update_resource(kind, scope.key, resource_id, data)
    except IntegrityError:
        raise _conflict(kind, data) from None
    if not updated:
        raise NotFoundError("Not found")
    return await get_resource(kind, principal_id, resource_id, workspace_id)


async def delete_resource(
    kind: ResourceKind,
    principal_id: str,
    resource_id: str,
    workspace_id: str | None = None,
) -> None:
    scope = await _scope(principal_id, workspace_id, write=True)
    await repositories.delete_resource(kind, scope.key, resource_id)


async def reorder_resources(
    kind: ResourceKind,
    principal_id: str,
    ordered_ids: list[str],
    workspace_id: str | None = None,
) -> dict:
    """Assign ``order = index`` to the given records; unknown ids are skipped."""
    scope = await _scope(principal_id, workspace_id, write=True)
    for index, resource_id in enumerate(ordered_ids):
        existing = await repositories.get_resource(kind, scope.key, resource_id)
        if not existing:
            continue
        data = _document(existing)
        data["order"] = index
        await repositories.update_resource(kind, scope.key, resource_id, data)
    items, total = await repositories.list_resources(kind, scope.key, 0, get_settings().max_page_limit)
    return {"data": items, "total": total}


async def add_custom_field(
    principal_id: str,
    type_id: str,
    field: dict,
    workspace_id: str | None = None,
) -> dict:
    task_type = await get_resource(TASK_TYPE, principal_id, type_id, workspace_id)
    fields = list(task_type.get("custom_fields") or [])
    if any(item.get("name") == field.get("name") for item in fields):
        raise ConflictError(f"Custom field '{field.get('name')}' already exists")
    fields.append(field)
    return await update_resource(TASK_TYPE, principal_id, type_id, {"custom_fields": fields}, workspace_id)


async def remove_custom_field(
    principal_id: str,
    type_id: str,
    field_name: str,
    workspace_id: str | None = None,
) -> dict:
    task_type = await get_resource(TASK_TYPE, principal_id, type_id, workspace_id)
    fields = [item for item in task_type.get("custom_fields") or [] if item.get("name") != field_name]
    return await update_resource(TASK_TYPE, principal_id, type_id, {"custom_fields": fields}, workspace_id)
