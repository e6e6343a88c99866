"""Administrative export/import.

These are the only flows that read and write records without a principal or a
scope, and they are only reachable through the admin-token dependency.
Accounts are never exported or imported.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.exc import IntegrityError

from command_center import repositories
from command_center.errors import ConflictError, InvalidInputError
from command_center.repositories import DAILY_TABLE, WORKSPACES_TABLE, new_id
from command_center.resource_kinds import RESOURCE_KINDS, ResourceKind
from command_center.scope import scope_from_record
from command_center.services.daily_service import compute_score, normalize_entry_date
from command_center.services.resources import validate_payload
from command_center.services.workspace_service import SHAREABLE_ROLES

logger = logging.getLogger(__name__)

_RECORD_META = {"id", "user_id", "workspace_id", "created_at", "updated_at", "scope_key"}


async def export_all() -> dict:
    kinds = list(RESOURCE_KINDS.values())
    tables = [WORKSPACES_TABLE, DAILY_TABLE] + [kind.table for kind in kinds]
    dumps = await asyncio.gather(*(repositories.dump_table(table) for table in tables))
    snapshot = {}
    for key, table, rows in zip(["workspaces", "dailies"] + [kind.collection for kind in kinds], tables, dumps):
        items = [repositories.normalize_dumped_row(table, row) for row in rows]
        if table == DAILY_TABLE:
            for item in items:
                item.pop("scope_key", None)
        snapshot[key] = items
    return snapshot


def _scoped(record: dict, label: str, index: int) -> dict:
    try:
        scope = scope_from_record(record)
    except ValueError:
        raise InvalidInputError(f"{label}[{index}] must have exactly one of user_id or workspace_id") from None
    return {"scope_key": scope.key, **scope.columns()}


def _daily_record(record: dict, index: int) -> dict:
    entry = dict(record)
    entry.update(_scoped(record, "dailies", index))
    entry["id"] = entry.get("id") or new_id()
    entry["date"] = normalize_entry_date(entry.get("date")).date().isoformat()
    entry["tasks"] = [
        {**task, "id": task.get("id") or new_id(), "completed": bool(task.get("completed"))}
        for task in entry.get("tasks") or []
    ]
    entry["version"] = 1
    entry["score"] = compute_score(entry)
    return entry


def _resource_record(kind: ResourceKind, record: dict, index: int) -> dict:
    document = {key: value for key, value in record.items() if key not in _RECORD_META}
    try:
        data = kind.apply_derived(validate_payload(kind.create_schema, document))
    except InvalidInputError as exc:
        raise InvalidInputError(f"{kind.collection}[{index}]: {exc.message}", errors=exc.errors) from None
    return {
        "id": record.get("id") or new_id(),
        **_scoped(record, kind.collection, index),
        "data": data,
        "created_at": record.get("created_at"),
        "updated_at": record.get("updated_at"),
    }


def _workspace_record(record: dict, index: int) -> dict:
    if not record.get("name") or not record.get("owner_id"):
        raise InvalidInputError(f"workspaces[{index}] requires name and owner_id")
    members = record.get("members") or []
    if not isinstance(members, list):
        raise InvalidInputError(f"workspaces[{index}].members must be a list")
    for position, member in enumerate(members):
        if (
            not isinstance(member, dict)
            or not isinstance(member.get("user_id"), str)
            or not member["user_id"]
            or member.get("role") not in SHAREABLE_ROLES
        ):
            raise InvalidInputError(
                f"workspaces[{index}].members[{position}] needs a user_id and a role of editor or viewer"
            )
    return {
        **record,
        "id": record.get("id") or new_id(),
        "members": [{"user_id": member["user_id"], "role": member["role"]} for member in members],
    }


async def import_all(payload: dict) -> dict:
    payload = payload or {}
    kinds = list(RESOURCE_KINDS.values())

    # Build every record before touching the store; the restore itself is one transaction.
    workspaces = [_workspace_record(item, index) for index, item in enumerate(payload.get("workspaces") or [])]
    dailies = [_daily_record(item, index) for index, item in enumerate(payload.get("dailies") or [])]
    resources = {
        kind.collection: [
            _resource_record(kind, item, index) for index, item in enumerate(payload.get(kind.collection) or [])
        ]
        for kind in kinds
    }

    clear_tables = []
    if payload.get("dont_clear") is not True:
        clear_tables = [WORKSPACES_TABLE, DAILY_TABLE] + [kind.table for kind in kinds]

    try:
        await repositories.restore_snapshot(
            clear_tables,
            workspaces,
            dailies,
            [(kind, record) for kind in kinds for record in resources[kind.collection]],
        )
    except IntegrityError as exc:
        logger.warning("Backup import rolled back on a uniqueness conflict: %s", exc)
        raise ConflictError("Imported records conflict with existing data") from None

    counts = {"workspaces": len(workspaces), "dailies": len(dailies)}
    counts.update({collection: len(items) for collection, items in resources.items()})
    logger.info("Imported backup: %s", counts)
    return {"ok": True, "imported": counts}
