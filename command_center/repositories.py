from __future__ import annotations

import json
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import text as sql_text, bindparam
from sqlalchemy.exc import IntegrityError

from command_center.db import get_sessionmaker
from command_center.resource_kinds import ResourceKind

ACCOUNTS_TABLE = "accounts"
WORKSPACES_TABLE = "workspaces"
DAILY_TABLE = "daily_entries"

DAILY_COUNTER_COLUMNS = [
    "dsa_completed",
    "backend_learning",
    "system_design",
    "project_work",
]

DAILY_SELECT_COLUMNS = [
    "id",
    "scope_key",
    "user_id",
    "workspace_id",
    "date",
    "tasks_json",
    *DAILY_COUNTER_COLUMNS,
    "notes",
    "time_spent_hours",
    "energy_level",
    "score",
    "version",
    "created_at",
    "updated_at",
]

DAILY_WRITABLE_COLUMNS = [
    "date",
    "tasks_json",
    *DAILY_COUNTER_COLUMNS,
    "notes",
    "time_spent_hours",
    "energy_level",
    "score",
]

RESOURCE_SELECT_COLUMNS = "id, scope_key, user_id, workspace_id, unique_key, position, data_json, created_at, updated_at"


def new_id() -> str:
    return uuid4().hex


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _loads(raw, default):
    if raw is None or raw == "":
        return default
    if isinstance(raw, (list, dict)):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


def _dumps(value) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


# Accounts


async def create_account(username: str, password_hash: str) -> dict:
    record = {
        "id": new_id(),
        "username": username,
        "password_hash": password_hash,
        "created_at": utcnow_iso(),
    }
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {ACCOUNTS_TABLE} (id, username, password_hash, created_at)
                VALUES (:id, :username, :password_hash, :created_at)
                """
            ),
            record,
        )
        await session.commit()
    return record


async def get_account(account_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(f"SELECT id, username, password_hash, created_at FROM {ACCOUNTS_TABLE} WHERE id = :id"),
            {"id": account_id},
        )).mappings().fetchone()
    return dict(row) if row else None


async def get_account_by_username(username: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT id, username, password_hash, created_at FROM {ACCOUNTS_TABLE} WHERE username = :username"
            ),
            {"username": username},
        )).mappings().fetchone()
    return dict(row) if row else None


async def list_accounts_by_ids(account_ids: list[str]) -> dict[str, dict]:
    if not account_ids:
        return {}
    stmt = sql_text(
        f"SELECT id, username FROM {ACCOUNTS_TABLE} WHERE id IN :account_ids"
    ).bindparams(bindparam("account_ids", expanding=True))
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(stmt, {"account_ids": list(account_ids)})).mappings().all()
    return {row["id"]: dict(row) for row in rows}


async def search_accounts(query: str, limit: int = 10) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT id, username FROM {ACCOUNTS_TABLE}
                WHERE LOWER(username) LIKE :pattern
                ORDER BY username
                LIMIT :limit
                """
            ),
            {"pattern": f"%{query.lower()}%", "limit": limit},
        )).mappings().all()
    return [dict(row) for row in rows]


# Workspaces


def _normalize_workspace_row(row) -> dict:
    payload = dict(row)
    payload["members"] = _loads(payload.pop("members_json", None), [])
    return payload


async def create_workspace(owner_id: str, name: str, description: str | None) -> dict:
    now = utcnow_iso()
    record = {
        "id": new_id(),
        "name": name,
        "description": description,
        "owner_id": owner_id,
        "members_json": "[]",
        "created_at": now,
        "updated_at": now,
    }
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {WORKSPACES_TABLE} (id, name, description, owner_id, members_json, created_at, updated_at)
                VALUES (:id, :name, :description, :owner_id, :members_json, :created_at, :updated_at)
                """
            ),
            record,
        )
        await session.commit()
    return _normalize_workspace_row(record)


async def get_workspace(workspace_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"""
                SELECT id, name, description, owner_id, members_json, created_at, updated_at
                FROM {WORKSPACES_TABLE} WHERE id = :id
                """
            ),
            {"id": workspace_id},
        )).mappings().fetchone()
    return _normalize_workspace_row(row) if row else None


async def list_workspaces_for(account_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT id, name, description, owner_id, members_json, created_at, updated_at
                FROM {WORKSPACES_TABLE}
                WHERE owner_id = :account_id OR members_json LIKE :pattern
                ORDER BY updated_at DESC
                """
            ),
            {"account_id": account_id, "pattern": f"%{account_id}%"},
        )).mappings().all()
    items = [_normalize_workspace_row(row) for row in rows]
    # The LIKE prefilter is coarse; keep only real owner/member matches.
    return [
        item
        for item in items
        if item["owner_id"] == account_id
        or any(member.get("user_id") == account_id for member in item["members"])
    ]


async def update_workspace(workspace_id: str, patch: dict) -> dict | None:
    allowed = {"name", "description", "members"}
    updates = []
    params = {"id": workspace_id}
    for key, value in patch.items():
        if key not in allowed:
            continue
        if key == "members":
            updates.append("members_json = :members_json")
            params["members_json"] = _dumps(value)
        else:
            updates.append(f"{key} = :{key}")
            params[key] = value
    if not updates:
        return await get_workspace(workspace_id)
    updates.append("updated_at = :updated_at")
    params["updated_at"] = utcnow_iso()
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(f"UPDATE {WORKSPACES_TABLE} SET {', '.join(updates)} WHERE id = :id"),
            params,
        )
        await session.commit()
    return await get_workspace(workspace_id)


async def delete_workspace(workspace_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(f"DELETE FROM {WORKSPACES_TABLE} WHERE id = :id"),
            {"id": workspace_id},
        )
        await session.commit()


# Daily entries


def _normalize_daily_row(row) -> dict:
    if not row:
        return {}
    payload = dict(row)
    payload["tasks"] = _loads(payload.pop("tasks_json", None), [])
    for key in ("score", "version"):
        if payload.get(key) is not None:
            payload[key] = int(payload[key])
    return payload


def _daily_params(entry: dict) -> dict:
    params = {}
    for column in DAILY_WRITABLE_COLUMNS:
        if column == "tasks_json":
            params[column] = _dumps(entry.get("tasks") or [])
        else:
            params[column] = entry.get(column)
    return params


async def get_daily(entry_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(f"SELECT {', '.join(DAILY_SELECT_COLUMNS)} FROM {DAILY_TABLE} WHERE id = :id"),
            {"id": entry_id},
        )).mappings().fetchone()
    return _normalize_daily_row(row) if row else None


async def get_daily_by_date(scope_key: str, day_iso: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT {', '.join(DAILY_SELECT_COLUMNS)} FROM {DAILY_TABLE} "
                "WHERE scope_key = :scope_key AND date = :date"
            ),
            {"scope_key": scope_key, "date": day_iso},
        )).mappings().fetchone()
    return _normalize_daily_row(row) if row else None


def _daily_insert(entry: dict):
    params = {
        "id": entry["id"],
        "scope_key": entry["scope_key"],
        "user_id": entry.get("user_id"),
        "workspace_id": entry.get("workspace_id"),
        "version": int(entry.get("version") or 1),
        "created_at": entry.get("created_at") or utcnow_iso(),
        "updated_at": entry.get("updated_at") or utcnow_iso(),
        **_daily_params(entry),
    }
    columns = list(params.keys())
    stmt = sql_text(
        f"INSERT INTO {DAILY_TABLE} ({', '.join(columns)}) "
        f"VALUES ({', '.join(f':{col}' for col in columns)})"
    )
    return stmt, params


async def insert_daily(entry: dict) -> None:
    """Insert a new entry; raises IntegrityError when (scope_key, date) already exists."""
    stmt, params = _daily_insert(entry)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(stmt, params)
        await session.commit()


async def update_daily(entry_id: str, expected_version: int, entry: dict) -> bool:
    """Write an entry only if nobody bumped its version since it was read."""
    params = {
        "id": entry_id,
        "expected_version": expected_version,
        "updated_at": utcnow_iso(),
        **_daily_params(entry),
    }
    assignments = ", ".join(f"{col} = :{col}" for col in DAILY_WRITABLE_COLUMNS)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        result = await session.execute(
            sql_text(
                f"""
                UPDATE {DAILY_TABLE}
                SET {assignments}, version = version + 1, updated_at = :updated_at
                WHERE id = :id AND version = :expected_version
                """
            ),
            params,
        )
        await session.commit()
    return (result.rowcount or 0) == 1


async def list_dailies(
    scope_key: str,
    start_iso: str | None,
    end_iso: str | None,
    offset: int,
    limit: int,
) -> tuple[list[dict], int]:
    clauses = ["scope_key = :scope_key"]
    params: dict = {"scope_key": scope_key}
    if start_iso:
        clauses.append("date >= :start_date")
        params["start_date"] = start_iso
    if end_iso:
        clauses.append("date <= :end_date")
        params["end_date"] = end_iso
    where = " AND ".join(clauses)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(DAILY_SELECT_COLUMNS)}
                FROM {DAILY_TABLE}
                WHERE {where}
                ORDER BY date DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            {**params, "limit": limit, "offset": offset},
        )).mappings().all()
        total = (await session.execute(
            sql_text(f"SELECT COUNT(*) FROM {DAILY_TABLE} WHERE {where}"),
            params,
        )).scalar_one()
    return [_normalize_daily_row(row) for row in rows], int(total or 0)


async def delete_daily(entry_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(f"DELETE FROM {DAILY_TABLE} WHERE id = :id"),
            {"id": entry_id},
        )
        await session.commit()


async def delete_dailies_for_scope(scope_key: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(f"DELETE FROM {DAILY_TABLE} WHERE scope_key = :scope_key"),
            {"scope_key": scope_key},
        )
        await session.commit()


# Generic resources


def _normalize_resource_row(row) -> dict:
    payload = dict(row)
    data = _loads(payload.pop("data_json", None), {})
    payload.pop("unique_key", None)
    payload.pop("position", None)
    payload.pop("scope_key", None)
    return {
        **data,
        "id": payload["id"],
        "user_id": payload.get("user_id"),
        "workspace_id": payload.get("workspace_id"),
        "created_at": payload.get("created_at"),
        "updated_at": payload.get("updated_at"),
    }


def _position(data: dict) -> int:
    try:
        return int(data.get("order") or 0)
    except (TypeError, ValueError):
        return 0


def _order_clause(kind: ResourceKind) -> str:
    if kind.sort_field == "order":
        return "position ASC, created_at ASC"
    return "created_at DESC" if kind.sort_desc else "created_at ASC"


def _resource_insert(kind: ResourceKind, record: dict):
    params = {
        "id": record["id"],
        "scope_key": record["scope_key"],
        "user_id": record.get("user_id"),
        "workspace_id": record.get("workspace_id"),
        "unique_key": kind.unique_value(record["data"]),
        "position": _position(record["data"]),
        "data_json": _dumps(record["data"]),
        "created_at": record.get("created_at") or utcnow_iso(),
        "updated_at": record.get("updated_at") or utcnow_iso(),
    }
    stmt = sql_text(
        f"""
        INSERT INTO {kind.table}
        (id, scope_key, user_id, workspace_id, unique_key, position, data_json, created_at, updated_at)
        VALUES
        (:id, :scope_key, :user_id, :workspace_id, :unique_key, :position, :data_json, :created_at, :updated_at)
        """
    )
    return stmt, params


async def insert_resource(kind: ResourceKind, record: dict) -> None:
    """Insert a scoped document; raises IntegrityError on a uniqueness clash."""
    stmt, params = _resource_insert(kind, record)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(stmt, params)
        await session.commit()


async def get_resource(kind: ResourceKind, scope_key: str, resource_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT {RESOURCE_SELECT_COLUMNS} FROM {kind.table} "
                "WHERE id = :id AND scope_key = :scope_key"
            ),
            {"id": resource_id, "scope_key": scope_key},
        )).mappings().fetchone()
    return _normalize_resource_row(row) if row else None


async def get_resource_by_unique(kind: ResourceKind, scope_key: str, unique_value: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT {RESOURCE_SELECT_COLUMNS} FROM {kind.table} "
                "WHERE scope_key = :scope_key AND unique_key = :unique_key"
            ),
            {"scope_key": scope_key, "unique_key": unique_value},
        )).mappings().fetchone()
    return _normalize_resource_row(row) if row else None


async def list_resources(kind: ResourceKind, scope_key: str, offset: int, limit: int) -> tuple[list[dict], int]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {RESOURCE_SELECT_COLUMNS}
                FROM {kind.table}
                WHERE scope_key = :scope_key
                ORDER BY {_order_clause(kind)}
                LIMIT :limit OFFSET :offset
                """
            ),
            {"scope_key": scope_key, "limit": limit, "offset": offset},
        )).mappings().all()
        total = (await session.execute(
            sql_text(f"SELECT COUNT(*) FROM {kind.table} WHERE scope_key = :scope_key"),
            {"scope_key": scope_key},
        )).scalar_one()
    return [_normalize_resource_row(row) for row in rows], int(total or 0)


async def update_resource(kind: ResourceKind, scope_key: str, resource_id: str, data: dict) -> bool:
    """Replace the stored document; raises IntegrityError on a uniqueness clash."""
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        result = await session.execute(
            sql_text(
                f"""
                UPDATE {kind.table}
                SET data_json = :data_json,
                    unique_key = :unique_key,
                    position = :position,
                    updated_at = :updated_at
                WHERE id = :id AND scope_key = :scope_key
                """
            ),
            {
                "id": resource_id,
                "scope_key": scope_key,
                "data_json": _dumps(data),
                "unique_key": kind.unique_value(data),
                "position": _position(data),
                "updated_at": utcnow_iso(),
            },
        )
        await session.commit()
    return (result.rowcount or 0) == 1


async def delete_resource(kind: ResourceKind, scope_key: str, resource_id: str) -> bool:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        result = await session.execute(
            sql_text(f"DELETE FROM {kind.table} WHERE id = :id AND scope_key = :scope_key"),
            {"id": resource_id, "scope_key": scope_key},
        )
        await session.commit()
    return (result.rowcount or 0) == 1


async def delete_resources_for_scope(kind: ResourceKind, scope_key: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(f"DELETE FROM {kind.table} WHERE scope_key = :scope_key"),
            {"scope_key": scope_key},
        )
        await session.commit()


# Unscoped access, used only by the administrative backup flows.


async def dump_table(table: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(sql_text(f"SELECT * FROM {table} ORDER BY created_at"))).mappings().all()
    return [dict(row) for row in rows]


def normalize_dumped_row(table: str, row: dict) -> dict:
    if table == WORKSPACES_TABLE:
        return _normalize_workspace_row(row)
    if table == DAILY_TABLE:
        return _normalize_daily_row(row)
    return _normalize_resource_row(row)


def _workspace_insert(record: dict):
    params = {
        "id": record["id"],
        "name": record["name"],
        "description": record.get("description"),
        "owner_id": record["owner_id"],
        "members_json": _dumps(record.get("members") or []),
        "created_at": record.get("created_at") or utcnow_iso(),
        "updated_at": record.get("updated_at") or utcnow_iso(),
    }
    stmt = sql_text(
        f"""
        INSERT INTO {WORKSPACES_TABLE} (id, name, description, owner_id, members_json, created_at, updated_at)
        VALUES (:id, :name, :description, :owner_id, :members_json, :created_at, :updated_at)
        """
    )
    return stmt, params


async def restore_snapshot(
    clear_tables: list[str],
    workspaces: list[dict],
    dailies: list[dict],
    resources: list[tuple[ResourceKind, dict]],
) -> None:
    """Clear ``clear_tables`` and insert every record in a single transaction.

    Any IntegrityError rolls the whole restore back, leaving the store as it was.
    """
    statements = (
        [_workspace_insert(record) for record in workspaces]
        + [_daily_insert(entry) for entry in dailies]
        + [_resource_insert(kind, record) for kind, record in resources]
    )
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        try:
            for table in clear_tables:
                await session.execute(sql_text(f"DELETE FROM {table}"))
            for stmt, params in statements:
                await session.execute(stmt, params)
        except IntegrityError:
            await session.rollback()
            raise
        await session.commit()
