from __future__ import annotations

from sqlalchemy import text as sql_text

from command_center.db import get_engine
from command_center.resource_kinds import RESOURCE_KINDS


ACCOUNTS_TABLE = "accounts"
WORKSPACES_TABLE = "workspaces"
DAILY_TABLE = "daily_entries"


async def init_db():
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {ACCOUNTS_TABLE} (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {WORKSPACES_TABLE} (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    owner_id TEXT NOT NULL,
                    members_json TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {DAILY_TABLE} (
                    id TEXT PRIMARY KEY,
                    scope_key TEXT NOT NULL,
                    user_id TEXT,
                    workspace_id TEXT,
                    date TEXT NOT NULL,
                    tasks_json TEXT NOT NULL DEFAULT '[]',
                    dsa_completed REAL DEFAULT 0,
                    backend_learning REAL DEFAULT 0,
                    system_design REAL DEFAULT 0,
                    project_work REAL DEFAULT 0,
                    notes TEXT,
                    time_spent_hours REAL DEFAULT 0,
                    energy_level REAL DEFAULT 3,
                    score INTEGER DEFAULT 0,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
        )
        for kind in RESOURCE_KINDS.values():
            await conn.execute(
                sql_text(
                    f"""
                    CREATE TABLE IF NOT EXISTS {kind.table} (
                        id TEXT PRIMARY KEY,
                        scope_key TEXT NOT NULL,
                        user_id TEXT,
                        workspace_id TEXT,
                        unique_key TEXT,
                        position INTEGER DEFAULT 0,
                        data_json TEXT NOT NULL DEFAULT '{{}}',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
            )

    async def ensure_index(index_sql: str) -> None:
        async with engine.begin() as conn:
            await conn.execute(sql_text(index_sql))

    # The (scope_key, date) index is the only guard against duplicate daily entries.
    await ensure_index(
        f"CREATE UNIQUE INDEX IF NOT EXISTS uq_{DAILY_TABLE}_scope_date "
        f"ON {DAILY_TABLE} (scope_key, date)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{WORKSPACES_TABLE}_owner "
        f"ON {WORKSPACES_TABLE} (owner_id)"
    )
    for kind in RESOURCE_KINDS.values():
        await ensure_index(
            f"CREATE UNIQUE INDEX IF NOT EXISTS uq_{kind.table}_scope_unique "
            f"ON {kind.table} (scope_key, unique_key)"
        )
        await ensure_index(
            f"CREATE INDEX IF NOT EXISTS idx_{kind.table}_scope_created "
            f"ON {kind.table} (scope_key, created_at)"
        )
