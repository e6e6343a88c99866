"""Daily entries: upsert-by-date and the embedded task list.

An entry belongs to exactly one scope and there is at most one entry per
``(scope, date)``. That uniqueness is enforced by the store's unique index on
``(scope_key, date)``; a lost insert race or a stale version on update is
retried once and then reported as a write conflict.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import IntegrityError

from command_center import repositories
from command_center.errors import ConflictError, InvalidInputError, NotFoundError, WriteConflictError
from command_center.repositories import new_id, utcnow_iso
from command_center.resource_kinds import TASK_TYPE
from command_center.scope import Personal, Scope, scope_from_record
from command_center.services import access
from command_center.services.custom_fields import validate_custom_fields
from command_center.settings import get_settings

logger = logging.getLogger(__name__)

WRITE_ATTEMPTS = 2

LEGACY_COUNTERS = ("dsa_completed", "backend_learning", "system_design", "project_work")
ENTRY_FIELDS = LEGACY_COUNTERS + ("notes", "time_spent_hours", "energy_level")

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_entry_date(value: Any) -> datetime:
    """Map any accepted date input to UTC midnight of its UTC calendar day."""
    if isinstance(value, bool):
        raise InvalidInputError("Invalid date")
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        moment = moment.astimezone(timezone.utc)
        return datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as sent by JavaScript clients.
        try:
            return normalize_entry_date(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            raise InvalidInputError("Invalid date") from None
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            if _DATE_ONLY.match(raw):
                return normalize_entry_date(date.fromisoformat(raw))
            return normalize_entry_date(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            raise InvalidInputError(
                "Invalid date format",
                errors=[{"loc": ["date"], "msg": "expected YYYY-MM-DD or an ISO timestamp"}],
            ) from None
    raise InvalidInputError("Date is required", errors=[{"loc": ["date"], "msg": "field required"}])


def _day_iso(value: Any) -> str:
    return normalize_entry_date(value).date().isoformat()


# Query strings like "?date=" arrive as empty strings; they mean "no filter".
def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_score(entry: dict) -> int:
    tasks = entry.get("tasks") or []
    if tasks:
        completed = sum(1 for task in tasks if task.get("completed"))
        return _round_half_up(5 * completed / len(tasks))
    # Legacy formula for entries without tasks, kept exactly as recorded.
    components = [float(entry.get(key) or 0) for key in LEGACY_COUNTERS]
    comp_avg = sum(components) / len(components)
    energy = float(entry.get("energy_level") or 3)
    score = min(5, _round_half_up((comp_avg / max(1, comp_avg + 1) * 4 + energy) / 2))
    return max(0, score)


def reorder_task_list(tasks: list[dict], ordered_ids: list) -> list[dict]:
    by_id = {str(task.get("id")): task for task in tasks}
    placed: set[str] = set()
    result = []
    for task_id in ordered_ids:
        key = str(task_id)
        if key in by_id and key not in placed:
            result.append(by_id[key])
            placed.add(key)
    # Tasks missing from the order keep their relative position at the end.
    result.extend(task for task in tasks if str(task.get("id")) not in placed)
    return result


def _public(entry: dict) -> dict:
    payload = dict(entry)
    payload.pop("scope_key", None)
    return payload


def _find_task(entry: dict, task_id: str) -> dict:
    for task in entry.get("tasks") or []:
        if str(task.get("id")) == str(task_id):
            return task
    raise NotFoundError("Task not found")


async def _reload(entry_id: str) -> dict:
    entry = await repositories.get_daily(entry_id)
    if not entry:
        raise NotFoundError("Daily entry not found")
    return _public(entry)


async def _load_entry(entry_id: str, principal_id: str, write: bool = False) -> tuple[dict, Scope]:
    entry = await repositories.get_daily(entry_id)
    if not entry:
        raise NotFoundError("Daily entry not found")
    scope = scope_from_record(entry)
    try:
        await access.check_scope(principal_id, scope, write=write)
    except NotFoundError:
        raise NotFoundError("Daily entry not found") from None
    return entry, scope


async def _task_type_fields(scope: Scope, type_name: str) -> list[dict] | None:
    task_type = await repositories.get_resource_by_unique(TASK_TYPE, scope.key, type_name)
    if not task_type:
        return None
    return task_type.get("custom_fields") or []


async def _check_assignee(scope: Scope, assignee: str | None) -> str | None:
    if not assignee:
        return None
    if isinstance(scope, Personal):
        raise InvalidInputError("Assignees are only available in workspaces")
    workspace = await repositories.get_workspace(scope.workspace_id)
    if not workspace or access.role_in_workspace(workspace, assignee) is None:
        raise InvalidInputError("Assignee must be a member of the workspace")
    return assignee


async def _build_task(scope: Scope, data: dict, task_id: str | None = None) -> dict:
    definitions = await _task_type_fields(scope, data["type"])
    return {
        "id": task_id or new_id(),
        "title": data["title"],
        "type": data["type"],
        "completed": bool(data.get("completed", False)),
        "assignee": await _check_assignee(scope, data.get("assignee")),
        "custom_fields": validate_custom_fields(data.get("custom_fields"), definitions),
    }


async def _prepare_tasks(scope: Scope, tasks: list[dict]) -> list[dict]:
    seen: set[str] = set()
    prepared = []
    for item in tasks:
        task_id = item.get("id")
        if not task_id or task_id in seen:
            task_id = new_id()
        seen.add(task_id)
        prepared.append(await _build_task(scope, item, task_id))
    return prepared


async def _prepare_fields(scope: Scope, patch: dict) -> dict:
    fields = {key: patch[key] for key in ENTRY_FIELDS if key in patch}
    if patch.get("tasks") is not None:
        fields["tasks"] = await _prepare_tasks(scope, patch["tasks"])
    return fields


def _new_entry(scope: Scope, day_iso: str, fields: dict) -> dict:
    now = utcnow_iso()
    entry = {
        "id": new_id(),
        "scope_key": scope.key,
        **scope.columns(),
        "date": day_iso,
        "tasks": [],
        "dsa_completed": 0,
        "backend_learning": 0,
        "system_design": 0,
        "project_work": 0,
        "notes": None,
        "time_spent_hours": 0,
        "energy_level": 3,
        "version": 1,
        "created_at": now,
        "updated_at": now,
    }
    entry.update(fields)
    entry["score"] = compute_score(entry)
    return entry


async def upsert_for_date(principal_id: str, scope: Scope, raw_date: Any, patch: dict) -> dict:
    """Create the entry for ``(scope, date)`` or merge ``patch`` into it.

    Omitted fields are left untouched; the task list is only replaced when the
    patch carries ``tasks``.
    """
    await access.check_scope(principal_id, scope, write=True)
    day_iso = _day_iso(raw_date)
    fields = await _prepare_fields(scope, patch)

    for attempt in range(WRITE_ATTEMPTS):
        existing = await repositories.get_daily_by_date(scope.key, day_iso)
        if existing:
            merged = {**existing, **fields}
            merged["score"] = compute_score(merged)
            if await repositories.update_daily(existing["id"], existing["version"], merged):
                return await _reload(existing["id"])
            logger.info("Daily entry %s for %s changed concurrently (attempt %s)", existing["id"], day_iso, attempt + 1)
            continue
        entry = _new_entry(scope, day_iso, fields)
        try:
            await repositories.insert_daily(entry)
        except IntegrityError:
            logger.info("Concurrent create of daily entry %s/%s (attempt %s)", scope.key, day_iso, attempt + 1)
            continue
        return await _reload(entry["id"])

    logger.warning("Giving up on daily upsert for %s/%s after %s attempts", scope.key, day_iso, WRITE_ATTEMPTS)
    raise WriteConflictError("Daily entry was modified concurrently, please retry")


async def list_entries(
    principal_id: str,
    scope: Scope,
    day: Any = None,
    start_date: Any = None,
    end_date: Any = None,
    page: int = 1,
    limit: int | None = None,
) -> dict:
    await access.check_scope(principal_id, scope)
    day, start_date, end_date = (_blank_to_none(value) for value in (day, start_date, end_date))
    if day is not None:
        start_iso = end_iso = _day_iso(day)
    else:
        start_iso = _day_iso(start_date) if start_date is not None else None
        end_iso = _day_iso(end_date) if end_date is not None else None
    limit = get_settings().clamp_page_limit(limit)
    page = max(1, int(page or 1))
    items, total = await repositories.list_dailies(scope.key, start_iso, end_iso, (page - 1) * limit, limit)
    return {"data": [_public(item) for item in items], "total": total}


async def get_entry(entry_id: str, principal_id: str) -> dict:
    entry, _ = await _load_entry(entry_id, principal_id)
    return _public(entry)


async def delete_entry(entry_id: str, principal_id: str) -> None:
    await _load_entry(entry_id, principal_id, write=True)
    await repositories.delete_daily(entry_id)


async def _mutate_entry(
    entry_id: str,
    principal_id: str,
    mutate: Callable[[dict, Scope], Awaitable[None]],
) -> dict:
    for attempt in range(WRITE_ATTEMPTS):
        entry, scope = await _load_entry(entry_id, principal_id, write=True)
        await mutate(entry, scope)
        entry["score"] = compute_score(entry)
        try:
            written = await repositories.update_daily(entry_id, entry["version"], entry)
        except IntegrityError:
            raise ConflictError("A daily entry already exists for this date") from None
        if written:
            return await _reload(entry_id)
        logger.info("Daily entry %s changed concurrently (attempt %s)", entry_id, attempt + 1)
    raise WriteConflictError("Daily entry was modified concurrently, please retry")


async def update_entry(entry_id: str, principal_id: str, patch: dict) -> dict:
    async def mutate(entry: dict, scope: Scope) -> None:
        entry.update(await _prepare_fields(scope, patch))
        if patch.get("date") is not None:
            entry["date"] = _day_iso(patch["date"])

    return await _mutate_entry(entry_id, principal_id, mutate)


async def add_task(
    entry_id: str,
    principal_id: str,
    title: str,
    task_type: str,
    custom_fields: dict | None = None,
    assignee: str | None = None,
) -> dict:
    async def mutate(entry: dict, scope: Scope) -> None:
        task = await _build_task(
            scope,
            {"title": title, "type": task_type, "custom_fields": custom_fields, "assignee": assignee},
        )
        entry["tasks"] = list(entry.get("tasks") or []) + [task]

    return await _mutate_entry(entry_id, principal_id, mutate)


async def update_task(entry_id: str, task_id: str, principal_id: str, patch: dict) -> dict:
    async def mutate(entry: dict, scope: Scope) -> None:
        task = _find_task(entry, task_id)
        if patch.get("title") is not None:
            task["title"] = patch["title"]
        if patch.get("type") is not None:
            task["type"] = patch["type"]
        if patch.get("completed") is not None:
            task["completed"] = bool(patch["completed"])
        if "assignee" in patch:
            task["assignee"] = await _check_assignee(scope, patch["assignee"])
        if patch.get("custom_fields") is not None or patch.get("type") is not None:
            values = patch["custom_fields"] if patch.get("custom_fields") is not None else task.get("custom_fields")
            definitions = await _task_type_fields(scope, task["type"])
            task["custom_fields"] = validate_custom_fields(values, definitions)

    return await _mutate_entry(entry_id, principal_id, mutate)


async def delete_task(entry_id: str, task_id: str, principal_id: str) -> dict:
    async def mutate(entry: dict, scope: Scope) -> None:
        _find_task(entry, task_id)
        entry["tasks"] = [task for task in entry["tasks"] if str(task.get("id")) != str(task_id)]

    return await _mutate_entry(entry_id, principal_id, mutate)


async def toggle_task(entry_id: str, task_id: str, principal_id: str) -> dict:
    async def mutate(entry: dict, scope: Scope) -> None:
        task = _find_task(entry, task_id)
        task["completed"] = not bool(task.get("completed"))

    return await _mutate_entry(entry_id, principal_id, mutate)


async def reorder_tasks(entry_id: str, principal_id: str, order: Any) -> dict:
    if not isinstance(order, list):
        raise InvalidInputError("Order must be an array of task IDs")

    async def mutate(entry: dict, scope: Scope) -> None:
        entry["tasks"] = reorder_task_list(list(entry.get("tasks") or []), order)

    return await _mutate_entry(entry_id, principal_id, mutate)


async def copy_task_to_today(
    source_entry_id: str,
    task_id: str,
    principal_id: str,
    today: datetime | date | None = None,
) -> dict:
    """Copy a task into today's entry of the same scope, rejecting duplicates by (title, type)."""
    source, scope = await _load_entry(source_entry_id, principal_id)
    task = _find_task(source, task_id)
    await access.check_scope(principal_id, scope, write=True)
    day_iso = _day_iso(today or datetime.now(timezone.utc))

    for attempt in range(WRITE_ATTEMPTS):
        copy = {
            "id": new_id(),
            "title": task.get("title"),
            "type": task.get("type"),
            "completed": False,
            "assignee": None,
            "custom_fields": dict(task.get("custom_fields") or {}),
        }
        target = await repositories.get_daily_by_date(scope.key, day_iso)
        if target:
            duplicate = any(
                item.get("title") == copy["title"] and item.get("type") == copy["type"]
                for item in target.get("tasks") or []
            )
            if duplicate:
                raise ConflictError("Task already exists for today")
            target["tasks"] = list(target.get("tasks") or []) + [copy]
            target["score"] = compute_score(target)
            if await repositories.update_daily(target["id"], target["version"], target):
                return await _reload(target["id"])
            logger.info("Today's entry %s changed concurrently (attempt %s)", target["id"], attempt + 1)
            continue
        entry = _new_entry(scope, day_iso, {"tasks": [copy]})
        try:
            await repositories.insert_daily(entry)
        except IntegrityError:
            logger.info("Concurrent create of today's entry %s/%s (attempt %s)", scope.key, day_iso, attempt + 1)
            continue
        return await _reload(entry["id"])

    raise WriteConflictError("Today's entry was modified concurrently, please retry")
