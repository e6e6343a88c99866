"""Tests for daily entries and their task lists."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio

from command_center import repositories
from command_center.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from command_center.resource_kinds import BOARD_TASK, SECTION, TASK_TYPE
from command_center.scope import Personal, Shared
from command_center.services import accounts, daily_service, resources, workspace_service
from command_center.services.daily_service import compute_score, normalize_entry_date, reorder_task_list

MIDNIGHT = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def workspace(alice, bob, carol) -> dict:
    ws = await workspace_service.create_workspace(alice["user"]["id"], "Team")
    await workspace_service.share_workspace(alice["user"]["id"], ws["id"], bob["user"]["id"], "editor")
    await workspace_service.share_workspace(alice["user"]["id"], ws["id"], carol["user"]["id"], "viewer")
    return ws


def _personal(account: dict) -> Personal:
    return Personal(account["user"]["id"])


class TestNormalizeEntryDate:
    @pytest.mark.parametrize(
        "value",
        [
            "2025-06-01",
            "2025-06-01T00:00:00Z",
            "2025-06-01T23:59:59Z",
            "2025-06-01T10:15:00+00:00",
            "2025-06-01T10:15:00",
            "2025-06-02T01:30:00+02:00",
            date(2025, 6, 1),
            datetime(2025, 6, 1, 18, 45),
            datetime(2025, 5, 31, 22, 0, tzinfo=timezone(timedelta(hours=-4))),
            int(datetime(2025, 6, 1, 13, 0, tzinfo=timezone.utc).timestamp() * 1000),
        ],
    )
    def test_same_utc_day(self, value):
        assert normalize_entry_date(value) == MIDNIGHT

    @pytest.mark.parametrize("value", ["", "yesterday", "2025-13-01", None, True, [2025, 6, 1]])
    def test_invalid(self, value):
        with pytest.raises(InvalidInputError):
            normalize_entry_date(value)


class TestComputeScore:
    def test_task_path(self):
        tasks = [{"completed": True}, {"completed": False}, {"completed": False}]
        assert compute_score({"tasks": tasks}) == 2
        tasks.append({"completed": True})
        assert compute_score({"tasks": tasks}) == 3
        assert compute_score({"tasks": [{"completed": True}]}) == 5

    def test_task_path_ignores_counters(self):
        entry = {"tasks": [{"completed": False}], "dsa_completed": 10, "energy_level": 5}
        assert compute_score(entry) == 0

    def test_legacy_path(self):
        assert compute_score({"tasks": [], "energy_level": 3}) == 2
        entry = {
            "tasks": [],
            "dsa_completed": 4,
            "backend_learning": 4,
            "system_design": 4,
            "project_work": 4,
            "energy_level": 5,
        }
        assert compute_score(entry) == 4

    def test_legacy_energy_zero_falls_back(self):
        assert compute_score({"energy_level": 0}) == compute_score({"energy_level": 3})

    def test_legacy_clamped(self):
        entry = {"dsa_completed": 1000, "backend_learning": 1000, "system_design": 1000, "project_work": 1000}
        assert compute_score({**entry, "energy_level": 9}) == 5


class TestReorderTaskList:
    def test_incomplete_order_keeps_every_task(self):
        tasks = [{"id": "a"}, {"id": "b"}, {"id": "c"}, {"id": "d"}]
        result = reorder_task_list(tasks, ["c", "zzz", "a", "c"])
        assert [task["id"] for task in result] == ["c", "a", "b", "d"]
        assert sorted(task["id"] for task in result) == ["a", "b", "c", "d"]

    def test_empty_order(self):
        tasks = [{"id": "a"}, {"id": "b"}]
        assert reorder_task_list(tasks, []) == tasks


class TestUpsert:
    @pytest.mark.asyncio
    async def test_second_upsert_merges(self, alice):
        principal = alice["user"]["id"]
        scope = _personal(alice)
        first = await daily_service.upsert_for_date(principal, scope, "2025-06-01T09:00:00Z", {"notes": "morning"})
        second = await daily_service.upsert_for_date(principal, scope, "2025-06-01", {"energy_level": 4})
        assert first["id"] == second["id"]
        assert second["notes"] == "morning"
        assert second["energy_level"] == 4
        assert second["date"] == "2025-06-01"
        listed = await daily_service.list_entries(principal, scope, day="2025-06-01")
        assert listed["total"] == 1

    @pytest.mark.asyncio
    async def test_tasks_only_replaced_when_present(self, alice):
        principal = alice["user"]["id"]
        scope = _personal(alice)
        tasks = [{"title": "two sum", "type": "dsa"}]
        entry = await daily_service.upsert_for_date(principal, scope, "2025-06-01", {"tasks": tasks})
        assert len(entry["tasks"]) == 1
        entry = await daily_service.upsert_for_date(principal, scope, "2025-06-01", {"notes": "x"})
        assert [task["title"] for task in entry["tasks"]] == ["two sum"]
        entry = await daily_service.upsert_for_date(principal, scope, "2025-06-01", {"tasks": []})
        assert entry["tasks"] == []

    @pytest.mark.asyncio
    async def test_new_entry_defaults(self, alice):
        entry = await daily_service.upsert_for_date(alice["user"]["id"], _personal(alice), "2025-06-01", {})
        assert entry["score"] == 2
        assert entry["user_id"] == alice["user"]["id"]
        assert entry["workspace_id"] is None
        assert "scope_key" not in entry

    @pytest.mark.asyncio
    async def test_concurrent_upserts_create_one_entry(self, alice):
        principal = alice["user"]["id"]
        scope = _personal(alice)
        results = await asyncio.gather(
            daily_service.upsert_for_date(principal, scope, "2025-06-01", {"notes": "a"}),
            daily_service.upsert_for_date(principal, scope, "2025-06-01T12:00:00Z", {"dsa_completed": 2}),
        )
        assert results[0]["id"] == results[1]["id"]
        listed = await daily_service.list_entries(principal, scope)
        assert listed["total"] == 1
        stored = listed["data"][0]
        assert stored["notes"] == "a"
        assert stored["dsa_completed"] == 2

    @pytest.mark.asyncio
    async def test_other_account_personal_scope(self, alice, bob):
        with pytest.raises(NotFoundError):
            await daily_service.upsert_for_date(bob["user"]["id"], _personal(alice), "2025-06-01", {})

    @pytest.mark.asyncio
    async def test_invalid_date(self, alice):
        with pytest.raises(InvalidInputError):
            await daily_service.upsert_for_date(alice["user"]["id"], _personal(alice), "June first", {})


class TestListEntries:
    @pytest.mark.asyncio
    async def test_newest_first_with_range_and_paging(self, alice):
        principal = alice["user"]["id"]
        scope = _personal(alice)
        for day in ("2025-06-01", "2025-06-03", "2025-06-02", "2025-06-05"):
            await daily_service.upsert_for_date(principal, scope, day, {})
        listed = await daily_service.list_entries(principal, scope, start_date="2025-06-02", end_date="2025-06-04")
        assert [item["date"] for item in listed["data"]] == ["2025-06-03", "2025-06-02"]
        page = await daily_service.list_entries(principal, scope, page=2, limit=3)
        assert page["total"] == 4
        assert [item["date"] for item in page["data"]] == ["2025-06-01"]

    @pytest.mark.asyncio
    async def test_date_wins_over_range(self, alice):
        principal = alice["user"]["id"]
        scope = _personal(alice)
        await daily_service.upsert_for_date(principal, scope, "2025-06-01", {})
        await daily_service.upsert_for_date(principal, scope, "2025-06-02", {})
        listed = await daily_service.list_entries(
            principal, scope, day="2025-06-02", start_date="2025-01-01", end_date="2025-12-31"
        )
        assert [item["date"] for item in listed["data"]] == ["2025-06-02"]

    @pytest.mark.asyncio
    async def test_blank_filters_are_ignored(self, alice):
        principal = alice["user"]["id"]
        scope = _personal(alice)
        await daily_service.upsert_for_date(principal, scope, "2025-06-01", {})
        await daily_service.upsert_for_date(principal, scope, "2025-06-02", {})
        listed = await daily_service.list_entries(principal, scope, day="", start_date="  ", end_date="")
        assert listed["total"] == 2
        ranged = await daily_service.list_entries(principal, scope, day="", start_date="2025-06-02")
        assert [item["date"] for item in ranged["data"]] == ["2025-06-02"]

    @pytest.mark.asyncio
    async def test_personal_and_workspace_do_not_mix(self, alice, workspace):
        principal = alice["user"]["id"]
        await daily_service.upsert_for_date(principal, _personal(alice), "2025-06-01", {"notes": "mine"})
        await daily_service.upsert_for_date(principal, Shared(workspace["id"]), "2025-06-01", {"notes": "team"})
        personal = await daily_service.list_entries(principal, _personal(alice))
        shared = await daily_service.list_entries(principal, Shared(workspace["id"]))
        assert [item["notes"] for item in personal["data"]] == ["mine"]
        assert [item["notes"] for item in shared["data"]] == ["team"]


class TestTasks:
    @pytest_asyncio.fixture
    async def entry(self, alice) -> dict:
        return await daily_service.upsert_for_date(
            alice["user"]["id"],
            _personal(alice),
            "2025-06-01",
            {"tasks": [{"id": "1", "title": "x", "type": "dsa", "completed": False}]},
        )

    @pytest.mark.asyncio
    async def test_toggle_recomputes_score(self, alice, entry):
        principal = alice["user"]["id"]
        toggled = await daily_service.toggle_task(entry["id"], "1", principal)
        assert toggled["tasks"][0]["completed"] is True
        assert toggled["score"] == 5
        toggled = await daily_service.toggle_task(entry["id"], "1", principal)
        assert toggled["tasks"][0]["completed"] is False
        assert toggled["score"] == 0

    @pytest.mark.asyncio
    async def test_toggle_unknown_task(self, alice, entry):
        with pytest.raises(NotFoundError):
            await daily_service.toggle_task(entry["id"], "nope", alice["user"]["id"])

    @pytest.mark.asyncio
    async def test_add_update_delete(self, alice, entry):
        principal = alice["user"]["id"]
        updated = await daily_service.add_task(entry["id"], principal, "read ddia", "system")
        assert len(updated["tasks"]) == 2
        added = updated["tasks"][-1]
        assert added["completed"] is False
        assert updated["score"] == 0

        updated = await daily_service.update_task(entry["id"], added["id"], principal, {"completed": True})
        assert updated["tasks"][-1]["title"] == "read ddia"
        assert updated["tasks"][-1]["completed"] is True
        assert updated["score"] == 3

        updated = await daily_service.delete_task(entry["id"], "1", principal)
        assert [task["id"] for task in updated["tasks"]] == [added["id"]]
        assert updated["score"] == 5
        with pytest.raises(NotFoundError):
            await daily_service.delete_task(entry["id"], "1", principal)

    @pytest.mark.asyncio
    async def test_reorder(self, alice, entry):
        principal = alice["user"]["id"]
        await daily_service.add_task(entry["id"], principal, "b", "dsa")
        current = await daily_service.add_task(entry["id"], principal, "c", "dsa")
        ids = [task["id"] for task in current["tasks"]]
        reordered = await daily_service.reorder_tasks(entry["id"], principal, [ids[2], "ghost"])
        assert [task["id"] for task in reordered["tasks"]] == [ids[2], ids[0], ids[1]]

    @pytest.mark.asyncio
    async def test_reorder_requires_list(self, alice, entry):
        with pytest.raises(InvalidInputError):
            await daily_service.reorder_tasks(entry["id"], alice["user"]["id"], "1")

    @pytest.mark.asyncio
    async def test_copy_to_today_once(self, alice, entry):
        principal = alice["user"]["id"]
        await daily_service.toggle_task(entry["id"], "1", principal)
        today = await daily_service.copy_task_to_today(entry["id"], "1", principal)
        assert today["date"] == datetime.now(timezone.utc).date().isoformat()
        copies = [task for task in today["tasks"] if task["title"] == "x"]
        assert len(copies) == 1
        assert copies[0]["completed"] is False
        assert copies[0]["id"] != "1"
        with pytest.raises(ConflictError):
            await daily_service.copy_task_to_today(entry["id"], "1", principal)
        listed = await daily_service.list_entries(principal, _personal(alice), day=today["date"])
        assert len(listed["data"][0]["tasks"]) == 1

    @pytest.mark.asyncio
    async def test_other_account_sees_not_found(self, bob, entry):
        with pytest.raises(NotFoundError):
            await daily_service.get_entry(entry["id"], bob["user"]["id"])
        with pytest.raises(NotFoundError):
            await daily_service.add_task(entry["id"], bob["user"]["id"], "y", "dsa")

    @pytest.mark.asyncio
    async def test_update_entry_date_collision(self, alice, entry):
        principal = alice["user"]["id"]
        other = await daily_service.upsert_for_date(principal, _personal(alice), "2025-06-02", {})
        moved = await daily_service.update_entry(other["id"], principal, {"date": "2025-06-03T08:00:00Z"})
        assert moved["date"] == "2025-06-03"
        with pytest.raises(ConflictError):
            await daily_service.update_entry(other["id"], principal, {"date": "2025-06-01"})

    @pytest.mark.asyncio
    async def test_delete_entry(self, alice, entry):
        principal = alice["user"]["id"]
        await daily_service.delete_entry(entry["id"], principal)
        with pytest.raises(NotFoundError):
            await daily_service.get_entry(entry["id"], principal)


class TestCustomFields:
    @pytest.mark.asyncio
    async def test_values_checked_against_task_type(self, alice):
        principal = alice["user"]["id"]
        await resources.create_resource(
            TASK_TYPE,
            principal,
            {
                "name": "dsa",
                "custom_fields": [
                    {"name": "minutes", "kind": "number", "label": "Minutes"},
                    {"name": "solved", "kind": "boolean", "label": "Solved"},
                ],
            },
        )
        entry = await daily_service.upsert_for_date(principal, _personal(alice), "2025-06-01", {})
        updated = await daily_service.add_task(
            entry["id"], principal, "two sum", "dsa", custom_fields={"minutes": "25", "solved": "yes"}
        )
        assert updated["tasks"][0]["custom_fields"] == {"minutes": 25, "solved": True}

        with pytest.raises(InvalidInputError):
            await daily_service.add_task(entry["id"], principal, "3sum", "dsa", custom_fields={"colour": "red"})
        with pytest.raises(InvalidInputError):
            await daily_service.add_task(entry["id"], principal, "3sum", "dsa", custom_fields={"minutes": "lots"})

    @pytest.mark.asyncio
    async def test_untyped_task_accepts_scalars(self, alice):
        principal = alice["user"]["id"]
        entry = await daily_service.upsert_for_date(principal, _personal(alice), "2025-06-01", {})
        updated = await daily_service.add_task(entry["id"], principal, "misc", "other", custom_fields={"a": 1})
        assert updated["tasks"][0]["custom_fields"] == {"a": 1}


class TestWorkspaceEntries:
    @pytest.mark.asyncio
    async def test_editor_adds_and_only_owner_deletes(self, alice, bob, workspace):
        owner = alice["user"]["id"]
        editor = bob["user"]["id"]
        scope = Shared(workspace["id"])
        entry = await daily_service.upsert_for_date(owner, scope, "2025-06-01", {})
        await resources.create_resource(TASK_TYPE, owner, {"name": "dsa"}, workspace["id"])
        await resources.create_resource(SECTION, owner, {"name": "Backlog"}, workspace["id"])
        await resources.create_resource(BOARD_TASK, editor, {"title": "ship it"}, workspace["id"])

        updated = await daily_service.add_task(entry["id"], editor, "graph bfs", "dsa", assignee=owner)
        assert len(updated["tasks"]) == 1
        assert updated["tasks"][0]["assignee"] == owner

        with pytest.raises(ForbiddenError):
            await workspace_service.delete_workspace(editor, workspace["id"])

        await workspace_service.delete_workspace(owner, workspace["id"])
        assert await repositories.get_daily(entry["id"]) is None
        assert await repositories.get_workspace(workspace["id"]) is None
        for kind in (TASK_TYPE, SECTION, BOARD_TASK):
            _, total = await repositories.list_resources(kind, scope.key, 0, 100)
            assert total == 0

    @pytest.mark.asyncio
    async def test_viewer_reads_but_cannot_write(self, alice, carol, workspace):
        entry = await daily_service.upsert_for_date(
            alice["user"]["id"],
            Shared(workspace["id"]),
            "2025-06-01",
            {"tasks": [{"id": "t1", "title": "x", "type": "dsa"}]},
        )
        viewer = carol["user"]["id"]
        assert (await daily_service.get_entry(entry["id"], viewer))["id"] == entry["id"]
        with pytest.raises(ForbiddenError):
            await daily_service.add_task(entry["id"], viewer, "y", "dsa")
        with pytest.raises(ForbiddenError):
            await daily_service.toggle_task(entry["id"], "t1", viewer)
        with pytest.raises(ForbiddenError):
            await daily_service.upsert_for_date(viewer, Shared(workspace["id"]), "2025-06-01", {"notes": "n"})

    @pytest.mark.asyncio
    async def test_outsider_gets_not_found(self, alice, workspace, db):
        outsider = await accounts.register("mallory", "pw")
        entry = await daily_service.upsert_for_date(alice["user"]["id"], Shared(workspace["id"]), "2025-06-01", {})
        with pytest.raises(NotFoundError):
            await daily_service.get_entry(entry["id"], outsider["user"]["id"])
        with pytest.raises(NotFoundError):
            await daily_service.list_entries(outsider["user"]["id"], Shared(workspace["id"]))

    @pytest.mark.asyncio
    async def test_assignee_must_be_member(self, alice, workspace):
        entry = await daily_service.upsert_for_date(alice["user"]["id"], Shared(workspace["id"]), "2025-06-01", {})
        with pytest.raises(InvalidInputError):
            await daily_service.add_task(entry["id"], alice["user"]["id"], "x", "dsa", assignee="0" * 32)

    @pytest.mark.asyncio
    async def test_personal_tasks_have_no_assignee(self, alice, bob):
        entry = await daily_service.upsert_for_date(alice["user"]["id"], _personal(alice), "2025-06-01", {})
        with pytest.raises(InvalidInputError):
            await daily_service.add_task(entry["id"], alice["user"]["id"], "x", "dsa", assignee=bob["user"]["id"])

    @pytest.mark.asyncio
    async def test_copy_to_today_stays_in_workspace(self, alice, bob, carol, workspace):
        scope = Shared(workspace["id"])
        source = await daily_service.upsert_for_date(
            alice["user"]["id"], scope, "2025-06-01", {"tasks": [{"id": "t1", "title": "mock interview", "type": "dsa"}]}
        )
        editor = bob["user"]["id"]
        today = await daily_service.copy_task_to_today(source["id"], "t1", editor)
        assert today["workspace_id"] == workspace["id"]
        assert today["user_id"] is None
        assert [task["title"] for task in today["tasks"]] == ["mock interview"]
        assert (await daily_service.list_entries(editor, _personal(bob)))["total"] == 0
        assert (await daily_service.list_entries(editor, scope))["total"] == 2

        with pytest.raises(ForbiddenError):
            await daily_service.copy_task_to_today(source["id"], "t1", carol["user"]["id"])
