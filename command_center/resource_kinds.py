from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import BaseModel

from command_center import schemas


@dataclass(frozen=True)
class ResourceKind:
    """Capability descriptor for one generically managed record type.

    ``collection`` names both the table (``resource_<collection>``) and the
    key used in exports. When ``unique_field`` is set, that field's value must
    be unique within a scope.
    """

    name: str
    collection: str
    create_schema: type[BaseModel]
    patch_schema: type[BaseModel]
    unique_field: Optional[str] = None
    derive: Optional[Callable[[dict], dict]] = None
    sort_field: str = "created_at"
    sort_desc: bool = True

    @property
    def table(self) -> str:
        return f"resource_{self.collection}"

    def unique_value(self, data: dict) -> str | None:
        if not self.unique_field:
            return None
        value = data.get(self.unique_field)
        return None if value is None else str(value)

    def apply_derived(self, data: dict) -> dict:
        return self.derive(data) if self.derive else data


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _derive_weekly(data: dict) -> dict:
    weighted = (
        float(data.get("dsa_total") or 0) * 0.4
        + float(data.get("backend_topics_completed") or 0) * 0.2
        + float(data.get("system_design_topics") or 0) * 0.2
        + float(data.get("project_commits") or 0) * 0.2
    )
    data["weekly_score"] = max(0, min(100, _round_half_up(weighted / 10)))
    return data


WEEKLY = ResourceKind("weekly", "weeklies", schemas.WeeklyCreate, schemas.WeeklyPatch, derive=_derive_weekly)
MONTHLY = ResourceKind("monthly", "monthlies", schemas.MonthlyCreate, schemas.MonthlyPatch, unique_field="month")
BACKEND_TOPIC = ResourceKind(
    "backend_topic", "backend_topics", schemas.BackendTopicCreate, schemas.BackendTopicPatch
)
SYSTEM_DESIGN = ResourceKind(
    "system_design", "system_designs", schemas.SystemDesignCreate, schemas.SystemDesignPatch
)
DSA = ResourceKind("dsa", "dsas", schemas.DsaProblemCreate, schemas.DsaProblemPatch)
BOARD_TASK = ResourceKind("task", "tasks", schemas.BoardTaskCreate, schemas.BoardTaskPatch)
SECTION = ResourceKind(
    "section",
    "sections",
    schemas.SectionCreate,
    schemas.SectionPatch,
    unique_field="name",
    sort_field="order",
    sort_desc=False,
)
JOB = ResourceKind("job", "jobs", schemas.JobCreate, schemas.JobPatch)
TASK_TYPE = ResourceKind(
    "task_type", "task_types", schemas.TaskTypeCreate, schemas.TaskTypePatch, unique_field="name"
)

RESOURCE_KINDS: dict[str, ResourceKind] = {
    kind.name: kind
    for kind in (WEEKLY, MONTHLY, BACKEND_TOPIC, SYSTEM_DESIGN, DSA, BOARD_TASK, SECTION, JOB, TASK_TYPE)
}
