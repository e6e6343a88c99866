from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Personal:
    account_id: str

    @property
    def key(self) -> str:
        return f"user:{self.account_id}"

    def columns(self) -> dict:
        return {"user_id": self.account_id, "workspace_id": None}


@dataclass(frozen=True)
class Shared:
    workspace_id: str

    @property
    def key(self) -> str:
        return f"workspace:{self.workspace_id}"

    def columns(self) -> dict:
        return {"user_id": None, "workspace_id": self.workspace_id}


Scope = Union[Personal, Shared]


def scope_from_record(record: dict) -> Scope:
    """Rebuild the scope of a stored row; exactly one owner column is set."""
    user_id = record.get("user_id")
    workspace_id = record.get("workspace_id")
    if workspace_id and not user_id:
        return Shared(str(workspace_id))
    if user_id and not workspace_id:
        return Personal(str(user_id))
    raise ValueError("Record must be scoped to exactly one of user or workspace")
