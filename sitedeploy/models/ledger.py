"""Deploy ledger entry model (append-only, hash-chained).

One entry per state transition of a deploy run.  The ledger is the audit
trail behind ``sitedeploy history``:
- Append-only (no UPDATE, no DELETE)
- Hash-chained (each entry links to the previous via SHA-256)
- Scoped to run_id, tagged with the environment deployed to
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """A single entry in the append-only deploy ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    environment: str
    state_transition: str  # "from_state->to_state", e.g. "planning->applying"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    plan_hash: str = ""
    detail: dict[str, str] = {}
    payload_hash: str = ""  # SHA-256 of canonical(detail)
    tool_version: str = ""
    previous_entry_hash: str = ""
    entry_hash: str = ""  # computed on append, seals this entry

    @property
    def to_state(self) -> str:
        return self.state_transition.split("->", 1)[-1]


class RunSummary(BaseModel):
    """One deploy run as seen from the ledger."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    environment: str
    final_state: str
    plan_hash: str = ""
    started_at: datetime
    finished_at: datetime
    entry_count: int
