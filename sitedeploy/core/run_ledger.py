"""Append-only, hash-chained deploy ledger backed by SQLite.

Every state transition of every deploy run is appended here.  The ledger
is the audit trail: ``sitedeploy history`` is a projection of it.

Design:
- Append-only: only `append()` writes; no update, no delete.
- Hash-chained per run: each entry includes SHA-256 of the previous entry.
- WAL journal mode for concurrent readers.
- entry_hash UNIQUE constraint for tamper detection.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from sitedeploy.core.hasher import compute_entry_hash, compute_payload_hash
from sitedeploy.models.ledger import LedgerEntry, RunSummary

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS deploy_ledger (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id            TEXT NOT NULL UNIQUE,
    run_id              TEXT NOT NULL,
    environment         TEXT NOT NULL,
    state_transition    TEXT NOT NULL,
    timestamp_utc       TEXT NOT NULL,
    plan_hash           TEXT NOT NULL DEFAULT '',
    detail_json         TEXT NOT NULL DEFAULT '{}',
    payload_hash        TEXT NOT NULL DEFAULT '',
    tool_version        TEXT NOT NULL DEFAULT '',
    previous_entry_hash TEXT NOT NULL DEFAULT '',
    entry_hash          TEXT NOT NULL UNIQUE
);
"""

_CREATE_IDX_RUN = """
CREATE INDEX IF NOT EXISTS idx_run_id ON deploy_ledger(run_id, id);
"""

_CREATE_IDX_ENV = """
CREATE INDEX IF NOT EXISTS idx_environment ON deploy_ledger(environment, id);
"""

_COLUMNS = (
    "id, entry_id, run_id, environment, state_transition, timestamp_utc, "
    "plan_hash, detail_json, payload_hash, tool_version, "
    "previous_entry_hash, entry_hash"
)


class LedgerIntegrityError(RuntimeError):
    """Raised when the hash chain is broken."""


class DeployLedger:
    """Append-only, hash-chained deploy ledger.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # Serializes read-latest-then-insert within this process
        self._append_lock = threading.Lock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_LEDGER)
            conn.execute(_CREATE_IDX_RUN)
            conn.execute(_CREATE_IDX_ENV)
            conn.commit()

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Core: append-only write
    # ------------------------------------------------------------------

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Append an entry, computing its payload hash and chain links.

        Returns the sealed entry.  This is the ONLY write method.
        """
        with self._append_lock:
            previous_hash = self._get_latest_hash(entry.run_id)

            entry_dict = entry.model_dump(mode="json")
            entry_dict["payload_hash"] = compute_payload_hash(entry.detail)
            entry_dict["previous_entry_hash"] = previous_hash
            entry_dict["entry_hash"] = ""
            entry_hash = compute_entry_hash(entry_dict)

            sealed = entry.model_copy(
                update={
                    "payload_hash": entry_dict["payload_hash"],
                    "previous_entry_hash": previous_hash,
                    "entry_hash": entry_hash,
                }
            )
            self._insert(sealed)
        return sealed

    def _insert(self, entry: LedgerEntry) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO deploy_ledger
                    (entry_id, run_id, environment, state_transition,
                     timestamp_utc, plan_hash, detail_json, payload_hash,
                     tool_version, previous_entry_hash, entry_hash)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.entry_id,
                    entry.run_id,
                    entry.environment,
                    entry.state_transition,
                    entry.timestamp_utc.isoformat(),
                    entry.plan_hash,
                    json.dumps(entry.detail, sort_keys=True),
                    entry.payload_hash,
                    entry.tool_version,
                    entry.previous_entry_hash,
                    entry.entry_hash,
                ),
            )
            conn.commit()

    def _get_latest_hash(self, run_id: str) -> str:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT entry_hash FROM deploy_ledger WHERE run_id = ? ORDER BY id DESC LIMIT 1",
                (run_id,),
            ).fetchone()
        return row[0] if row else ""

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get_run_entries(self, run_id: str) -> list[LedgerEntry]:
        """Return all ledger entries for a run, ordered chronologically."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM deploy_ledger WHERE run_id = ? ORDER BY id ASC",
                (run_id,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_latest(self, run_id: str) -> LedgerEntry | None:
        entries = self.get_run_entries(run_id)
        return entries[-1] if entries else None

    def list_runs(self, environment: str | None = None, limit: int = 20) -> list[RunSummary]:
        """Summaries of the most recent runs, newest first."""
        query = "SELECT run_id FROM deploy_ledger"
        params: tuple = ()
        if environment is not None:
            query += " WHERE environment = ?"
            params = (environment,)
        query += " GROUP BY run_id ORDER BY MAX(id) DESC LIMIT ?"
        with self._connect() as conn:
            run_ids = [row[0] for row in conn.execute(query, (*params, limit)).fetchall()]

        summaries: list[RunSummary] = []
        for run_id in run_ids:
            entries = self.get_run_entries(run_id)
            summaries.append(
                RunSummary(
                    run_id=run_id,
                    environment=entries[0].environment,
                    final_state=entries[-1].to_state,
                    plan_hash=next((e.plan_hash for e in reversed(entries) if e.plan_hash), ""),
                    started_at=entries[0].timestamp_utc,
                    finished_at=entries[-1].timestamp_utc,
                    entry_count=len(entries),
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Chain verification
    # ------------------------------------------------------------------

    def verify_chain(self, run_id: str) -> bool:
        """Verify the hash chain integrity for a run.

        Returns True if the chain is valid, raises LedgerIntegrityError otherwise.
        """
        prev_hash = ""
        for entry in self.get_run_entries(run_id):
            if entry.previous_entry_hash != prev_hash:
                raise LedgerIntegrityError(
                    f"Chain broken at entry {entry.entry_id}: "
                    f"expected previous_hash={prev_hash!r}, "
                    f"got {entry.previous_entry_hash!r}"
                )

            expected_hash = compute_entry_hash(entry.model_dump(mode="json"))
            if entry.entry_hash != expected_hash:
                raise LedgerIntegrityError(
                    f"Tampered entry {entry.entry_id}: "
                    f"expected hash={expected_hash!r}, "
                    f"got {entry.entry_hash!r}"
                )

            prev_hash = entry.entry_hash

        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_entry(row: tuple) -> LedgerEntry:
        (
            _id,
            entry_id,
            run_id,
            environment,
            state_transition,
            timestamp_utc,
            plan_hash,
            detail_json,
            payload_hash,
            tool_version,
            previous_entry_hash,
            entry_hash,
        ) = row
        return LedgerEntry(
            entry_id=entry_id,
            run_id=run_id,
            environment=environment,
            state_transition=state_transition,
            timestamp_utc=datetime.fromisoformat(timestamp_utc),
            plan_hash=plan_hash,
            detail=json.loads(detail_json),
            payload_hash=payload_hash,
            tool_version=tool_version,
            previous_entry_hash=previous_entry_hash,
            entry_hash=entry_hash,
        )
