"""Audit store protocol and file-backed implementation."""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import pyarrow as pa
import pyarrow.parquet as pq

from agentflow.models import Decision, Event, ExecutionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionRecord:
    """A decision together with the outcome of executing it."""
    decision_id: str
    strategy: str
    action: str
    from_chain: int
    to_chain: int
    from_token: str
    to_token: str
    amount: int
    success: bool
    tx_id: str | None
    error: str | None
    gas_used: int | None
    executed_at: datetime

    @classmethod
    def from_outcome(cls, decision: Decision, result: ExecutionResult) -> "ExecutionRecord":
        return cls(
            decision_id=decision.id,
            strategy=decision.strategy,
            action=decision.action.value,
            from_chain=decision.from_chain,
            to_chain=decision.to_chain,
            from_token=decision.from_token,
            to_token=decision.to_token,
            amount=decision.amount,
            success=result.success,
            tx_id=result.tx_id,
            error=result.error,
            gas_used=result.gas_used,
            executed_at=datetime.fromtimestamp(result.executed_at, tz=timezone.utc),
        )


@runtime_checkable
class AuditStore(Protocol):
    """Protocol for persisting the agent's audit trail."""

    def log_decision(self, decision: Decision) -> None:
        """Append a proposed decision to the audit log."""
        ...

    def log_execution(self, decision: Decision, result: ExecutionResult) -> None:
        """Append an execution outcome to the audit log and history."""
        ...

    def log_event(self, event: Event) -> None:
        """Append a session or error event to the audit log."""
        ...

    def read_executions(self, start: datetime, end: datetime) -> list[ExecutionRecord]:
        """Read execution history within a time range."""
        ...


class FileAuditStore:
    """Audit trail as daily JSONL files plus monthly Parquet execution history."""

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        for d in ["executions", "audit/decisions", "audit/executions", "audit/events"]:
            (self.base_path / d).mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # Audit Logging (JSONL)
    # =========================================================================

    def log_decision(self, decision: Decision) -> None:
        self._append("decisions", {"decision": decision.to_dict()})

    def log_execution(self, decision: Decision, result: ExecutionResult) -> None:
        self._append("executions", {"decision": decision.to_dict(), "result": result.to_dict()})
        self.write_executions([ExecutionRecord.from_outcome(decision, result)])

    def log_event(self, event: Event) -> None:
        self._append("events", event.to_dict())

    def _append(self, kind: str, entry: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc)
        file_path = self.base_path / "audit" / kind / f"{now.strftime('%Y-%m-%d')}.jsonl"
        with open(file_path, "a") as f:
            f.write(json.dumps({"timestamp": now.isoformat(), **entry}, default=str) + "\n")
        logger.debug(f"Logged {kind} entry to {file_path}")

    # =========================================================================
    # Execution History (Parquet)
    # =========================================================================

    def write_executions(self, records: list[ExecutionRecord]) -> None:
        """Write execution records to Parquet files, partitioned by month.

        Records are merged with the existing month; a repeated decision id
        replaces the earlier record.
        """
        if not records:
            return

        by_month: dict[str, list[ExecutionRecord]] = {}
        for record in records:
            by_month.setdefault(record.executed_at.strftime("%Y-%m"), []).append(record)

        for month_key, month_records in by_month.items():
            file_path = self.base_path / "executions" / f"{month_key}.parquet"

            merged: dict[str, ExecutionRecord] = {}
            if file_path.exists():
                merged = {r.decision_id: r for r in self._read_parquet(file_path)}
            for record in month_records:
                merged[record.decision_id] = record

            ordered = sorted(merged.values(), key=lambda r: r.executed_at)
            self._write_parquet(file_path, ordered)
            logger.debug(f"Wrote {len(ordered)} execution records to {file_path}")

    def read_executions(self, start: datetime, end: datetime) -> list[ExecutionRecord]:
        """Read execution records with start <= executed_at <= end."""
        start, end = _as_utc(start), _as_utc(end)
        records: list[ExecutionRecord] = []
        for parquet_file in (self.base_path / "executions").glob("*.parquet"):
            records.extend(self._read_parquet(parquet_file))

        filtered = [r for r in records if start <= r.executed_at <= end]
        return sorted(filtered, key=lambda r: r.executed_at)

    def _write_parquet(self, path: Path, records: list[ExecutionRecord]) -> None:
        # Unit amounts may exceed int64, stored as decimal strings
        table = pa.table({
            "decision_id": pa.array([r.decision_id for r in records], type=pa.string()),
            "strategy": pa.array([r.strategy for r in records], type=pa.string()),
            "action": pa.array([r.action for r in records], type=pa.string()),
            "from_chain": pa.array([r.from_chain for r in records], type=pa.int64()),
            "to_chain": pa.array([r.to_chain for r in records], type=pa.int64()),
            "from_token": pa.array([r.from_token for r in records], type=pa.string()),
            "to_token": pa.array([r.to_token for r in records], type=pa.string()),
            "amount": pa.array([str(r.amount) for r in records], type=pa.string()),
            "success": pa.array([r.success for r in records], type=pa.bool_()),
            "tx_id": pa.array([r.tx_id for r in records], type=pa.string()),
            "error": pa.array([r.error for r in records], type=pa.string()),
            "gas_used": pa.array(
                [str(r.gas_used) if r.gas_used is not None else None for r in records],
                type=pa.string(),
            ),
            "executed_at": pa.array(
                [r.executed_at for r in records], type=pa.timestamp("us", tz="UTC")
            ),
        })
        pq.write_table(table, path)

    def _read_parquet(self, path: Path) -> list[ExecutionRecord]:
        rows = pq.read_table(path).to_pylist()
        return [
            ExecutionRecord(
                decision_id=row["decision_id"],
                strategy=row["strategy"],
                action=row["action"],
                from_chain=int(row["from_chain"]),
                to_chain=int(row["to_chain"]),
                from_token=row["from_token"],
                to_token=row["to_token"],
                amount=int(row["amount"]),
                success=bool(row["success"]),
                tx_id=row["tx_id"],
                error=row["error"],
                gas_used=int(row["gas_used"]) if row["gas_used"] is not None else None,
                executed_at=_as_utc(row["executed_at"]),
            )
            for row in rows
        ]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
