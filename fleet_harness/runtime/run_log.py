"""
Run ledger for audit logging.

Append-only record of everything a run observed and did:
- Churn events (stop/start and outcome)
- Verification samples
- Fleet health snapshots
- Cycle results
- Rollout polls
- Restore results
- Run summary

Each invocation gets its own directory:
- {log_dir}/{run_id}/run.log      timestamped text lines (logging file handler)
- {log_dir}/{run_id}/ledger.jsonl one JSON record per line
- {log_dir}/{run_id}/manifest.json run configuration snapshot
"""

import json
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from fleet_harness.domain import (
    ChurnEvent,
    FleetHealth,
    RestoreResult,
    RolloutStatus,
    RunSummary,
    TestCycleResult,
    VerificationSample,
)
from fleet_harness.logging import get_logger, redact_sensitive

logger = get_logger(__name__)


def generate_run_id(prefix: str = "run") -> str:
    """
    Generate a unique run ID.

    Format: {prefix}-{timestamp}-{uuid6}
    Example: churn-verify-20260119-143022-a1b2c3

    Args:
        prefix: ID prefix (usually the command name)

    Returns:
        Unique run ID string.
    """
    timestamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short_uuid = uuid4().hex[:6]
    return f"{prefix}-{timestamp}-{short_uuid}"


class LedgerEntry(BaseModel):
    """One line of the ledger."""

    entry_type: str
    run_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    phase: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class RunLedger:
    """
    Append-only run ledger.

    Safe for concurrent appends (the restore fan-out writes from several
    tasks); every write is one complete JSON line.
    """

    def __init__(
        self,
        log_dir: Path,
        command: str,
        config: dict[str, Any] | None = None,
        run_id: str | None = None,
    ):
        """
        Initialize the ledger and write the manifest.

        Args:
            log_dir: Base directory for runs
            command: Command that started the run (e.g. "churn-verify")
            config: Redacted configuration snapshot for the manifest
            run_id: Optional run ID (generated if not provided)
        """
        self._command = command
        self._run_id = run_id or generate_run_id(command)
        self._run_dir = log_dir / self._run_id
        self._run_dir.mkdir(parents=True, exist_ok=True)

        self._ledger_path = self._run_dir / "ledger.jsonl"
        self._manifest_path = self._run_dir / "manifest.json"
        self._lock = threading.Lock()
        self._started_at = datetime.now(UTC)
        self._entry_count = 0

        self._write_manifest(config or {})

        logger.debug("Run ledger initialized: %s", self._run_dir)

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def run_dir(self) -> Path:
        return self._run_dir

    @property
    def ledger_path(self) -> Path:
        return self._ledger_path

    @property
    def log_path(self) -> Path:
        """Path of the text run log (written by the logging file handler)."""
        return self._run_dir / "run.log"

    @property
    def entry_count(self) -> int:
        return self._entry_count

    def _write_manifest(self, config: dict[str, Any], **extra: Any) -> None:
        manifest = {
            "run_id": self._run_id,
            "command": self._command,
            "started_at": self._started_at.isoformat(),
            "config": redact_sensitive(config),
            **extra,
        }
        with open(self._manifest_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, default=str)

    def _append(self, entry_type: str, data: dict[str, Any], phase: str | None = None) -> None:
        entry = LedgerEntry(
            entry_type=entry_type,
            run_id=self._run_id,
            phase=phase,
            data=data,
        )
        line = entry.model_dump_json() + "\n"
        with self._lock:
            with open(self._ledger_path, "a", encoding="utf-8") as f:
                f.write(line)
            self._entry_count += 1

    def record_churn_event(self, event: ChurnEvent) -> None:
        """Record one stop/start action."""
        self._append("churn_event", event.model_dump(mode="json"))

    def record_verification(self, sample: VerificationSample, phase: str) -> None:
        """Record a verification pass (missing addresses listed, requested set counted)."""
        self._append(
            "verification",
            {
                "total_count": sample.total_count,
                "verified_count": sample.verified_count,
                "passed": sample.passed,
                "interrupted": sample.interrupted,
                "missing": list(sample.missing),
                "timestamp": sample.timestamp.isoformat(),
            },
            phase=phase,
        )

    def record_health(self, health: FleetHealth, phase: str) -> None:
        """Record a fleet health snapshot."""
        self._append(
            "health",
            {
                "expected_total": health.expected_total,
                "total_running": health.total_running,
                "percent": health.percent,
                "per_worker": health.per_worker,
                "unreachable": health.unreachable,
            },
            phase=phase,
        )

    def record_cycle(self, result: TestCycleResult) -> None:
        """Record the result of one churn cycle (events are recorded separately)."""
        self._append(
            "cycle",
            {
                "cycle": result.cycle,
                "requested": result.churn.requested,
                "victims_attempted": result.churn.victims_attempted,
                "victims_succeeded": result.churn.victims_succeeded,
                "recoveries_attempted": result.churn.recoveries_attempted,
                "recoveries_succeeded": result.churn.recoveries_succeeded,
                "total_running": result.health.total_running,
                "passed": result.passed,
            },
        )

    def record_rollout_status(self, status: RolloutStatus) -> None:
        """Record a rollout poll."""
        data = status.model_dump(mode="json")
        data["total_running"] = status.total_running
        data["total_upgraded"] = status.total_upgraded
        data["percent"] = status.percent
        self._append("rollout_status", data)

    def record_restore(self, result: RestoreResult) -> None:
        """Record a worker restore outcome."""
        self._append("restore", result.model_dump(mode="json"))

    def record_summary(self, summary: RunSummary) -> None:
        """Record the final run summary."""
        self._append(
            "summary",
            {
                "total_cycles": summary.total_cycles,
                "pass_count": summary.pass_count,
                "fail_count": summary.fail_count,
                "succeeded": summary.succeeded,
                "cancelled": summary.cancelled,
                "restore_failures": summary.restore_failures,
            },
        )

    def record_note(self, message: str, **data: Any) -> None:
        """Record a free-form event (phase markers, warnings)."""
        self._append("note", {"message": message, **data})

    def finalize(
        self,
        outcome: str,
        exit_code: int,
        config: dict[str, Any] | None = None,
        warnings: list[str] | None = None,
    ) -> None:
        """
        Rewrite the manifest with completion details.

        Args:
            outcome: Final outcome label (SUCCESS, FAILURE, TIMED_OUT, ...)
            exit_code: Process exit code
            config: Redacted configuration snapshot
            warnings: Most recent warning lines of the run
        """
        with self._lock:
            self._write_manifest(
                config or {},
                completed_at=datetime.now(UTC).isoformat(),
                outcome=outcome,
                exit_code=exit_code,
                entries=self._entry_count,
                warnings=warnings or [],
            )

    def read_entries(self) -> list[LedgerEntry]:
        """Read back every ledger entry."""
        if not self._ledger_path.exists():
            return []
        with open(self._ledger_path, encoding="utf-8") as f:
            return [LedgerEntry.model_validate_json(line) for line in f if line.strip()]
