"""
Runtime utilities for the fleet harness.

Provides:
- Ticker: cancellable clock used by every harness loop
- RunLedger: per-run append-only ledger and run ID generation
"""

from fleet_harness.runtime.run_log import LedgerEntry, RunLedger, generate_run_id
from fleet_harness.runtime.ticker import Ticker

__all__ = [
    "LedgerEntry",
    "RunLedger",
    "Ticker",
    "generate_run_id",
]
