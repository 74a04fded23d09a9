"""Domain port definitions for adapters."""

from __future__ import annotations

from .ledger import AccountData, LedgerClient, SimulationResult

__all__ = ["AccountData", "LedgerClient", "SimulationResult"]
