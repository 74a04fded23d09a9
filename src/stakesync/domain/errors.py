"""Error taxonomy for reconciliation and submission.

Conditions that only affect one validator (reserve shortfalls, transient
conflicts) are not exceptions; they are reported as change records.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from solders.pubkey import Pubkey


class StakeSyncError(RuntimeError):
    """Base class for fatal stakesync errors."""


class ValidationError(StakeSyncError):
    """Declared configuration is malformed or contradictory."""


class AuthorizationMismatchError(StakeSyncError):
    """Supplied authority does not match the authority of record."""

    def __init__(self, role: str, *, expected: Pubkey, actual: Pubkey) -> None:
        super().__init__(f"Wrong {role}. Expecting {expected}, got {actual}")
        self.role = role
        self.expected = expected
        self.actual = actual


class UnexpectedAccountStateError(StakeSyncError):
    """A fetched account is missing or does not have the expected shape."""


class SubmissionError(StakeSyncError):
    """The ledger rejected a batch."""

    def __init__(self, message: str, *, batch_index: int | None = None) -> None:
        super().__init__(message)
        self.batch_index = batch_index


class SimulationError(SubmissionError):
    """Dry-run simulation of a batch failed."""

    def __init__(
        self,
        message: str,
        *,
        logs: tuple[str, ...] = (),
        batch_index: int | None = None,
    ) -> None:
        super().__init__(message, batch_index=batch_index)
        self.logs = logs
