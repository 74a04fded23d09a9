"""Port for reading accounts from and submitting transactions to the ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from solders.hash import Hash
    from solders.pubkey import Pubkey
    from solders.signature import Signature
    from solders.transaction import VersionedTransaction


@dataclass(frozen=True, slots=True, kw_only=True)
class AccountData:
    """Raw account as returned by the ledger."""

    lamports: int
    owner: Pubkey
    data: bytes
    executable: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class SimulationResult:
    units_consumed: int | None
    err: object | None = None
    logs: tuple[str, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> bool:
        return self.err is not None


@runtime_checkable
class LedgerClient(Protocol):
    """Synchronous ledger access used by reconciliation and submission."""

    def get_multiple_accounts(self, addresses: Sequence[Pubkey]) -> list[AccountData | None]:
        """Fetch accounts in request order; missing accounts are ``None``."""
        ...

    def simulate(self, transaction: VersionedTransaction) -> SimulationResult:
        ...

    def latest_blockhash(self) -> Hash:
        ...

    def send_and_confirm(self, transaction: VersionedTransaction) -> Signature:
        """Submit ``transaction`` and block until it is confirmed or rejected."""
        ...


__all__ = ["AccountData", "LedgerClient", "SimulationResult"]
