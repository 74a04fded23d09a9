"""Compute budget estimation by simulation."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash
from solders.message import MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from stakesync.domain.errors import SimulationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from solders.instruction import Instruction
    from solders.pubkey import Pubkey

    from stakesync.domain.ports import LedgerClient

log = getLogger(__name__)

CU_BUFFER_RATIO: Final[float] = 1.1
CUS_REQUIRED_FOR_SET_CU_LIMIT_IXS: Final[int] = 300
MAX_COMPUTE_UNIT_LIMIT: Final[int] = 1_400_000
MICRO_LAMPORTS_PER_LAMPORT: Final[int] = 1_000_000


@dataclass(frozen=True, slots=True)
class ComputeBudget:
    unit_limit: int
    unit_price_micro_lamports: int

    def instructions(self) -> list[Instruction]:
        return [
            set_compute_unit_price(self.unit_price_micro_lamports),
            set_compute_unit_limit(self.unit_limit),
        ]

    @property
    def max_fee_lamports(self) -> int:
        return self.unit_limit * self.unit_price_micro_lamports // MICRO_LAMPORTS_PER_LAMPORT


def buffer_compute_units(units: int, ratio: float = CU_BUFFER_RATIO) -> int:
    return int(units * ratio)


def compute_unit_price(units: int, fee_limit_lamports: int) -> int:
    """Micro-lamports per compute unit so ``units`` cost at most ``fee_limit_lamports``."""

    if units <= 0:
        return 1
    return max(fee_limit_lamports * MICRO_LAMPORTS_PER_LAMPORT // units, 1)


def simulation_transaction(
    payer: Pubkey,
    instructions: Sequence[Instruction],
) -> VersionedTransaction:
    """Unsigned transaction carrying placeholder compute budget instructions.

    The placeholders keep the simulated transaction the same shape as the one
    that will be sent.
    """

    placeholder = ComputeBudget(unit_limit=MAX_COMPUTE_UNIT_LIMIT, unit_price_micro_lamports=0)
    message = MessageV0.try_compile(
        payer,
        [*placeholder.instructions(), *instructions],
        [],
        Hash.default(),
    )
    signatures = [Signature.default()] * message.header.num_required_signatures
    return VersionedTransaction.populate(message, signatures)


@dataclass(slots=True)
class FeeEstimator:
    """Annotate instruction lists with a compute budget priced against a fee ceiling.

    A ``fee_limit_lamports`` of 0 disables estimation.
    """

    ledger: LedgerClient
    fee_limit_lamports: int

    @property
    def enabled(self) -> bool:
        return self.fee_limit_lamports > 0

    def estimate(
        self,
        payer: Pubkey,
        instructions: Sequence[Instruction],
    ) -> ComputeBudget | None:
        if not self.enabled:
            return None
        result = self.ledger.simulate(simulation_transaction(payer, instructions))
        if result.failed or result.units_consumed is None:
            raise SimulationError(
                f"Simulation failed while estimating compute units: {result.err}",
                logs=result.logs,
            )
        units = min(
            buffer_compute_units(result.units_consumed) + CUS_REQUIRED_FOR_SET_CU_LIMIT_IXS,
            MAX_COMPUTE_UNIT_LIMIT,
        )
        budget = ComputeBudget(
            unit_limit=units,
            unit_price_micro_lamports=compute_unit_price(units, self.fee_limit_lamports),
        )
        log.debug(
            "Estimated %d compute units at %d micro-lamports each",
            budget.unit_limit,
            budget.unit_price_micro_lamports,
        )
        return budget

    def with_compute_budget(
        self,
        payer: Pubkey,
        instructions: Sequence[Instruction],
    ) -> list[Instruction]:
        budget = self.estimate(payer, instructions)
        if budget is None:
            return list(instructions)
        return [*budget.instructions(), *instructions]
