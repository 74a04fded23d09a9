"""Greedy, order-preserving packing of operations into transactions.

Each operation kind has a worst-case account list, which fixes how many of
them fit under the 1232-byte transaction ceiling together with the two
compute budget instructions. A chunk is bounded by the smallest ceiling
among the kinds it contains; kinds without a ceiling are small enough not
to matter for the batches this tool produces.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from .operations import OperationKind, OperationUnit

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .operations import Operation

MAX_TRANSACTION_SIZE: Final[int] = 1232
MAX_ADD_VALIDATORS_PER_TX: Final[int] = 7
MAX_REMOVE_VALIDATOR_UNITS_PER_TX: Final[int] = 5
MAX_INCREASE_VALIDATOR_STAKE_PER_TX: Final[int] = 4
MAX_UPDATE_VALIDATOR_LIST_PER_TX: Final[int] = 1
# Reserve creation and pool initialization each fill a transaction of their own.
MAX_CREATE_POOL_STEPS_PER_TX: Final[int] = 1


def _default_ceilings() -> dict[OperationKind, int]:
    return {
        OperationKind.ADD_VALIDATOR: MAX_ADD_VALIDATORS_PER_TX,
        OperationKind.REMOVE_VALIDATOR: MAX_REMOVE_VALIDATOR_UNITS_PER_TX,
        OperationKind.DECREASE_STAKE: MAX_REMOVE_VALIDATOR_UNITS_PER_TX,
        OperationKind.INCREASE_STAKE: MAX_INCREASE_VALIDATOR_STAKE_PER_TX,
        OperationKind.UPDATE_VALIDATOR_LIST: MAX_UPDATE_VALIDATOR_LIST_PER_TX,
        OperationKind.CREATE_RESERVE: MAX_CREATE_POOL_STEPS_PER_TX,
        OperationKind.INITIALIZE_POOL: MAX_CREATE_POOL_STEPS_PER_TX,
    }


@dataclass(frozen=True, slots=True)
class BatchLimits:
    ceilings: Mapping[OperationKind, int] = field(default_factory=_default_ceilings)

    def ceiling(self, kind: OperationKind) -> int | None:
        return self.ceilings.get(kind)

    def chunk_limit(self, kinds: Iterable[OperationKind]) -> int | None:
        limits = [limit for kind in kinds if (limit := self.ceiling(kind)) is not None]
        return min(limits) if limits else None


@dataclass(slots=True)
class OperationBatcher:
    limits: BatchLimits = field(default_factory=BatchLimits)

    def chunk(self, units: Iterable[OperationUnit | Operation]) -> list[list[OperationUnit]]:
        """Split ``units`` into consecutive chunks without reordering anything."""

        chunks: list[list[OperationUnit]] = []
        current: list[OperationUnit] = []
        for item in units:
            unit = item if isinstance(item, OperationUnit) else OperationUnit.single(item)
            kinds = {existing.kind for existing in current} | {unit.kind}
            limit = self.limits.chunk_limit(kinds)
            if current and limit is not None and len(current) + 1 > limit:
                chunks.append(current)
                current = []
            current.append(unit)
        if current:
            chunks.append(current)
        return chunks

    def batch_operations(
        self,
        units: Iterable[OperationUnit | Operation],
    ) -> list[list[Operation]]:
        return [
            [operation for unit in chunk for operation in unit.operations]
            for chunk in self.chunk(units)
        ]
