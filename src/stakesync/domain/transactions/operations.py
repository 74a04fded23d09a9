"""Ledger operations produced from change records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from solders.instruction import Instruction
    from solders.pubkey import Pubkey


class OperationKind(StrEnum):
    INCREASE_STAKE = "increase_stake"
    DECREASE_STAKE = "decrease_stake"
    ADD_VALIDATOR = "add_validator"
    REMOVE_VALIDATOR = "remove_validator"
    SET_FEE = "set_fee"
    SET_FUNDING_AUTHORITY = "set_funding_authority"
    SET_MANAGER = "set_manager"
    SET_STAKER = "set_staker"
    SET_PREFERRED_VALIDATOR = "set_preferred_validator"
    UPDATE_VALIDATOR_LIST = "update_validator_list"
    UPDATE_POOL_BALANCE = "update_pool_balance"
    CLEANUP_REMOVED_VALIDATORS = "cleanup_removed_validators"
    CREATE_RESERVE = "create_reserve"
    INITIALIZE_POOL = "initialize_pool"


@dataclass(frozen=True, slots=True, kw_only=True)
class Operation:
    """One instruction tagged with what it does."""

    kind: OperationKind
    instruction: Instruction
    description: str = ""

    @property
    def signers(self) -> tuple[Pubkey, ...]:
        return tuple(meta.pubkey for meta in self.instruction.accounts if meta.is_signer)


@dataclass(frozen=True, slots=True)
class OperationUnit:
    """Operations that must land in the same transaction, in order.

    A decrease followed by the removal of the same validator is one unit.
    """

    operations: tuple[Operation, ...]

    def __post_init__(self) -> None:
        if not self.operations:
            raise ValueError("Operation unit must contain at least one operation")

    @classmethod
    def single(cls, operation: Operation) -> OperationUnit:
        return cls((operation,))

    @property
    def kind(self) -> OperationKind:
        """The kind that bounds how many of these units fit in a transaction."""

        kinds = {operation.kind for operation in self.operations}
        if OperationKind.REMOVE_VALIDATOR in kinds:
            return OperationKind.REMOVE_VALIDATOR
        return self.operations[0].kind

    def __len__(self) -> int:
        return len(self.operations)
