"""Translation of change records into stake pool operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from stakesync.domain.reconciliation import (
    Decrease,
    FeeChange,
    FundingAuthorityChange,
    Increase,
    ManagerChange,
    ManagerFeeAccountChange,
    PartialIncrease,
    StakerChange,
)
from stakesync.domain.transactions import Operation, OperationKind, OperationUnit

if TYPE_CHECKING:
    from collections.abc import Iterable

    from solders.pubkey import Pubkey

    from stakesync.domain.reconciliation import (
        DelegationChange,
        ParameterChange,
        PreferredValidatorChange,
        RemovalPlan,
        UpdatePlan,
    )

    from .instructions import StakePoolInstructions


@dataclass(slots=True)
class OperationBuilder:
    instructions: StakePoolInstructions

    def delegation_operations(
        self,
        changes: Iterable[DelegationChange],
        *,
        staker: Pubkey,
    ) -> list[Operation]:
        """Operations for stake changes; signals without ledger effect are skipped."""

        operations: list[Operation] = []
        for change in changes:
            match change:
                case Increase() | PartialIncrease():
                    instruction = self.instructions.increase_validator_stake(
                        change.vote,
                        change.lamports,
                        staker=staker,
                        validator_seed=change.validator_seed_suffix,
                        transient_seed=change.transient_seed_suffix,
                    )
                    kind = OperationKind.INCREASE_STAKE
                case Decrease():
                    instruction = self.instructions.decrease_validator_stake(
                        change.vote,
                        change.lamports,
                        staker=staker,
                        validator_seed=change.validator_seed_suffix,
                        transient_seed=change.transient_seed_suffix,
                    )
                    kind = OperationKind.DECREASE_STAKE
                case _:
                    continue
            operations.append(
                Operation(kind=kind, instruction=instruction, description=change.describe())
            )
        return operations

    def parameter_operations(
        self,
        changes: Iterable[ParameterChange],
        *,
        manager: Pubkey,
        manager_fee_account: Pubkey,
    ) -> list[Operation]:
        """Operations for pool parameter changes, all authorized by the current manager."""

        operations: list[Operation] = []
        for change in changes:
            match change:
                case FeeChange():
                    instruction = self.instructions.set_fee(change.new, manager=manager)
                    kind = OperationKind.SET_FEE
                case ManagerFeeAccountChange():
                    instruction = self.instructions.set_manager(
                        manager=manager,
                        new_manager=manager,
                        new_manager_fee_account=change.new,
                    )
                    kind = OperationKind.SET_MANAGER
                case StakerChange():
                    instruction = self.instructions.set_staker(change.new, signer=manager)
                    kind = OperationKind.SET_STAKER
                case ManagerChange():
                    instruction = self.instructions.set_manager(
                        manager=manager,
                        new_manager=change.new,
                        new_manager_fee_account=manager_fee_account,
                    )
                    kind = OperationKind.SET_MANAGER
                case FundingAuthorityChange():
                    instruction = self.instructions.set_funding_authority(
                        change.funding_type,
                        change.new,
                        manager=manager,
                    )
                    kind = OperationKind.SET_FUNDING_AUTHORITY
            operations.append(
                Operation(kind=kind, instruction=instruction, description=change.describe())
            )
        return operations

    def removal_units(
        self,
        removals: Iterable[RemovalPlan],
        *,
        staker: Pubkey,
    ) -> list[OperationUnit]:
        """One unit per removal; a needed decrease lands in the same transaction first."""

        units: list[OperationUnit] = []
        for removal in removals:
            entry = removal.entry
            operations: list[Operation] = []
            if removal.needs_decrease:
                operations.append(
                    Operation(
                        kind=OperationKind.DECREASE_STAKE,
                        instruction=self.instructions.decrease_validator_stake(
                            entry.vote_account,
                            removal.decrease_lamports,
                            staker=staker,
                            validator_seed=entry.validator_seed_suffix,
                            transient_seed=entry.transient_seed_suffix,
                        ),
                    )
                )
            operations.append(
                Operation(
                    kind=OperationKind.REMOVE_VALIDATOR,
                    instruction=self.instructions.remove_validator(entry, staker=staker),
                    description=removal.describe(),
                )
            )
            units.append(OperationUnit(tuple(operations)))
        return units

    def add_operations(self, votes: Iterable[Pubkey], *, staker: Pubkey) -> list[Operation]:
        return [
            Operation(
                kind=OperationKind.ADD_VALIDATOR,
                instruction=self.instructions.add_validator(vote, staker=staker),
                description=f"Add validator {vote}",
            )
            for vote in votes
        ]

    def preferred_operations(
        self,
        changes: Iterable[PreferredValidatorChange],
        *,
        staker: Pubkey,
    ) -> list[Operation]:
        return [
            Operation(
                kind=OperationKind.SET_PREFERRED_VALIDATOR,
                instruction=self.instructions.set_preferred_validator(
                    change.validator_type,
                    change.new,
                    staker=staker,
                ),
                description=change.describe(),
            )
            for change in changes
        ]

    def update_units(self, plan: UpdatePlan, *, no_merge: bool = False) -> list[OperationUnit]:
        """Validator list slices first, then the pool balance update with cleanup."""

        units = [
            OperationUnit.single(
                Operation(
                    kind=OperationKind.UPDATE_VALIDATOR_LIST,
                    instruction=self.instructions.update_validator_list_balance(
                        chunk.entries,
                        start_index=chunk.start_index,
                        no_merge=no_merge,
                    ),
                    description=chunk.describe(),
                )
            )
            for chunk in plan.slices
        ]
        units.append(
            OperationUnit(
                (
                    Operation(
                        kind=OperationKind.UPDATE_POOL_BALANCE,
                        instruction=self.instructions.update_stake_pool_balance(),
                        description="Updating pool balance",
                    ),
                    Operation(
                        kind=OperationKind.CLEANUP_REMOVED_VALIDATORS,
                        instruction=self.instructions.cleanup_removed_validator_entries(),
                    ),
                )
            )
        )
        return units
