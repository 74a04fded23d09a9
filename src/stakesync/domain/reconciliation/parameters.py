"""Pool parameter reconciliation.

Every change except the manager change is authorized by the current manager
(or staker), so a manager change is always emitted last.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from stakesync.domain.model import FeeKind, FundingType, find_deposit_authority

if TYPE_CHECKING:
    from solders.pubkey import Pubkey

    from stakesync.domain.model import FeeType, StakePool, StakePoolProgram

    from .targets import PoolTargets


class ParameterChangeKind(StrEnum):
    FEE = "fee"
    MANAGER_FEE_ACCOUNT = "manager_fee_account"
    STAKER = "staker"
    MANAGER = "manager"
    FUNDING_AUTHORITY = "funding_authority"


@dataclass(frozen=True, slots=True, kw_only=True)
class FeeChange:
    old: FeeType
    new: FeeType
    kind: Literal[ParameterChangeKind.FEE] = ParameterChangeKind.FEE

    def describe(self) -> str:
        return (
            f"Change {self.new.kind.label} from "
            f"{self.old.display_value()} to {self.new.display_value()}"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ManagerFeeAccountChange:
    old: Pubkey
    new: Pubkey
    kind: Literal[ParameterChangeKind.MANAGER_FEE_ACCOUNT] = ParameterChangeKind.MANAGER_FEE_ACCOUNT

    def describe(self) -> str:
        return f"Change manager fee account from {self.old} to {self.new}"


@dataclass(frozen=True, slots=True, kw_only=True)
class StakerChange:
    old: Pubkey
    new: Pubkey
    kind: Literal[ParameterChangeKind.STAKER] = ParameterChangeKind.STAKER

    def describe(self) -> str:
        return f"Change staker from {self.old} to {self.new}"


@dataclass(frozen=True, slots=True, kw_only=True)
class ManagerChange:
    old: Pubkey
    new: Pubkey
    kind: Literal[ParameterChangeKind.MANAGER] = ParameterChangeKind.MANAGER

    def describe(self) -> str:
        return f"Change manager from {self.old} to {self.new}"


@dataclass(frozen=True, slots=True, kw_only=True)
class FundingAuthorityChange:
    funding_type: FundingType
    old: Pubkey | None
    new: Pubkey | None
    kind: Literal[ParameterChangeKind.FUNDING_AUTHORITY] = ParameterChangeKind.FUNDING_AUTHORITY

    def describe(self) -> str:
        return f"Change {self.funding_type.label} from {_or_none(self.old)} to {_or_none(self.new)}"


type ParameterChange = (
    FeeChange | ManagerFeeAccountChange | StakerChange | ManagerChange | FundingAuthorityChange
)

# Fees the program schedules for future epochs instead of applying immediately.
SCHEDULED_FEES: tuple[FeeKind, ...] = (
    FeeKind.EPOCH,
    FeeKind.SOL_WITHDRAWAL,
    FeeKind.STAKE_WITHDRAWAL,
)
IMMEDIATE_FEES: tuple[FeeKind, ...] = (
    FeeKind.SOL_DEPOSIT,
    FeeKind.SOL_REFERRAL,
    FeeKind.STAKE_DEPOSIT,
    FeeKind.STAKE_REFERRAL,
)


def _or_none(value: Pubkey | None) -> str:
    return "None" if value is None else str(value)


@dataclass(slots=True, kw_only=True)
class ParameterReconciler:
    pool: Pubkey
    program: StakePoolProgram

    def reconcile(self, current: StakePool, targets: PoolTargets) -> list[ParameterChange]:
        changes: list[ParameterChange] = []
        changes.extend(self.funding_authority_changes(current, targets))
        changes.extend(self.fee_changes(current, targets))
        if current.staker != targets.staker:
            changes.append(StakerChange(old=current.staker, new=targets.staker))
        if current.manager_fee_account != targets.manager_fee_account:
            changes.append(
                ManagerFeeAccountChange(
                    old=current.manager_fee_account,
                    new=targets.manager_fee_account,
                )
            )
        if current.manager != targets.manager:
            changes.append(ManagerChange(old=current.manager, new=targets.manager))
        return changes

    def funding_authority_changes(
        self,
        current: StakePool,
        targets: PoolTargets,
    ) -> list[FundingAuthorityChange]:
        # An unset stake deposit authority is stored as the default derived address.
        default_deposit_authority = find_deposit_authority(self.program.program_id, self.pool)
        current_stake_deposit = (
            None
            if current.stake_deposit_authority == default_deposit_authority
            else current.stake_deposit_authority
        )
        target_stake_deposit = (
            None
            if targets.stake_deposit_authority == default_deposit_authority
            else targets.stake_deposit_authority
        )
        pairs = (
            (FundingType.STAKE_DEPOSIT, current_stake_deposit, target_stake_deposit),
            (FundingType.SOL_DEPOSIT, current.sol_deposit_authority, targets.sol_deposit_authority),
            (
                FundingType.SOL_WITHDRAW,
                current.sol_withdraw_authority,
                targets.sol_withdraw_authority,
            ),
        )
        return [
            FundingAuthorityChange(funding_type=funding_type, old=old, new=new)
            for funding_type, old, new in pairs
            if old != new
        ]

    def fee_changes(self, current: StakePool, targets: PoolTargets) -> list[FeeChange]:
        changes: list[FeeChange] = []
        for kind in SCHEDULED_FEES:
            old, new = current.fee(kind), targets.fee(kind)
            if old.same_value(new):
                continue
            pending = current.pending_fee(kind)
            # A scheduled value that already matches will land without another change.
            if pending is not None and pending.fee is not None:
                if pending.fee.same_rate(new.rate):
                    continue
            changes.append(FeeChange(old=old, new=new))
        for kind in IMMEDIATE_FEES:
            old, new = current.fee(kind), targets.fee(kind)
            if not old.same_value(new):
                changes.append(FeeChange(old=old, new=new))
        return changes
