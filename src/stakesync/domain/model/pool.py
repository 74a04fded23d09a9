"""Read-only snapshots of the pool and validator list accounts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import StakeStatus
from .fees import Fee, FeeKind, FeeType, FutureEpochFee

if TYPE_CHECKING:
    from solders.pubkey import Pubkey

    from .primitives import Epoch, Lamports, SeedSuffix


@dataclass(frozen=True, slots=True, kw_only=True)
class Lockup:
    unix_timestamp: int = 0
    epoch: Epoch = 0
    custodian: Pubkey | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class StakePool:
    """Decoded pool account.

    Optional authorities are ``None`` when unset on the ledger.
    """

    manager: Pubkey
    staker: Pubkey
    stake_deposit_authority: Pubkey
    stake_withdraw_bump_seed: int
    validator_list: Pubkey
    reserve_stake: Pubkey
    pool_mint: Pubkey
    manager_fee_account: Pubkey
    token_program_id: Pubkey
    total_lamports: Lamports
    pool_token_supply: int
    last_update_epoch: Epoch
    lockup: Lockup
    epoch_fee: Fee
    next_epoch_fee: FutureEpochFee
    preferred_deposit_validator: Pubkey | None
    preferred_withdraw_validator: Pubkey | None
    stake_deposit_fee: Fee
    stake_withdrawal_fee: Fee
    next_stake_withdrawal_fee: FutureEpochFee
    stake_referral_fee: int
    sol_deposit_authority: Pubkey | None
    sol_deposit_fee: Fee
    sol_referral_fee: int
    sol_withdraw_authority: Pubkey | None
    sol_withdrawal_fee: Fee
    next_sol_withdrawal_fee: FutureEpochFee
    last_epoch_pool_token_supply: int = 0
    last_epoch_total_lamports: Lamports = 0

    def fee(self, kind: FeeKind) -> FeeType:
        match kind:
            case FeeKind.SOL_REFERRAL:
                return FeeType.referral(kind, self.sol_referral_fee)
            case FeeKind.STAKE_REFERRAL:
                return FeeType.referral(kind, self.stake_referral_fee)
            case FeeKind.EPOCH:
                return FeeType.of(kind, self.epoch_fee)
            case FeeKind.STAKE_WITHDRAWAL:
                return FeeType.of(kind, self.stake_withdrawal_fee)
            case FeeKind.SOL_DEPOSIT:
                return FeeType.of(kind, self.sol_deposit_fee)
            case FeeKind.STAKE_DEPOSIT:
                return FeeType.of(kind, self.stake_deposit_fee)
            case FeeKind.SOL_WITHDRAWAL:
                return FeeType.of(kind, self.sol_withdrawal_fee)

    def pending_fee(self, kind: FeeKind) -> FutureEpochFee | None:
        """Scheduled future value for the fee kinds the program rate-limits."""

        match kind:
            case FeeKind.EPOCH:
                return self.next_epoch_fee
            case FeeKind.STAKE_WITHDRAWAL:
                return self.next_stake_withdrawal_fee
            case FeeKind.SOL_WITHDRAWAL:
                return self.next_sol_withdrawal_fee
            case _:
                return None

    def is_updated_for(self, epoch: Epoch) -> bool:
        return self.last_update_epoch >= epoch


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidatorStakeEntry:
    """One validator list entry."""

    vote_account: Pubkey
    active_stake_lamports: Lamports
    transient_stake_lamports: Lamports
    last_update_epoch: Epoch
    transient_seed_suffix: SeedSuffix
    validator_seed_suffix: SeedSuffix
    status: StakeStatus = StakeStatus.ACTIVE

    @property
    def is_being_removed(self) -> bool:
        return self.status.is_being_removed


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidatorList:
    max_validators: int
    validators: tuple[ValidatorStakeEntry, ...] = field(default_factory=tuple)

    def find(self, vote_account: Pubkey) -> ValidatorStakeEntry | None:
        for entry in self.validators:
            if entry.vote_account == vote_account:
                return entry
        return None

    def __len__(self) -> int:
        return len(self.validators)
