"""Public domain model surface."""

from __future__ import annotations

from stakesync.domain.model.addresses import (
    find_deposit_authority,
    find_ephemeral_stake_account,
    find_transient_stake_account,
    find_validator_stake_account,
    find_withdraw_authority,
)
from stakesync.domain.model.enums import (
    AccountType,
    FundingType,
    PreferredValidatorType,
    StakeStatus,
    TransientPhase,
    UpdateCtrl,
)
from stakesync.domain.model.fees import Fee, FeeKind, FeeType, FutureEpochFee
from stakesync.domain.model.pool import Lockup, StakePool, ValidatorList, ValidatorStakeEntry
from stakesync.domain.model.primitives import U64_MAX, Epoch, Lamports, SeedSuffix
from stakesync.domain.model.program import StakePoolProgram
from stakesync.domain.model.stake import (
    Clock,
    Rent,
    StakeRecord,
    lamports_for_new_vsa,
    stake_rent_exempt_reserve,
)
from stakesync.domain.model.token import Mint

__all__ = [
    "U64_MAX",
    "AccountType",
    "Clock",
    "Epoch",
    "Fee",
    "FeeKind",
    "FeeType",
    "FundingType",
    "FutureEpochFee",
    "Lamports",
    "Lockup",
    "Mint",
    "PreferredValidatorType",
    "Rent",
    "SeedSuffix",
    "StakePool",
    "StakePoolProgram",
    "StakeRecord",
    "StakeStatus",
    "TransientPhase",
    "UpdateCtrl",
    "ValidatorList",
    "ValidatorStakeEntry",
    "find_deposit_authority",
    "find_ephemeral_stake_account",
    "find_transient_stake_account",
    "find_validator_stake_account",
    "find_withdraw_authority",
    "lamports_for_new_vsa",
    "stake_rent_exempt_reserve",
]
