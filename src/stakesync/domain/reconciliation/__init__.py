"""Diff algorithms turning declared targets plus a ledger snapshot into changes."""

from __future__ import annotations

from stakesync.domain.reconciliation.delegation import (
    Decrease,
    DelegationChange,
    DelegationChangeKind,
    DelegationInput,
    DelegationReconciler,
    Increase,
    InsufficientReserve,
    NoChange,
    PartialIncrease,
    StakeChange,
    TransientConflict,
    ValidatorBeingRemoved,
    is_stake_change,
    match_scheme,
)
from stakesync.domain.reconciliation.lifecycle import next_epoch_stake, transient_phase
from stakesync.domain.reconciliation.parameters import (
    FeeChange,
    FundingAuthorityChange,
    ManagerChange,
    ManagerFeeAccountChange,
    ParameterChange,
    ParameterChangeKind,
    ParameterReconciler,
    StakerChange,
)
from stakesync.domain.reconciliation.targets import (
    REMAINDER,
    DelegationTarget,
    LamportsTarget,
    MembershipTargets,
    PoolTargets,
    RemainderTarget,
    ValidatorDelegation,
    order_delegation_scheme,
    validate_delegation_scheme,
)
from stakesync.domain.reconciliation.update import (
    MAX_VALIDATORS_TO_UPDATE_PER_TX,
    UpdatePlan,
    ValidatorListSlice,
    plan_update,
)
from stakesync.domain.reconciliation.validator_set import (
    MembershipChangeset,
    PreferredValidatorChange,
    RemovalPlan,
    ValidatorSetReconciler,
)

__all__ = [
    "MAX_VALIDATORS_TO_UPDATE_PER_TX",
    "REMAINDER",
    "Decrease",
    "DelegationChange",
    "DelegationChangeKind",
    "DelegationInput",
    "DelegationReconciler",
    "DelegationTarget",
    "FeeChange",
    "FundingAuthorityChange",
    "Increase",
    "InsufficientReserve",
    "LamportsTarget",
    "ManagerChange",
    "ManagerFeeAccountChange",
    "MembershipChangeset",
    "MembershipTargets",
    "NoChange",
    "ParameterChange",
    "ParameterChangeKind",
    "ParameterReconciler",
    "PartialIncrease",
    "PoolTargets",
    "PreferredValidatorChange",
    "RemainderTarget",
    "RemovalPlan",
    "StakeChange",
    "StakerChange",
    "TransientConflict",
    "UpdatePlan",
    "ValidatorBeingRemoved",
    "ValidatorDelegation",
    "ValidatorListSlice",
    "ValidatorSetReconciler",
    "is_stake_change",
    "match_scheme",
    "next_epoch_stake",
    "order_delegation_scheme",
    "plan_update",
    "transient_phase",
    "validate_delegation_scheme",
]
