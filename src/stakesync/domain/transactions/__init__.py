"""Turning operations into fee-annotated, signed transactions."""

from __future__ import annotations

from stakesync.domain.transactions.batching import (
    MAX_ADD_VALIDATORS_PER_TX,
    MAX_CREATE_POOL_STEPS_PER_TX,
    MAX_INCREASE_VALIDATOR_STAKE_PER_TX,
    MAX_REMOVE_VALIDATOR_UNITS_PER_TX,
    MAX_TRANSACTION_SIZE,
    MAX_UPDATE_VALIDATOR_LIST_PER_TX,
    BatchLimits,
    OperationBatcher,
)
from stakesync.domain.transactions.fees import (
    CU_BUFFER_RATIO,
    CUS_REQUIRED_FOR_SET_CU_LIMIT_IXS,
    MAX_COMPUTE_UNIT_LIMIT,
    ComputeBudget,
    FeeEstimator,
    buffer_compute_units,
    compute_unit_price,
    simulation_transaction,
)
from stakesync.domain.transactions.operations import Operation, OperationKind, OperationUnit
from stakesync.domain.transactions.signers import Authorizer, SendMode, SignerSet
from stakesync.domain.transactions.submit import Batch, BatchSubmitter, required_signers

__all__ = [
    "CUS_REQUIRED_FOR_SET_CU_LIMIT_IXS",
    "CU_BUFFER_RATIO",
    "MAX_ADD_VALIDATORS_PER_TX",
    "MAX_COMPUTE_UNIT_LIMIT",
    "MAX_CREATE_POOL_STEPS_PER_TX",
    "MAX_INCREASE_VALIDATOR_STAKE_PER_TX",
    "MAX_REMOVE_VALIDATOR_UNITS_PER_TX",
    "MAX_TRANSACTION_SIZE",
    "MAX_UPDATE_VALIDATOR_LIST_PER_TX",
    "Authorizer",
    "Batch",
    "BatchLimits",
    "BatchSubmitter",
    "ComputeBudget",
    "FeeEstimator",
    "Operation",
    "OperationBatcher",
    "OperationKind",
    "OperationUnit",
    "SendMode",
    "SignerSet",
    "buffer_compute_units",
    "compute_unit_price",
    "required_signers",
    "simulation_transaction",
]
