"""Declarative pool config file adapter."""

from __future__ import annotations

from .loader import (
    NewPoolSettings,
    declared_program,
    delegation_scheme,
    load_pool_config,
    membership_targets,
    new_pool_settings,
    pool_address,
    pool_targets,
)
from .schema import (
    ConfigFilePayload,
    FeePayload,
    FutureEpochFeePayload,
    PoolPayload,
    ValidatorPayload,
)
from .writer import pool_config_payload, render_pool_config, validator_payload

__all__ = [
    "NewPoolSettings",
    "ConfigFilePayload",
    "FeePayload",
    "FutureEpochFeePayload",
    "PoolPayload",
    "ValidatorPayload",
    "declared_program",
    "delegation_scheme",
    "load_pool_config",
    "membership_targets",
    "new_pool_settings",
    "pool_address",
    "pool_targets",
    "pool_config_payload",
    "render_pool_config",
    "validator_payload",
]
