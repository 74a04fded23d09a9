"""Stake pool program contract: layouts, derived addresses and instructions."""

from __future__ import annotations

from .creation import PoolCreation, reserve_lamports, validator_list_size
from .instructions import (
    CLOCK_SYSVAR_ID,
    RENT_SYSVAR_ID,
    STAKE_PROGRAM_ID,
    StakePoolInstruction,
    StakePoolInstructions,
    encode_fee_type,
)
from .layout import (
    decode_clock,
    decode_mint,
    decode_rent,
    decode_stake_account,
    decode_stake_pool,
    decode_validator_list,
)
from .operations import OperationBuilder

__all__ = [
    "CLOCK_SYSVAR_ID",
    "RENT_SYSVAR_ID",
    "STAKE_PROGRAM_ID",
    "OperationBuilder",
    "PoolCreation",
    "StakePoolInstruction",
    "StakePoolInstructions",
    "decode_clock",
    "decode_mint",
    "decode_rent",
    "decode_stake_account",
    "decode_stake_pool",
    "decode_validator_list",
    "encode_fee_type",
    "reserve_lamports",
    "validator_list_size",
]
