"""Instruction builders for the stake pool program.

Account lists and data layouts follow the program's instruction interface;
the order of accounts is significant.
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from stakesync.domain.model import (
    find_deposit_authority,
    find_ephemeral_stake_account,
    find_transient_stake_account,
    find_validator_stake_account,
    find_withdraw_authority,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stakesync.domain.model import (
        FeeType,
        FundingType,
        Lamports,
        PreferredValidatorType,
        SeedSuffix,
        StakePool,
        StakePoolProgram,
        ValidatorStakeEntry,
    )

SYSTEM_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string("11111111111111111111111111111111")
STAKE_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string("Stake11111111111111111111111111111111111111")
STAKE_CONFIG_ID: Final[Pubkey] = Pubkey.from_string("StakeConfig11111111111111111111111111111111")
CLOCK_SYSVAR_ID: Final[Pubkey] = Pubkey.from_string("SysvarC1ock11111111111111111111111111111111")
RENT_SYSVAR_ID: Final[Pubkey] = Pubkey.from_string("SysvarRent111111111111111111111111111111111")
STAKE_HISTORY_SYSVAR_ID: Final[Pubkey] = Pubkey.from_string(
    "SysvarStakeHistory1111111111111111111111111"
)

# All stake changes in one transaction share the ephemeral account at seed 0;
# the program closes it at the end of each instruction.
EPHEMERAL_SEED: Final[int] = 0


class StakePoolInstruction(IntEnum):
    INITIALIZE = 0
    ADD_VALIDATOR_TO_POOL = 1
    REMOVE_VALIDATOR_FROM_POOL = 2
    SET_PREFERRED_VALIDATOR = 5
    UPDATE_VALIDATOR_LIST_BALANCE = 6
    UPDATE_STAKE_POOL_BALANCE = 7
    CLEANUP_REMOVED_VALIDATOR_ENTRIES = 8
    SET_MANAGER = 11
    SET_FEE = 12
    SET_STAKER = 13
    SET_FUNDING_AUTHORITY = 15
    INCREASE_ADDITIONAL_VALIDATOR_STAKE = 19
    DECREASE_ADDITIONAL_VALIDATOR_STAKE = 20


def _w(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=True)


def _r(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=False)


def _rs(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=True, is_writable=False)


def encode_fee_type(fee_type: FeeType) -> bytes:
    if fee_type.kind.is_referral:
        return struct.pack("<BB", fee_type.kind, fee_type.percent)
    return struct.pack("<BQQ", fee_type.kind, fee_type.rate.denominator, fee_type.rate.numerator)


class StakePoolInstructions:
    """Builds instructions for one pool under one program deployment."""

    def __init__(self, program: StakePoolProgram, pool_address: Pubkey, pool: StakePool) -> None:
        self.program_id = program.program_id
        self.pool_address = pool_address
        self.pool = pool
        self.withdraw_authority = find_withdraw_authority(self.program_id, pool_address)

    @property
    def default_deposit_authority(self) -> Pubkey:
        return find_deposit_authority(self.program_id, self.pool_address)

    def validator_stake_account(self, vote: Pubkey, seed: SeedSuffix = 0) -> Pubkey:
        return find_validator_stake_account(self.program_id, self.pool_address, vote, seed)

    def transient_stake_account(self, vote: Pubkey, seed: SeedSuffix) -> Pubkey:
        return find_transient_stake_account(self.program_id, self.pool_address, vote, seed)

    def ephemeral_stake_account(self, seed: SeedSuffix = EPHEMERAL_SEED) -> Pubkey:
        return find_ephemeral_stake_account(self.program_id, self.pool_address, seed)

    def _instruction(self, data: bytes, accounts: Sequence[AccountMeta]) -> Instruction:
        return Instruction(self.program_id, data, list(accounts))

    def add_validator(
        self,
        vote: Pubkey,
        *,
        staker: Pubkey,
        validator_seed: SeedSuffix = 0,
    ) -> Instruction:
        data = struct.pack("<BI", StakePoolInstruction.ADD_VALIDATOR_TO_POOL, validator_seed)
        return self._instruction(
            data,
            [
                _w(self.pool_address),
                _rs(staker),
                _w(self.pool.reserve_stake),
                _r(self.withdraw_authority),
                _w(self.pool.validator_list),
                _w(self.validator_stake_account(vote, validator_seed)),
                _r(vote),
                _r(RENT_SYSVAR_ID),
                _r(CLOCK_SYSVAR_ID),
                _r(STAKE_HISTORY_SYSVAR_ID),
                _r(STAKE_CONFIG_ID),
                _r(SYSTEM_PROGRAM_ID),
                _r(STAKE_PROGRAM_ID),
            ],
        )

    def remove_validator(self, entry: ValidatorStakeEntry, *, staker: Pubkey) -> Instruction:
        vote = entry.vote_account
        return self._instruction(
            bytes([StakePoolInstruction.REMOVE_VALIDATOR_FROM_POOL]),
            [
                _w(self.pool_address),
                _rs(staker),
                _r(self.withdraw_authority),
                _w(self.pool.validator_list),
                _w(self.validator_stake_account(vote, entry.validator_seed_suffix)),
                _w(self.transient_stake_account(vote, entry.transient_seed_suffix)),
                _r(CLOCK_SYSVAR_ID),
                _r(STAKE_PROGRAM_ID),
            ],
        )

    def increase_validator_stake(
        self,
        vote: Pubkey,
        lamports: Lamports,
        *,
        staker: Pubkey,
        validator_seed: SeedSuffix,
        transient_seed: SeedSuffix,
        ephemeral_seed: SeedSuffix = EPHEMERAL_SEED,
    ) -> Instruction:
        data = struct.pack(
            "<BQQQ",
            StakePoolInstruction.INCREASE_ADDITIONAL_VALIDATOR_STAKE,
            lamports,
            transient_seed,
            ephemeral_seed,
        )
        return self._instruction(
            data,
            [
                _r(self.pool_address),
                _rs(staker),
                _r(self.withdraw_authority),
                _w(self.pool.validator_list),
                _w(self.pool.reserve_stake),
                _w(self.ephemeral_stake_account(ephemeral_seed)),
                _w(self.transient_stake_account(vote, transient_seed)),
                _r(self.validator_stake_account(vote, validator_seed)),
                _r(vote),
                _r(CLOCK_SYSVAR_ID),
                _r(STAKE_HISTORY_SYSVAR_ID),
                _r(STAKE_CONFIG_ID),
                _r(SYSTEM_PROGRAM_ID),
                _r(STAKE_PROGRAM_ID),
            ],
        )

    def decrease_validator_stake(
        self,
        vote: Pubkey,
        lamports: Lamports,
        *,
        staker: Pubkey,
        validator_seed: SeedSuffix,
        transient_seed: SeedSuffix,
        ephemeral_seed: SeedSuffix = EPHEMERAL_SEED,
    ) -> Instruction:
        data = struct.pack(
            "<BQQQ",
            StakePoolInstruction.DECREASE_ADDITIONAL_VALIDATOR_STAKE,
            lamports,
            transient_seed,
            ephemeral_seed,
        )
        return self._instruction(
            data,
            [
                _r(self.pool_address),
                _rs(staker),
                _r(self.withdraw_authority),
                _w(self.pool.validator_list),
                _w(self.pool.reserve_stake),
                _w(self.validator_stake_account(vote, validator_seed)),
                _w(self.ephemeral_stake_account(ephemeral_seed)),
                _w(self.transient_stake_account(vote, transient_seed)),
                _r(CLOCK_SYSVAR_ID),
                _r(STAKE_HISTORY_SYSVAR_ID),
                _r(SYSTEM_PROGRAM_ID),
                _r(STAKE_PROGRAM_ID),
            ],
        )

    def set_preferred_validator(
        self,
        validator_type: PreferredValidatorType,
        vote: Pubkey | None,
        *,
        staker: Pubkey,
    ) -> Instruction:
        data = struct.pack("<BB", StakePoolInstruction.SET_PREFERRED_VALIDATOR, validator_type)
        data += b"\x00" if vote is None else b"\x01" + bytes(vote)
        return self._instruction(
            data,
            [_w(self.pool_address), _rs(staker), _r(self.pool.validator_list)],
        )

    def update_validator_list_balance(
        self,
        entries: Sequence[ValidatorStakeEntry],
        *,
        start_index: int,
        no_merge: bool = False,
    ) -> Instruction:
        data = struct.pack(
            "<BI?",
            StakePoolInstruction.UPDATE_VALIDATOR_LIST_BALANCE,
            start_index,
            no_merge,
        )
        accounts = [
            _r(self.pool_address),
            _r(self.withdraw_authority),
            _w(self.pool.validator_list),
            _w(self.pool.reserve_stake),
            _r(CLOCK_SYSVAR_ID),
            _r(STAKE_HISTORY_SYSVAR_ID),
            _r(STAKE_PROGRAM_ID),
        ]
        for entry in entries:
            vote = entry.vote_account
            accounts.append(_w(self.validator_stake_account(vote, entry.validator_seed_suffix)))
            accounts.append(_w(self.transient_stake_account(vote, entry.transient_seed_suffix)))
        return self._instruction(data, accounts)

    def update_stake_pool_balance(self) -> Instruction:
        return self._instruction(
            bytes([StakePoolInstruction.UPDATE_STAKE_POOL_BALANCE]),
            [
                _w(self.pool_address),
                _r(self.withdraw_authority),
                _w(self.pool.validator_list),
                _r(self.pool.reserve_stake),
                _w(self.pool.manager_fee_account),
                _w(self.pool.pool_mint),
                _r(self.pool.token_program_id),
            ],
        )

    def cleanup_removed_validator_entries(self) -> Instruction:
        return self._instruction(
            bytes([StakePoolInstruction.CLEANUP_REMOVED_VALIDATOR_ENTRIES]),
            [_r(self.pool_address), _w(self.pool.validator_list)],
        )

    def set_manager(
        self,
        *,
        manager: Pubkey,
        new_manager: Pubkey,
        new_manager_fee_account: Pubkey,
    ) -> Instruction:
        return self._instruction(
            bytes([StakePoolInstruction.SET_MANAGER]),
            [
                _w(self.pool_address),
                _rs(manager),
                _rs(new_manager),
                _r(new_manager_fee_account),
            ],
        )

    def set_fee(self, fee_type: FeeType, *, manager: Pubkey) -> Instruction:
        data = bytes([StakePoolInstruction.SET_FEE]) + encode_fee_type(fee_type)
        return self._instruction(data, [_w(self.pool_address), _rs(manager)])

    def set_staker(self, new_staker: Pubkey, *, signer: Pubkey) -> Instruction:
        return self._instruction(
            bytes([StakePoolInstruction.SET_STAKER]),
            [_w(self.pool_address), _rs(signer), _r(new_staker)],
        )

    def set_funding_authority(
        self,
        funding_type: FundingType,
        new_authority: Pubkey | None,
        *,
        manager: Pubkey,
    ) -> Instruction:
        """An absent ``new_authority`` resets the slot to its default."""

        accounts = [_w(self.pool_address), _rs(manager)]
        if new_authority is not None:
            accounts.append(_r(new_authority))
        return self._instruction(
            struct.pack("<BB", StakePoolInstruction.SET_FUNDING_AUTHORITY, funding_type),
            accounts,
        )
