"""Decoding of pool, validator list, stake and sysvar account data.

Pool and validator list accounts are borsh encoded; stake accounts and
sysvars use bincode. Both are little-endian with fixed-width integers, so a
single cursor over ``struct`` covers all of them.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING, Final

from solders.pubkey import Pubkey

from stakesync.domain.errors import UnexpectedAccountStateError
from stakesync.domain.model import (
    AccountType,
    Clock,
    Fee,
    FutureEpochFee,
    Lockup,
    Mint,
    Rent,
    StakePool,
    StakeRecord,
    StakeStatus,
    ValidatorList,
    ValidatorStakeEntry,
)
from stakesync.domain.model.primitives import U64_MAX

if TYPE_CHECKING:
    from stakesync.domain.ports import AccountData

VALIDATOR_LIST_HEADER_SIZE: Final[int] = 5
VALIDATOR_STAKE_ENTRY_SIZE: Final[int] = 73

STAKE_STATE_UNINITIALIZED: Final[int] = 0
STAKE_STATE_INITIALIZED: Final[int] = 1
STAKE_STATE_STAKE: Final[int] = 2


class _Cursor:
    def __init__(self, data: bytes, what: str) -> None:
        self._data = data
        self._offset = 0
        self._what = what

    @property
    def offset(self) -> int:
        return self._offset

    def _unpack(self, fmt: str) -> int | float:
        size = struct.calcsize(fmt)
        if self._offset + size > len(self._data):
            raise UnexpectedAccountStateError(
                f"{self._what} data too short: needed {self._offset + size} bytes, "
                f"got {len(self._data)}"
            )
        (value,) = struct.unpack_from(fmt, self._data, self._offset)
        self._offset += size
        return value

    def u8(self) -> int:
        return int(self._unpack("<B"))

    def u32(self) -> int:
        return int(self._unpack("<I"))

    def u64(self) -> int:
        return int(self._unpack("<Q"))

    def i64(self) -> int:
        return int(self._unpack("<q"))

    def f64(self) -> float:
        return float(self._unpack("<d"))

    def pubkey(self) -> Pubkey:
        end = self._offset + 32
        if end > len(self._data):
            raise UnexpectedAccountStateError(f"{self._what} data too short for pubkey")
        value = Pubkey.from_bytes(self._data[self._offset : end])
        self._offset = end
        return value

    def option_pubkey(self) -> Pubkey | None:
        tag = self.u8()
        if tag == 0:
            return None
        if tag != 1:
            raise UnexpectedAccountStateError(f"{self._what}: invalid option tag {tag}")
        return self.pubkey()

    def coption_pubkey(self) -> Pubkey | None:
        """SPL token ``COption``: a four byte tag, then a pubkey that is always present."""

        tag = self.u32()
        value = self.pubkey()
        if tag not in {0, 1}:
            raise UnexpectedAccountStateError(f"{self._what}: invalid option tag {tag}")
        return value if tag == 1 else None

    def fee(self) -> Fee:
        denominator = self.u64()
        numerator = self.u64()
        return Fee(numerator=numerator, denominator=denominator)

    def future_epoch_fee(self) -> FutureEpochFee:
        tag = self.u8()
        if tag == 0:
            return FutureEpochFee.none()
        if tag in {1, 2}:
            return FutureEpochFee(epochs_ahead=tag, fee=self.fee())
        raise UnexpectedAccountStateError(f"{self._what}: invalid future epoch fee tag {tag}")

    def lockup(self) -> Lockup:
        unix_timestamp = self.i64()
        epoch = self.u64()
        custodian = self.pubkey()
        return Lockup(
            unix_timestamp=unix_timestamp,
            epoch=epoch,
            custodian=None if custodian == Pubkey.default() else custodian,
        )


def decode_stake_pool(data: bytes) -> StakePool:
    cursor = _Cursor(data, "Stake pool")
    account_type = cursor.u8()
    if account_type != AccountType.STAKE_POOL:
        raise UnexpectedAccountStateError(f"Not a stake pool account (type {account_type})")
    return StakePool(
        manager=cursor.pubkey(),
        staker=cursor.pubkey(),
        stake_deposit_authority=cursor.pubkey(),
        stake_withdraw_bump_seed=cursor.u8(),
        validator_list=cursor.pubkey(),
        reserve_stake=cursor.pubkey(),
        pool_mint=cursor.pubkey(),
        manager_fee_account=cursor.pubkey(),
        token_program_id=cursor.pubkey(),
        total_lamports=cursor.u64(),
        pool_token_supply=cursor.u64(),
        last_update_epoch=cursor.u64(),
        lockup=cursor.lockup(),
        epoch_fee=cursor.fee(),
        next_epoch_fee=cursor.future_epoch_fee(),
        preferred_deposit_validator=cursor.option_pubkey(),
        preferred_withdraw_validator=cursor.option_pubkey(),
        stake_deposit_fee=cursor.fee(),
        stake_withdrawal_fee=cursor.fee(),
        next_stake_withdrawal_fee=cursor.future_epoch_fee(),
        stake_referral_fee=cursor.u8(),
        sol_deposit_authority=cursor.option_pubkey(),
        sol_deposit_fee=cursor.fee(),
        sol_referral_fee=cursor.u8(),
        sol_withdraw_authority=cursor.option_pubkey(),
        sol_withdrawal_fee=cursor.fee(),
        next_sol_withdrawal_fee=cursor.future_epoch_fee(),
        last_epoch_pool_token_supply=cursor.u64(),
        last_epoch_total_lamports=cursor.u64(),
    )


def decode_validator_list(data: bytes) -> ValidatorList:
    cursor = _Cursor(data, "Validator list")
    account_type = cursor.u8()
    if account_type != AccountType.VALIDATOR_LIST:
        raise UnexpectedAccountStateError(f"Not a validator list account (type {account_type})")
    max_validators = cursor.u32()
    length = cursor.u32()
    entries = tuple(_decode_entry(cursor) for _ in range(length))
    return ValidatorList(max_validators=max_validators, validators=entries)


def _decode_entry(cursor: _Cursor) -> ValidatorStakeEntry:
    active = cursor.u64()
    transient = cursor.u64()
    last_update_epoch = cursor.u64()
    transient_seed = cursor.u64()
    cursor.u32()  # unused
    validator_seed = cursor.u32()
    status = cursor.u8()
    try:
        stake_status = StakeStatus(status)
    except ValueError as exc:
        raise UnexpectedAccountStateError(f"Unknown validator status {status}") from exc
    return ValidatorStakeEntry(
        vote_account=cursor.pubkey(),
        active_stake_lamports=active,
        transient_stake_lamports=transient,
        last_update_epoch=last_update_epoch,
        transient_seed_suffix=transient_seed,
        validator_seed_suffix=validator_seed,
        status=stake_status,
    )


def decode_stake_account(account: AccountData) -> StakeRecord:
    """Decode a stake account; initialized but undelegated accounts have no voter."""

    cursor = _Cursor(account.data, "Stake account")
    tag = cursor.u32()
    if tag not in {STAKE_STATE_INITIALIZED, STAKE_STATE_STAKE}:
        raise UnexpectedAccountStateError(f"Stake account in unexpected state {tag}")
    rent_exempt_reserve = cursor.u64()
    cursor.pubkey()  # staker
    cursor.pubkey()  # withdrawer
    cursor.lockup()
    if tag == STAKE_STATE_INITIALIZED:
        return StakeRecord(
            lamports=account.lamports,
            rent_exempt_reserve=rent_exempt_reserve,
            voter=None,
            delegated_stake=0,
            activation_epoch=U64_MAX,
        )
    voter = cursor.pubkey()
    delegated_stake = cursor.u64()
    activation_epoch = cursor.u64()
    deactivation_epoch = cursor.u64()
    return StakeRecord(
        lamports=account.lamports,
        rent_exempt_reserve=rent_exempt_reserve,
        voter=voter,
        delegated_stake=delegated_stake,
        activation_epoch=activation_epoch,
        deactivation_epoch=deactivation_epoch,
    )


def decode_clock(data: bytes) -> Clock:
    cursor = _Cursor(data, "Clock sysvar")
    slot = cursor.u64()
    cursor.i64()  # epoch start timestamp
    epoch = cursor.u64()
    cursor.u64()  # leader schedule epoch
    unix_timestamp = cursor.i64()
    return Clock(slot=slot, epoch=epoch, unix_timestamp=unix_timestamp)


def decode_rent(data: bytes) -> Rent:
    cursor = _Cursor(data, "Rent sysvar")
    return Rent(
        lamports_per_byte_year=cursor.u64(),
        exemption_threshold=cursor.f64(),
        burn_percent=cursor.u8(),
    )


def decode_mint(data: bytes) -> Mint:
    """Decode the base mint layout; token-2022 extensions after it are ignored."""

    cursor = _Cursor(data, "Mint")
    return Mint(
        mint_authority=cursor.coption_pubkey(),
        supply=cursor.u64(),
        decimals=cursor.u8(),
        is_initialized=cursor.u8() == 1,
        freeze_authority=cursor.coption_pubkey(),
    )
