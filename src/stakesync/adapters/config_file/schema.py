"""Pydantic models describing the declarative pool config file."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from stakesync.domain.model import Fee


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class ConfigBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=_kebab,
        frozen=True,
    )


class FeePayload(ConfigBaseModel):
    numerator: int = Field(ge=0)
    denominator: int = Field(ge=0)

    def to_fee(self) -> Fee:
        return Fee(numerator=self.numerator, denominator=self.denominator)

    @classmethod
    def from_fee(cls, fee: Fee) -> FeePayload:
        return cls(numerator=fee.numerator, denominator=fee.denominator)


class LamportsTargetPayload(ConfigBaseModel):
    lamports: int = Field(ge=0)


type TargetPayload = LamportsTargetPayload | Literal["remainder"]


class FutureEpochFeePayload(ConfigBaseModel):
    """A fee already scheduled ``epochs-ahead`` epochs from now."""

    epochs_ahead: int = Field(ge=1, le=2)
    numerator: int = Field(ge=0)
    denominator: int = Field(ge=0)


class ValidatorPayload(ConfigBaseModel):
    """One ``[[pool.validators]]`` entry.

    Only ``vote`` and ``target`` are read back; the rest is ledger state
    written out by ``list``.
    """

    vote: str
    target: TargetPayload | None = None
    active_stake_lamports: int | None = None
    transient_stake_lamports: int | None = None
    last_update_epoch: int | None = None
    validator_seed_suffix: int | None = None
    transient_seed_suffix: int | None = None
    status: str | None = None
    validator_stake_account: str | None = None
    transient_stake_account: str | None = None


class PoolPayload(ConfigBaseModel):
    program: str | None = None
    mint: str | None = None
    token_program: str | None = None
    pool: str | None = None
    validator_list: str | None = None
    manager: str | None = None
    manager_fee_account: str | None = None
    staker: str | None = None
    stake_deposit_auth: str | None = None
    # fixed derived address, only written out for reference
    stake_withdraw_auth: str | None = None
    sol_deposit_auth: str | None = None
    sol_withdraw_auth: str | None = None
    preferred_deposit_validator: str | None = None
    preferred_withdraw_validator: str | None = None
    max_validators: int | None = Field(default=None, ge=1)
    stake_deposit_referral_fee: int | None = Field(default=None, ge=0, le=100)
    sol_deposit_referral_fee: int | None = Field(default=None, ge=0, le=100)
    epoch_fee: FeePayload | None = None
    stake_withdrawal_fee: FeePayload | None = None
    sol_withdrawal_fee: FeePayload | None = None
    stake_deposit_fee: FeePayload | None = None
    sol_deposit_fee: FeePayload | None = None
    total_lamports: int | None = None
    pool_token_supply: int | None = None
    last_update_epoch: int | None = None
    next_epoch_fee: FutureEpochFeePayload | None = None
    next_stake_withdrawal_fee: FutureEpochFeePayload | None = None
    next_sol_withdrawal_fee: FutureEpochFeePayload | None = None
    last_epoch_pool_token_supply: int | None = None
    last_epoch_total_lamports: int | None = None
    old_manager: str | None = None
    old_staker: str | None = None
    reserve: str | None = None
    # last, so it is written after every other key
    validators: list[ValidatorPayload] | None = None


class ConfigFilePayload(ConfigBaseModel):
    pool: PoolPayload
