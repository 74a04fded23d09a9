"""Load the pool config file and turn it into declared target records."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

import pydantic
from solders.pubkey import Pubkey

from stakesync.adapters.keys import parse_pubkey
from stakesync.config.errors import ConfigurationError
from stakesync.domain.errors import ValidationError
from stakesync.domain.model import Fee, StakePoolProgram
from stakesync.domain.model.program import SPL_STAKE_POOL_PROGRAM_ID
from stakesync.domain.reconciliation import (
    REMAINDER,
    LamportsTarget,
    MembershipTargets,
    PoolTargets,
    ValidatorDelegation,
    validate_delegation_scheme,
)

from .schema import ConfigFilePayload, LamportsTargetPayload, PoolPayload

if TYPE_CHECKING:
    from stakesync.domain.model import StakePool

    from .schema import FeePayload

log = getLogger(__name__)


def load_pool_config(path: str | Path) -> PoolPayload:
    config_path = Path(path)
    try:
        with config_path.open("rb") as handle:
            raw = tomllib.load(handle)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read pool config {config_path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"Invalid TOML in {config_path}: {exc}") from exc
    try:
        payload = ConfigFilePayload.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid pool config {config_path}: {exc}") from exc
    log.debug("Loaded pool config from %s", config_path)
    return payload.pool


def _pubkey(raw: str, field_name: str) -> Pubkey:
    try:
        return parse_pubkey(raw)
    except (ValueError, ConfigurationError) as exc:
        raise ValidationError(f"Invalid {field_name}: {raw!r}") from exc


def _optional_pubkey(raw: str | None, field_name: str) -> Pubkey | None:
    return None if raw is None else _pubkey(raw, field_name)


def pool_address(config: PoolPayload) -> Pubkey:
    if config.pool is None:
        raise ValidationError("Pool config is missing the pool address")
    return _pubkey(config.pool, "pool")


def declared_program(config: PoolPayload) -> StakePoolProgram | None:
    if config.program is None:
        return None
    try:
        return StakePoolProgram.parse(config.program)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def delegation_scheme(config: PoolPayload) -> tuple[ValidatorDelegation, ...]:
    """Declared delegation targets in file order, validated before any ledger read."""

    scheme: list[ValidatorDelegation] = []
    for validator in config.validators or ():
        vote = _pubkey(validator.vote, "validator vote account")
        match validator.target:
            case None:
                raise ValidationError(f"Validator {vote} has no delegation target")
            case LamportsTargetPayload(lamports=lamports):
                target = LamportsTarget(lamports)
            case _:
                target = REMAINDER
        scheme.append(ValidatorDelegation(vote=vote, target=target))
    validate_delegation_scheme(scheme)
    return tuple(scheme)


def membership_targets(config: PoolPayload) -> MembershipTargets:
    votes = tuple(
        _pubkey(validator.vote, "validator vote account") for validator in config.validators or ()
    )
    if len(set(votes)) != len(votes):
        raise ValidationError("Validator list contains duplicate vote accounts")
    return MembershipTargets(
        validators=votes,
        preferred_deposit_validator=_optional_pubkey(
            config.preferred_deposit_validator, "preferred deposit validator"
        ),
        preferred_withdraw_validator=_optional_pubkey(
            config.preferred_withdraw_validator, "preferred withdraw validator"
        ),
    )


def _fee_or(payload: FeePayload | None, current: Fee) -> Fee:
    return current if payload is None else payload.to_fee()


def _pubkey_or(raw: str | None, field_name: str, current: Pubkey) -> Pubkey:
    return current if raw is None else _pubkey(raw, field_name)


def pool_targets(config: PoolPayload, current: StakePool, *, new_manager: Pubkey) -> PoolTargets:
    """Declared pool parameters.

    Omitted fees and identities keep their current value. Omitted funding
    authorities are unset: the stake deposit authority falls back to the
    default derived address and the SOL authorities are cleared.
    """

    return PoolTargets(
        manager=new_manager,
        staker=_pubkey_or(config.staker, "staker", current.staker),
        manager_fee_account=_pubkey_or(
            config.manager_fee_account, "manager fee account", current.manager_fee_account
        ),
        stake_deposit_authority=_optional_pubkey(
            config.stake_deposit_auth, "stake deposit authority"
        ),
        sol_deposit_authority=_optional_pubkey(config.sol_deposit_auth, "SOL deposit authority"),
        sol_withdraw_authority=_optional_pubkey(config.sol_withdraw_auth, "SOL withdraw authority"),
        epoch_fee=_fee_or(config.epoch_fee, current.epoch_fee),
        stake_withdrawal_fee=_fee_or(config.stake_withdrawal_fee, current.stake_withdrawal_fee),
        sol_withdrawal_fee=_fee_or(config.sol_withdrawal_fee, current.sol_withdrawal_fee),
        stake_deposit_fee=_fee_or(config.stake_deposit_fee, current.stake_deposit_fee),
        sol_deposit_fee=_fee_or(config.sol_deposit_fee, current.sol_deposit_fee),
        stake_referral_fee=(
            current.stake_referral_fee
            if config.stake_deposit_referral_fee is None
            else config.stake_deposit_referral_fee
        ),
        sol_referral_fee=(
            current.sol_referral_fee
            if config.sol_deposit_referral_fee is None
            else config.sol_deposit_referral_fee
        ),
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class NewPoolSettings:
    """What ``Initialize`` needs from the config of a pool that does not exist yet.

    ``Initialize`` applies one deposit fee, referral fee and deposit
    authority to SOL and stake deposits alike; the stake values are used.
    """

    program: StakePoolProgram
    mint: Pubkey
    manager_fee_account: Pubkey
    staker: Pubkey | None
    deposit_authority: Pubkey | None
    epoch_fee: Fee
    withdrawal_fee: Fee
    deposit_fee: Fee
    referral_fee: int
    max_validators: int
    starting_validators: int


_SOL_ONLY_SETTINGS = (
    "sol_deposit_auth",
    "sol_withdraw_auth",
    "sol_deposit_fee",
    "sol_withdrawal_fee",
    "sol_deposit_referral_fee",
    "preferred_deposit_validator",
    "preferred_withdraw_validator",
)


def _required(raw: str | None, field_name: str) -> Pubkey:
    if raw is None:
        raise ValidationError(f"Creating a pool requires {field_name}")
    return _pubkey(raw, field_name)


def new_pool_settings(config: PoolPayload) -> NewPoolSettings:
    if config.max_validators is None:
        raise ValidationError("Creating a pool requires max-validators")
    starting_validators = len(config.validators or ())
    if starting_validators > config.max_validators:
        raise ValidationError(
            f"Config declares {starting_validators} validators, "
            f"max-validators is {config.max_validators}"
        )
    ignored = [name for name in _SOL_ONLY_SETTINGS if getattr(config, name) is not None]
    if ignored:
        log.info(
            "Not applied at creation: %s; run sync-pool and sync-validator-list afterwards",
            ", ".join(name.replace("_", "-") for name in ignored),
        )
    zero = Fee.zero()
    return NewPoolSettings(
        program=declared_program(config) or StakePoolProgram(SPL_STAKE_POOL_PROGRAM_ID),
        mint=_required(config.mint, "mint"),
        manager_fee_account=_required(config.manager_fee_account, "manager-fee-account"),
        staker=_optional_pubkey(config.staker, "staker"),
        deposit_authority=_optional_pubkey(config.stake_deposit_auth, "stake deposit authority"),
        epoch_fee=_fee_or(config.epoch_fee, zero),
        withdrawal_fee=_fee_or(config.stake_withdrawal_fee, zero),
        deposit_fee=_fee_or(config.stake_deposit_fee, zero),
        referral_fee=config.stake_deposit_referral_fee or 0,
        max_validators=config.max_validators,
        starting_validators=starting_validators,
    )
