"""Render a pool's ledger state as a pool config file."""

from __future__ import annotations

from typing import TYPE_CHECKING

import tomli_w

from stakesync.domain.model import (
    find_deposit_authority,
    find_transient_stake_account,
    find_validator_stake_account,
    find_withdraw_authority,
)

from .schema import (
    ConfigFilePayload,
    FeePayload,
    FutureEpochFeePayload,
    PoolPayload,
    ValidatorPayload,
)

if TYPE_CHECKING:
    from solders.pubkey import Pubkey

    from stakesync.domain.model import (
        FutureEpochFee,
        StakePool,
        StakePoolProgram,
        ValidatorList,
        ValidatorStakeEntry,
    )


def _optional(pubkey: Pubkey | None) -> str | None:
    return None if pubkey is None else str(pubkey)


def _future_fee(pending: FutureEpochFee) -> FutureEpochFeePayload | None:
    if pending.fee is None:
        return None
    return FutureEpochFeePayload(
        epochs_ahead=pending.epochs_ahead,
        numerator=pending.fee.numerator,
        denominator=pending.fee.denominator,
    )


def validator_payload(
    entry: ValidatorStakeEntry,
    program: StakePoolProgram,
    pool: Pubkey,
) -> ValidatorPayload:
    program_id = program.program_id
    return ValidatorPayload(
        vote=str(entry.vote_account),
        active_stake_lamports=entry.active_stake_lamports,
        transient_stake_lamports=entry.transient_stake_lamports,
        last_update_epoch=entry.last_update_epoch,
        # zero is the unsuffixed address
        validator_seed_suffix=entry.validator_seed_suffix or None,
        transient_seed_suffix=entry.transient_seed_suffix,
        status=entry.status.label,
        validator_stake_account=str(
            find_validator_stake_account(
                program_id, pool, entry.vote_account, entry.validator_seed_suffix
            )
        ),
        transient_stake_account=str(
            find_transient_stake_account(
                program_id, pool, entry.vote_account, entry.transient_seed_suffix
            )
        ),
    )


def pool_config_payload(
    program: StakePoolProgram,
    address: Pubkey,
    pool: StakePool,
    validator_list: ValidatorList | None = None,
) -> PoolPayload:
    """Config payload describing ``pool`` as it is on the ledger.

    A stake deposit authority equal to the default derived address is left
    out, as it would be in a hand-written file. The validator list is only
    included when given.
    """

    default_deposit_authority = find_deposit_authority(program.program_id, address)
    stake_deposit_auth = (
        None
        if pool.stake_deposit_authority == default_deposit_authority
        else str(pool.stake_deposit_authority)
    )
    validators = None
    max_validators = None
    if validator_list is not None:
        max_validators = validator_list.max_validators
        validators = [
            validator_payload(entry, program, address) for entry in validator_list.validators
        ]
    return PoolPayload(
        program=str(program),
        mint=str(pool.pool_mint),
        token_program=str(pool.token_program_id),
        pool=str(address),
        validator_list=str(pool.validator_list),
        manager=str(pool.manager),
        manager_fee_account=str(pool.manager_fee_account),
        staker=str(pool.staker),
        stake_deposit_auth=stake_deposit_auth,
        stake_withdraw_auth=str(find_withdraw_authority(program.program_id, address)),
        sol_deposit_auth=_optional(pool.sol_deposit_authority),
        sol_withdraw_auth=_optional(pool.sol_withdraw_authority),
        preferred_deposit_validator=_optional(pool.preferred_deposit_validator),
        preferred_withdraw_validator=_optional(pool.preferred_withdraw_validator),
        max_validators=max_validators,
        stake_deposit_referral_fee=pool.stake_referral_fee,
        sol_deposit_referral_fee=pool.sol_referral_fee,
        epoch_fee=FeePayload.from_fee(pool.epoch_fee),
        stake_withdrawal_fee=FeePayload.from_fee(pool.stake_withdrawal_fee),
        sol_withdrawal_fee=FeePayload.from_fee(pool.sol_withdrawal_fee),
        stake_deposit_fee=FeePayload.from_fee(pool.stake_deposit_fee),
        sol_deposit_fee=FeePayload.from_fee(pool.sol_deposit_fee),
        total_lamports=pool.total_lamports,
        pool_token_supply=pool.pool_token_supply,
        last_update_epoch=pool.last_update_epoch,
        next_epoch_fee=_future_fee(pool.next_epoch_fee),
        next_stake_withdrawal_fee=_future_fee(pool.next_stake_withdrawal_fee),
        next_sol_withdrawal_fee=_future_fee(pool.next_sol_withdrawal_fee),
        last_epoch_pool_token_supply=pool.last_epoch_pool_token_supply,
        last_epoch_total_lamports=pool.last_epoch_total_lamports,
        reserve=str(pool.reserve_stake),
        validators=validators,
    )


def render_pool_config(payload: PoolPayload) -> str:
    document = ConfigFilePayload(pool=payload).model_dump(
        mode="json", by_alias=True, exclude_none=True
    )
    return tomli_w.dumps(document)
