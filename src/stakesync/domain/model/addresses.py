"""Program-derived addresses of the stake pool program."""

from __future__ import annotations

from typing import TYPE_CHECKING

from solders.pubkey import Pubkey

if TYPE_CHECKING:
    from .primitives import SeedSuffix

WITHDRAW_AUTHORITY_SEED = b"withdraw"
DEPOSIT_AUTHORITY_SEED = b"deposit"
TRANSIENT_STAKE_SEED_PREFIX = b"transient"
EPHEMERAL_STAKE_SEED_PREFIX = b"ephemeral"


def find_withdraw_authority(program_id: Pubkey, pool: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address([bytes(pool), WITHDRAW_AUTHORITY_SEED], program_id)
    return address


def find_deposit_authority(program_id: Pubkey, pool: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address([bytes(pool), DEPOSIT_AUTHORITY_SEED], program_id)
    return address


def find_validator_stake_account(
    program_id: Pubkey,
    pool: Pubkey,
    vote: Pubkey,
    seed: SeedSuffix = 0,
) -> Pubkey:
    seeds = [bytes(vote), bytes(pool)]
    if seed:
        seeds.append(seed.to_bytes(4, "little"))
    address, _bump = Pubkey.find_program_address(seeds, program_id)
    return address


def find_transient_stake_account(
    program_id: Pubkey,
    pool: Pubkey,
    vote: Pubkey,
    seed: SeedSuffix,
) -> Pubkey:
    address, _bump = Pubkey.find_program_address(
        [TRANSIENT_STAKE_SEED_PREFIX, bytes(vote), bytes(pool), seed.to_bytes(8, "little")],
        program_id,
    )
    return address


def find_ephemeral_stake_account(program_id: Pubkey, pool: Pubkey, seed: SeedSuffix = 0) -> Pubkey:
    address, _bump = Pubkey.find_program_address(
        [EPHEMERAL_STAKE_SEED_PREFIX, bytes(pool), seed.to_bytes(8, "little")],
        program_id,
    )
    return address
