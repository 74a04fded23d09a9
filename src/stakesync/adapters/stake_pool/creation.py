"""Instructions that create and initialize a new stake pool.

Creation takes two transactions: the reserve stake account has to exist and
be initialized before the pool's ``Initialize`` instruction can check it.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account

from stakesync.domain.model import (
    find_withdraw_authority,
    lamports_for_new_vsa,
    stake_rent_exempt_reserve,
)
from stakesync.domain.model.stake import STAKE_ACCOUNT_SIZE
from stakesync.domain.transactions import Operation, OperationKind, OperationUnit

from .instructions import RENT_SYSVAR_ID, STAKE_PROGRAM_ID, StakePoolInstruction
from .layout import VALIDATOR_LIST_HEADER_SIZE, VALIDATOR_STAKE_ENTRY_SIZE

if TYPE_CHECKING:
    from stakesync.domain.model import Fee, Lamports, Rent, StakePoolProgram

STAKE_POOL_SIZE: Final[int] = 611
MINIMUM_RESERVE_LAMPORTS: Final[int] = 0
STAKE_INITIALIZE: Final[int] = 0
TOKEN_SET_AUTHORITY: Final[int] = 6
MINT_TOKENS_AUTHORITY: Final[int] = 0


def validator_list_size(max_validators: int) -> int:
    # header, then the borsh vec length prefix, then the entries
    return VALIDATOR_LIST_HEADER_SIZE + 4 + VALIDATOR_STAKE_ENTRY_SIZE * max_validators


def reserve_lamports(rent: Rent, starting_validators: int) -> Lamports:
    """Reserve funding that lets ``starting_validators`` be added right away."""

    return (
        stake_rent_exempt_reserve(rent)
        + MINIMUM_RESERVE_LAMPORTS
        + starting_validators * lamports_for_new_vsa(rent)
    )


def _fee(fee: Fee) -> bytes:
    return struct.pack("<QQ", fee.denominator, fee.numerator)


def initialize_stake_account(stake: Pubkey, authority: Pubkey) -> Instruction:
    """Stake program ``Initialize`` with ``authority`` as staker and withdrawer, no lockup."""

    data = (
        struct.pack("<I", STAKE_INITIALIZE)
        + bytes(authority)
        + bytes(authority)
        + struct.pack("<qQ", 0, 0)
        + bytes(Pubkey.default())
    )
    return Instruction(
        STAKE_PROGRAM_ID,
        data,
        [
            AccountMeta(stake, is_signer=False, is_writable=True),
            AccountMeta(RENT_SYSVAR_ID, is_signer=False, is_writable=False),
        ],
    )


def set_mint_authority(
    token_program: Pubkey,
    mint: Pubkey,
    *,
    current: Pubkey,
    new: Pubkey,
) -> Instruction:
    data = bytes([TOKEN_SET_AUTHORITY, MINT_TOKENS_AUTHORITY, 1]) + bytes(new)
    return Instruction(
        token_program,
        data,
        [
            AccountMeta(mint, is_signer=False, is_writable=True),
            AccountMeta(current, is_signer=True, is_writable=False),
        ],
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class PoolCreation:
    """Everything needed to create one pool.

    ``Initialize`` sets SOL and stake deposit settings alike, so the stake
    deposit values stand for both here.
    """

    program: StakePoolProgram
    payer: Pubkey
    pool: Pubkey
    validator_list: Pubkey
    reserve: Pubkey
    mint: Pubkey
    token_program: Pubkey
    manager: Pubkey
    manager_fee_account: Pubkey
    staker: Pubkey
    deposit_authority: Pubkey | None
    epoch_fee: Fee
    withdrawal_fee: Fee
    deposit_fee: Fee
    referral_fee: int
    max_validators: int
    starting_validators: int
    rent: Rent

    @property
    def withdraw_authority(self) -> Pubkey:
        return find_withdraw_authority(self.program.program_id, self.pool)

    def create_reserve_instructions(self) -> list[Instruction]:
        create = create_account(
            CreateAccountParams(
                from_pubkey=self.payer,
                to_pubkey=self.reserve,
                lamports=reserve_lamports(self.rent, self.starting_validators),
                space=STAKE_ACCOUNT_SIZE,
                owner=STAKE_PROGRAM_ID,
            )
        )
        return [create, initialize_stake_account(self.reserve, self.withdraw_authority)]

    def initialize_instructions(self) -> list[Instruction]:
        list_size = validator_list_size(self.max_validators)
        return [
            set_mint_authority(
                self.token_program,
                self.mint,
                current=self.manager,
                new=self.withdraw_authority,
            ),
            create_account(
                CreateAccountParams(
                    from_pubkey=self.payer,
                    to_pubkey=self.validator_list,
                    lamports=self.rent.minimum_balance(list_size),
                    space=list_size,
                    owner=self.program.program_id,
                )
            ),
            create_account(
                CreateAccountParams(
                    from_pubkey=self.payer,
                    to_pubkey=self.pool,
                    lamports=self.rent.minimum_balance(STAKE_POOL_SIZE),
                    space=STAKE_POOL_SIZE,
                    owner=self.program.program_id,
                )
            ),
            self.initialize_pool(),
        ]

    def initialize_pool(self) -> Instruction:
        data = (
            bytes([StakePoolInstruction.INITIALIZE])
            + _fee(self.epoch_fee)
            + _fee(self.withdrawal_fee)
            + _fee(self.deposit_fee)
            + struct.pack("<BI", self.referral_fee, self.max_validators)
        )
        accounts = [
            AccountMeta(self.pool, is_signer=False, is_writable=True),
            AccountMeta(self.manager, is_signer=True, is_writable=False),
            AccountMeta(self.staker, is_signer=False, is_writable=False),
            AccountMeta(self.withdraw_authority, is_signer=False, is_writable=False),
            AccountMeta(self.validator_list, is_signer=False, is_writable=True),
            AccountMeta(self.reserve, is_signer=False, is_writable=False),
            AccountMeta(self.mint, is_signer=False, is_writable=True),
            AccountMeta(self.manager_fee_account, is_signer=False, is_writable=True),
            AccountMeta(self.token_program, is_signer=False, is_writable=False),
        ]
        if self.deposit_authority is not None:
            accounts.append(
                AccountMeta(self.deposit_authority, is_signer=False, is_writable=False)
            )
        return Instruction(self.program.program_id, data, accounts)

    def units(self) -> list[OperationUnit]:
        create, initialize_reserve = self.create_reserve_instructions()
        *setup, initialize = self.initialize_instructions()
        return [
            OperationUnit(
                (
                    Operation(
                        kind=OperationKind.CREATE_RESERVE,
                        instruction=create,
                        description=f"Create reserve stake account {self.reserve}",
                    ),
                    Operation(kind=OperationKind.CREATE_RESERVE, instruction=initialize_reserve),
                )
            ),
            OperationUnit(
                (
                    *(
                        Operation(kind=OperationKind.INITIALIZE_POOL, instruction=instruction)
                        for instruction in setup
                    ),
                    Operation(
                        kind=OperationKind.INITIALIZE_POOL,
                        instruction=initialize,
                        description=f"Initialize stake pool {self.pool}",
                    ),
                )
            ),
        ]
