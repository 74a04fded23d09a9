"""Stake account and sysvar snapshots."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .primitives import U64_MAX

if TYPE_CHECKING:
    from solders.pubkey import Pubkey

    from .primitives import Epoch, Lamports

STAKE_ACCOUNT_SIZE: Final[int] = 200
ACCOUNT_STORAGE_OVERHEAD: Final[int] = 128
MINIMUM_ACTIVE_STAKE: Final[int] = 1_000_000


@dataclass(frozen=True, slots=True, kw_only=True)
class StakeRecord:
    """A delegated stake account as seen in one snapshot.

    ``lamports`` is the full account balance, which includes the rent-exempt
    reserve; ``delegated_stake`` is the portion delegated to ``voter``.
    """

    lamports: Lamports
    rent_exempt_reserve: Lamports
    voter: Pubkey | None
    delegated_stake: Lamports
    activation_epoch: Epoch
    deactivation_epoch: Epoch = U64_MAX

    @property
    def is_delegated(self) -> bool:
        return self.voter is not None

    @property
    def is_deactivating(self) -> bool:
        return self.deactivation_epoch != U64_MAX


@dataclass(frozen=True, slots=True)
class Clock:
    slot: int
    epoch: Epoch
    unix_timestamp: int = 0


@dataclass(frozen=True, slots=True)
class Rent:
    lamports_per_byte_year: int = 3480
    exemption_threshold: float = 2.0
    burn_percent: int = 50

    def minimum_balance(self, data_len: int) -> Lamports:
        bytes_ = ACCOUNT_STORAGE_OVERHEAD + data_len
        return math.floor(bytes_ * self.lamports_per_byte_year * self.exemption_threshold)


def stake_rent_exempt_reserve(rent: Rent) -> Lamports:
    return rent.minimum_balance(STAKE_ACCOUNT_SIZE)


def lamports_for_new_vsa(rent: Rent) -> Lamports:
    """Minimum balance a validator stake account must keep."""

    return stake_rent_exempt_reserve(rent) + MINIMUM_ACTIVE_STAKE
