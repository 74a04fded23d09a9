"""Pool token mint snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from solders.pubkey import Pubkey


@dataclass(frozen=True, slots=True, kw_only=True)
class Mint:
    """A token mint; a new pool needs one with no supply and no freeze authority."""

    mint_authority: Pubkey | None
    supply: int
    decimals: int
    is_initialized: bool
    freeze_authority: Pubkey | None = None
