"""Declared target records and their validation.

These are the plain records handed over by the config file adapter. Anything
contradictory is rejected here, before any ledger state is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from stakesync.domain.errors import ValidationError
from stakesync.domain.model import Fee, FeeKind, FeeType

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from solders.pubkey import Pubkey

    from stakesync.domain.model import Lamports


@dataclass(frozen=True, slots=True)
class LamportsTarget:
    lamports: Lamports

    def __post_init__(self) -> None:
        if self.lamports < 0:
            raise ValidationError(f"Target stake must be non-negative, got {self.lamports}")

    def __str__(self) -> str:
        return str(self.lamports)


@dataclass(frozen=True, slots=True)
class RemainderTarget:
    """Receives whatever the reserve can still fund after explicit targets."""

    def __str__(self) -> str:
        return "remainder"


REMAINDER: Final = RemainderTarget()

type DelegationTarget = LamportsTarget | RemainderTarget


@dataclass(frozen=True, slots=True)
class ValidatorDelegation:
    vote: Pubkey
    target: DelegationTarget

    @property
    def is_remainder(self) -> bool:
        return isinstance(self.target, RemainderTarget)


def validate_delegation_scheme(scheme: Iterable[ValidatorDelegation]) -> None:
    """Reject schemes with more than one remainder or repeated validators."""

    has_remainder = False
    seen: set[Pubkey] = set()
    for delegation in scheme:
        if delegation.vote in seen:
            raise ValidationError(f"Validator {delegation.vote} appears more than once")
        seen.add(delegation.vote)
        if delegation.is_remainder:
            if has_remainder:
                raise ValidationError("Can only have at most one validator with target=remainder")
            has_remainder = True


def order_delegation_scheme(
    scheme: Sequence[ValidatorDelegation],
) -> tuple[ValidatorDelegation, ...]:
    """Validate ``scheme`` and move the remainder entry last, keeping declared order otherwise."""

    validate_delegation_scheme(scheme)
    explicit = [delegation for delegation in scheme if not delegation.is_remainder]
    remainder = [delegation for delegation in scheme if delegation.is_remainder]
    return (*explicit, *remainder)


@dataclass(frozen=True, slots=True, kw_only=True)
class PoolTargets:
    """Declared pool parameters, fully resolved against current values by the caller."""

    manager: Pubkey
    staker: Pubkey
    manager_fee_account: Pubkey
    stake_deposit_authority: Pubkey | None
    sol_deposit_authority: Pubkey | None
    sol_withdraw_authority: Pubkey | None
    epoch_fee: Fee
    stake_withdrawal_fee: Fee
    sol_withdrawal_fee: Fee
    stake_deposit_fee: Fee
    sol_deposit_fee: Fee
    stake_referral_fee: int
    sol_referral_fee: int

    def fee(self, kind: FeeKind) -> FeeType:
        match kind:
            case FeeKind.SOL_REFERRAL:
                return FeeType.referral(kind, self.sol_referral_fee)
            case FeeKind.STAKE_REFERRAL:
                return FeeType.referral(kind, self.stake_referral_fee)
            case FeeKind.EPOCH:
                return FeeType.of(kind, self.epoch_fee)
            case FeeKind.STAKE_WITHDRAWAL:
                return FeeType.of(kind, self.stake_withdrawal_fee)
            case FeeKind.SOL_DEPOSIT:
                return FeeType.of(kind, self.sol_deposit_fee)
            case FeeKind.STAKE_DEPOSIT:
                return FeeType.of(kind, self.stake_deposit_fee)
            case FeeKind.SOL_WITHDRAWAL:
                return FeeType.of(kind, self.sol_withdrawal_fee)


@dataclass(frozen=True, slots=True, kw_only=True)
class MembershipTargets:
    validators: tuple[Pubkey, ...]
    preferred_deposit_validator: Pubkey | None = None
    preferred_withdraw_validator: Pubkey | None = None
