"""Fee schedule value objects.

Fees are stored on the ledger as (denominator, numerator) pairs. Two fees are
considered equal when they describe the same rate, so ``1/100`` equals
``2/200`` and any fee with a zero numerator or zero denominator is zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from fractions import Fraction


@dataclass(frozen=True, slots=True)
class Fee:
    numerator: int
    denominator: int

    @classmethod
    def zero(cls) -> Fee:
        return cls(numerator=0, denominator=1)

    @property
    def rate(self) -> Fraction:
        if self.denominator == 0 or self.numerator == 0:
            return Fraction(0)
        return Fraction(self.numerator, self.denominator)

    def same_rate(self, other: Fee) -> bool:
        return self.rate == other.rate

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"


class FeeKind(IntEnum):
    """Fee categories, valued by their on-ledger ``FeeType`` discriminant."""

    SOL_REFERRAL = 0
    STAKE_REFERRAL = 1
    EPOCH = 2
    STAKE_WITHDRAWAL = 3
    SOL_DEPOSIT = 4
    STAKE_DEPOSIT = 5
    SOL_WITHDRAWAL = 6

    @property
    def is_referral(self) -> bool:
        return self in {FeeKind.SOL_REFERRAL, FeeKind.STAKE_REFERRAL}

    @property
    def label(self) -> str:
        return _FEE_LABELS[self]


_FEE_LABELS = {
    FeeKind.SOL_REFERRAL: "SOL referral fee",
    FeeKind.STAKE_REFERRAL: "stake referral fee",
    FeeKind.EPOCH: "epoch fee",
    FeeKind.STAKE_WITHDRAWAL: "stake withdrawal fee",
    FeeKind.SOL_DEPOSIT: "SOL deposit fee",
    FeeKind.STAKE_DEPOSIT: "stake deposit fee",
    FeeKind.SOL_WITHDRAWAL: "SOL withdrawal fee",
}


@dataclass(frozen=True, slots=True)
class FeeType:
    """One fee category with its value.

    Referral fees are whole percentages in ``referral_percent``; every other
    category carries a ``fee``.
    """

    kind: FeeKind
    fee: Fee | None = None
    referral_percent: int | None = None

    def __post_init__(self) -> None:
        if self.kind.is_referral:
            if self.referral_percent is None or self.fee is not None:
                raise ValueError(f"{self.kind.label} takes a referral percentage")
            if not 0 <= self.referral_percent <= 100:
                raise ValueError(f"Referral percentage out of range: {self.referral_percent}")
        elif self.fee is None or self.referral_percent is not None:
            raise ValueError(f"{self.kind.label} takes a fee")

    @classmethod
    def of(cls, kind: FeeKind, fee: Fee) -> FeeType:
        return cls(kind=kind, fee=fee)

    @classmethod
    def referral(cls, kind: FeeKind, percent: int) -> FeeType:
        return cls(kind=kind, referral_percent=percent)

    @property
    def rate(self) -> Fee:
        if self.fee is None:
            raise ValueError(f"{self.kind.label} has no fee rate")
        return self.fee

    @property
    def percent(self) -> int:
        if self.referral_percent is None:
            raise ValueError(f"{self.kind.label} has no referral percentage")
        return self.referral_percent

    def same_value(self, other: FeeType) -> bool:
        if self.kind is not other.kind:
            return False
        if self.kind.is_referral:
            return self.referral_percent == other.referral_percent
        return self.rate.same_rate(other.rate)

    def display_value(self) -> str:
        if self.kind.is_referral:
            return f"{self.referral_percent}%"
        return str(self.fee)


@dataclass(frozen=True, slots=True)
class FutureEpochFee:
    """A fee already scheduled to take effect one or two epochs from now.

    ``epochs_ahead`` is 0 when nothing is scheduled.
    """

    epochs_ahead: int = 0
    fee: Fee | None = None

    def __post_init__(self) -> None:
        if self.epochs_ahead not in {0, 1, 2}:
            raise ValueError(f"Invalid future epoch fee tag: {self.epochs_ahead}")
        if (self.epochs_ahead == 0) != (self.fee is None):
            raise ValueError("A scheduled future fee needs exactly one fee value")

    @classmethod
    def none(cls) -> FutureEpochFee:
        return cls()

    @property
    def is_scheduled(self) -> bool:
        return self.fee is not None
