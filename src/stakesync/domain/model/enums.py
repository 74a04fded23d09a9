"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class AccountType(IntEnum):
    UNINITIALIZED = 0
    STAKE_POOL = 1
    VALIDATOR_LIST = 2


class StakeStatus(IntEnum):
    """Lifecycle status of a validator list entry."""

    ACTIVE = 0
    DEACTIVATING_TRANSIENT = 1
    READY_FOR_REMOVAL = 2
    DEACTIVATING_VALIDATOR = 3
    DEACTIVATING_ALL = 4

    @property
    def is_being_removed(self) -> bool:
        return self is not StakeStatus.ACTIVE

    @property
    def label(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


class FundingType(IntEnum):
    STAKE_DEPOSIT = 0
    SOL_DEPOSIT = 1
    SOL_WITHDRAW = 2

    @property
    def label(self) -> str:
        return _FUNDING_LABELS[self]


_FUNDING_LABELS = {
    FundingType.STAKE_DEPOSIT: "stake deposit authority",
    FundingType.SOL_DEPOSIT: "SOL deposit authority",
    FundingType.SOL_WITHDRAW: "SOL withdraw authority",
}


class PreferredValidatorType(IntEnum):
    DEPOSIT = 0
    WITHDRAW = 1

    @property
    def label(self) -> str:
        return f"preferred {self.name.lower()} validator"


class TransientPhase(StrEnum):
    """Phase of a validator's transient stake account, derived each run."""

    NONE = "none"
    ACTIVATING = "activating"
    DEACTIVATING = "deactivating"


class UpdateCtrl(StrEnum):
    """How to run the epoch update crank."""

    IF_NEEDED = "if-needed"
    FORCE_POOL = "force-pool"
    FORCE_ALL = "force-all"
