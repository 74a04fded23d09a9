"""Delegation reconciliation: per-validator stake changes from a declared scheme.

The reserve is a single running budget shared by every validator, consumed in
declared order with the remainder validator last. Decreases never replenish
the budget within a run because released stake only returns to the reserve
at the next epoch boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from stakesync.domain.errors import UnexpectedAccountStateError
from stakesync.domain.model import TransientPhase

from .lifecycle import next_epoch_stake
from .targets import LamportsTarget, RemainderTarget, order_delegation_scheme

if TYPE_CHECKING:
    from collections.abc import Sequence

    from solders.pubkey import Pubkey

    from stakesync.domain.model import (
        Epoch,
        Lamports,
        SeedSuffix,
        StakeRecord,
        ValidatorList,
        ValidatorStakeEntry,
    )

    from .targets import DelegationTarget, ValidatorDelegation

log = getLogger(__name__)


class DelegationChangeKind(StrEnum):
    INCREASE = "increase"
    DECREASE = "decrease"
    PARTIAL_INCREASE = "partial_increase"
    INSUFFICIENT_RESERVE = "insufficient_reserve"
    NO_CHANGE = "no_change"
    TRANSIENT_CONFLICT = "transient_conflict"
    VALIDATOR_BEING_REMOVED = "validator_being_removed"


@dataclass(frozen=True, slots=True, kw_only=True)
class Increase:
    vote: Pubkey
    validator_seed_suffix: SeedSuffix
    transient_seed_suffix: SeedSuffix
    lamports: Lamports
    kind: Literal[DelegationChangeKind.INCREASE] = DelegationChangeKind.INCREASE

    def describe(self) -> str:
        return f"Increase stake on validator {self.vote} by {self.lamports} lamports"


@dataclass(frozen=True, slots=True, kw_only=True)
class PartialIncrease:
    """Increase capped by the reserve budget."""

    vote: Pubkey
    validator_seed_suffix: SeedSuffix
    transient_seed_suffix: SeedSuffix
    lamports: Lamports
    shortfall: Lamports
    kind: Literal[DelegationChangeKind.PARTIAL_INCREASE] = DelegationChangeKind.PARTIAL_INCREASE

    def describe(self) -> str:
        return (
            f"Increase stake on validator {self.vote} by {self.lamports} lamports, "
            f"{self.shortfall} lamports short of target due to insufficient reserve"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class Decrease:
    vote: Pubkey
    validator_seed_suffix: SeedSuffix
    transient_seed_suffix: SeedSuffix
    lamports: Lamports
    kind: Literal[DelegationChangeKind.DECREASE] = DelegationChangeKind.DECREASE

    def describe(self) -> str:
        return f"Decrease stake on validator {self.vote} by {self.lamports} lamports"


@dataclass(frozen=True, slots=True, kw_only=True)
class InsufficientReserve:
    vote: Pubkey
    shortfall: Lamports
    kind: Literal[DelegationChangeKind.INSUFFICIENT_RESERVE] = (
        DelegationChangeKind.INSUFFICIENT_RESERVE
    )

    def describe(self) -> str:
        return (
            f"Not enough reserve to increase stake on validator {self.vote}, "
            f"short by {self.shortfall} lamports"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class NoChange:
    vote: Pubkey
    kind: Literal[DelegationChangeKind.NO_CHANGE] = DelegationChangeKind.NO_CHANGE

    def describe(self) -> str:
        return f"Validator {self.vote} already at target"


@dataclass(frozen=True, slots=True, kw_only=True)
class TransientConflict:
    """Desired direction opposes an in-flight transient stake change."""

    vote: Pubkey
    phase: TransientPhase
    kind: Literal[DelegationChangeKind.TRANSIENT_CONFLICT] = DelegationChangeKind.TRANSIENT_CONFLICT

    def describe(self) -> str:
        action = "decrease" if self.phase is TransientPhase.ACTIVATING else "increase"
        return (
            f"Cannot {action} stake on validator {self.vote} "
            f"while its transient stake is {self.phase}, retry next epoch"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidatorBeingRemoved:
    vote: Pubkey
    kind: Literal[DelegationChangeKind.VALIDATOR_BEING_REMOVED] = (
        DelegationChangeKind.VALIDATOR_BEING_REMOVED
    )

    def describe(self) -> str:
        return f"Validator {self.vote} is being removed from the pool, skipping"


type StakeChange = Increase | PartialIncrease | Decrease
type DelegationChange = (
    Increase
    | PartialIncrease
    | Decrease
    | InsufficientReserve
    | NoChange
    | TransientConflict
    | ValidatorBeingRemoved
)


def is_stake_change(change: DelegationChange) -> bool:
    """Whether ``change`` translates into a ledger operation."""

    return isinstance(change, Increase | PartialIncrease | Decrease)


@dataclass(frozen=True, slots=True, kw_only=True)
class DelegationInput:
    """One validator's ledger state paired with its declared target.

    ``committed`` may be ``None`` only for entries already being removed.
    """

    entry: ValidatorStakeEntry
    target: DelegationTarget
    committed: StakeRecord | None = None
    transient: StakeRecord | None = None

    @property
    def vote(self) -> Pubkey:
        return self.entry.vote_account


def match_scheme(
    scheme: Sequence[ValidatorDelegation],
    validator_list: ValidatorList,
) -> list[tuple[ValidatorDelegation, ValidatorStakeEntry]]:
    """Pair each declared validator with its pool entry, in budget consumption order."""

    pairs: list[tuple[ValidatorDelegation, ValidatorStakeEntry]] = []
    for delegation in order_delegation_scheme(scheme):
        entry = validator_list.find(delegation.vote)
        if entry is None:
            raise UnexpectedAccountStateError(f"Validator {delegation.vote} not part of pool")
        pairs.append((delegation, entry))
    return pairs


@dataclass(slots=True)
class DelegationReconciler:
    """Compute stake changes that move each validator to its declared target.

    ``minimum_lamports`` is both the floor a validator stake account can never
    go below and the unit of the safety margin kept in the reserve.
    Validators are served strictly in input order, except that a remainder
    target is always served last.
    """

    reserve_lamports: Lamports
    current_epoch: Epoch
    minimum_lamports: Lamports

    def reconcile(self, inputs: Sequence[DelegationInput]) -> list[DelegationChange]:
        ordered = sorted(inputs, key=lambda item: isinstance(item.target, RemainderTarget))
        budget = self.reserve_lamports
        changes: list[DelegationChange] = []
        for item in ordered:
            if item.entry.is_being_removed:
                change: DelegationChange = ValidatorBeingRemoved(vote=item.vote)
            else:
                change, budget = self._reconcile_one(item, budget)
            log.debug("%s", change.describe())
            changes.append(change)
        return changes

    def available(self, budget: Lamports) -> Lamports:
        return max(budget - 2 * self.minimum_lamports, 0)

    def _reconcile_one(
        self,
        item: DelegationInput,
        budget: Lamports,
    ) -> tuple[DelegationChange, Lamports]:
        if item.committed is None:
            raise UnexpectedAccountStateError(
                f"Validator stake account of {item.vote} does not exist"
            )
        entry = item.entry
        vote = item.vote
        projected, phase = next_epoch_stake(item.committed, item.transient, self.current_epoch)
        if isinstance(item.target, LamportsTarget):
            target = max(item.target.lamports, self.minimum_lamports)
        else:
            target = projected + self.available(budget)

        if projected == target:
            return NoChange(vote=vote), budget

        if projected > target:
            if phase is TransientPhase.ACTIVATING:
                return TransientConflict(vote=vote, phase=phase), budget
            decrease = Decrease(
                vote=vote,
                validator_seed_suffix=entry.validator_seed_suffix,
                transient_seed_suffix=entry.transient_seed_suffix,
                lamports=projected - target,
            )
            return decrease, budget

        if phase is TransientPhase.DEACTIVATING:
            return TransientConflict(vote=vote, phase=phase), budget
        desired = target - projected
        actual = min(self.available(budget), desired)
        if actual == 0:
            return InsufficientReserve(vote=vote, shortfall=desired), budget
        budget -= actual
        if actual == desired:
            increase: StakeChange = Increase(
                vote=vote,
                validator_seed_suffix=entry.validator_seed_suffix,
                transient_seed_suffix=entry.transient_seed_suffix,
                lamports=actual,
            )
        else:
            increase = PartialIncrease(
                vote=vote,
                validator_seed_suffix=entry.validator_seed_suffix,
                transient_seed_suffix=entry.transient_seed_suffix,
                lamports=actual,
                shortfall=desired - actual,
            )
        return increase, budget
