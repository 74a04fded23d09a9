"""Validator membership and preferred-validator reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stakesync.domain.errors import ValidationError
from stakesync.domain.model import PreferredValidatorType

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from solders.pubkey import Pubkey

    from stakesync.domain.model import (
        Lamports,
        StakePool,
        StakeRecord,
        ValidatorList,
        ValidatorStakeEntry,
    )

    from .targets import MembershipTargets


@dataclass(frozen=True, slots=True, kw_only=True)
class RemovalPlan:
    """Removal of one validator, preceded by a decrease when it still holds stake."""

    entry: ValidatorStakeEntry
    decrease_lamports: Lamports = 0

    @property
    def vote(self) -> Pubkey:
        return self.entry.vote_account

    @property
    def needs_decrease(self) -> bool:
        return self.decrease_lamports > 0

    def describe(self) -> str:
        if self.needs_decrease:
            return (
                f"Remove validator {self.vote} after decreasing its stake "
                f"by {self.decrease_lamports} lamports"
            )
        return f"Remove validator {self.vote}"


@dataclass(frozen=True, slots=True, kw_only=True)
class PreferredValidatorChange:
    validator_type: PreferredValidatorType
    old: Pubkey | None
    new: Pubkey | None

    def describe(self) -> str:
        old = "None" if self.old is None else str(self.old)
        new = "None" if self.new is None else str(self.new)
        return f"Change {self.validator_type.label} from {old} to {new}"


@dataclass(frozen=True, slots=True, kw_only=True)
class MembershipChangeset:
    add: tuple[Pubkey, ...] = field(default_factory=tuple)
    remove: tuple[RemovalPlan, ...] = field(default_factory=tuple)
    preferred: tuple[PreferredValidatorChange, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not (self.add or self.remove or self.preferred)


@dataclass(slots=True)
class ValidatorSetReconciler:
    """Diff declared validator membership against the on-ledger validator list.

    ``minimum_lamports`` is the balance a validator stake account keeps when
    it is removed; anything above it is decreased back to the reserve first.
    """

    minimum_lamports: Lamports

    def validate(self, targets: MembershipTargets, validator_list: ValidatorList) -> None:
        """Reject declared membership the pool cannot reach, before anything is sent."""

        members = set(targets.validators)
        if len(members) > validator_list.max_validators:
            raise ValidationError(
                f"Pool can hold at most {validator_list.max_validators} validators, "
                f"config declares {len(members)}"
            )
        for validator_type, preferred in (
            (PreferredValidatorType.DEPOSIT, targets.preferred_deposit_validator),
            (PreferredValidatorType.WITHDRAW, targets.preferred_withdraw_validator),
        ):
            if preferred is not None and preferred not in members:
                raise ValidationError(
                    f"{validator_type.label.capitalize()} {preferred} "
                    "is not in the declared validator list"
                )

    def reconcile(
        self,
        targets: MembershipTargets,
        pool: StakePool,
        validator_list: ValidatorList,
        stake_records: Mapping[Pubkey, StakeRecord] | None = None,
    ) -> MembershipChangeset:
        self.validate(targets, validator_list)
        add, remove = self.membership_changes(targets.validators, validator_list, stake_records)
        # Entries still being removed keep their slot until the next cleanup.
        resulting = len(validator_list) - len(remove) + len(add)
        if resulting > validator_list.max_validators:
            raise ValidationError(
                f"Pool can hold at most {validator_list.max_validators} validators, "
                f"config declares {resulting}"
            )
        preferred = self.preferred_changes(targets, pool)
        return MembershipChangeset(add=add, remove=remove, preferred=preferred)

    def membership_changes(
        self,
        declared: Iterable[Pubkey],
        validator_list: ValidatorList,
        stake_records: Mapping[Pubkey, StakeRecord] | None = None,
    ) -> tuple[tuple[Pubkey, ...], tuple[RemovalPlan, ...]]:
        """Return ``(add, remove)``; stake records are keyed by vote account."""

        declared_votes = list(dict.fromkeys(declared))
        declared_set = set(declared_votes)
        present = {entry.vote_account for entry in validator_list.validators}
        add = tuple(vote for vote in declared_votes if vote not in present)
        remove = tuple(
            self.plan_removal(entry, (stake_records or {}).get(entry.vote_account))
            for entry in validator_list.validators
            if entry.vote_account not in declared_set and not entry.is_being_removed
        )
        return add, remove

    def plan_removal(
        self,
        entry: ValidatorStakeEntry,
        stake_record: StakeRecord | None = None,
    ) -> RemovalPlan:
        # Already deactivated, e.g. by a delinquency crank.
        if stake_record is not None and stake_record.is_deactivating:
            return RemovalPlan(entry=entry)
        excess = entry.active_stake_lamports - self.minimum_lamports
        return RemovalPlan(entry=entry, decrease_lamports=max(excess, 0))

    def preferred_changes(
        self,
        targets: MembershipTargets,
        pool: StakePool,
    ) -> tuple[PreferredValidatorChange, ...]:
        pairs = (
            (
                PreferredValidatorType.DEPOSIT,
                pool.preferred_deposit_validator,
                targets.preferred_deposit_validator,
            ),
            (
                PreferredValidatorType.WITHDRAW,
                pool.preferred_withdraw_validator,
                targets.preferred_withdraw_validator,
            ),
        )
        return tuple(
            PreferredValidatorChange(validator_type=validator_type, old=old, new=new)
            for validator_type, old, new in pairs
            if old != new
        )
