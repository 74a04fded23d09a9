from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from stakesync.domain.errors import ValidationError
from stakesync.domain.model import PreferredValidatorType, StakeStatus
from stakesync.domain.reconciliation import (
    MembershipTargets,
    PreferredValidatorChange,
    RemovalPlan,
    ValidatorSetReconciler,
)

from tests.helpers.ledger import (
    MINIMUM_LAMPORTS,
    make_entry,
    make_pool,
    make_validator_list,
    stake_record,
)

SOL = 1_000_000_000


def _reconciler() -> ValidatorSetReconciler:
    return ValidatorSetReconciler(minimum_lamports=MINIMUM_LAMPORTS)


def test_adds_follow_declared_order_and_removals_follow_ledger_order() -> None:
    kept = make_entry(active=MINIMUM_LAMPORTS)
    gone_first = make_entry(active=MINIMUM_LAMPORTS)
    gone_second = make_entry(active=MINIMUM_LAMPORTS)
    new_b, new_a = Pubkey.new_unique(), Pubkey.new_unique()
    validator_list = make_validator_list([gone_first, kept, gone_second])
    targets = MembershipTargets(validators=(new_b, kept.vote_account, new_a))

    changeset = _reconciler().reconcile(targets, make_pool(), validator_list)

    assert changeset.add == (new_b, new_a)
    assert [removal.vote for removal in changeset.remove] == [
        gone_first.vote_account,
        gone_second.vote_account,
    ]


def test_removal_of_staked_validator_is_preceded_by_decrease() -> None:
    staked = make_entry(active=5 * SOL)
    validator_list = make_validator_list([staked])

    changeset = _reconciler().reconcile(
        MembershipTargets(validators=()), make_pool(), validator_list
    )

    assert changeset.remove == (
        RemovalPlan(entry=staked, decrease_lamports=5 * SOL - MINIMUM_LAMPORTS),
    )
    assert changeset.remove[0].needs_decrease


def test_removal_at_minimum_needs_no_decrease() -> None:
    entry = make_entry(active=MINIMUM_LAMPORTS)

    plan = _reconciler().plan_removal(entry)

    assert not plan.needs_decrease
    assert plan.describe() == f"Remove validator {entry.vote_account}"


def test_already_deactivating_stake_account_skips_decrease() -> None:
    entry = make_entry(active=5 * SOL)
    record = stake_record(5 * SOL, voter=entry.vote_account, deactivation_epoch=100)

    changeset = _reconciler().reconcile(
        MembershipTargets(validators=()),
        make_pool(),
        make_validator_list([entry]),
        {entry.vote_account: record},
    )

    assert changeset.remove == (RemovalPlan(entry=entry),)


def test_entries_already_being_removed_are_left_alone() -> None:
    leaving = make_entry(status=StakeStatus.READY_FOR_REMOVAL)

    changeset = _reconciler().reconcile(
        MembershipTargets(validators=()), make_pool(), make_validator_list([leaving])
    )

    assert changeset.is_empty


def test_membership_above_pool_bound_is_rejected() -> None:
    validator_list = make_validator_list([make_entry()], max_validators=2)
    targets = MembershipTargets(
        validators=(
            validator_list.validators[0].vote_account,
            Pubkey.new_unique(),
            Pubkey.new_unique(),
        )
    )

    with pytest.raises(ValidationError, match="at most 2 validators"):
        _reconciler().reconcile(targets, make_pool(), validator_list)


def test_preferred_validator_changes() -> None:
    entry = make_entry()
    old_withdraw = Pubkey.new_unique()
    pool = make_pool(preferred_withdraw_validator=old_withdraw)
    targets = MembershipTargets(
        validators=(entry.vote_account,),
        preferred_deposit_validator=entry.vote_account,
    )

    changeset = _reconciler().reconcile(targets, pool, make_validator_list([entry]))

    assert changeset.preferred == (
        PreferredValidatorChange(
            validator_type=PreferredValidatorType.DEPOSIT,
            old=None,
            new=entry.vote_account,
        ),
        PreferredValidatorChange(
            validator_type=PreferredValidatorType.WITHDRAW,
            old=old_withdraw,
            new=None,
        ),
    )


def test_preferred_validator_outside_declared_list_is_rejected() -> None:
    targets = MembershipTargets(validators=(), preferred_deposit_validator=Pubkey.new_unique())

    with pytest.raises(ValidationError, match="not in the declared validator list"):
        _reconciler().reconcile(targets, make_pool(), make_validator_list())


def test_validate_needs_no_ledger_diff() -> None:
    validator_list = make_validator_list([make_entry()], max_validators=1)
    kept = validator_list.validators[0].vote_account

    _reconciler().validate(MembershipTargets(validators=(kept,)), validator_list)
    with pytest.raises(ValidationError, match="at most 1 validators"):
        _reconciler().validate(
            MembershipTargets(validators=(kept, Pubkey.new_unique())), validator_list
        )
    with pytest.raises(ValidationError, match="not in the declared validator list"):
        _reconciler().validate(
            MembershipTargets(validators=(kept,), preferred_withdraw_validator=Pubkey.new_unique()),
            validator_list,
        )
