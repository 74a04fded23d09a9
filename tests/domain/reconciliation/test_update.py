from __future__ import annotations

from stakesync.domain.model import UpdateCtrl, ValidatorList
from stakesync.domain.reconciliation import (
    MAX_VALIDATORS_TO_UPDATE_PER_TX,
    UpdatePlan,
    plan_update,
)

from tests.helpers.ledger import make_entry, make_pool, make_validator_list

EPOCH = 700


def _validator_list(stale_indexes: set[int], count: int = 25) -> ValidatorList:
    return make_validator_list(
        make_entry(last_update_epoch=EPOCH - 1 if index in stale_indexes else EPOCH)
        for index in range(count)
    )


def test_current_pool_needs_no_update() -> None:
    pool = make_pool(last_update_epoch=EPOCH)

    assert plan_update(pool, _validator_list(set()), EPOCH) is None


def test_force_pool_on_current_pool_only_updates_balance() -> None:
    pool = make_pool(last_update_epoch=EPOCH)

    assert plan_update(pool, _validator_list({0}), EPOCH, UpdateCtrl.FORCE_POOL) == UpdatePlan()


def test_stale_pool_updates_only_stale_slices() -> None:
    pool = make_pool(last_update_epoch=EPOCH - 1)

    plan = plan_update(pool, _validator_list({3, 24}), EPOCH)

    assert plan is not None
    assert [chunk.start_index for chunk in plan.slices] == [0, 22]
    assert len(plan.slices[0].entries) == MAX_VALIDATORS_TO_UPDATE_PER_TX
    assert len(plan.slices[1].entries) == 3
    assert plan.slices[1].describe() == "Updating validator list [22..25]"


def test_force_all_updates_every_slice() -> None:
    pool = make_pool(last_update_epoch=EPOCH)

    plan = plan_update(pool, _validator_list(set()), EPOCH, UpdateCtrl.FORCE_ALL)

    assert plan is not None
    assert [chunk.start_index for chunk in plan.slices] == [0, 11, 22]
