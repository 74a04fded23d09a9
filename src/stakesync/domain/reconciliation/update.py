"""Epoch update crank planning.

The validator list is refreshed in fixed-size slices; a slice already updated
for the current epoch is skipped unless the whole list is forced. The pool
balance update and the cleanup of removed entries always follow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from stakesync.domain.model import UpdateCtrl

if TYPE_CHECKING:
    from stakesync.domain.model import Epoch, StakePool, ValidatorList, ValidatorStakeEntry

MAX_VALIDATORS_TO_UPDATE_PER_TX: Final[int] = 11


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidatorListSlice:
    start_index: int
    entries: tuple[ValidatorStakeEntry, ...]

    @property
    def end_index(self) -> int:
        return self.start_index + len(self.entries)

    def describe(self) -> str:
        return f"Updating validator list [{self.start_index}..{self.end_index}]"


@dataclass(frozen=True, slots=True, kw_only=True)
class UpdatePlan:
    slices: tuple[ValidatorListSlice, ...] = field(default_factory=tuple)


def plan_update(
    pool: StakePool,
    validator_list: ValidatorList,
    current_epoch: Epoch,
    ctrl: UpdateCtrl = UpdateCtrl.IF_NEEDED,
    *,
    slice_size: int = MAX_VALIDATORS_TO_UPDATE_PER_TX,
) -> UpdatePlan | None:
    """Return the update work needed, or ``None`` when the pool is already current."""

    is_updated = pool.is_updated_for(current_epoch)
    if is_updated and ctrl is UpdateCtrl.IF_NEEDED:
        return None
    if is_updated and ctrl is not UpdateCtrl.FORCE_ALL:
        return UpdatePlan()

    slices: list[ValidatorListSlice] = []
    entries = validator_list.validators
    for start in range(0, len(entries), slice_size):
        chunk = entries[start : start + slice_size]
        stale = any(entry.last_update_epoch < current_epoch for entry in chunk)
        if stale or ctrl is UpdateCtrl.FORCE_ALL:
            slices.append(ValidatorListSlice(start_index=start, entries=chunk))
    return UpdatePlan(slices=tuple(slices))
