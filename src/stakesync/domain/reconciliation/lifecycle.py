"""Projected next-epoch stake of a validator.

A stake change submitted in epoch N only settles at the start of epoch N+1.
Until then it sits in the validator's transient stake account, which is
activating when it was funded this epoch and deactivating otherwise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stakesync.domain.model import TransientPhase

if TYPE_CHECKING:
    from stakesync.domain.model import Epoch, Lamports, StakeRecord


def transient_phase(transient: StakeRecord | None, current_epoch: Epoch) -> TransientPhase:
    if transient is None:
        return TransientPhase.NONE
    if transient.activation_epoch == current_epoch:
        return TransientPhase.ACTIVATING
    return TransientPhase.DEACTIVATING


def next_epoch_stake(
    committed: StakeRecord,
    transient: StakeRecord | None,
    current_epoch: Epoch,
) -> tuple[Lamports, TransientPhase]:
    phase = transient_phase(transient, current_epoch)
    if transient is None:
        return committed.lamports, phase
    if phase is TransientPhase.ACTIVATING:
        return committed.lamports + transient.lamports, phase
    return max(committed.lamports - transient.lamports, 0), phase
