"""Sequential batch submission.

Batches are sent strictly one after another: a later batch may depend on the
ledger effects of an earlier one, so batch N+1 is only prepared once batch N
has been confirmed. The first failure aborts the remaining batches.
"""

from __future__ import annotations

import base64
import sys
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, TextIO

from solders.message import MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from stakesync.domain.errors import SimulationError, SubmissionError

from .batching import OperationBatcher
from .signers import SendMode

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from solders.hash import Hash
    from solders.instruction import Instruction
    from solders.pubkey import Pubkey

    from stakesync.domain.ports import LedgerClient

    from .fees import ComputeBudget, FeeEstimator
    from .operations import Operation, OperationUnit
    from .signers import Authorizer, SignerSet

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class Batch:
    index: int
    payer: Pubkey
    operations: tuple[Operation, ...]
    compute_budget: ComputeBudget | None = None

    @property
    def instructions(self) -> list[Instruction]:
        body = [operation.instruction for operation in self.operations]
        if self.compute_budget is None:
            return body
        return [*self.compute_budget.instructions(), *body]

    def compile(self, blockhash: Hash) -> MessageV0:
        return MessageV0.try_compile(self.payer, self.instructions, [], blockhash)


def required_signers(message: MessageV0) -> list[Pubkey]:
    return list(message.account_keys[: message.header.num_required_signatures])


@dataclass(slots=True)
class BatchSubmitter:
    ledger: LedgerClient
    signers: SignerSet
    mode: SendMode
    fee_estimator: FeeEstimator
    batcher: OperationBatcher = field(default_factory=OperationBatcher)
    out: TextIO = field(default_factory=lambda: sys.stdout)

    def submit(self, units: Iterable[OperationUnit | Operation]) -> list[Signature]:
        """Submit every chunk of ``units`` in order; returns signatures of sent batches."""

        signatures: list[Signature] = []
        for index, operations in enumerate(self.batcher.batch_operations(units)):
            batch = self.prepare(index, operations)
            try:
                signature = self.dispatch(batch)
            except SubmissionError as exc:
                if exc.batch_index is None:
                    exc.batch_index = index
                raise
            if signature is not None:
                signatures.append(signature)
        return signatures

    def prepare(self, index: int, operations: Sequence[Operation]) -> Batch:
        payer = self.signers.payer_pubkey
        compute_budget = None
        # Dumped messages are signed elsewhere, possibly much later.
        if self.mode is not SendMode.DUMP_MSG:
            compute_budget = self.fee_estimator.estimate(
                payer, [operation.instruction for operation in operations]
            )
        return Batch(
            index=index,
            payer=payer,
            operations=tuple(operations),
            compute_budget=compute_budget,
        )

    def dispatch(self, batch: Batch) -> Signature | None:
        for operation in batch.operations:
            if operation.description:
                log.info("%s", operation.description)
        message = batch.compile(self.ledger.latest_blockhash())
        match self.mode:
            case SendMode.DUMP_MSG:
                unsigned = VersionedTransaction.populate(
                    message,
                    [Signature.default()] * message.header.num_required_signatures,
                )
                encoded = base64.b64encode(bytes(unsigned)).decode("ascii")
                print(encoded, file=self.out)
                return None
            case SendMode.SIM_ONLY:
                self._simulate(batch, message)
                return None
            case SendMode.SEND_ACTUAL:
                transaction = VersionedTransaction(message, self._signers_for(message))
                signature = self.ledger.send_and_confirm(transaction)
                log.info("Batch %d confirmed: %s", batch.index, signature)
                return signature

    def _simulate(self, batch: Batch, message: MessageV0) -> None:
        transaction = VersionedTransaction(message, self._signers_for(message))
        result = self.ledger.simulate(transaction)
        for line in result.logs:
            log.info("%s", line)
        if result.failed:
            raise SimulationError(
                f"Simulation of batch {batch.index} failed: {result.err}",
                logs=result.logs,
                batch_index=batch.index,
            )
        log.info(
            "Batch %d simulated successfully, %s compute units consumed",
            batch.index,
            result.units_consumed,
        )

    def _signers_for(self, message: MessageV0) -> list[Authorizer]:
        return self.signers.for_required(required_signers(message))
