"""Signing identities and their deduplicated, ordered set per transaction."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from stakesync.domain.errors import SubmissionError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from solders.pubkey import Pubkey
    from solders.signature import Signature


@runtime_checkable
class Authorizer(Protocol):
    """Anything that can provide an identity and sign a message with it.

    ``solders`` keypairs, presigners and null signers all satisfy this.
    """

    def pubkey(self) -> Pubkey:
        ...

    def sign_message(self, message: bytes) -> Signature:
        ...


class SendMode(StrEnum):
    SEND_ACTUAL = "send-actual"
    SIM_ONLY = "sim-only"
    DUMP_MSG = "dump-msg"

    @property
    def needs_real_signers(self) -> bool:
        return self is SendMode.SEND_ACTUAL


@dataclass(slots=True)
class SignerSet:
    """Authorizers keyed by identity, so each identity occupies one signature slot.

    The payer is kept separately because it must be the first account of the
    compiled message.
    """

    payer: Authorizer
    _by_pubkey: dict[Pubkey, Authorizer] = field(default_factory=dict)

    @classmethod
    def of(cls, payer: Authorizer, *authorizers: Authorizer) -> SignerSet:
        signer_set = cls(payer)
        signer_set.add(payer, *authorizers)
        return signer_set

    def add(self, *authorizers: Authorizer) -> None:
        for authorizer in authorizers:
            self._by_pubkey.setdefault(authorizer.pubkey(), authorizer)

    @property
    def payer_pubkey(self) -> Pubkey:
        return self.payer.pubkey()

    def pubkeys(self) -> list[Pubkey]:
        return sorted(self._by_pubkey, key=bytes)

    def sorted(self) -> list[Authorizer]:
        return [self._by_pubkey[pubkey] for pubkey in self.pubkeys()]

    def for_required(self, required: Iterable[Pubkey]) -> list[Authorizer]:
        """Authorizers for exactly the ``required`` identities, in sorted order."""

        wanted = set(required)
        missing = wanted - self._by_pubkey.keys()
        if missing:
            names = ", ".join(sorted(str(pubkey) for pubkey in missing))
            raise SubmissionError(f"No signer available for required identities: {names}")
        return [self._by_pubkey[pubkey] for pubkey in sorted(wanted, key=bytes)]

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self._by_pubkey

    def __len__(self) -> int:
        return len(self._by_pubkey)
