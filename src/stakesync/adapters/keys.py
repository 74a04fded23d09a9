"""Keypair files and resolution of identities given on the command line or in config."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from solders.keypair import Keypair
from solders.null_signer import NullSigner
from solders.pubkey import Pubkey

from stakesync.config.errors import ConfigurationError
from stakesync.domain.transactions import SendMode

if TYPE_CHECKING:
    from stakesync.domain.transactions import Authorizer

log = getLogger(__name__)


def load_keypair(path: str | Path) -> Keypair:
    """Load a keypair from a JSON file holding its 64 secret key bytes."""

    keypair_path = Path(path).expanduser()
    try:
        raw = keypair_path.read_text()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read keypair file {keypair_path}: {exc}") from exc
    try:
        return Keypair.from_json(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid keypair file {keypair_path}") from exc


def _as_pubkey(raw: str) -> Pubkey | None:
    try:
        return Pubkey.from_string(raw.strip())
    except ValueError:
        return None


def parse_pubkey(raw: str) -> Pubkey:
    """Accept a base58 pubkey or the path of a keypair file."""

    pubkey = _as_pubkey(raw)
    if pubkey is not None:
        return pubkey
    return load_keypair(raw).pubkey()


def resolve_authorizer(raw: str | None, mode: SendMode, fallback: Authorizer) -> Authorizer:
    """Turn a pubkey or keypair path into something that can sign.

    A bare pubkey can only sign as a placeholder, which is enough when the
    transaction is simulated or dumped. When actually sending, a bare pubkey
    falls back to ``fallback`` (usually the payer); any mismatch with the
    authority of record is caught later.
    """

    if raw is None:
        return fallback
    pubkey = _as_pubkey(raw)
    if pubkey is None:
        return load_keypair(raw)
    if mode.needs_real_signers:
        if pubkey != fallback.pubkey():
            log.warning("%s is not a signer, falling back to %s", pubkey, fallback.pubkey())
        return fallback
    return NullSigner(pubkey)


def resolve_identity(raw: str | None, fallback: Authorizer) -> Authorizer:
    """Like ``resolve_authorizer`` but a bare pubkey always yields a placeholder.

    Used for identities that only co-sign, such as an incoming manager held
    by a multisig.
    """

    if raw is None:
        return fallback
    pubkey = _as_pubkey(raw)
    if pubkey is None:
        return load_keypair(raw)
    if pubkey == fallback.pubkey():
        return fallback
    return NullSigner(pubkey)


def new_account_keypair(raw: str | None, role: str) -> Keypair:
    """Keypair of an account about to be created; a fresh one when none is given."""

    if raw is None:
        return Keypair()
    if _as_pubkey(raw) is not None:
        raise ConfigurationError(f"{role} needs a keypair file to be created, got pubkey {raw}")
    return load_keypair(raw)


__all__ = [
    "SendMode",
    "load_keypair",
    "new_account_keypair",
    "parse_pubkey",
    "resolve_authorizer",
    "resolve_identity",
]
