"""Cluster connection settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from .env import env_or_default
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_RPC_URL: Final[str] = "https://api.mainnet-beta.solana.com"
DEFAULT_KEYPAIR_PATH: Final[str] = "~/.config/solana/id.json"
DEFAULT_COMMITMENT: Final[str] = "confirmed"
RPC_TIMEOUT_SECONDS: Final[float] = 30.0

RPC_URL_ENV: Final[str] = "STAKESYNC_RPC_URL"
KEYPAIR_ENV: Final[str] = "STAKESYNC_KEYPAIR"
COMMITMENT_ENV: Final[str] = "STAKESYNC_COMMITMENT"

_COMMITMENTS = frozenset({"processed", "confirmed", "finalized"})


def _default_resilience(rpc_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="solana-rpc",
        base_url=rpc_url,
        timeout_seconds=RPC_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        default_headers={"Content-Type": "application/json"},
    )


@dataclass(frozen=True, slots=True)
class ClusterConfig:
    rpc_url: str = DEFAULT_RPC_URL
    keypair_path: Path = field(default_factory=lambda: Path(DEFAULT_KEYPAIR_PATH).expanduser())
    commitment: str = DEFAULT_COMMITMENT
    resilience: ResilienceConfig = field(
        default_factory=lambda: _default_resilience(DEFAULT_RPC_URL)
    )

    def __post_init__(self) -> None:
        if self.commitment not in _COMMITMENTS:
            allowed = ", ".join(sorted(_COMMITMENTS))
            raise ConfigurationError(
                f"Unsupported commitment {self.commitment!r}; expected one of: {allowed}"
            )


def get_cluster_config(
    *,
    rpc_url: str | None = None,
    keypair_path: str | None = None,
    commitment: str | None = None,
) -> ClusterConfig:
    """Resolve cluster settings from explicit values, then the environment, then defaults."""

    url = rpc_url or env_or_default(RPC_URL_ENV, DEFAULT_RPC_URL)
    keypair = keypair_path or env_or_default(KEYPAIR_ENV, DEFAULT_KEYPAIR_PATH)
    return ClusterConfig(
        rpc_url=url,
        keypair_path=Path(keypair).expanduser(),
        commitment=commitment or env_or_default(COMMITMENT_ENV, DEFAULT_COMMITMENT),
        resilience=_default_resilience(url),
    )
