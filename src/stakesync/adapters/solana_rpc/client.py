"""JSON-RPC ledger client."""

from __future__ import annotations

import asyncio
import base64
import itertools
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

from stakesync.adapters.http_resilience import ResilienceConfig, ResilientClient
from stakesync.config import ClusterConfig, get_cluster_config
from stakesync.domain.errors import SubmissionError
from stakesync.domain.ports import AccountData, LedgerClient, SimulationResult

from .schema import (
    BlockhashResponse,
    MultipleAccountsValue,
    RpcResponse,
    SignatureStatusesResponse,
    SimulationResponse,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from solders.transaction import VersionedTransaction

log = getLogger(__name__)

MAX_ACCOUNTS_PER_REQUEST: Final[int] = 100
_COMMITMENT_RANK: Final[dict[str, int]] = {"processed": 0, "confirmed": 1, "finalized": 2}


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class RpcError(RuntimeError):
    """Raised when the node answers with a JSON-RPC error object."""

    def __init__(self, message: str, *, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


def _encode_transaction(transaction: VersionedTransaction) -> str:
    return base64.b64encode(bytes(transaction)).decode("ascii")


def _error_logs(data: object) -> tuple[str, ...]:
    if isinstance(data, dict):
        logs = data.get("logs")
        if isinstance(logs, list):
            return tuple(str(line) for line in logs)
    return ()


@dataclass(slots=True)
class SolanaRpcClient:
    cluster: ClusterConfig = field(default_factory=get_cluster_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    confirm_timeout_seconds: float = 90.0
    poll_interval_seconds: float = 0.5
    _ids: itertools.count[int] = field(default_factory=lambda: itertools.count(1))

    def get_multiple_accounts(self, addresses: Sequence[Pubkey]) -> list[AccountData | None]:
        return asyncio.run(self._get_multiple_accounts_async(list(addresses)))

    def simulate(self, transaction: VersionedTransaction) -> SimulationResult:
        return asyncio.run(self._simulate_async(transaction))

    def latest_blockhash(self) -> Hash:
        return asyncio.run(self._latest_blockhash_async())

    def send_and_confirm(self, transaction: VersionedTransaction) -> Signature:
        return asyncio.run(self._send_and_confirm_async(transaction))

    async def _get_multiple_accounts_async(
        self,
        addresses: list[Pubkey],
    ) -> list[AccountData | None]:
        accounts: list[AccountData | None] = []
        async with self.client_factory(self.cluster.resilience) as client:
            for start in range(0, len(addresses), MAX_ACCOUNTS_PER_REQUEST):
                chunk = addresses[start : start + MAX_ACCOUNTS_PER_REQUEST]
                result = await self._call(
                    client,
                    "getMultipleAccounts",
                    [
                        [str(address) for address in chunk],
                        {"encoding": "base64", "commitment": self.cluster.commitment},
                    ],
                )
                value = MultipleAccountsValue.model_validate(result)
                accounts.extend(
                    None
                    if payload is None
                    else AccountData(
                        lamports=payload.lamports,
                        owner=Pubkey.from_string(payload.owner),
                        data=payload.raw_data,
                        executable=payload.executable,
                    )
                    for payload in value.value
                )
        return accounts

    async def _simulate_async(self, transaction: VersionedTransaction) -> SimulationResult:
        async with self.client_factory(self.cluster.resilience) as client:
            result = await self._call(
                client,
                "simulateTransaction",
                [
                    _encode_transaction(transaction),
                    {
                        "encoding": "base64",
                        "sigVerify": False,
                        "replaceRecentBlockhash": True,
                        "commitment": self.cluster.commitment,
                    },
                ],
            )
        value = SimulationResponse.model_validate(result).value
        return SimulationResult(
            units_consumed=value.units_consumed,
            err=value.err,
            logs=tuple(value.logs or ()),
        )

    async def _latest_blockhash_async(self) -> Hash:
        async with self.client_factory(self.cluster.resilience) as client:
            result = await self._call(
                client,
                "getLatestBlockhash",
                [{"commitment": self.cluster.commitment}],
            )
        return Hash.from_string(BlockhashResponse.model_validate(result).value.blockhash)

    async def _send_and_confirm_async(self, transaction: VersionedTransaction) -> Signature:
        async with self.client_factory(self.cluster.resilience) as client:
            try:
                result = await self._call(
                    client,
                    "sendTransaction",
                    [
                        _encode_transaction(transaction),
                        {
                            "encoding": "base64",
                            "preflightCommitment": self.cluster.commitment,
                        },
                    ],
                )
            except RpcError as exc:
                for line in _error_logs(exc.data):
                    log.error("%s", line)
                raise SubmissionError(f"Transaction rejected: {exc}") from exc
            signature = Signature.from_string(str(result))
            log.info("Sent transaction %s", signature)
            await self._await_confirmation(client, signature)
        return signature

    async def _await_confirmation(self, client: ResilientClient, signature: Signature) -> None:
        wanted = _COMMITMENT_RANK[self.cluster.commitment]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirm_timeout_seconds
        while True:
            result = await self._call(client, "getSignatureStatuses", [[str(signature)]])
            status = SignatureStatusesResponse.model_validate(result).value[0]
            if status is not None:
                if status.err is not None:
                    raise SubmissionError(f"Transaction {signature} failed: {status.err}")
                reached = status.confirmation_status
                if reached is not None and _COMMITMENT_RANK[reached] >= wanted:
                    return
            if loop.time() >= deadline:
                raise SubmissionError(
                    f"Transaction {signature} not confirmed after "
                    f"{self.confirm_timeout_seconds:.0f}s"
                )
            await asyncio.sleep(self.poll_interval_seconds)

    async def _call(self, client: ResilientClient, method: str, params: list[object]) -> object:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        log.debug("RPC %s", method)
        response = await client.post(self.cluster.rpc_url, json=payload)
        response.raise_for_status()

        body = RpcResponse.model_validate(response.json())
        if body.error is not None:
            log.error("RPC error %s from %s: %s", body.error.code, method, body.error.message)
            raise RpcError(body.error.message, code=body.error.code, data=body.error.data)
        return body.result


if TYPE_CHECKING:
    _ledger_check: LedgerClient = SolanaRpcClient()
