"""Pydantic models describing the Solana JSON-RPC payloads we consume."""

from __future__ import annotations

import base64
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

type Encoding = Literal["base64"]


class RpcBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RpcErrorPayload(RpcBaseModel):
    code: int
    message: str
    data: object | None = None


class RpcContext(RpcBaseModel):
    slot: int


class AccountPayload(RpcBaseModel):
    lamports: int
    owner: str
    data: tuple[str, Encoding]
    executable: bool = False
    rent_epoch: int | None = Field(default=None, alias="rentEpoch")

    @property
    def raw_data(self) -> bytes:
        return base64.b64decode(self.data[0])


class MultipleAccountsValue(RpcBaseModel):
    context: RpcContext
    value: list[AccountPayload | None]


class SimulationValue(RpcBaseModel):
    err: object | None = None
    logs: list[str] | None = None
    units_consumed: int | None = Field(default=None, alias="unitsConsumed")

    @field_validator("logs", mode="before")
    @classmethod
    def _null_logs(cls, value: object) -> object:
        return [] if value is None else value


class SimulationResponse(RpcBaseModel):
    context: RpcContext
    value: SimulationValue


class BlockhashValue(RpcBaseModel):
    blockhash: str
    last_valid_block_height: int = Field(alias="lastValidBlockHeight")


class BlockhashResponse(RpcBaseModel):
    context: RpcContext
    value: BlockhashValue


type ConfirmationStatus = Literal["processed", "confirmed", "finalized"]


class SignatureStatus(RpcBaseModel):
    slot: int
    confirmations: int | None = None
    err: object | None = None
    confirmation_status: ConfirmationStatus | None = Field(
        default=None, alias="confirmationStatus"
    )


class SignatureStatusesResponse(RpcBaseModel):
    context: RpcContext
    value: list[SignatureStatus | None]


class RpcResponse(RpcBaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str | None = None
    result: object | None = None
    error: RpcErrorPayload | None = None
