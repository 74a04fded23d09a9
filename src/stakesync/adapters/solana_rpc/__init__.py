"""Solana JSON-RPC adapter."""

from __future__ import annotations

from .client import MAX_ACCOUNTS_PER_REQUEST, RpcError, SolanaRpcClient

__all__ = ["MAX_ACCOUNTS_PER_REQUEST", "RpcError", "SolanaRpcClient"]
