"""
Thin helpers over the solana-py async RPC client.
"""
from __future__ import annotations

import asyncio
import logging
import time

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Finalized
from solana.rpc.types import TxOpts
from solders.hash import Hash

from boop_redeemer.errors import NetworkError

log = logging.getLogger(__name__)

BLOCKHASH_TTL_SECONDS = 20.0

SEND_OPTS = TxOpts(skip_preflight=True)

# Errors raised by the RPC client for transport-level failures
RPC_TRANSPORT_ERRORS = (SolanaRpcException, httpx.HTTPError)


class BlockhashCache:
    """Recent blockhash reused for up to ``ttl`` seconds."""

    def __init__(self, client: AsyncClient, ttl: float = BLOCKHASH_TTL_SECONDS) -> None:
        self._client = client
        self._ttl = ttl
        self._blockhash: Hash | None = None
        self._fetched_at = 0.0
        self._lock = asyncio.Lock()

    async def get(self) -> Hash:
        async with self._lock:
            if self._blockhash is not None and time.monotonic() - self._fetched_at < self._ttl:
                return self._blockhash
            try:
                resp = await self._client.get_latest_blockhash(commitment=Finalized)
            except RPC_TRANSPORT_ERRORS as exc:
                raise NetworkError(f"failed to fetch recent blockhash: {exc}") from exc
            self._blockhash = resp.value.blockhash
            self._fetched_at = time.monotonic()
            log.debug("Fetched recent blockhash %s", self._blockhash)
            return self._blockhash


async def send_raw(client: AsyncClient, raw_tx: bytes) -> str:
    """Submit a signed transaction without preflight and return its signature."""
    try:
        resp = await client.send_raw_transaction(raw_tx, opts=SEND_OPTS)
    except RPC_TRANSPORT_ERRORS as exc:
        raise NetworkError(f"failed to send transaction: {exc}") from exc
    return str(resp.value)
