"""
Jupiter swap client — quote, build, sign and send a token -> SOL swap.

Endpoints (relative to JUPITER_API_BASE)
----------------------------------------
GET  /quote  inputMint, outputMint, amount, slippageBps, onlyDirectRoutes
POST /swap   {userPublicKey, quoteResponse, wrapAndUnwrapSol, useSharedAccounts, ...}
             -> {"swapTransaction": "<base64 versioned transaction>"}
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

import httpx
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from boop_redeemer.chain.rpc import send_raw
from boop_redeemer.errors import SharedAccountsUnsupported, SwapError
from boop_redeemer.utils.http_client import get_json, post_json

log = logging.getLogger(__name__)

WSOL_MINT = "So11111111111111111111111111111111111111112"

SLIPPAGE_BPS = 1000
PRIORITY_FEE_MICRO_LAMPORTS = 300_000

SHARED_ACCOUNTS_MARKER = "Simple AMMs are not supported with shared accounts"


@dataclass
class SwapQuote:
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    raw: dict   # the quote response, posted back verbatim to /swap


class JupiterSwapClient:
    def __init__(self, api_base: str, client: AsyncClient, keypair: Keypair) -> None:
        self.api_base = api_base.rstrip("/")
        self.client = client
        self.keypair = keypair

    async def quote(self, input_mint: str, output_mint: str, amount: int) -> SwapQuote:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": SLIPPAGE_BPS,
            "onlyDirectRoutes": "false",
        }
        try:
            data = await get_json(f"{self.api_base}/quote", params=params)
        except httpx.HTTPStatusError as exc:
            raise SwapError(f"quote request failed ({exc.response.status_code}): {exc.response.text}") from exc

        try:
            out_amount = int(data["outAmount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SwapError(f"malformed quote response: {str(data)[:200]}") from exc
        if out_amount == 0:
            raise SwapError(f"quote for {input_mint} returned zero output")

        log.debug("Quote %s -> %s: %d -> %d", input_mint, output_mint, amount, out_amount)
        return SwapQuote(input_mint, output_mint, amount, out_amount, data)

    async def build_and_submit(self, quote: SwapQuote, use_shared_accounts: bool = True) -> str:
        """
        Ask Jupiter for the swap transaction, sign it with the wallet and send it.

        Raises SharedAccountsUnsupported when the route cannot use shared
        accounts, SwapError for any other rejected or malformed response.
        """
        payload = {
            "userPublicKey": str(self.keypair.pubkey()),
            "quoteResponse": quote.raw,
            "wrapAndUnwrapSol": True,
            "useSharedAccounts": use_shared_accounts,
            "computeUnitPriceMicroLamports": PRIORITY_FEE_MICRO_LAMPORTS,
            "asLegacyTransaction": False,
        }
        try:
            data = await post_json(f"{self.api_base}/swap", payload)
        except httpx.HTTPStatusError as exc:
            body = exc.response.text
            if SHARED_ACCOUNTS_MARKER in body:
                raise SharedAccountsUnsupported(body) from exc
            raise SwapError(f"swap request failed ({exc.response.status_code}): {body}") from exc

        if SHARED_ACCOUNTS_MARKER in str(data.get("error", "")):
            raise SharedAccountsUnsupported(data["error"])
        encoded = data.get("swapTransaction")
        if not encoded:
            raise SwapError(f"swap response has no transaction: {str(data)[:200]}")

        unsigned = VersionedTransaction.from_bytes(base64.b64decode(encoded))
        signed = VersionedTransaction(unsigned.message, [self.keypair])
        return await send_raw(self.client, bytes(signed))
