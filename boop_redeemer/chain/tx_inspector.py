"""
Transaction Inspector — reads the fee and WSOL proceeds of a confirmed transaction.
"""
from __future__ import annotations

import json
import logging

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.signature import Signature

from boop_redeemer.chain.jupiter import WSOL_MINT
from boop_redeemer.chain.rpc import RPC_TRANSPORT_ERRORS

log = logging.getLogger(__name__)

_ACCOUNT_OPENERS = ("createIdempotent", "create", "initializeAccount3")


def _unwrap(tx: dict) -> tuple[dict, dict]:
    """
    Return ``(message, meta)`` from a jsonParsed getTransaction result.

    Accepts both the flat RPC shape ({"transaction": {...}, "meta": {...}})
    and the nested one ({"transaction": {"transaction": {...}, "meta": {...}}}).
    """
    body = tx.get("transaction") or {}
    meta = tx.get("meta")
    if meta is None and "meta" in body:
        meta = body.get("meta")
        body = body.get("transaction") or {}
    return body.get("message") or {}, meta or {}


def _signer(message: dict) -> str | None:
    for key in message.get("accountKeys") or []:
        if isinstance(key, dict) and key.get("signer"):
            return key.get("pubkey")
        if isinstance(key, str):
            return key  # legacy encoding: the fee payer comes first
    return None


def _signer_token_accounts(message: dict, signer: str) -> set[str]:
    """Token accounts opened for, or closed back to, the signer in this transaction."""
    accounts: set[str] = set()
    for ix in message.get("instructions") or []:
        parsed = ix.get("parsed")
        if not isinstance(parsed, dict):
            continue
        info = parsed.get("info") or {}
        kind = parsed.get("type")
        if kind in _ACCOUNT_OPENERS and signer in (info.get("wallet"), info.get("owner")):
            accounts.add(info.get("account"))
        elif kind == "closeAccount" and info.get("destination") == signer:
            accounts.add(info.get("account"))
    accounts.discard(None)
    return accounts


def extract_fees_and_earnings(tx: dict, want_earnings: bool) -> tuple[int, int]:
    """
    Return ``(fee_lamports, earnings_lamports)`` for a jsonParsed transaction.

    Earnings are the WSOL ``transferChecked`` inner transfers landing either
    in the signer's wallet or in a token account the signer opened or closed
    in the same transaction.
    """
    message, meta = _unwrap(tx)
    fee = int(meta.get("fee") or 0)
    if not want_earnings:
        return fee, 0

    signer = _signer(message)
    if signer is None:
        return fee, 0
    destinations = _signer_token_accounts(message, signer) | {signer}

    earnings = 0
    for inner in meta.get("innerInstructions") or []:
        for ix in inner.get("instructions") or []:
            if ix.get("program") != "spl-token":
                continue
            parsed = ix.get("parsed")
            if not isinstance(parsed, dict) or parsed.get("type") != "transferChecked":
                continue
            info = parsed.get("info") or {}
            if info.get("mint") != WSOL_MINT or info.get("destination") not in destinations:
                continue
            earnings += int((info.get("tokenAmount") or {}).get("amount") or 0)
    return fee, earnings


class TransactionInspector:
    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def fees_and_earnings(self, signature: str, want_earnings: bool) -> tuple[int, int] | None:
        """Best-effort lookup; returns None (and logs) when the transaction cannot be read."""
        try:
            resp = await self.client.get_transaction(
                Signature.from_string(signature),
                encoding="jsonParsed",
                commitment=Confirmed,
                max_supported_transaction_version=0,
            )
        except RPC_TRANSPORT_ERRORS as exc:
            log.warning("Could not fetch transaction %s: %s", signature, exc)
            return None

        if resp.value is None:
            log.warning("Transaction %s not found yet", signature)
            return None
        try:
            return extract_fees_and_earnings(json.loads(resp.value.to_json()), want_earnings)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("Could not parse transaction %s: %s", signature, exc)
            return None
