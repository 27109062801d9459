"""
Tests for the Solana claim builder, Jupiter client and transaction inspector.

Run with:  pytest tests/test_chain.py
"""
from __future__ import annotations

import hashlib

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from boop_redeemer.chain.claim_submitter import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    ClaimProgram,
    SolanaClaimSubmitter,
    associated_token_address,
    build_claim_instructions,
    encode_new_claim_data,
    find_claim_status,
    find_merkle_distributor,
    u64_le,
)
from boop_redeemer.chain.jupiter import WSOL_MINT, JupiterSwapClient, SwapQuote
from boop_redeemer.chain.tx_inspector import TransactionInspector, extract_fees_and_earnings
from boop_redeemer.errors import DistributorNotFound, InvalidAmount, SharedAccountsUnsupported, SwapError
from boop_redeemer.models import Airdrop, TokenInfo

MINT = Pubkey.from_string("BuNonfvszzm6dJuzigNbde7qGNmcSYxT64erw3Wboop")
WALLET = Pubkey.from_string("SkatebLAUZ9cmbayrLE3wWao3VuFsb1eGE3R7mCs2X2")
OTHER_WALLET = Pubkey.from_string("EeNF8G475Y7NGYJasMiB3c1u51JfzJKKYqzXmvTb3GTf")


def _make_airdrop(amount_raw: int | None = 1_000) -> Airdrop:
    return Airdrop(
        id="A1",
        token=TokenInfo(address=str(MINT), symbol="BOOP", name="boop"),
        amount_raw=amount_raw,
        amount_usd=1.0,
        claim_proof=[bytes([9] * 32)],
    )


class TestClaimBuilder:
    def test_u64_le(self):
        encoded = u64_le(42)
        assert len(encoded) == 8
        assert encoded[0] == 42
        assert encoded[1:] == bytes(7)

    def test_distributor_pda_is_deterministic_and_index_sensitive(self):
        program = ClaimProgram()
        first = find_merkle_distributor(program, MINT)
        assert first == find_merkle_distributor(program, MINT)
        assert first != find_merkle_distributor(ClaimProgram(distributor_index=1), MINT)

    def test_claim_status_depends_on_claimant(self):
        program = ClaimProgram()
        distributor = find_merkle_distributor(program, MINT)
        assert find_claim_status(program, WALLET, distributor) != find_claim_status(program, OTHER_WALLET, distributor)

    def test_associated_token_address_matches_ata_derivation(self):
        expected = Pubkey.find_program_address(
            [bytes(WALLET), bytes(TOKEN_PROGRAM_ID), bytes(MINT)], ASSOCIATED_TOKEN_PROGRAM_ID,
        )[0]
        assert associated_token_address(WALLET, MINT) == expected

    def test_new_claim_data_layout(self):
        proof = [bytes([1] * 32), bytes([2] * 32)]
        data = encode_new_claim_data(1_500, proof)
        assert data[:8] == hashlib.sha256(b"global:new_claim").digest()[:8]
        assert int.from_bytes(data[8:16], "little") == 1_500
        assert int.from_bytes(data[16:24], "little") == 0
        assert int.from_bytes(data[24:28], "little") == 2
        assert data[28:] == proof[0] + proof[1]

    def test_instruction_sequence_and_accounts(self):
        program = ClaimProgram()
        ixs = build_claim_instructions(program, WALLET, MINT, 1_000, [bytes(32)])
        assert len(ixs) == 4
        assert ixs[2].program_id == ASSOCIATED_TOKEN_PROGRAM_ID
        claim = ixs[3]
        assert claim.program_id == program.program_id
        distributor = find_merkle_distributor(program, MINT)
        keys = [meta.pubkey for meta in claim.accounts]
        assert keys[0] == distributor
        assert keys[2] == associated_token_address(distributor, MINT)
        assert keys[3] == associated_token_address(WALLET, MINT)
        assert keys[4] == WALLET
        assert claim.accounts[4].is_signer is True
        assert claim.accounts[5].is_writable is False

    @pytest.mark.asyncio
    async def test_invalid_amount_is_rejected_before_rpc(self):
        client = MagicMock()
        client.get_account_info = AsyncMock()
        submitter = SolanaClaimSubmitter(client, Keypair())
        with pytest.raises(InvalidAmount):
            await submitter.submit_claim(_make_airdrop(amount_raw=0))
        client.get_account_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_distributor_is_permanent(self):
        client = MagicMock()
        client.get_account_info = AsyncMock(return_value=MagicMock(value=None))
        submitter = SolanaClaimSubmitter(client, Keypair())
        with pytest.raises(DistributorNotFound):
            await submitter.submit_claim(_make_airdrop())


def _status_error(status: int, text: str) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://jup.example.invalid/swap")
    response = httpx.Response(status, text=text, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


def _quote() -> SwapQuote:
    return SwapQuote(str(MINT), WSOL_MINT, 1_000, 50, {"outAmount": "50"})


class TestJupiterSwapClient:
    @pytest.mark.asyncio
    async def test_quote(self):
        client = JupiterSwapClient("https://jup.example.invalid/", MagicMock(), Keypair())
        with patch("boop_redeemer.chain.jupiter.get_json", new=AsyncMock(return_value={"outAmount": "50"})) as mock_get:
            quote = await client.quote(str(MINT), WSOL_MINT, 1_000)
        assert quote.out_amount == 50
        assert mock_get.call_args.args[0] == "https://jup.example.invalid/quote"
        assert mock_get.call_args.kwargs["params"]["slippageBps"] == 1000

    @pytest.mark.asyncio
    async def test_zero_quote_is_an_error(self):
        client = JupiterSwapClient("https://jup.example.invalid", MagicMock(), Keypair())
        with patch("boop_redeemer.chain.jupiter.get_json", new=AsyncMock(return_value={"outAmount": "0"})):
            with pytest.raises(SwapError):
                await client.quote(str(MINT), WSOL_MINT, 1_000)

    @pytest.mark.asyncio
    async def test_shared_accounts_rejection_is_distinguished(self):
        client = JupiterSwapClient("https://jup.example.invalid", MagicMock(), Keypair())
        error = _status_error(400, '{"error":"Simple AMMs are not supported with shared accounts"}')
        with patch("boop_redeemer.chain.jupiter.post_json", new=AsyncMock(side_effect=error)):
            with pytest.raises(SharedAccountsUnsupported):
                await client.build_and_submit(_quote())

    @pytest.mark.asyncio
    async def test_other_rejections_are_swap_errors(self):
        client = JupiterSwapClient("https://jup.example.invalid", MagicMock(), Keypair())
        with patch("boop_redeemer.chain.jupiter.post_json", new=AsyncMock(side_effect=_status_error(500, "boom"))):
            with pytest.raises(SwapError) as excinfo:
                await client.build_and_submit(_quote(), use_shared_accounts=False)
        assert not isinstance(excinfo.value, SharedAccountsUnsupported)

    @pytest.mark.asyncio
    async def test_missing_transaction(self):
        client = JupiterSwapClient("https://jup.example.invalid", MagicMock(), Keypair())
        with patch("boop_redeemer.chain.jupiter.post_json", new=AsyncMock(return_value={})) as mock_post:
            with pytest.raises(SwapError):
                await client.build_and_submit(_quote(), use_shared_accounts=False)
        assert mock_post.call_args.args[1]["useSharedAccounts"] is False


SIGNER = "SkatebLAUZ9cmbayrLE3wWao3VuFsb1eGE3R7mCs2X2"
WSOL_ACCOUNT = "7EJfcAv4EkAxRtg9QG8xRHWKdmg74BS4JyckKqXBuriw"


def _transfer(destination: str, amount: str, mint: str = WSOL_MINT) -> dict:
    return {
        "program": "spl-token",
        "parsed": {
            "type": "transferChecked",
            "info": {"destination": destination, "mint": mint, "tokenAmount": {"amount": amount}},
        },
    }


def _swap_tx(inner: list[dict], top_level: list[dict] | None = None) -> dict:
    return {
        "slot": 1,
        "transaction": {
            "message": {
                "accountKeys": [
                    {"pubkey": SIGNER, "signer": True, "writable": True},
                    {"pubkey": WSOL_ACCOUNT, "signer": False, "writable": True},
                ],
                "instructions": top_level or [],
            },
        },
        "meta": {"fee": 15_000, "innerInstructions": [{"index": 2, "instructions": inner}]},
    }


class TestTransactionInspector:
    def test_fee_only(self):
        assert extract_fees_and_earnings(_swap_tx([_transfer(SIGNER, "900")]), want_earnings=False) == (15_000, 0)

    def test_direct_transfer_to_signer(self):
        tx = _swap_tx([_transfer(SIGNER, "900"), _transfer(SIGNER, "100")])
        assert extract_fees_and_earnings(tx, want_earnings=True) == (15_000, 1_000)

    def test_ignores_other_mints_and_destinations(self):
        tx = _swap_tx([
            _transfer(SIGNER, "900", mint=str(MINT)),
            _transfer(str(OTHER_WALLET), "700"),
        ])
        assert extract_fees_and_earnings(tx, want_earnings=True) == (15_000, 0)

    def test_temporary_wsol_account_counts(self):
        opener = {
            "program": "spl-associated-token-account",
            "parsed": {"type": "createIdempotent", "info": {"account": WSOL_ACCOUNT, "wallet": SIGNER}},
        }
        tx = _swap_tx([_transfer(WSOL_ACCOUNT, "2500000")], top_level=[opener])
        assert extract_fees_and_earnings(tx, want_earnings=True) == (15_000, 2_500_000)

    def test_closed_account_counts(self):
        closer = {
            "program": "spl-token",
            "parsed": {"type": "closeAccount", "info": {"account": WSOL_ACCOUNT, "destination": SIGNER}},
        }
        tx = _swap_tx([_transfer(WSOL_ACCOUNT, "500")], top_level=[closer])
        assert extract_fees_and_earnings(tx, want_earnings=True) == (15_000, 500)

    def test_nested_shape(self):
        flat = _swap_tx([_transfer(SIGNER, "42")])
        nested = {"slot": 1, "transaction": {"transaction": flat["transaction"], "meta": flat["meta"]}}
        assert extract_fees_and_earnings(nested, want_earnings=True) == (15_000, 42)

    @pytest.mark.asyncio
    async def test_missing_transaction_returns_none(self):
        client = MagicMock()
        client.get_transaction = AsyncMock(return_value=MagicMock(value=None))
        inspector = TransactionInspector(client)
        signature = str(Keypair().sign_message(b"probe"))
        assert await inspector.fees_and_earnings(signature, want_earnings=True) is None
