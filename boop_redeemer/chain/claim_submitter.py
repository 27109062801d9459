"""
Claim Submitter — builds, signs and sends the Boop merkle-distributor claim.

Instruction layout (``new_claim``)
----------------------------------
data:     sha256("global:new_claim")[:8]
          | u64 amount_unlocked | u64 amount_locked (always 0)
          | u32 proof length | proof nodes (32 bytes each)
accounts: distributor (w), claim status (w), pool token account (w),
          claimant token account (w), claimant (w, signer),
          token program, system program
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from solana.rpc.async_api import AsyncClient
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import Transaction

from boop_redeemer.chain.rpc import RPC_TRANSPORT_ERRORS, BlockhashCache, send_raw
from boop_redeemer.errors import DistributorNotFound, InvalidAmount, NetworkError
from boop_redeemer.models import Airdrop

log = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

CLAIM_COMPUTE_UNIT_LIMIT = 200_000
CLAIM_COMPUTE_UNIT_PRICE = 375_000  # micro-lamports

NEW_CLAIM_DISCRIMINATOR = hashlib.sha256(b"global:new_claim").digest()[:8]
_ATA_CREATE_IDEMPOTENT = bytes([1])


@dataclass(frozen=True)
class ClaimProgram:
    """On-chain addresses of the Boop staking airdrop distributor."""

    program_id: Pubkey = Pubkey.from_string("boopEtkTLx8x8moK7mMBQZUfzaEiA96Qn7gQeNdcQMg")
    token_distributor: Pubkey = Pubkey.from_string("J7cV46t2BLkoHWvmrcG1nK3wgB2D1EmHLko29bEDbnpV")
    distributor_index: int = 0


def u64_le(value: int) -> bytes:
    return value.to_bytes(8, "little")


def find_merkle_distributor(program: ClaimProgram, mint: Pubkey) -> Pubkey:
    seeds = [
        b"MerkleDistributor",
        bytes(program.token_distributor),
        bytes(mint),
        u64_le(program.distributor_index),
    ]
    return Pubkey.find_program_address(seeds, program.program_id)[0]


def find_claim_status(program: ClaimProgram, claimant: Pubkey, distributor: Pubkey) -> Pubkey:
    seeds = [b"ClaimStatus", bytes(claimant), bytes(distributor)]
    return Pubkey.find_program_address(seeds, program.program_id)[0]


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    seeds = [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)]
    return Pubkey.find_program_address(seeds, ASSOCIATED_TOKEN_PROGRAM_ID)[0]


def encode_new_claim_data(amount_unlocked: int, proof: list[bytes], amount_locked: int = 0) -> bytes:
    data = NEW_CLAIM_DISCRIMINATOR + u64_le(amount_unlocked) + u64_le(amount_locked)
    data += len(proof).to_bytes(4, "little")
    for node in proof:
        data += node
    return data


def create_ata_idempotent_ix(payer: Pubkey, owner: Pubkey, mint: Pubkey) -> Instruction:
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(associated_token_address(owner, mint), is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(ASSOCIATED_TOKEN_PROGRAM_ID, _ATA_CREATE_IDEMPOTENT, accounts)


def build_claim_instructions(
    program: ClaimProgram,
    claimant: Pubkey,
    mint: Pubkey,
    amount: int,
    proof: list[bytes],
) -> list[Instruction]:
    distributor = find_merkle_distributor(program, mint)
    accounts = [
        AccountMeta(distributor, is_signer=False, is_writable=True),
        AccountMeta(find_claim_status(program, claimant, distributor), is_signer=False, is_writable=True),
        AccountMeta(associated_token_address(distributor, mint), is_signer=False, is_writable=True),
        AccountMeta(associated_token_address(claimant, mint), is_signer=False, is_writable=True),
        AccountMeta(claimant, is_signer=True, is_writable=True),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return [
        set_compute_unit_limit(CLAIM_COMPUTE_UNIT_LIMIT),
        set_compute_unit_price(CLAIM_COMPUTE_UNIT_PRICE),
        create_ata_idempotent_ix(claimant, claimant, mint),
        Instruction(program.program_id, encode_new_claim_data(amount, proof), accounts),
    ]


class SolanaClaimSubmitter:
    def __init__(
        self,
        client: AsyncClient,
        keypair: Keypair,
        program: ClaimProgram | None = None,
        blockhashes: BlockhashCache | None = None,
    ) -> None:
        self.client = client
        self.keypair = keypair
        self.program = program or ClaimProgram()
        self.blockhashes = blockhashes or BlockhashCache(client)

    async def _ensure_distributor(self, distributor: Pubkey) -> None:
        try:
            resp = await self.client.get_account_info(distributor)
        except RPC_TRANSPORT_ERRORS as exc:
            raise NetworkError(f"failed to look up merkle distributor {distributor}: {exc}") from exc
        if resp.value is None:
            raise DistributorNotFound(f"failed to find merkle distributor {distributor}")

    async def submit_claim(self, airdrop: Airdrop) -> str:
        """
        Send the claim transaction for *airdrop* and return its signature.

        Raises InvalidAmount / DistributorNotFound (permanent) or NetworkError.
        """
        if airdrop.amount_raw is None or airdrop.amount_raw <= 0:
            raise InvalidAmount(f"invalid token amount for airdrop {airdrop.id}: {airdrop.amount_raw}")

        mint = Pubkey.from_string(airdrop.token.address)
        claimant = self.keypair.pubkey()
        await self._ensure_distributor(find_merkle_distributor(self.program, mint))

        instructions = build_claim_instructions(
            self.program, claimant, mint, airdrop.amount_raw, airdrop.claim_proof,
        )
        blockhash = await self.blockhashes.get()
        tx = Transaction.new_signed_with_payer(instructions, claimant, [self.keypair], blockhash)

        signature = await send_raw(self.client, bytes(tx))
        log.info("Claim transaction for airdrop %s sent: %s", airdrop.id, signature)
        return signature
