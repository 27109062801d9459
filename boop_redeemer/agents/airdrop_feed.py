"""
Airdrop Feed — fetches pending staking airdrops from the Boop GraphQL API.

Data source
-----------
POST https://graphql-mainnet.boop.works/graphql
    operationName: GetAccountDistributions
    variables: {address, orderBy: AMOUNT_DESC, status: PENDING}

Response path: data.account.stakingAirdrops.nodes[]
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable

from boop_redeemer.errors import AuthError, ProtocolError
from boop_redeemer.models import Airdrop, TokenInfo
from boop_redeemer.utils.http_client import post_json

log = logging.getLogger(__name__)

PROOF_NODE_SIZE = 32

ACCOUNT_DISTRIBUTIONS_QUERY = """
query GetAccountDistributions($address: String!, $orderBy: StakingAirdropClaimSort, $status: StakingAirdropClaimStatus) {
  account(address: $address) {
    stakingAirdrops(orderBy: $orderBy, status: $status) {
      nodes {
        ...AccountAirdrop
      }
    }
  }
}

fragment AccountAirdrop on AccountStakingAirdrop {
  id
  amountLpt
  amountUsd
  amountSolLpt
  proofs
  claimedAt
  txHash
  token {
    name
    address
    symbol
    logoUrl
    imageFlag
  }
}
"""

_AUTH_ERROR_MARKERS = ("not authorized", "unauthorized")

AuthHeaderProvider = Callable[[], Awaitable[str]]


def _parse_optional_float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_optional_int(value) -> int | None:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return None


def _parse_proof(raw: list) -> list[bytes]:
    """
    Convert the JSON proof (a list of 32-integer lists) into 32-byte values.

    Shorter nodes are zero-padded and longer ones truncated.
    """
    proof = []
    for node in raw or []:
        values = [int(v) for v in node][:PROOF_NODE_SIZE]
        proof.append(bytes(values).ljust(PROOF_NODE_SIZE, b"\x00"))
    return proof


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_airdrop(node: dict) -> Airdrop:
    """Build an Airdrop from one GraphQL node. Raises KeyError/ValueError on malformed input."""
    token = node.get("token") or {}
    return Airdrop(
        id=node["id"],
        token=TokenInfo(
            address=token["address"],
            symbol=token.get("symbol", ""),
            name=token.get("name", ""),
            logo_url=token.get("logoUrl") or "",
        ),
        amount_raw=_parse_optional_int(node.get("amountLpt")),
        amount_usd=_parse_optional_float(node.get("amountUsd")),
        amount_sol_raw=str(node.get("amountSolLpt") or ""),
        claim_proof=_parse_proof(node.get("proofs") or []),
        claimed_at=_parse_timestamp(node.get("claimedAt")),
        tx_hash=node.get("txHash") or "",
    )


def _raise_for_graphql_errors(payload: dict) -> None:
    errors = payload.get("errors") or []
    if not errors:
        return
    messages = "; ".join(str(e.get("message", e)) for e in errors)
    if any(marker in messages.lower() for marker in _AUTH_ERROR_MARKERS):
        raise AuthError(f"GraphQL authorization error: {messages}")
    raise ProtocolError(f"GraphQL error: {messages}")


class BoopAirdropFeed:
    def __init__(self, graphql_url: str, wallet_address: str, auth_header: AuthHeaderProvider) -> None:
        self.graphql_url = graphql_url
        self.wallet_address = wallet_address
        self._auth_header = auth_header

    async def fetch_pending(self) -> list[Airdrop]:
        """
        Return every pending airdrop for the wallet.

        Raises
        ------
        AuthError
            HTTP 401/403 or a GraphQL "not authorized" error.
        NetworkError
            Transport failure after retries.
        ProtocolError
            The response does not contain ``data.account.stakingAirdrops.nodes``.
        """
        payload = {
            "operationName": "GetAccountDistributions",
            "query": ACCOUNT_DISTRIBUTIONS_QUERY,
            "variables": {
                "address": self.wallet_address,
                "orderBy": "AMOUNT_DESC",
                "status": "PENDING",
            },
        }
        headers = {"Authorization": await self._auth_header()}
        data = await post_json(self.graphql_url, payload, headers=headers)

        _raise_for_graphql_errors(data)
        try:
            nodes = data["data"]["account"]["stakingAirdrops"]["nodes"]
        except (KeyError, TypeError) as exc:
            raise ProtocolError(f"Unexpected GraphQL payload shape: {str(data)[:200]}") from exc
        if not isinstance(nodes, list):
            raise ProtocolError("stakingAirdrops.nodes is not a list")

        airdrops: list[Airdrop] = []
        for node in nodes:
            try:
                airdrops.append(parse_airdrop(node))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping malformed airdrop node %s: %s", node.get("id", "?"), exc)
        return airdrops
