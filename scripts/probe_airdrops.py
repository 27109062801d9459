import json
import os
import sys

import httpx
from dotenv import load_dotenv

from boop_redeemer.agents.airdrop_feed import ACCOUNT_DISTRIBUTIONS_QUERY, parse_airdrop
from boop_redeemer.config import DEFAULT_GRAPHQL_URL

load_dotenv()

wallet = sys.argv[1] if len(sys.argv) > 1 else os.getenv("WALLET_ADDRESS", "")
token = os.getenv("AUTH_TOKEN", "")
if not wallet or not token:
    sys.exit("usage: AUTH_TOKEN=... python scripts/probe_airdrops.py <wallet>")

payload = {
    "operationName": "GetAccountDistributions",
    "query": ACCOUNT_DISTRIBUTIONS_QUERY,
    "variables": {"address": wallet, "orderBy": "AMOUNT_DESC", "status": "PENDING"},
}
auth = token if token.startswith("Bearer ") else f"Bearer {token}"

with httpx.Client(timeout=15, headers={"Authorization": auth}) as c:
    r = c.post(os.getenv("BOOP_GRAPHQL_URL", DEFAULT_GRAPHQL_URL), json=payload)
    print("status:", r.status_code)
    data = r.json()

if data.get("errors"):
    print(json.dumps(data["errors"], indent=2))
    sys.exit(1)

nodes = data["data"]["account"]["stakingAirdrops"]["nodes"]
print(f"{len(nodes)} pending airdrop(s)\n")
for node in nodes:
    a = parse_airdrop(node)
    claimed = a.claimed_at.isoformat() if a.claimed_at else "-"
    print(f"{a.id:<40} {a.token.symbol:<10} ${a.amount_usd or 0:>8.4f}  proof={len(a.claim_proof)}  claimedAt={claimed}")
