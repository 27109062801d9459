"""
Data models used across the Boop Airdrop Redeemer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

LAMPORTS_PER_SOL = 1_000_000_000


@dataclass
class TokenInfo:
    address: str             # mint, e.g. "BuNonfvszzm6dJuzigNbde7qGNmcSYxT64erw3Wboop"
    symbol: str              # e.g. "BOOP"
    name: str                # e.g. "boop"
    logo_url: str = ""


@dataclass
class Airdrop:
    id: str                              # platform-assigned, stable across polls
    token: TokenInfo
    amount_raw: int | None               # smallest unit; None when the platform value is unparsable
    amount_usd: float | None             # refreshed on every scan
    claim_proof: list[bytes] = field(default_factory=list)  # 32-byte merkle proof nodes
    claimed_at: datetime | None = None   # set when the platform itself reports the claim
    amount_sol_raw: str = ""
    tx_hash: str = ""


@dataclass(frozen=True)
class PriceObservation:
    last_price: float
    last_changed: datetime
    first_observed: datetime


@dataclass
class SwapOutcome:
    airdrop_id: str
    signature: str
    fee_lamports: int
    earnings_lamports: int
    net_profit_lamports: int   # earnings minus swap fee minus claim fee
    attempts: int
    estimated: bool = False    # True when fee/earnings were not read from the chain


@dataclass
class ClaimOutcome:
    airdrop_id: str
    signature: str
    fee_lamports: int | None = None
    sale: SwapOutcome | None = None


TransactionType = Literal["CLAIM", "SWAP"]


@dataclass
class TransactionStats:
    tx_type: TransactionType
    token_symbol: str
    amount_raw: int
    expenses_lamports: int
    gross_profit_lamports: int
    net_profit_lamports: int
    signature: str
    estimated: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ProfitSummary:
    last_24h: float        # SOL
    last_week: float       # SOL
    projected_week: float  # SOL


EventType = Literal["claimed", "sold", "sale_failed"]


@dataclass
class NotificationEvent:
    event_type: EventType
    airdrop: Airdrop
    signature: str = ""
    net_profit_sol: float = 0.0
    sol_price: float = 0.0
    summary: ProfitSummary | None = None
    estimated: bool = False
    error: str = ""
    attempts: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
