"""
Airdrop Claimer — claims one stored airdrop on-chain and optionally sells it.

The claimer does not own the dedup set: a returned outcome means the claim
transaction was submitted, and the caller decides what to mark as settled.
``outcome.sale`` is None when no sale went through.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from boop_redeemer.agents.airdrop_store import AirdropStore
from boop_redeemer.agents.stats_recorder import StatsRecorder
from boop_redeemer.agents.telegram_notifier import TelegramNotifier
from boop_redeemer.agents.token_seller import TokenSeller
from boop_redeemer.chain.claim_submitter import SolanaClaimSubmitter
from boop_redeemer.chain.tx_inspector import TransactionInspector
from boop_redeemer.config import PolicyConfig
from boop_redeemer.errors import AirdropNotFound, AlreadyClaimed, SwapExhausted
from boop_redeemer.models import Airdrop, ClaimOutcome, NotificationEvent, TransactionStats

log = logging.getLogger(__name__)


class Claimer:
    def __init__(
        self,
        store: AirdropStore,
        submitter: SolanaClaimSubmitter,
        inspector: TransactionInspector,
        stats: StatsRecorder,
        notifier: TelegramNotifier,
        seller: TokenSeller | None = None,
        auto_sell: bool = True,
        policy: PolicyConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.submitter = submitter
        self.inspector = inspector
        self.stats = stats
        self.notifier = notifier
        self.seller = seller
        self.auto_sell = auto_sell and seller is not None
        self.policy = policy or PolicyConfig()
        self._sleep = sleep

    async def claim_by_id(self, airdrop_id: str) -> ClaimOutcome:
        """
        Submit the claim for *airdrop_id* exactly once.

        Raises
        ------
        AirdropNotFound
            The store has no such airdrop.
        AlreadyClaimed
            The platform already reports the airdrop as claimed.
        PermanentClaimError, NetworkError, ...
            Whatever the claim submitter raises; nothing is retried here.
        """
        airdrop = self.store.get(airdrop_id)
        if airdrop is None:
            raise AirdropNotFound(f"airdrop {airdrop_id} not found")
        if airdrop.claimed_at is not None:
            raise AlreadyClaimed(f"airdrop is already claimed at {airdrop.claimed_at.isoformat()}")

        log.info(
            "Claiming airdrop %s: %s (%s) worth $%.4f",
            airdrop.id, airdrop.token.name, airdrop.token.symbol, airdrop.amount_usd or 0.0,
        )
        signature = await self.submitter.submit_claim(airdrop)
        outcome = ClaimOutcome(airdrop_id=airdrop.id, signature=signature)

        # The claim is on-chain from here on; nothing below may turn it into a failure
        try:
            await self._after_claim(airdrop, outcome)
        except Exception as exc:
            log.error("Post-claim handling of %s (%s) failed: %s", airdrop.id, signature, exc, exc_info=True)
        return outcome

    async def _after_claim(self, airdrop: Airdrop, outcome: ClaimOutcome) -> None:
        signature = outcome.signature
        await self._sleep(self.policy.settle_delay_seconds)
        measured = await self.inspector.fees_and_earnings(signature, want_earnings=False)
        if measured is not None:
            outcome.fee_lamports = measured[0]
            await asyncio.to_thread(self.stats.record, TransactionStats(
                tx_type="CLAIM",
                token_symbol=airdrop.token.symbol,
                amount_raw=airdrop.amount_raw or 0,
                expenses_lamports=outcome.fee_lamports,
                gross_profit_lamports=0,
                net_profit_lamports=-outcome.fee_lamports,
                signature=signature,
            ))
        else:
            log.warning("Claim fee for %s unavailable, not recording claim stats", signature)

        self.notifier.notify(NotificationEvent(event_type="claimed", airdrop=airdrop, signature=signature))

        if self.auto_sell:
            try:
                outcome.sale = await self.seller.sell_token(airdrop, claim_fee_lamports=outcome.fee_lamports or 0)
            except SwapExhausted as exc:
                log.error("Auto-sell after claiming %s failed, leaving it for a direct sell: %s", airdrop.id, exc)
