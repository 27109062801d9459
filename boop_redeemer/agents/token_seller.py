"""
Token Seller — swaps a claimed airdrop balance into SOL through Jupiter.

Retry policy: up to ``swap_max_attempts`` attempts with a fixed delay. The
first "shared accounts unsupported" rejection switches the remaining attempts
to the non-shared route. The loop stops at the first submitted transaction.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from boop_redeemer.agents.price_service import SolPriceService
from boop_redeemer.agents.stats_recorder import StatsRecorder
from boop_redeemer.agents.telegram_notifier import TelegramNotifier
from boop_redeemer.chain.jupiter import WSOL_MINT, JupiterSwapClient
from boop_redeemer.chain.tx_inspector import TransactionInspector
from boop_redeemer.config import PolicyConfig
from boop_redeemer.errors import InvalidAmount, SharedAccountsUnsupported, SwapExhausted
from boop_redeemer.models import (
    LAMPORTS_PER_SOL,
    Airdrop,
    NotificationEvent,
    SwapOutcome,
    TransactionStats,
)

log = logging.getLogger(__name__)

ESTIMATED_SWAP_FEE_LAMPORTS = 5_000

Sleep = Callable[[float], Awaitable[None]]


class TokenSeller:
    def __init__(
        self,
        swap_client: JupiterSwapClient,
        inspector: TransactionInspector,
        price_service: SolPriceService,
        stats: StatsRecorder,
        notifier: TelegramNotifier,
        policy: PolicyConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.swap_client = swap_client
        self.inspector = inspector
        self.price_service = price_service
        self.stats = stats
        self.notifier = notifier
        self.policy = policy or PolicyConfig()
        self._sleep = sleep

    async def _submit_with_retries(self, airdrop: Airdrop, amount: int) -> tuple[str, int]:
        use_shared_accounts = True
        last_exc: Exception | None = None
        max_attempts = self.policy.swap_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                quote = await self.swap_client.quote(airdrop.token.address, WSOL_MINT, amount)
                signature = await self.swap_client.build_and_submit(quote, use_shared_accounts=use_shared_accounts)
                log.info(
                    "Swap for airdrop %s (%s) submitted on attempt %d/%d: %s",
                    airdrop.id, airdrop.token.symbol, attempt, max_attempts, signature,
                )
                return signature, attempt
            except SharedAccountsUnsupported as exc:
                last_exc = exc
                if use_shared_accounts:
                    log.info("Route for %s rejects shared accounts, disabling them", airdrop.token.symbol)
                    use_shared_accounts = False
            except Exception as exc:
                last_exc = exc
                log.warning(
                    "Swap attempt %d/%d for airdrop %s failed: %s",
                    attempt, max_attempts, airdrop.id, exc,
                )
            if attempt < max_attempts:
                await self._sleep(self.policy.swap_retry_delay_seconds)

        raise SwapExhausted(max_attempts, last_exc) from last_exc

    async def _fees_and_earnings(self, airdrop: Airdrop, signature: str) -> tuple[int, int, bool]:
        """Return ``(fee, earnings, estimated)`` in lamports."""
        await self._sleep(self.policy.settle_delay_seconds)
        measured = await self.inspector.fees_and_earnings(signature, want_earnings=True)
        if measured is not None:
            fee, earnings = measured
            return fee, earnings, False

        sol_price = await self.price_service.current_price()
        earnings = 0
        if sol_price > 0 and airdrop.amount_usd:
            earnings = round(airdrop.amount_usd / sol_price * LAMPORTS_PER_SOL)
        log.warning(
            "Using estimated proceeds for %s: %d lamports at SOL $%.2f",
            signature, earnings, sol_price,
        )
        return ESTIMATED_SWAP_FEE_LAMPORTS, earnings, True

    async def sell_token(self, airdrop: Airdrop, claim_fee_lamports: int = 0) -> SwapOutcome:
        """
        Sell the full claimed balance of *airdrop* for SOL.

        Records a SWAP stats row whose net profit also deducts
        *claim_fee_lamports*, and sends a "sold" notification. Raises
        SwapExhausted after notifying "sale_failed" when every attempt fails.
        """
        if airdrop.amount_raw is None or airdrop.amount_raw <= 0:
            raise InvalidAmount(f"invalid token amount for airdrop {airdrop.id}: {airdrop.amount_raw}")

        try:
            signature, attempts = await self._submit_with_retries(airdrop, airdrop.amount_raw)
        except SwapExhausted as exc:
            log.error("Selling airdrop %s (%s) failed: %s", airdrop.id, airdrop.token.symbol, exc)
            self.notifier.notify(NotificationEvent(
                event_type="sale_failed",
                airdrop=airdrop,
                error=str(exc.last_error or exc),
                attempts=exc.attempts,
            ))
            raise

        fee, earnings, estimated = await self._fees_and_earnings(airdrop, signature)
        net = earnings - fee - claim_fee_lamports
        outcome = SwapOutcome(
            airdrop_id=airdrop.id,
            signature=signature,
            fee_lamports=fee,
            earnings_lamports=earnings,
            net_profit_lamports=net,
            attempts=attempts,
            estimated=estimated,
        )
        # The swap is on-chain; reporting failures only get logged
        try:
            await self._report_sale(airdrop, outcome, claim_fee_lamports)
        except Exception as exc:
            log.error("Reporting sale %s of airdrop %s failed: %s", signature, airdrop.id, exc, exc_info=True)
        return outcome

    async def _report_sale(self, airdrop: Airdrop, outcome: SwapOutcome, claim_fee_lamports: int) -> None:
        await asyncio.to_thread(self.stats.record, TransactionStats(
            tx_type="SWAP",
            token_symbol=airdrop.token.symbol,
            amount_raw=airdrop.amount_raw,
            expenses_lamports=outcome.fee_lamports + claim_fee_lamports,
            gross_profit_lamports=outcome.earnings_lamports,
            net_profit_lamports=outcome.net_profit_lamports,
            signature=outcome.signature,
            estimated=outcome.estimated,
        ))
        self.notifier.notify(NotificationEvent(
            event_type="sold",
            airdrop=airdrop,
            signature=outcome.signature,
            net_profit_sol=outcome.net_profit_lamports / LAMPORTS_PER_SOL,
            sol_price=await self.price_service.current_price(),
            summary=await asyncio.to_thread(self.stats.profit_summary),
            estimated=outcome.estimated,
        ))
