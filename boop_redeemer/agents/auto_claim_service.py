"""
Auto-Claim Service — the polling loop that scans, tracks prices, claims and sells.

Cycle
-----
1. Scan every pending airdrop at a near-zero threshold so stored values refresh.
2. For each airdrop not yet settled: record its price, then either collect it
   as claim-eligible or, when it is already claimed (by the platform, or here
   with the sale still outstanding), check whether to sell it directly in a
   background task. An airdrop is settled once its tokens are sold, or right
   after the claim when auto-sell is off.
3. Claim at most one airdrop, then wait the inter-claim spacing.
4. Sleep for the check interval (or a backoff after a failed scan).

Auth-classified errors trigger a credential refresh at most once per cooldown
window; a claim that failed on auth is retried once after a successful refresh.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable

from boop_redeemer.agents.claimer import Claimer
from boop_redeemer.agents.decision_maker import DecisionMaker
from boop_redeemer.agents.price_tracker import PriceTracker
from boop_redeemer.agents.scanner import AirdropScanner
from boop_redeemer.agents.token_seller import TokenSeller
from boop_redeemer.config import PolicyConfig
from boop_redeemer.errors import ErrorKind, InvalidAmount, SwapExhausted, classify_error
from boop_redeemer.models import Airdrop

log = logging.getLogger(__name__)

CredentialRefresher = Callable[[], Awaitable[None]]


class AutoClaimService:
    def __init__(
        self,
        scanner: AirdropScanner,
        claimer: Claimer,
        seller: TokenSeller | None,
        tracker: PriceTracker,
        decision: DecisionMaker,
        check_interval_seconds: float,
        refresh_credentials: CredentialRefresher | None = None,
        policy: PolicyConfig | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scanner = scanner
        self.claimer = claimer
        self.seller = seller
        self.tracker = tracker
        self.decision = decision
        self.check_interval_seconds = check_interval_seconds
        self.policy = policy or PolicyConfig()
        self._refresh_credentials = refresh_credentials
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._claimed: set[str] = set()
        self._selling: set[str] = set()
        self._sell_tasks: set[asyncio.Task] = set()
        self._last_refresh: float | None = None
        self._stop = asyncio.Event()

    def is_settled(self, airdrop_id: str) -> bool:
        with self._lock:
            return airdrop_id in self._claimed

    def mark_settled(self, airdrop_id: str) -> None:
        with self._lock:
            self._claimed.add(airdrop_id)
        self.claimer.store.mark_claimed(airdrop_id)

    async def _interruptible_sleep(self, seconds: float) -> None:
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Run cycles until *stop* is set."""
        if stop is not None:
            self._stop = stop
        log.info("Auto-claim service started, checking every %gs", self.check_interval_seconds)
        try:
            while not self._stop.is_set():
                delay = await self.run_cycle()
                await self._interruptible_sleep(delay)
        finally:
            await self.shutdown()
        log.info("Auto-claim service stopped")

    async def shutdown(self) -> None:
        """Cancel in-flight direct sells."""
        tasks = list(self._sell_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run_cycle(self) -> float:
        """Run one scan/claim pass and return the delay before the next one."""
        try:
            airdrops = await self.scanner.scan(self.policy.scan_threshold_usd)
        except Exception as exc:
            return await self._handle_scan_error(exc)

        eligible: list[Airdrop] = []
        for airdrop in airdrops:
            if self.is_settled(airdrop.id):
                continue
            self.tracker.record_observation(airdrop.id, airdrop.amount_usd)
            observation = self.tracker.get_observation(airdrop.id)

            claimed_here = self.claimer.store.is_claimed(airdrop.id)
            if airdrop.claimed_at is not None or claimed_here:
                if self.decision.should_sell_directly(airdrop, observation, claimed_on_chain=claimed_here):
                    self._spawn_sell(airdrop)
            elif self.decision.should_claim(airdrop, observation):
                eligible.append(airdrop)

        if eligible:
            log.info("%d airdrop(s) eligible for claiming", len(eligible))
            await self._claim_one(eligible[0])
            if len(eligible) > 1:
                log.info("%d eligible airdrop(s) deferred to the next cycle", len(eligible) - 1)
            await self._interruptible_sleep(self.policy.claim_spacing_seconds)

        return self.check_interval_seconds

    async def _handle_scan_error(self, exc: Exception) -> float:
        kind = classify_error(exc)
        if kind is ErrorKind.AUTH:
            log.warning("Scan failed with an authentication error: %s", exc)
            await self.refresh_credentials()
        elif kind is ErrorKind.NETWORK:
            log.warning("Scan failed with a network error, retrying in %gs: %s",
                        self.policy.network_backoff_seconds, exc)
            return self.policy.network_backoff_seconds
        else:
            log.error("Scan failed: %s", exc, exc_info=True)
        return self.policy.error_backoff_seconds

    async def refresh_credentials(self) -> bool:
        """Refresh credentials unless a refresh already happened within the cooldown."""
        if self._refresh_credentials is None:
            return False
        now = self._monotonic()
        if self._last_refresh is not None and now - self._last_refresh < self.policy.auth_refresh_cooldown_seconds:
            log.info("Skipping credential refresh, last one was %.0fs ago", now - self._last_refresh)
            return False
        self._last_refresh = now
        try:
            await self._refresh_credentials()
        except Exception as exc:
            log.error("Credential refresh failed: %s", exc)
            return False
        log.info("Credentials refreshed")
        return True

    async def _claim_one(self, airdrop: Airdrop) -> None:
        if self.is_settled(airdrop.id) or self.claimer.store.is_claimed(airdrop.id):
            return
        try:
            outcome = await self.claimer.claim_by_id(airdrop.id)
        except Exception as exc:
            if classify_error(exc) is not ErrorKind.AUTH or not await self.refresh_credentials():
                self._handle_claim_error(airdrop, exc)
                return
            log.info("Retrying claim of %s after credential refresh", airdrop.id)
            try:
                outcome = await self.claimer.claim_by_id(airdrop.id)
            except Exception as retry_exc:
                self._handle_claim_error(airdrop, retry_exc)
                return

        if outcome.sale is not None or not self.claimer.auto_sell:
            self.mark_settled(airdrop.id)
            log.info("Claimed airdrop %s: %s", airdrop.id, outcome.signature)
        else:
            # Claimed but unsold: never claim again, keep it open for a direct sell
            self.claimer.store.mark_claimed(airdrop.id)
            log.warning(
                "Claimed airdrop %s (%s) but the sale failed, will sell it directly",
                airdrop.id, outcome.signature,
            )

    def _handle_claim_error(self, airdrop: Airdrop, exc: Exception) -> None:
        kind = classify_error(exc)
        if kind is ErrorKind.PERMANENT:
            log.warning("Claim of %s (%s) can never succeed, settling it: %s",
                        airdrop.id, airdrop.token.symbol, exc)
            self.mark_settled(airdrop.id)
        else:
            log.error("Claim of %s (%s) failed (%s), will retry next cycle: %s",
                      airdrop.id, airdrop.token.symbol, kind.value, exc)

    def _spawn_sell(self, airdrop: Airdrop) -> None:
        if self.seller is None:
            return
        with self._lock:
            if airdrop.id in self._claimed or airdrop.id in self._selling:
                return
            self._selling.add(airdrop.id)
        log.info("Selling platform-claimed airdrop %s (%s) directly", airdrop.id, airdrop.token.symbol)
        task = asyncio.create_task(self._sell(airdrop))
        self._sell_tasks.add(task)
        task.add_done_callback(self._sell_tasks.discard)

    async def _sell(self, airdrop: Airdrop) -> None:
        try:
            await self.seller.sell_token(airdrop)
            self.mark_settled(airdrop.id)
        except InvalidAmount as exc:
            log.warning("Direct sell of %s can never succeed, settling it: %s", airdrop.id, exc)
            self.mark_settled(airdrop.id)
        except SwapExhausted as exc:
            log.error("Direct sell of %s failed: %s", airdrop.id, exc)
            if exc.last_error is not None and classify_error(exc.last_error) is ErrorKind.AUTH:
                await self.refresh_credentials()
        except Exception as exc:
            log.error("Direct sell of %s failed: %s", airdrop.id, exc, exc_info=True)
        finally:
            with self._lock:
                self._selling.discard(airdrop.id)
