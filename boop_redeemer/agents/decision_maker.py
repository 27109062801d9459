"""
Decision Maker — pure claim/sell policy over an airdrop's value and price history.

Claim tiers
-----------
1. No price observation yet: never claim.
2. ``amount_usd >= minimum_usd_threshold``: claim immediately.
3. ``amount_usd > stability_floor_usd`` and the value has been unchanged, and
   observed, for strictly longer than the stability window: claim.

Direct sell applies to airdrops that are already claimed (reported by the
platform, or claimed here with a sale still outstanding); it
requires ``amount_usd >= direct_sell_floor_usd`` and a stable, observed window
of at least the stability window (non-strict).
"""
from __future__ import annotations

import logging
from datetime import timedelta

from boop_redeemer.agents.price_tracker import Clock, utcnow
from boop_redeemer.config import PolicyConfig
from boop_redeemer.models import Airdrop, PriceObservation

log = logging.getLogger(__name__)


class DecisionMaker:
    def __init__(
        self,
        minimum_usd_threshold: float,
        policy: PolicyConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.minimum_usd_threshold = minimum_usd_threshold
        self.policy = policy or PolicyConfig()
        self._clock = clock

    def _windows(self, observation: PriceObservation) -> tuple[timedelta, timedelta]:
        now = self._clock()
        return now - observation.last_changed, now - observation.first_observed

    def should_claim(self, airdrop: Airdrop, observation: PriceObservation | None) -> bool:
        if observation is None or airdrop.amount_usd is None:
            return False

        usd = airdrop.amount_usd
        if usd >= self.minimum_usd_threshold:
            log.info(
                "Airdrop %s (%s) worth $%.4f meets threshold $%.2f",
                airdrop.id, airdrop.token.symbol, usd, self.minimum_usd_threshold,
            )
            return True

        if usd > self.policy.stability_floor_usd:
            stable_for, observed_for = self._windows(observation)
            window = timedelta(seconds=self.policy.stability_window_seconds)
            if stable_for > window and observed_for > window:
                log.info(
                    "Airdrop %s (%s) worth $%.4f has been stable for %s, claiming",
                    airdrop.id, airdrop.token.symbol, usd, stable_for,
                )
                return True
            tracking = timedelta(seconds=self.policy.tracking_window_seconds)
            if stable_for > tracking or observed_for > tracking:
                log.info(
                    "Airdrop %s (%s) worth $%.4f stable for %s, observed for %s, waiting for %s",
                    airdrop.id, airdrop.token.symbol, usd, stable_for, observed_for, window,
                )

        return False

    def should_sell_directly(
        self,
        airdrop: Airdrop,
        observation: PriceObservation | None,
        claimed_on_chain: bool = False,
    ) -> bool:
        """
        *claimed_on_chain* marks an airdrop this process claimed itself whose
        sale has not gone through yet; the platform may not report it yet.
        """
        if airdrop.claimed_at is None and not claimed_on_chain:
            return False
        if observation is None or airdrop.amount_usd is None:
            return False
        if airdrop.amount_usd < self.policy.direct_sell_floor_usd:
            return False

        stable_for, observed_for = self._windows(observation)
        window = timedelta(seconds=self.policy.stability_window_seconds)
        return stable_for >= window and observed_for >= window
