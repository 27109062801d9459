"""
Price Tracker — remembers, per airdrop, when its USD value last moved.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from boop_redeemer.models import PriceObservation

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceTracker:
    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._observations: dict[str, PriceObservation] = {}

    def record_observation(self, airdrop_id: str, usd_value: float | str | None) -> None:
        """
        Record the current USD value of *airdrop_id*.

        ``last_changed`` moves only when the value differs from the previous
        one; ``first_observed`` is set once. Values that do not parse as a
        float are ignored.
        """
        try:
            price = float(usd_value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            log.debug("Ignoring unparsable price %r for airdrop %s", usd_value, airdrop_id)
            return

        now = self._clock()
        with self._lock:
            previous = self._observations.get(airdrop_id)
            if previous is None:
                self._observations[airdrop_id] = PriceObservation(price, now, now)
            elif previous.last_price != price:
                self._observations[airdrop_id] = PriceObservation(price, now, previous.first_observed)

        if previous is not None and previous.last_price != price:
            log.debug("Price of %s changed: %.4f -> %.4f", airdrop_id, previous.last_price, price)

    def get_observation(self, airdrop_id: str) -> PriceObservation | None:
        # PriceObservation is frozen; the stored instance is already a snapshot
        with self._lock:
            return self._observations.get(airdrop_id)
