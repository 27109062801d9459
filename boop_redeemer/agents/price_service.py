"""
SOL Price Service — USD spot price of SOL from CoinGecko, cached.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from boop_redeemer.errors import NetworkError
from boop_redeemer.utils.http_client import get_json

log = logging.getLogger(__name__)

COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"

REFRESH_AFTER_SECONDS = 600   # refetch when the cached price is older than this
STALE_AFTER_SECONDS = 1800    # never report a price older than this


class SolPriceService:
    def __init__(self, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._monotonic = monotonic
        self._price = 0.0
        self._fetched_at: float | None = None

    def _age(self) -> float | None:
        if self._fetched_at is None:
            return None
        return self._monotonic() - self._fetched_at

    async def _fetch(self) -> float:
        data = await get_json(COINGECKO_PRICE_URL, params={"ids": "solana", "vs_currencies": "usd"})
        try:
            return float(data["solana"]["usd"])
        except (KeyError, TypeError, ValueError) as exc:
            raise NetworkError(f"unexpected CoinGecko payload: {data}") from exc

    async def current_price(self) -> float:
        """
        Return the SOL/USD price, refreshing it when older than 10 minutes.

        Returns 0.0 when no price younger than 30 minutes is available.
        """
        age = self._age()
        if age is None or age > REFRESH_AFTER_SECONDS:
            try:
                self._price = await self._fetch()
                self._fetched_at = self._monotonic()
                log.info("SOL price updated: $%.2f", self._price)
            except Exception as exc:
                log.warning("Failed to refresh SOL price: %s", exc)

        age = self._age()
        if age is None or age > STALE_AFTER_SECONDS:
            return 0.0
        return self._price
