"""
Airdrop Scanner — pulls the pending airdrop set and keeps the store current.
"""
from __future__ import annotations

import logging
from typing import Protocol

from boop_redeemer.agents.airdrop_store import AirdropStore
from boop_redeemer.models import Airdrop

log = logging.getLogger(__name__)


class AirdropFeed(Protocol):
    async def fetch_pending(self) -> list[Airdrop]: ...


class AirdropScanner:
    def __init__(self, feed: AirdropFeed, store: AirdropStore) -> None:
        self.feed = feed
        self.store = store

    async def scan(self, threshold_usd: float) -> list[Airdrop]:
        """
        Fetch every pending airdrop, upsert it into the store, and return the
        ones worth at least *threshold_usd*.

        Feed errors (AuthError, NetworkError, ProtocolError) propagate.
        """
        airdrops = await self.feed.fetch_pending()
        log.info("Fetched %d pending airdrop(s)", len(airdrops))

        valuable: list[Airdrop] = []
        for airdrop in airdrops:
            if not self.store.exists(airdrop.id):
                log.info(
                    "New airdrop %s: %s (%s) worth $%s",
                    airdrop.id, airdrop.token.name, airdrop.token.symbol, airdrop.amount_usd,
                )
            self.store.save(airdrop)

            if airdrop.amount_usd is None:
                log.warning("Airdrop %s has no parsable USD value, skipping", airdrop.id)
                continue
            if airdrop.amount_usd >= threshold_usd:
                valuable.append(airdrop)

        return valuable
