"""
Airdrop Store — in-memory registry of every airdrop seen this process.

Memory only: the registry is lost on restart, in which case the platform's own
``claimedAt`` flag is the backstop against re-claiming.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import replace

from boop_redeemer.models import Airdrop

log = logging.getLogger(__name__)


class AirdropStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._airdrops: dict[str, Airdrop] = {}
        self._claimed: set[str] = set()

    def save(self, airdrop: Airdrop) -> None:
        """Insert or overwrite the record keyed by ``airdrop.id``."""
        with self._lock:
            self._airdrops[airdrop.id] = airdrop

    def exists(self, airdrop_id: str) -> bool:
        with self._lock:
            return airdrop_id in self._airdrops

    def get(self, airdrop_id: str) -> Airdrop | None:
        with self._lock:
            airdrop = self._airdrops.get(airdrop_id)
        return replace(airdrop) if airdrop is not None else None

    def get_all(self) -> list[Airdrop]:
        with self._lock:
            return list(self._airdrops.values())

    def mark_claimed(self, airdrop_id: str) -> None:
        with self._lock:
            self._claimed.add(airdrop_id)

    def is_claimed(self, airdrop_id: str) -> bool:
        with self._lock:
            return airdrop_id in self._claimed
