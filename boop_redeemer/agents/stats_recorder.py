"""
Stats Recorder — appends claim/swap results to monthly CSV files and
summarises realised profit.

File: <data_dir>/transactions_YYYY-MM.csv
"""
from __future__ import annotations

import csv
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from boop_redeemer.models import LAMPORTS_PER_SOL, ProfitSummary, TransactionStats

log = logging.getLogger(__name__)

CSV_HEADER = [
    "Timestamp",
    "Type",
    "Token",
    "Amount",
    "Expenses (SOL)",
    "Gross Profit (SOL)",
    "Net Profit (SOL)",
    "Transaction Hash",
    "Estimated",
]
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _sol(lamports: int) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.9f}"


def _previous_month(moment: datetime) -> datetime:
    return moment.replace(day=1) - timedelta(days=1)


class StatsRecorder:
    """
    Blocking file I/O; async callers run ``record`` and ``profit_summary``
    through ``asyncio.to_thread``. The lock serialises those worker threads.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.Lock()

    def file_for(self, moment: datetime) -> Path:
        return self.data_dir / f"transactions_{moment:%Y-%m}.csv"

    def record(self, stats: TransactionStats) -> None:
        """Append one row. I/O failures are logged, never raised."""
        path = self.file_for(stats.timestamp)
        row = [
            stats.timestamp.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT),
            stats.tx_type,
            stats.token_symbol,
            str(stats.amount_raw),
            _sol(stats.expenses_lamports),
            _sol(stats.gross_profit_lamports),
            _sol(stats.net_profit_lamports),
            stats.signature,
            "estimated" if stats.estimated else "measured",
        ]
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                is_new = not path.exists()
                with path.open("a", newline="", encoding="utf-8") as fh:
                    writer = csv.writer(fh)
                    if is_new:
                        writer.writerow(CSV_HEADER)
                    writer.writerow(row)
        except OSError as exc:
            log.error("Failed to record %s stats for %s: %s", stats.tx_type, stats.signature, exc)
            return
        log.info(
            "Recorded %s %s: net %s SOL%s",
            stats.tx_type, stats.token_symbol, row[6], " (estimated)" if stats.estimated else "",
        )

    def _swap_rows(self, now: datetime) -> list[tuple[datetime, float]]:
        rows: list[tuple[datetime, float]] = []
        for path in (self.file_for(_previous_month(now)), self.file_for(now)):
            if not path.exists():
                continue
            with path.open(newline="", encoding="utf-8") as fh:
                for record in csv.DictReader(fh):
                    if record.get("Type") != "SWAP":
                        continue
                    try:
                        ts = datetime.strptime(record["Timestamp"], TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
                        rows.append((ts, float(record["Net Profit (SOL)"])))
                    except (KeyError, ValueError):
                        log.debug("Skipping malformed stats row in %s: %s", path.name, record)
        return rows

    def profit_summary(self, now: datetime | None = None) -> ProfitSummary | None:
        """
        Sum SWAP net profit over the last 24 hours and the last 7 days.

        The projected week is ``last_24h * 7`` when there was any activity in
        the last day, otherwise the weekly total. Returns None if the files
        cannot be read or decoded.
        """
        now = now or datetime.now(timezone.utc)
        try:
            with self._lock:
                rows = self._swap_rows(now)
        except (OSError, ValueError, csv.Error) as exc:
            log.error("Failed to read stats: %s", exc)
            return None

        day_ago = now - timedelta(days=1)
        week_ago = now - timedelta(days=7)
        last_24h = sum(p for ts, p in rows if ts >= day_ago)
        last_week = sum(p for ts, p in rows if ts >= week_ago)
        recent = any(ts >= day_ago for ts, _ in rows)
        return ProfitSummary(
            last_24h=last_24h,
            last_week=last_week,
            projected_week=last_24h * 7 if recent else last_week,
        )
