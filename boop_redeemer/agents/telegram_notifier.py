"""
Telegram Notifier Agent — sends formatted Telegram messages for each NotificationEvent.
"""
from __future__ import annotations

import asyncio
import html
import logging

from boop_redeemer.models import Airdrop, NotificationEvent, ProfitSummary
from boop_redeemer.utils.http_client import post_json

log = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
SOLSCAN_TX_URL = "https://solscan.io/tx/"

TOKEN_DISPLAY_DECIMALS = 9
MAX_ERROR_LENGTH = 100


def _format_amount(amount_raw: int | None) -> str:
    if amount_raw is None:
        return "?"
    return f"{amount_raw / 10 ** TOKEN_DISPLAY_DECIMALS:,.2f}"


def _format_usd(value: float | None) -> str:
    return f"${value:,.2f}" if value is not None else "$?"


def _token_line(airdrop: Airdrop) -> str:
    return f"🪙 <b>Token:</b> {html.escape(airdrop.token.name)} ({html.escape(airdrop.token.symbol)})"


def _tx_link(signature: str) -> str:
    return f'🔗 <b>Transaction:</b> <a href="{SOLSCAN_TX_URL}{signature}">View on Solscan</a>'


def _time_line(event: NotificationEvent) -> str:
    return f"🕒 <b>Time:</b> {event.created_at:%Y-%m-%d %H:%M:%S} UTC"


def _truncate(text: str, limit: int = MAX_ERROR_LENGTH) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def format_profit_summary(summary: ProfitSummary, sol_price: float) -> str:
    return (
        "📈 <b>Profit Summary:</b>\n"
        f"• <b>Last 24h:</b> {summary.last_24h:.5f} SOL (${summary.last_24h * sol_price:.2f})\n"
        f"• <b>Last week:</b> {summary.last_week:.5f} SOL (${summary.last_week * sol_price:.2f})\n"
        f"• <b>Projected weekly:</b> {summary.projected_week:.5f} SOL (${summary.projected_week * sol_price:.2f})"
    )


def format_claimed(event: NotificationEvent) -> str:
    a = event.airdrop
    return (
        "🎉 <b>Token Claimed Successfully!</b> 🎉\n\n"
        f"{_token_line(a)}\n"
        f"💰 <b>Amount:</b> {_format_amount(a.amount_raw)}\n"
        f"💵 <b>USD Value:</b> {_format_usd(a.amount_usd)}\n"
        f"{_time_line(event)}\n"
        f"{_tx_link(event.signature)}"
    )


def format_sold(event: NotificationEvent) -> str:
    a = event.airdrop
    profit_usd = event.net_profit_sol * event.sol_price
    estimate_note = " <i>(estimated)</i>" if event.estimated else ""
    text = (
        "💎 <b>Transaction Complete!</b> 💎\n\n"
        f"{_token_line(a)}\n"
        f"💰 <b>Amount Sold:</b> {_format_amount(a.amount_raw)}\n"
        f"✨ <b>Net Profit:</b> {event.net_profit_sol:.5f} SOL (${profit_usd:.2f}){estimate_note}\n"
        f"{_time_line(event)}\n"
        f"{_tx_link(event.signature)}"
    )
    if event.summary is not None:
        text += "\n\n" + format_profit_summary(event.summary, event.sol_price)
    return text


def format_sale_failed(event: NotificationEvent) -> str:
    a = event.airdrop
    return (
        "❌ <b>Token Sale Failed!</b> ❌\n\n"
        f"{_token_line(a)}\n"
        f"💰 <b>Amount:</b> {_format_amount(a.amount_raw)}\n"
        f"💵 <b>USD Value:</b> {_format_usd(a.amount_usd)}\n"
        f"🔄 <b>Attempts:</b> {event.attempts}\n"
        f"⚠️ <b>Error:</b> {html.escape(_truncate(event.error))}\n"
        f"{_time_line(event)}"
    )


def format_welcome(wallet_address: str, minimum_usd_threshold: float, check_interval: float, auto_sell: bool) -> str:
    return (
        "👋 <b>Boop Airdrop Redeemer is online</b>\n\n"
        f"🔍 <b>Wallet:</b> <code>{wallet_address}</code>\n"
        f"💵 <b>Minimum USD threshold:</b> ${minimum_usd_threshold:.2f}\n"
        f"⏱️ <b>Check interval:</b> {check_interval:g}s\n"
        f"🔄 <b>Auto-sell to SOL:</b> {'Enabled' if auto_sell else 'Disabled'}"
    )


_FORMATTERS = {
    "claimed": format_claimed,
    "sold": format_sold,
    "sale_failed": format_sale_failed,
}


class TelegramNotifier:
    """Fire-and-forget Telegram delivery. A disabled notifier drops every message."""

    def __init__(self, bot_token: str, chat_id: str, enabled: bool = True) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.enabled = enabled and bool(bot_token and chat_id)
        self._pending: set[asyncio.Task] = set()

    async def send_text(self, text: str) -> bool:
        """
        Send *text* to the configured chat.

        Returns True on success, False if the send failed (error is logged but not raised
        so that other notifications are not blocked).
        """
        if not self.enabled:
            return False
        url = f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage"
        try:
            result = await post_json(url, {
                "chat_id": self.chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            })
        except Exception as exc:
            log.error("Failed to send Telegram message: %s", exc)
            return False

        ok = bool(result.get("ok", False))
        if not ok:
            log.error("Telegram rejected message: %s", result)
        return ok

    async def send(self, event: NotificationEvent) -> bool:
        formatter = _FORMATTERS.get(event.event_type)
        if not formatter:
            log.warning("No formatter for event type '%s'", event.event_type)
            return False
        sent = await self.send_text(formatter(event))
        if sent:
            log.info("Telegram message sent for event '%s' (airdrop: %s)", event.event_type, event.airdrop.id)
        return sent

    def notify(self, event: NotificationEvent) -> None:
        """Schedule delivery of *event* without waiting for it."""
        if not self.enabled:
            return
        task = asyncio.create_task(self.send(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for scheduled messages to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def send_welcome(
        self,
        wallet_address: str,
        minimum_usd_threshold: float,
        check_interval: float,
        auto_sell: bool,
    ) -> None:
        if await self.send_text(format_welcome(wallet_address, minimum_usd_threshold, check_interval, auto_sell)):
            log.info("Startup message sent to Telegram.")

    async def send_shutdown(self) -> None:
        if await self.send_text("🔴 <b>Boop Airdrop Redeemer is offline</b>"):
            log.info("Shutdown message sent to Telegram.")
