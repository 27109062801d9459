"""
Tests for the Telegram Notifier agent.

Run with:  pytest tests/test_telegram_notifier.py
"""
from __future__ import annotations

import pytest
from unittest.mock import AsyncMock, patch

from boop_redeemer.agents.telegram_notifier import (
    TelegramNotifier,
    format_claimed,
    format_sale_failed,
    format_sold,
)
from boop_redeemer.models import Airdrop, NotificationEvent, ProfitSummary, TokenInfo


def _make_airdrop() -> Airdrop:
    return Airdrop(
        id="A1",
        token=TokenInfo(address="BuNonfvszzm6dJuzigNbde7qGNmcSYxT64erw3Wboop", symbol="BOOP", name="boop <fun>"),
        amount_raw=12_345_670_000_000,
        amount_usd=0.4567,
    )


class TestFormatters:
    def test_format_claimed(self):
        event = NotificationEvent(event_type="claimed", airdrop=_make_airdrop(), signature="SIGC")
        msg = format_claimed(event)
        assert "Token Claimed Successfully" in msg
        assert "boop &lt;fun&gt; (BOOP)" in msg
        assert "12,345.67" in msg
        assert "$0.46" in msg
        assert 'href="https://solscan.io/tx/SIGC"' in msg

    def test_format_sold_with_summary(self):
        event = NotificationEvent(
            event_type="sold",
            airdrop=_make_airdrop(),
            signature="SIGS",
            net_profit_sol=0.0025,
            sol_price=200.0,
            summary=ProfitSummary(last_24h=0.01, last_week=0.05, projected_week=0.07),
        )
        msg = format_sold(event)
        assert "0.00250 SOL ($0.50)" in msg
        assert "Profit Summary" in msg
        assert "0.07000 SOL ($14.00)" in msg
        assert "estimated" not in msg

    def test_format_sold_marks_estimates(self):
        event = NotificationEvent(
            event_type="sold", airdrop=_make_airdrop(), signature="SIGS", estimated=True,
        )
        msg = format_sold(event)
        assert "(estimated)" in msg
        assert "Profit Summary" not in msg

    def test_format_sale_failed_truncates_error(self):
        event = NotificationEvent(
            event_type="sale_failed", airdrop=_make_airdrop(), error="x" * 500, attempts=10,
        )
        msg = format_sale_failed(event)
        assert "<b>Attempts:</b> 10" in msg
        assert "x" * 97 + "..." in msg
        assert "x" * 98 not in msg


class TestSend:
    @pytest.mark.asyncio
    async def test_send_posts_html_message(self):
        notifier = TelegramNotifier("TOKEN", "CHAT")
        event = NotificationEvent(event_type="claimed", airdrop=_make_airdrop(), signature="SIGC")
        mock_result = {"ok": True, "result": {}}
        with patch("boop_redeemer.agents.telegram_notifier.post_json", new=AsyncMock(return_value=mock_result)) as mock_post:
            sent = await notifier.send(event)
        assert sent is True
        url, payload = mock_post.call_args.args
        assert url == "https://api.telegram.org/botTOKEN/sendMessage"
        assert payload["parse_mode"] == "HTML"
        assert payload["chat_id"] == "CHAT"

    @pytest.mark.asyncio
    async def test_disabled_notifier_sends_nothing(self):
        notifier = TelegramNotifier("TOKEN", "CHAT", enabled=False)
        event = NotificationEvent(event_type="claimed", airdrop=_make_airdrop())
        with patch("boop_redeemer.agents.telegram_notifier.post_json", new=AsyncMock()) as mock_post:
            notifier.notify(event)
            sent = await notifier.send(event)
        assert sent is False
        mock_post.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_credentials_disable_notifier(self):
        assert TelegramNotifier("", "CHAT").enabled is False

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self):
        notifier = TelegramNotifier("TOKEN", "CHAT")
        event = NotificationEvent(event_type="claimed", airdrop=_make_airdrop())
        with patch("boop_redeemer.agents.telegram_notifier.post_json", new=AsyncMock(side_effect=Exception("Network error"))):
            sent = await notifier.send(event)
        assert sent is False

    @pytest.mark.asyncio
    async def test_notify_is_fire_and_forget(self):
        notifier = TelegramNotifier("TOKEN", "CHAT")
        event = NotificationEvent(event_type="sale_failed", airdrop=_make_airdrop(), error="boom", attempts=10)
        with patch("boop_redeemer.agents.telegram_notifier.post_json", new=AsyncMock(return_value={"ok": True})) as mock_post:
            notifier.notify(event)
            mock_post.assert_not_called()
            await notifier.drain()
        mock_post.assert_awaited_once()
