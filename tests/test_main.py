"""
Tests for the component wiring in main.py.

Run with:  pytest tests/test_main.py
"""
from __future__ import annotations

from unittest.mock import MagicMock

from solders.keypair import Keypair

from boop_redeemer.config import AppConfig
from boop_redeemer.main import build_service


def _make_config(tmp_path, auto_sell: bool) -> AppConfig:
    return AppConfig(
        wallet_private_key="unused",
        wallet_address="SkatebLAUZ9cmbayrLE3wWao3VuFsb1eGE3R7mCs2X2",
        solana_rpc_url="https://rpc.example.invalid",
        graphql_url="https://graphql.example.invalid/graphql",
        jupiter_api_base="https://jup.example.invalid",
        auth_token="",
        privy_auth="",
        privy_token="",
        privy_refresh_token="",
        minimum_usd_threshold=0.15,
        check_interval_seconds=60,
        auto_sell_enabled=auto_sell,
        stats_data_dir=tmp_path,
        telegram_bot_token="",
        telegram_chat_id="",
        enable_telegram=False,
        debug=False,
    )


class TestBuildService:
    def test_direct_sell_tier_runs_without_auto_sell(self, tmp_path):
        service = build_service(_make_config(tmp_path, auto_sell=False), Keypair(), MagicMock(), MagicMock(), MagicMock())
        assert service.seller is not None
        assert service.claimer.auto_sell is False

    def test_auto_sell_enabled(self, tmp_path):
        service = build_service(_make_config(tmp_path, auto_sell=True), Keypair(), MagicMock(), MagicMock(), MagicMock())
        assert service.seller is service.claimer.seller
        assert service.claimer.auto_sell is True
