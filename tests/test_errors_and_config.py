"""
Tests for error classification, configuration parsing and the HTTP client.

Run with:  pytest tests/test_errors_and_config.py
"""
from __future__ import annotations

import json

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from boop_redeemer import config
from boop_redeemer.errors import (
    AlreadyClaimed,
    AuthError,
    ErrorKind,
    NetworkError,
    SwapError,
    SwapExhausted,
    classify_error,
)
from boop_redeemer.utils import http_client


class TestClassifyError:
    def test_typed_errors(self):
        assert classify_error(AuthError("x")) is ErrorKind.AUTH
        assert classify_error(NetworkError("x")) is ErrorKind.NETWORK
        assert classify_error(AlreadyClaimed("x")) is ErrorKind.PERMANENT
        assert classify_error(SwapExhausted(10, SwapError("x"))) is ErrorKind.SWAP_EXHAUSTED

    def test_type_wins_over_message(self):
        assert classify_error(NetworkError("token endpoint unreachable")) is ErrorKind.NETWORK

    def test_permanent_vocabulary_wins_over_auth(self):
        assert classify_error(RuntimeError("invalid token amount: abc")) is ErrorKind.PERMANENT

    def test_auth_vocabulary_is_case_insensitive(self):
        assert classify_error(RuntimeError("401 Unauthorized")) is ErrorKind.AUTH

    def test_network_vocabulary(self):
        assert classify_error(RuntimeError("dial tcp: i/o timeout")) is ErrorKind.NETWORK
        assert classify_error(ConnectionResetError()) is ErrorKind.NETWORK

    def test_unknown(self):
        assert classify_error(ValueError("something odd")) is ErrorKind.UNCLASSIFIED


class TestConfig:
    def test_parse_duration(self):
        assert config.parse_duration("90") == 90
        assert config.parse_duration("30s") == 30
        assert config.parse_duration("1m") == 60
        assert config.parse_duration("2h") == 7200

    def test_parse_duration_rejects_garbage(self):
        with pytest.raises(ValueError):
            config.parse_duration("soon")

    def test_load_config_requires_private_key(self, monkeypatch):
        monkeypatch.delenv("WALLET_PRIVATE_KEY", raising=False)
        with pytest.raises(ValueError, match="WALLET_PRIVATE_KEY"):
            config.load_config()

    def test_load_config_defaults(self, monkeypatch):
        for name in ("MINIMUM_USD_THRESHOLD", "CHECK_INTERVAL", "AUTO_SELL", "ENABLE_TELEGRAM", "SOLANA_RPC_URL"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("WALLET_PRIVATE_KEY", "secret")
        monkeypatch.setattr(config, "load_policy", lambda: config.PolicyConfig())

        cfg = config.load_config()
        assert cfg.minimum_usd_threshold == 0.15
        assert cfg.check_interval_seconds == 60
        assert cfg.auto_sell_enabled is True
        assert cfg.solana_rpc_url == config.DEFAULT_RPC_URL
        assert cfg.policy.swap_max_attempts == 10

    def test_load_config_rejects_bad_number(self, monkeypatch):
        monkeypatch.delenv("ENABLE_TELEGRAM", raising=False)
        monkeypatch.setenv("WALLET_PRIVATE_KEY", "secret")
        monkeypatch.setenv("MINIMUM_USD_THRESHOLD", "cheap")
        with pytest.raises(ValueError, match="MINIMUM_USD_THRESHOLD"):
            config.load_config()

    def test_policy_overrides(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"policy": {"claim_spacing_seconds": 5, "swap_max_attempts": 4}}))
        policy = config.load_policy(path)
        assert policy.claim_spacing_seconds == 5
        assert policy.swap_max_attempts == 4
        assert policy.stability_floor_usd == 0.07

    def test_unknown_policy_key(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"policy": {"nonsense": 1}}))
        with pytest.raises(ValueError, match="nonsense"):
            config.load_policy(path)


def _response(status: int, body: dict | None = None) -> httpx.Response:
    return httpx.Response(status, json=body or {}, request=httpx.Request("POST", "https://api.example.invalid"))


class TestHttpClient:
    @pytest.mark.asyncio
    async def test_auth_status_raises_auth_error(self):
        client = AsyncMockClient([_response(401)])
        with patch.object(http_client, "get_client", new=AsyncMock(return_value=client)):
            with pytest.raises(AuthError):
                await http_client.post_json("https://api.example.invalid", {})

    @pytest.mark.asyncio
    async def test_transport_errors_become_network_error(self):
        client = AsyncMockClient([httpx.ConnectError("connection refused")] * 3)
        with patch.object(http_client, "get_client", new=AsyncMock(return_value=client)), \
             patch("boop_redeemer.utils.http_client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(NetworkError):
                await http_client.get_json("https://api.example.invalid")
        assert client.calls == 3

    @pytest.mark.asyncio
    async def test_passes_headers(self):
        client = AsyncMockClient([_response(200, {"ok": True})])
        with patch.object(http_client, "get_client", new=AsyncMock(return_value=client)):
            result = await http_client.post_json("https://api.example.invalid", {"a": 1}, headers={"X": "1"})
        assert result == {"ok": True}
        assert client.last_kwargs["headers"] == {"X": "1"}


class AsyncMockClient:
    """Minimal stand-in for httpx.AsyncClient.request that replays responses or raises."""

    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0
        self.last_kwargs: dict = {}

    async def request(self, method, url, **kwargs):
        self.calls += 1
        self.last_kwargs = kwargs
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
