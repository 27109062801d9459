"""
Config loader — reads .env and config.json into typed config objects.
"""
from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level above boop_redeemer/)
_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_ROOT / ".env")

CONFIG_PATH = _ROOT / "config.json"

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_GRAPHQL_URL = "https://graphql-mainnet.boop.works/graphql"
DEFAULT_JUPITER_API_BASE = "https://lite-api.jup.ag/swap/v1"


@dataclass(frozen=True)
class PolicyConfig:
    """Numeric knobs of the claim/sell policy and the polling loop."""

    stability_floor_usd: float = 0.07         # strict lower bound of the stability tier
    direct_sell_floor_usd: float = 0.10       # non-strict lower bound for direct sells
    stability_window_seconds: float = 600.0   # 10 minutes
    tracking_window_seconds: float = 300.0    # 5 minutes, logged only
    scan_threshold_usd: float = 0.001
    claim_spacing_seconds: float = 60.0
    auth_refresh_cooldown_seconds: float = 1800.0
    network_backoff_seconds: float = 3.0
    error_backoff_seconds: float = 30.0
    swap_max_attempts: int = 10
    swap_retry_delay_seconds: float = 3.0
    settle_delay_seconds: float = 5.0         # wait before reading a fresh transaction


@dataclass
class AppConfig:
    wallet_private_key: str
    wallet_address: str
    solana_rpc_url: str
    graphql_url: str
    jupiter_api_base: str
    auth_token: str
    privy_auth: str
    privy_token: str
    privy_refresh_token: str
    minimum_usd_threshold: float
    check_interval_seconds: float
    auto_sell_enabled: bool
    stats_data_dir: Path
    telegram_bot_token: str
    telegram_chat_id: str
    enable_telegram: bool
    debug: bool
    policy: PolicyConfig = field(default_factory=PolicyConfig)


_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: str) -> float:
    """
    Parse "90", "30s", "5m" or "1h" into seconds.

    Raises
    ------
    ValueError
        If *value* is not one of the supported forms.
    """
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r} (expected e.g. 30s, 1m, 1h)")
    return float(match.group(1)) * _DURATION_UNITS[match.group(2)]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_policy(path: Path = CONFIG_PATH) -> PolicyConfig:
    """Read the optional "policy" section of config.json; unknown keys are rejected."""
    if not path.exists():
        return PolicyConfig()
    raw = json.loads(path.read_text(encoding="utf-8")).get("policy", {})
    known = {f.name for f in fields(PolicyConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown policy keys in {path.name}: {', '.join(sorted(unknown))}")
    return PolicyConfig(**raw)


def load_config() -> AppConfig:
    """Load and validate configuration from .env and config.json."""
    private_key = os.getenv("WALLET_PRIVATE_KEY", "")
    if not private_key:
        raise ValueError(
            "WALLET_PRIVATE_KEY is not set. Copy .env.example to .env and fill in your credentials."
        )

    enable_telegram = _env_bool("ENABLE_TELEGRAM", False)
    bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    chat_id = os.getenv("TELEGRAM_CHAT_ID", "")
    if enable_telegram and not (bot_token and chat_id):
        raise ValueError("ENABLE_TELEGRAM is set but TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID is missing.")

    return AppConfig(
        wallet_private_key=private_key,
        wallet_address=os.getenv("WALLET_ADDRESS", ""),
        solana_rpc_url=os.getenv("SOLANA_RPC_URL", "") or DEFAULT_RPC_URL,
        graphql_url=os.getenv("BOOP_GRAPHQL_URL", "") or DEFAULT_GRAPHQL_URL,
        jupiter_api_base=os.getenv("JUPITER_API_BASE", "") or DEFAULT_JUPITER_API_BASE,
        auth_token=os.getenv("AUTH_TOKEN", ""),
        privy_auth=os.getenv("PRIVY_AUTH", ""),
        privy_token=os.getenv("PRIVY_TOKEN", ""),
        privy_refresh_token=os.getenv("PRIVY_REFRESH_TOKEN", ""),
        minimum_usd_threshold=_env_float("MINIMUM_USD_THRESHOLD", 0.15),
        check_interval_seconds=parse_duration(os.getenv("CHECK_INTERVAL", "") or "1m"),
        auto_sell_enabled=_env_bool("AUTO_SELL", True),
        stats_data_dir=Path(os.getenv("STATS_DATA_DIR", "") or "./data/stats"),
        telegram_bot_token=bot_token,
        telegram_chat_id=chat_id,
        enable_telegram=enable_telegram,
        debug=_env_bool("DEBUG", False),
        policy=load_policy(),
    )
