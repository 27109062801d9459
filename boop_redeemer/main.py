"""
main.py — Entry point. Wires the components together and runs the auto-claim loop.

Run with:
    python -m boop_redeemer.main
"""
from __future__ import annotations

import asyncio
import logging
import signal

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from boop_redeemer.agents.airdrop_feed import BoopAirdropFeed
from boop_redeemer.agents.airdrop_store import AirdropStore
from boop_redeemer.agents.auth_manager import TokenManager
from boop_redeemer.agents.auto_claim_service import AutoClaimService
from boop_redeemer.agents.claimer import Claimer
from boop_redeemer.agents.decision_maker import DecisionMaker
from boop_redeemer.agents.price_service import SolPriceService
from boop_redeemer.agents.price_tracker import PriceTracker
from boop_redeemer.agents.scanner import AirdropScanner
from boop_redeemer.agents.stats_recorder import StatsRecorder
from boop_redeemer.agents.telegram_notifier import TelegramNotifier
from boop_redeemer.agents.token_seller import TokenSeller
from boop_redeemer.chain.claim_submitter import SolanaClaimSubmitter
from boop_redeemer.chain.jupiter import JupiterSwapClient
from boop_redeemer.chain.tx_inspector import TransactionInspector
from boop_redeemer.config import AppConfig, load_config
from boop_redeemer.errors import AuthError
from boop_redeemer.utils.http_client import close_client
from boop_redeemer.utils.logger import setup_logging

log = logging.getLogger(__name__)


def build_service(
    config: AppConfig,
    keypair: Keypair,
    rpc: AsyncClient,
    tokens: TokenManager,
    notifier: TelegramNotifier,
) -> AutoClaimService:
    store = AirdropStore()
    stats = StatsRecorder(config.stats_data_dir)
    inspector = TransactionInspector(rpc)

    seller = TokenSeller(
        swap_client=JupiterSwapClient(config.jupiter_api_base, rpc, keypair),
        inspector=inspector,
        price_service=SolPriceService(),
        stats=stats,
        notifier=notifier,
        policy=config.policy,
    )
    claimer = Claimer(
        store=store,
        submitter=SolanaClaimSubmitter(rpc, keypair),
        inspector=inspector,
        stats=stats,
        notifier=notifier,
        seller=seller,
        auto_sell=config.auto_sell_enabled,
        policy=config.policy,
    )
    feed = BoopAirdropFeed(config.graphql_url, config.wallet_address, tokens.authorization_header)

    return AutoClaimService(
        scanner=AirdropScanner(feed, store),
        claimer=claimer,
        seller=seller,
        tracker=PriceTracker(),
        decision=DecisionMaker(config.minimum_usd_threshold, config.policy),
        check_interval_seconds=config.check_interval_seconds,
        refresh_credentials=tokens.refresh,
        policy=config.policy,
    )


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops; KeyboardInterrupt still ends asyncio.run
            pass


async def main() -> None:
    setup_logging()

    log.info("Loading configuration …")
    try:
        config = load_config()
        keypair = Keypair.from_base58_string(config.wallet_private_key)
    except ValueError as exc:
        log.critical("Configuration error: %s", exc)
        return

    if config.debug:
        setup_logging(logging.DEBUG)

    derived = str(keypair.pubkey())
    if config.wallet_address and config.wallet_address != derived:
        log.warning("WALLET_ADDRESS %s does not match the private key, using %s", config.wallet_address, derived)
    config.wallet_address = derived

    tokens = TokenManager(
        config.graphql_url,
        auth_token=config.auth_token,
        privy_auth=config.privy_auth,
        privy_token=config.privy_token,
        privy_refresh_token=config.privy_refresh_token,
        keypair=keypair,
    )
    notifier = TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id, config.enable_telegram)
    rpc = AsyncClient(config.solana_rpc_url)
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    try:
        if not config.auth_token:
            try:
                await tokens.refresh()
            except AuthError as exc:
                log.critical("Could not authenticate with Boop: %s", exc)
                return

        log.info(
            "Boop Airdrop Redeemer started for %s. Threshold $%.2f, checking every %gs, auto-sell %s.",
            config.wallet_address,
            config.minimum_usd_threshold,
            config.check_interval_seconds,
            "on" if config.auto_sell_enabled else "off",
        )
        await notifier.send_welcome(
            config.wallet_address,
            config.minimum_usd_threshold,
            config.check_interval_seconds,
            config.auto_sell_enabled,
        )

        service = build_service(config, keypair, rpc, tokens, notifier)
        await service.run(stop)
    finally:
        log.info("Shutting down ...")
        await notifier.drain()
        await notifier.send_shutdown()
        await rpc.close()
        await close_client()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
