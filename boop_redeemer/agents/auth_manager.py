"""
Auth Manager — keeps a valid Boop GraphQL bearer token.

The GraphQL token is minted by the ``loginWithPrivy`` mutation from a pair of
Privy session tokens. When those expire they are refreshed through the Privy
sessions endpoint, and as a last resort re-issued with a Sign-In-With-Solana
handshake signed by the wallet key.
"""
from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone

import httpx
from solders.keypair import Keypair

from boop_redeemer.errors import AuthError, NetworkError, ProtocolError
from boop_redeemer.utils.http_client import post_json

log = logging.getLogger(__name__)

PRIVY_SESSIONS_URL = "https://auth.privy.io/api/v1/sessions"
PRIVY_SIWS_INIT_URL = "https://auth.privy.io/api/v1/siws/init"
PRIVY_SIWS_AUTHENTICATE_URL = "https://auth.privy.io/api/v1/siws/authenticate"

BOOP_ORIGIN = "https://boop.fun"
PRIVY_APP_ID = "cm9qu1hed02wwl50m7cd5396n"
PRIVY_CA_ID = "eea5a712-be5e-4965-aceb-9e9a77db3492"
PRIVY_CLIENT = "react-auth:2.13.0-beta-20250501014923"

LOGIN_MUTATION = """
mutation LoginWithPrivy {
  loginWithPrivy {
    token
  }
}
"""

_AUTH_FAILURES = (AuthError, NetworkError, ProtocolError, httpx.HTTPStatusError)


def _bearer(token: str) -> str:
    return token if token.startswith("Bearer ") else f"Bearer {token}"


def _privy_headers() -> dict[str, str]:
    return {
        "Origin": BOOP_ORIGIN,
        "Referer": f"{BOOP_ORIGIN}/",
        "privy-app-id": PRIVY_APP_ID,
        "privy-ca-id": PRIVY_CA_ID,
        "privy-client": PRIVY_CLIENT,
    }


def build_siws_message(wallet_address: str, nonce: str, issued_at: datetime | None = None) -> str:
    """Return the Sign-In-With-Solana message Privy expects for boop.fun."""
    issued_at = issued_at or datetime.now(timezone.utc)
    stamp = issued_at.strftime("%Y-%m-%dT%H:%M:%S.") + f"{issued_at.microsecond // 1000:03d}Z"
    return (
        "boop.fun wants you to sign in with your Solana account:\n"
        f"{wallet_address}\n\n"
        f"You are proving you own {wallet_address}.\n\n"
        f"URI: {BOOP_ORIGIN}\n"
        "Version: 1\n"
        "Chain ID: mainnet\n"
        f"Nonce: {nonce}\n"
        f"Issued At: {stamp}\n"
        "Resources:\n- https://privy.io"
    )


def sign_message(keypair: Keypair, message: str) -> str:
    """ed25519-sign *message* and return the base64 signature."""
    return base64.b64encode(bytes(keypair.sign_message(message.encode("utf-8")))).decode("ascii")


class TokenManager:
    def __init__(
        self,
        graphql_url: str,
        *,
        auth_token: str = "",
        privy_auth: str = "",
        privy_token: str = "",
        privy_refresh_token: str = "",
        keypair: Keypair | None = None,
    ) -> None:
        self.graphql_url = graphql_url
        self._graphql_token = auth_token
        self._privy_auth = privy_auth
        self._privy_token = privy_token
        self._privy_refresh_token = privy_refresh_token
        self._keypair = keypair

    @property
    def has_privy_session(self) -> bool:
        return bool(self._privy_auth and self._privy_token)

    async def authorization_header(self) -> str:
        """Return the Authorization header value, logging in first if no token is held."""
        if not self._graphql_token:
            log.warning("No GraphQL token available, logging in")
            await self.refresh()
        return _bearer(self._graphql_token)

    async def refresh(self) -> None:
        """
        Obtain a fresh GraphQL token.

        Order: login with the current Privy session, refresh the Privy session
        and log in again, then a full wallet sign-in. Raises AuthError when
        every path fails.
        """
        if self.has_privy_session:
            try:
                await self._login_with_privy()
                return
            except _AUTH_FAILURES as exc:
                log.warning("loginWithPrivy failed: %s", exc)

            if self._privy_refresh_token:
                try:
                    await self._refresh_privy_session()
                    await self._login_with_privy()
                    return
                except _AUTH_FAILURES as exc:
                    log.warning("Privy session refresh failed: %s", exc)

        if self._keypair is None:
            raise AuthError("Unable to refresh credentials: no Privy session and no wallet key")

        try:
            await self.sign_in_with_wallet()
            await self._login_with_privy()
        except _AUTH_FAILURES as exc:
            raise AuthError(f"Wallet sign-in failed: {exc}") from exc

    async def _login_with_privy(self) -> None:
        headers = {
            "privy-authentication": _bearer(self._privy_auth),
            "privy-token": self._privy_token,
            "Origin": BOOP_ORIGIN,
        }
        data = await post_json(
            self.graphql_url,
            {"operationName": "LoginWithPrivy", "query": LOGIN_MUTATION},
            headers=headers,
        )
        token = ((data.get("data") or {}).get("loginWithPrivy") or {}).get("token")
        if not token:
            raise AuthError(f"loginWithPrivy returned no token: {str(data)[:200]}")
        self._graphql_token = token
        log.info("Refreshed GraphQL authentication token")

    async def _refresh_privy_session(self) -> None:
        headers = {**_privy_headers(), "authorization": _bearer(self._privy_auth)}
        data = await post_json(PRIVY_SESSIONS_URL, {"refresh_token": self._privy_refresh_token}, headers=headers)
        self._apply_privy_tokens(data)
        log.info("Refreshed Privy session tokens")

    async def sign_in_with_wallet(self) -> None:
        """Run the SIWS handshake with the wallet key and store the resulting Privy tokens."""
        if self._keypair is None:
            raise AuthError("Wallet sign-in requires a private key")

        address = str(self._keypair.pubkey())
        log.info("Authenticating with Privy for wallet %s", address)
        init = await post_json(PRIVY_SIWS_INIT_URL, {"address": address}, headers=_privy_headers())
        nonce = init.get("nonce")
        if not nonce:
            raise AuthError(f"Privy SIWS init returned no nonce: {init}")

        message = build_siws_message(address, nonce)
        data = await post_json(
            PRIVY_SIWS_AUTHENTICATE_URL,
            {
                "message": message,
                "signature": sign_message(self._keypair, message),
                "walletClientType": "phantom",
                "connectorType": "solana_adapter",
                "mode": "login-or-sign-up",
                "message_type": "plain",
            },
            headers=_privy_headers(),
        )
        self._apply_privy_tokens(data)
        if not self.has_privy_session:
            raise AuthError("Privy SIWS authentication returned incomplete tokens")
        log.info("Authenticated with Privy")

    def _apply_privy_tokens(self, data: dict) -> None:
        if data.get("token"):
            self._privy_auth = _bearer(data["token"])
        if data.get("identity_token"):
            self._privy_token = data["identity_token"]
        if data.get("refresh_token"):
            self._privy_refresh_token = data["refresh_token"]
