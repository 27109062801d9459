"""
Shared async HTTP client with retry and timeout logic.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from boop_redeemer.errors import AuthError, NetworkError

log = logging.getLogger(__name__)

# Default timeouts (seconds)
_CONNECT_TIMEOUT = 10.0
_READ_TIMEOUT = 15.0

# Retry settings
_MAX_RETRIES = 3
_BACKOFF_DELAYS = [5, 15, 45]  # seconds between attempts

_AUTH_STATUSES = (401, 403)


def _build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(connect=_CONNECT_TIMEOUT, read=_READ_TIMEOUT, write=10.0, pool=5.0),
        follow_redirects=True,
        headers={"User-Agent": "boop-airdrop-redeemer/1.0"},
    )


# Module-level shared client (initialised lazily per async context)
_client: httpx.AsyncClient | None = None


async def get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = _build_client()
    return _client


async def close_client() -> None:
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


async def _request(
    method: str,
    url: str,
    *,
    params: dict | None = None,
    payload: dict | None = None,
    headers: dict | None = None,
) -> dict | list:
    client = await get_client()

    last_exc: Exception | None = None
    for attempt in range(_MAX_RETRIES):
        try:
            response = await client.request(method, url, params=params, json=payload, headers=headers)
            response.raise_for_status()
            return response.json()
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            last_exc = exc
            delay = _BACKOFF_DELAYS[min(attempt, len(_BACKOFF_DELAYS) - 1)]
            log.warning(
                "%s %s failed (attempt %d/%d): %s, retrying in %ds",
                method, url, attempt + 1, _MAX_RETRIES, exc, delay,
            )
            await asyncio.sleep(delay)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                retry_after = int(exc.response.headers.get("Retry-After", "10"))
                log.warning("Rate-limited by %s, waiting %ds", url, retry_after)
                await asyncio.sleep(retry_after)
                last_exc = exc
            elif status in _AUTH_STATUSES:
                raise AuthError(f"{method} {url} rejected with status {status}: {exc.response.text}") from exc
            else:
                raise

    raise NetworkError(f"All {_MAX_RETRIES} attempts to {method} {url} failed: {last_exc}") from last_exc


async def get_json(url: str, params: dict | None = None, headers: dict | None = None) -> dict | list:
    """
    Perform a GET request and return the parsed JSON response.

    Retries up to _MAX_RETRIES times on timeouts, transport errors and 429s.
    Raises AuthError on 401/403, NetworkError when every attempt failed, and
    httpx.HTTPStatusError for any other non-2xx response.
    """
    return await _request("GET", url, params=params, headers=headers)


async def post_json(url: str, payload: dict, headers: dict | None = None) -> dict:
    """POST JSON payload and return the parsed JSON response with retry logic."""
    return await _request("POST", url, payload=payload, headers=headers)
