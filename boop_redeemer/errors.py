"""
Error taxonomy shared by the collaborators and the orchestration loop.

Collaborators raise the typed errors below at their boundary. ``classify_error``
maps any exception to an ``ErrorKind``; message matching is only used for
exceptions that arrive untyped (e.g. a bare RPC failure).
"""
from __future__ import annotations

import enum


class RedeemerError(Exception):
    """Base class for every error raised by this package."""


class AuthError(RedeemerError):
    """Credentials were rejected; refresh them and try again."""


class NetworkError(RedeemerError):
    """Transient transport failure."""


class ProtocolError(RedeemerError):
    """A collaborator answered with an unexpected payload shape."""


class AirdropNotFound(RedeemerError):
    pass


class PermanentClaimError(RedeemerError):
    """The claim can never succeed; the airdrop should be settled locally."""


class AlreadyClaimed(PermanentClaimError):
    pass


class InvalidAmount(PermanentClaimError):
    pass


class DistributorNotFound(PermanentClaimError):
    pass


class SwapError(RedeemerError):
    pass


class SharedAccountsUnsupported(SwapError):
    """The venue rejects the shared-accounts optimisation for this route."""


class SwapExhausted(RedeemerError):
    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"swap failed after {attempts} attempts: {last_error}")


class ErrorKind(enum.Enum):
    AUTH = "auth"
    NETWORK = "network"
    PROTOCOL = "protocol"
    PERMANENT = "permanent"
    SWAP_EXHAUSTED = "swap_exhausted"
    UNCLASSIFIED = "unclassified"


PERMANENT_CLAIM_MARKERS = (
    "airdrop is already claimed",
    "invalid token amount",
    "failed to parse token amount",
    "failed to find merkle distributor",
)
AUTH_MARKERS = ("unauthorized", "auth", "token")
NETWORK_MARKERS = (
    "unexpected eof",
    "connection refused",
    "i/o timeout",
    "timed out",
    "connection reset",
)

_TYPED_KINDS: list[tuple[type[Exception], ErrorKind]] = [
    (AuthError, ErrorKind.AUTH),
    (NetworkError, ErrorKind.NETWORK),
    (ProtocolError, ErrorKind.PROTOCOL),
    (PermanentClaimError, ErrorKind.PERMANENT),
    (SwapExhausted, ErrorKind.SWAP_EXHAUSTED),
]


def _matches(exc: BaseException, markers: tuple[str, ...]) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in markers)


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Map *exc* to an ``ErrorKind``.

    Typed errors win. For anything else the permanent-claim vocabulary is
    checked first so that e.g. "invalid token amount" is not read as an auth
    failure, then the auth vocabulary, then the network vocabulary.
    """
    for exc_type, kind in _TYPED_KINDS:
        if isinstance(exc, exc_type):
            return kind
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ErrorKind.NETWORK
    if _matches(exc, PERMANENT_CLAIM_MARKERS):
        return ErrorKind.PERMANENT
    if _matches(exc, AUTH_MARKERS):
        return ErrorKind.AUTH
    if _matches(exc, NETWORK_MARKERS):
        return ErrorKind.NETWORK
    return ErrorKind.UNCLASSIFIED
