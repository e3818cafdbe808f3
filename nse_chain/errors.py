"""Exception hierarchy for NSE retrieval and option-chain parsing."""
from __future__ import annotations


class NseError(RuntimeError):
    """Base class for every error raised by :mod:`nse_chain`."""


class NetworkError(NseError):
    """Transport-level failure (connection, TLS, timeout, unreadable body).

    The polling loop is expected to retry on its next cycle.
    """


class AuthRequired(NseError):
    """The exchange kept answering 401 after repeated cookie refreshes."""

    def __init__(self, url: str, attempts: int):
        super().__init__(f"Fetching URL={url} still unauthorized after {attempts} cookie refreshes")
        self.url = url
        self.attempts = attempts


class RateLimited(NseError):
    """The exchange answered 403 and the cooldown was interrupted by shutdown."""

    def __init__(self, url: str):
        super().__init__(f"Fetching URL={url} rate limited; cooldown interrupted by shutdown")
        self.url = url


class ServerError(NseError):
    """Non-2xx responses persisted for the maximum number of attempts."""

    def __init__(self, url: str, status_code: int, attempts: int):
        super().__init__(f"Fetching URL={url} failed with status={status_code} after {attempts} attempts")
        self.url = url
        self.status_code = status_code
        self.attempts = attempts


class MalformedPayload(NseError):
    """The response does not have the shape of an NSE option-chain payload."""

    def __init__(self, field: str, reason: str = "not found"):
        super().__init__(f"Parsing option chain failed. Field {field} {reason}.")
        self.field = field
        self.reason = reason


class UnknownExpiry(NseError):
    """The requested expiry is not advertised by the payload."""

    def __init__(self, expiry_date: str, available: list[str]):
        super().__init__(f"No option chain for expiry={expiry_date}. Available: {', '.join(available)}")
        self.expiry_date = expiry_date
        self.available = available


__all__ = [
    "NseError",
    "NetworkError",
    "AuthRequired",
    "RateLimited",
    "ServerError",
    "MalformedPayload",
    "UnknownExpiry",
]
