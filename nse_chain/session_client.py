"""Cookie-managed HTTP retrieval for the NSE web endpoints.

NSE guards its JSON API with an anti-bot cookie handed out by the HTML
landing page. This module keeps that cookie jar alive across polling cycles
and wraps every GET in a small retry state machine:

- 200: body is returned (gzip-decoded when the server says so)
- 401: cookies are re-acquired and the request is retried at once
- 403: cookies are re-acquired after a long cooldown
- anything else: short backoff, give up after a few attempts

Usage:
    from nse_chain.session_client import SessionClient

    client = SessionClient()
    body = client.fetch("https://www.nseindia.com/api/option-chain-indices?symbol=NIFTY")
"""
from __future__ import annotations

import enum
import gzip
import logging
import threading
import zlib
from dataclasses import dataclass, field
from typing import Any

import requests
from urllib3.exceptions import HTTPError as Urllib3Error

from .errors import AuthRequired, NetworkError, RateLimited, ServerError

logger = logging.getLogger(__name__)

LANDING_URL = "https://www.nseindia.com/option-chain"

DEFAULT_HEADERS = {
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/80.0.3987.149 Safari/537.36"
    ),
    "accept-language": "en,gu;q=0.9,hi;q=0.8",
    "accept-encoding": "gzip",
}


class SessionState(enum.Enum):
    NEED_COOKIE = "need_cookie"
    READY = "ready"
    COOLING_DOWN = "cooling_down"
    FAILED = "failed"
    SUCCESS = "success"


@dataclass(slots=True)
class ChainSession:
    """Cookie jar, fixed headers and the "needs cookie" flag."""

    cookies: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    need_cookie: bool = True


class SessionClient:
    """Single-owner HTTP client for NSE endpoints.

    Not thread-safe: give each polling thread its own client.
    """

    def __init__(
        self,
        session: ChainSession | None = None,
        http: Any = None,
        landing_url: str = LANDING_URL,
        timeout: float = 30.0,
        cooldown: float = 300.0,
        backoff: float = 1.0,
        max_failures: int = 5,
        max_auth_retries: int = 10,
    ):
        """Initialize the client.

        Args:
            session: Cookie/header state to reuse. A fresh one is created if omitted.
            http: Object with a ``requests.Session``-compatible ``get``.
            landing_url: HTML page that hands out the anti-bot cookies.
            timeout: Per-request timeout in seconds.
            cooldown: Wait after a 403 before retrying.
            backoff: Wait after other non-200 statuses before retrying.
            max_failures: Non-200/401/403 responses tolerated per fetch.
            max_auth_retries: Consecutive 401 refreshes tolerated per fetch.
        """
        self.session = session or ChainSession()
        self.http = http if http is not None else requests.Session()
        self.landing_url = landing_url
        self.timeout = timeout
        self.cooldown = cooldown
        self.backoff = backoff
        self.max_failures = max_failures
        self.max_auth_retries = max_auth_retries
        self.state = SessionState.NEED_COOKIE if self.session.need_cookie else SessionState.READY
        self._shutdown = threading.Event()

    def shutdown(self) -> None:
        """Wake any pending cooldown/backoff wait. Later fetches stop at the first retry."""
        self._shutdown.set()

    def acquire_session(self) -> bool:
        """Prime the cookie jar from the landing page.

        Returns:
            True when the landing page answered, False on transport failure.
            On failure the ``need_cookie`` flag is left set.
        """
        logger.info("Fetching URL %s", self.landing_url)
        try:
            response = self.http.get(
                self.landing_url,
                headers=self.session.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Fetching %s failed with error %s", self.landing_url, e)
            self.session.need_cookie = True
            return False

        for name, value in response.cookies.items():
            self.session.cookies[name] = value
        logger.debug("Session cookies: %s", sorted(self.session.cookies))
        return True

    def fetch(self, url: str) -> bytes:
        """GET ``url`` through the retry state machine.

        Returns:
            The response body, decompressed if gzip-encoded.

        Raises:
            NetworkError: On transport failure or an unreadable body.
            AuthRequired: If 401 persists past ``max_auth_retries`` refreshes.
            RateLimited: If a 403 cooldown is interrupted by :meth:`shutdown`.
            ServerError: After ``max_failures`` other non-200 responses, or at the
                first one once :meth:`shutdown` has been called.
        """
        failures = 0
        auth_retries = 0
        while True:
            if self.session.need_cookie:
                self.state = SessionState.NEED_COOKIE
                if self.acquire_session():
                    self.session.need_cookie = False
            self.state = SessionState.READY

            logger.info("Fetching URL %s", url)
            try:
                response = self.http.get(
                    url,
                    headers=self.session.headers,
                    cookies=dict(self.session.cookies),
                    timeout=self.timeout,
                    stream=True,
                )
            except requests.exceptions.RequestException as e:
                self.state = SessionState.FAILED
                logger.error("Fetching URL=%s failed with error=%s", url, e)
                raise NetworkError(f"Fetching URL={url} failed with error={e}") from e

            status = response.status_code
            if status == 200:
                body = self._read_body(url, response)
                self.state = SessionState.SUCCESS
                logger.info("Successfully fetched URL=%s.", url)
                return body

            response.close()
            if status == 401:
                auth_retries += 1
                self.session.need_cookie = True
                if auth_retries > self.max_auth_retries:
                    self.state = SessionState.FAILED
                    logger.error("Fetching URL=%s failed with status=401. Giving up.", url)
                    raise AuthRequired(url, auth_retries - 1)
                logger.error("Fetching URL=%s failed with status=401. Fetching Cookie.", url)
            elif status == 403:
                self.session.need_cookie = True
                self.state = SessionState.COOLING_DOWN
                logger.error(
                    "Fetching URL=%s failed with status=403. Sleeping for %.0f seconds.",
                    url,
                    self.cooldown,
                )
                if self._wait(self.cooldown):
                    self.state = SessionState.FAILED
                    raise RateLimited(url)
            else:
                failures += 1
                if failures >= self.max_failures:
                    self.state = SessionState.FAILED
                    logger.error("Fetching URL=%s failed with status=%d. Giving up.", url, status)
                    raise ServerError(url, status, failures)
                logger.error("Fetching URL=%s failed with status=%d. Retrying...", url, status)
                if self._wait(self.backoff):
                    self.state = SessionState.FAILED
                    logger.error("Fetching URL=%s interrupted by shutdown.", url)
                    raise ServerError(url, status, failures)

    def _wait(self, seconds: float) -> bool:
        """Block for ``seconds``; True if interrupted by shutdown."""
        if seconds <= 0:
            return self._shutdown.is_set()
        return self._shutdown.wait(seconds)

    def _read_body(self, url: str, response: Any) -> bytes:
        try:
            raw = response.raw.read(decode_content=False)
        except (requests.exceptions.RequestException, Urllib3Error, OSError) as e:
            self.state = SessionState.FAILED
            raise NetworkError(f"Reading the HTTP response failed with error={e}") from e
        finally:
            response.close()

        encoding = response.headers.get("Content-Encoding", "").lower()
        if encoding != "gzip":
            return raw
        try:
            return gzip.decompress(raw)
        except (OSError, EOFError, zlib.error) as e:
            self.state = SessionState.FAILED
            logger.error("Reading the HTTP response failed with error=%s", e)
            raise NetworkError(f"Reading the gzip response from {url} failed with error={e}") from e


__all__ = ["SessionClient", "ChainSession", "SessionState", "DEFAULT_HEADERS", "LANDING_URL"]
