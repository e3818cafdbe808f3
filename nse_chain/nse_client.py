"""NSE API client for option chains and F&O participant data.

This module provides:
- Retrieval of the index option-chain payload for a symbol
- Typed chain views for one expiry with the symbol's strike step applied
- Daily F&O participant open interest from the NSE archives

Usage:
    from nse_chain.nse_client import NseClient

    client = NseClient()
    chain = client.fetch_bank_nifty_oc("01-Jun-2023")
    print(chain.atm_strike(), chain.pcr)
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional
from urllib.parse import quote

from .config import Settings, load_settings
from .option_chain import OptionChain
from .participants import ParticipantPosition, archive_url, parse_participant_csv
from .response_parser import ChainResponseParser
from .session_client import SessionClient

logger = logging.getLogger(__name__)

OPTION_CHAIN_URL = "https://www.nseindia.com/api/option-chain-indices?symbol="

BANK_NIFTY = "BANKNIFTY"
NIFTY = "NIFTY"
FIN_NIFTY = "FINNIFTY"

STRIKE_STEPS = {
    BANK_NIFTY: 100,
    NIFTY: 50,
    FIN_NIFTY: 50,
}


def option_chain_url(symbol: str) -> str:
    return f"{OPTION_CHAIN_URL}{quote(symbol, safe='')}"


class NseClient:
    """Facade over one :class:`SessionClient` for the NSE endpoints."""

    def __init__(self, settings: Settings | None = None, session_client: SessionClient | None = None):
        """Initialize the client.

        Args:
            settings: Runtime settings. Loaded from the environment if omitted.
            session_client: Preconfigured HTTP client; built from ``settings``
                if omitted.
        """
        self.settings = settings or load_settings()
        if session_client is None:
            session_client = SessionClient(
                timeout=self.settings.request_timeout,
                cooldown=self.settings.cooldown_seconds,
                backoff=self.settings.backoff_seconds,
                max_failures=self.settings.max_failures,
                max_auth_retries=self.settings.max_auth_retries,
            )
        self.session_client = session_client

    def shutdown(self) -> None:
        self.session_client.shutdown()

    def fetch_option_chain_response(self, symbol: str) -> ChainResponseParser:
        """Fetch and validate the full option-chain payload for ``symbol``.

        Raises:
            NseError: Any retrieval or payload error (see :mod:`nse_chain.errors`).
        """
        body = self.session_client.fetch(option_chain_url(symbol))
        return ChainResponseParser.from_bytes(symbol, body)

    def fetch_option_chain(self, symbol: str, expiry_date: str, strike_step: Optional[int] = None) -> OptionChain:
        """Fetch the chain of ``symbol`` for one expiry.

        Args:
            symbol: Index symbol, e.g. ``"BANKNIFTY"``.
            expiry_date: Expiry as listed by NSE, e.g. ``"01-Jun-2023"``.
            strike_step: Strike spacing. Required for symbols not in ``STRIKE_STEPS``.

        Raises:
            ValueError: If no strike step is known for ``symbol``.
        """
        if strike_step is None:
            strike_step = STRIKE_STEPS.get(symbol.upper())
            if strike_step is None:
                raise ValueError(f"No strike step known for symbol {symbol!r}; pass strike_step explicitly")

        response = self.fetch_option_chain_response(symbol)
        return response.get_expiry_view(symbol, expiry_date, strike_step=strike_step)

    def fetch_bank_nifty_oc(self, expiry_date: str) -> OptionChain:
        return self.fetch_option_chain(BANK_NIFTY, expiry_date)

    def fetch_nifty_oc(self, expiry_date: str) -> OptionChain:
        return self.fetch_option_chain(NIFTY, expiry_date)

    def fetch_fin_nifty_oc(self, expiry_date: str) -> OptionChain:
        return self.fetch_option_chain(FIN_NIFTY, expiry_date)

    def fetch_participant_data(self, day: date) -> list[ParticipantPosition]:
        """Fetch and parse the participant-wise OI file for ``day``."""
        body = self.session_client.fetch(archive_url(day))
        positions = parse_participant_csv(body.decode("utf-8", errors="replace"))
        logger.info("Fetched %d participant rows for %s", len(positions), day.isoformat())
        return positions


__all__ = [
    "NseClient",
    "STRIKE_STEPS",
    "OPTION_CHAIN_URL",
    "option_chain_url",
    "BANK_NIFTY",
    "NIFTY",
    "FIN_NIFTY",
]
