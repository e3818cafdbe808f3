"""Validation and typed extraction of the NSE option-chain JSON payload.

Expected shape::

    {
        "records": {
            "expiryDates": ["01-Jun-2023", "08-Jun-2023", ...],
            "timestamp": "26-May-2023 15:30:00",
            "underlyingValue": 43582.1,
            ...
        },
        "filtered": {
            "data": [
                {"expiryDate": "01-Jun-2023", "strikePrice": 43600,
                 "CE": {"openInterest": 1200, "changeinOpenInterest": 300,
                        "lastPrice": 215.5, "totalTradedVolume": 90000},
                 "PE": {...}},
                ...
            ]
        }
    }

Any missing or mistyped field raises :class:`~nse_chain.errors.MalformedPayload`
naming the field; nothing is coerced silently at this level.
"""
from __future__ import annotations

import json
import math
import logging
from typing import Any, Mapping

from .errors import MalformedPayload, UnknownExpiry
from .option_chain import OptionChain

logger = logging.getLogger(__name__)

RECORDS = "records"
EXPIRY_DATES = "expiryDates"
TIMESTAMP = "timestamp"
UNDERLYING_VALUE = "underlyingValue"
FILTERED = "filtered"
FILTERED_DATA = "data"
ROW_EXPIRY_DATE = "expiryDate"


def _require(container: Mapping[str, Any], key: str, expected: type | tuple[type, ...], path: str) -> Any:
    if key not in container:
        logger.error("Parsing option chain failed. Field %s not found.", path)
        raise MalformedPayload(path)
    value = container[key]
    if isinstance(value, bool) or not isinstance(value, expected):
        logger.error("Parsing option chain failed. Incorrect field %s type.", path)
        raise MalformedPayload(path, f"has unexpected type {type(value).__name__}")
    return value


class ChainResponseParser:
    """Typed view over one decoded option-chain response."""

    def __init__(self, symbol: str, payload: Any):
        self.symbol = symbol
        self.payload = payload
        self.validate()

    @classmethod
    def from_bytes(cls, symbol: str, body: bytes) -> "ChainResponseParser":
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error("Parsing OC response failed with error=%s.", e)
            raise MalformedPayload("<body>", f"is not valid JSON ({e})") from e
        return cls(symbol, payload)

    def validate(self) -> None:
        if not isinstance(self.payload, Mapping):
            raise MalformedPayload("<root>", f"has unexpected type {type(self.payload).__name__}")
        _require(self.payload, RECORDS, Mapping, RECORDS)

    @property
    def _records(self) -> Mapping[str, Any]:
        return self.payload[RECORDS]

    def expiry_dates(self) -> list[str]:
        dates = _require(self._records, EXPIRY_DATES, list, f"{RECORDS}.{EXPIRY_DATES}")
        for ii, value in enumerate(dates):
            if not isinstance(value, str):
                raise MalformedPayload(f"{RECORDS}.{EXPIRY_DATES}[{ii}]", "is not a string")
        return list(dates)

    def timestamp(self) -> str:
        return _require(self._records, TIMESTAMP, str, f"{RECORDS}.{TIMESTAMP}")

    def underlying_value(self) -> float:
        path = f"{RECORDS}.{UNDERLYING_VALUE}"
        value = float(_require(self._records, UNDERLYING_VALUE, (int, float), path))
        if not math.isfinite(value):
            logger.error("Parsing option chain failed. Field %s is %s.", path, value)
            raise MalformedPayload(path, "is not a finite number")
        return value

    def filtered_records(self) -> list[Mapping[str, Any]]:
        filtered = _require(self.payload, FILTERED, Mapping, FILTERED)
        rows = _require(filtered, FILTERED_DATA, list, f"{FILTERED}.{FILTERED_DATA}")
        for ii, row in enumerate(rows):
            path = f"{FILTERED}.{FILTERED_DATA}[{ii}]"
            if not isinstance(row, Mapping):
                raise MalformedPayload(path, "is not an object")
            _require(row, ROW_EXPIRY_DATE, str, f"{path}.{ROW_EXPIRY_DATE}")
        return list(rows)

    def get_expiry_view(self, symbol: str, expiry_date: str, strike_step: int = 0) -> OptionChain:
        """Build the :class:`OptionChain` for one advertised expiry.

        Raises:
            UnknownExpiry: If ``expiry_date`` is not in ``records.expiryDates``.
            MalformedPayload: If any required field is missing or mistyped.
        """
        available = self.expiry_dates()
        if expiry_date not in available:
            logger.error("No option chain for expiry=%s. Available: %s", expiry_date, available)
            raise UnknownExpiry(expiry_date, available)

        timestamp = self.timestamp()
        underlying_value = self.underlying_value()
        rows = [row for row in self.filtered_records() if row[ROW_EXPIRY_DATE] == expiry_date]

        chain = OptionChain(symbol, expiry_date, timestamp, underlying_value, strike_step=strike_step)
        chain.ingest(rows)
        logger.info(
            "Parsed %s %s: %d strikes, underlying=%.2f",
            symbol,
            expiry_date,
            len(chain),
            underlying_value,
        )
        return chain


__all__ = ["ChainResponseParser"]
