"""Strike-indexed option-chain model.

An :class:`OptionChain` holds one expiry of one underlying: a map of strike
price to :class:`StrikeRecord`, each carrying an optional call (CE) and put
(PE) leg. Aggregate open interest and the put-call ratio are recomputed on
every mutation, so they always reflect the current map.

Usage:
    chain = OptionChain("BANKNIFTY", "01-Jun-2023", "26-May-2023 15:30:00", 43582.0, strike_step=100)
    chain.ingest(rows)                      # rows from the "filtered.data" section
    window = chain.atm_strikes(16)          # 16 strikes around 43600
    sub = chain.derive_sub_chain(window)    # independent copy with its own totals
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Optional

from .utils import compute_pcr, round_half_away, round_to_step, to_number

logger = logging.getLogger(__name__)

STRIKE_PRICE = "strikePrice"
CALL_LEG = "CE"
PUT_LEG = "PE"

OPEN_INTEREST = "openInterest"
CHANGE_IN_OPEN_INTEREST = "changeinOpenInterest"
LAST_PRICE = "lastPrice"
TOTAL_TRADED_VOLUME = "totalTradedVolume"


def _leg_int(data: Mapping[str, Any], key: str, strike: int, side: str) -> Optional[int]:
    value = to_number(data.get(key))
    if value is None:
        logger.warning("Failed to parse %s for %s strike=%d (value=%r)", key, side, strike, data.get(key))
        return None
    return int(value)


@dataclass(slots=True)
class OptionLeg:
    """One side (call or put) of a strike. ``None`` fields mean missing data."""

    open_interest: Optional[int] = None
    change_open_interest: Optional[int] = None
    last_price: Optional[float] = None
    traded_volume: Optional[int] = None

    @classmethod
    def from_raw(cls, data: Mapping[str, Any], strike: int = 0, side: str = CALL_LEG) -> "OptionLeg":
        ltp = to_number(data.get(LAST_PRICE))
        if ltp is None:
            logger.warning("Failed to parse %s for %s strike=%d (value=%r)", LAST_PRICE, side, strike, data.get(LAST_PRICE))
        return cls(
            open_interest=_leg_int(data, OPEN_INTEREST, strike, side),
            change_open_interest=_leg_int(data, CHANGE_IN_OPEN_INTEREST, strike, side),
            last_price=ltp,
            traded_volume=_leg_int(data, TOTAL_TRADED_VOLUME, strike, side),
        )


@dataclass(slots=True)
class StrikeRecord:
    strike: int
    call: Optional[OptionLeg] = None
    put: Optional[OptionLeg] = None

    @classmethod
    def from_raw(cls, row: Mapping[str, Any]) -> Optional["StrikeRecord"]:
        """Build a record from one raw row; None when the strike is unusable."""
        strike_value = to_number(row.get(STRIKE_PRICE))
        if strike_value is None:
            logger.warning("Skipping row without a numeric %s: %r", STRIKE_PRICE, row.get(STRIKE_PRICE))
            return None
        strike = round_half_away(strike_value)

        legs: dict[str, Optional[OptionLeg]] = {}
        for side in (CALL_LEG, PUT_LEG):
            data = row.get(side)
            if isinstance(data, Mapping):
                legs[side] = OptionLeg.from_raw(data, strike, side)
            else:
                logger.info("%s row absent for strike=%d", side, strike)
                legs[side] = None
        return cls(strike=strike, call=legs[CALL_LEG], put=legs[PUT_LEG])


def _positive_oi(leg: Optional[OptionLeg]) -> int:
    if leg is None or leg.open_interest is None or leg.open_interest <= 0:
        return 0
    return leg.open_interest


class OptionChain:
    """Option chain for a single symbol and expiry."""

    def __init__(
        self,
        symbol: str,
        expiry_date: str,
        timestamp: str,
        underlying_value: float,
        strike_step: int = 0,
    ):
        self.symbol = symbol
        self.expiry_date = expiry_date
        self.timestamp = timestamp
        self.underlying_value = underlying_value
        self.strike_step = strike_step

        # strike price -> record
        self._rows: dict[int, StrikeRecord] = {}

        self._total_call_oi = 0
        self._total_put_oi = 0
        self._pcr = 0.0

    def __repr__(self) -> str:
        return (
            f"OptionChain(symbol={self.symbol!r}, expiry_date={self.expiry_date!r}, "
            f"strikes={len(self._rows)}, underlying_value={self.underlying_value})"
        )

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, strike: object) -> bool:
        return strike in self._rows

    def __iter__(self) -> Iterator[StrikeRecord]:
        for strike in self.strikes():
            yield self._rows[strike]

    @property
    def total_call_oi(self) -> int:
        return self._total_call_oi

    @property
    def total_put_oi(self) -> int:
        return self._total_put_oi

    @property
    def pcr(self) -> float:
        return self._pcr

    def set_strike_step(self, step: int) -> None:
        self.strike_step = step

    def strikes(self) -> list[int]:
        return sorted(self._rows)

    def get(self, strike: int) -> Optional[StrikeRecord]:
        return self._rows.get(strike)

    def ingest(self, raw_rows: Iterable[Mapping[str, Any]]) -> None:
        """Write raw ``filtered.data`` rows into the strike map (last write wins).

        Aggregates are recomputed even if iteration fails part way, so they
        always describe whatever rows made it in.
        """
        try:
            for row in raw_rows:
                record = StrikeRecord.from_raw(row)
                if record is None:
                    continue
                self._rows[record.strike] = record
        finally:
            self.recompute_aggregates()

    def add_record(self, record: StrikeRecord) -> None:
        self._rows[record.strike] = record
        self.recompute_aggregates()

    def recompute_aggregates(self) -> None:
        self._total_call_oi = sum(_positive_oi(record.call) for record in self._rows.values())
        self._total_put_oi = sum(_positive_oi(record.put) for record in self._rows.values())
        self._pcr = compute_pcr(self._total_put_oi, self._total_call_oi)

    def atm_strike(self) -> int:
        """Tradable strike nearest the underlying value (ties round down)."""
        return round_to_step(self.underlying_value, self.strike_step)

    def strikes_around(self, atm: int, count: int) -> list[int]:
        """``count`` strikes starting ``count // 2`` steps below ``atm``.

        For even counts the window holds one more strike below ``atm`` than above.
        """
        return self.strikes_from(atm - (count // 2) * self.strike_step, count)

    def atm_strikes(self, count: int) -> list[int]:
        return self.strikes_around(self.atm_strike(), count)

    def strikes_from(self, begin_strike: int, count: int) -> list[int]:
        return [begin_strike + ii * self.strike_step for ii in range(count)]

    def derive_sub_chain(self, strikes: Iterable[int]) -> "OptionChain":
        """New chain with only the requested strikes that exist here."""
        sub = OptionChain(
            self.symbol,
            self.expiry_date,
            self.timestamp,
            self.underlying_value,
            strike_step=self.strike_step,
        )
        for strike in strikes:
            record = self._rows.get(strike)
            if record is not None:
                sub._rows[strike] = copy.deepcopy(record)
        sub.recompute_aggregates()
        return sub


__all__ = ["OptionLeg", "StrikeRecord", "OptionChain"]
