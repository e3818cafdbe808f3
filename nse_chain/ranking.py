"""Per-strike ranking of an option-chain window.

For a window of strikes (usually centred on ATM) every call and put leg is
ranked three times, by open interest, traded volume and change in open
interest (rank 1 = largest), and the three ranks are blended into a weighted
composite. A low composite marks the strikes where positioning is heaviest.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Callable, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .option_chain import OptionChain, OptionLeg
from .utils import compute_pcr

logger = logging.getLogger(__name__)

# Composite ranks at or below len(rows) / STRONG_RANK_DIVISOR are highlighted.
STRONG_RANK_DIVISOR = 2.8


@dataclass(slots=True)
class RankingWeights:
    """Weights of the composite rank; they need not sum to one."""

    oi_weight: float = 0.4
    volume_weight: float = 0.4
    change_oi_weight: float = 0.2


@dataclass(slots=True)
class RankedStrikeView:
    strike: int

    # None when the leg is absent from the chain
    ce_open_interest: Optional[int] = None
    ce_change_open_interest: Optional[int] = None
    ce_traded_volume: Optional[int] = None
    ce_ltp: Optional[float] = None

    pe_open_interest: Optional[int] = None
    pe_change_open_interest: Optional[int] = None
    pe_traded_volume: Optional[int] = None
    pe_ltp: Optional[float] = None

    pcr_oi: float = 0.0
    pcr_change_oi: float = 0.0
    pcr_volume: float = 0.0

    ce_oi_rank: int = 0
    ce_volume_rank: int = 0
    ce_change_oi_rank: int = 0
    ce_weighted_rank: float = 0.0

    pe_oi_rank: int = 0
    pe_volume_rank: int = 0
    pe_change_oi_rank: int = 0
    pe_weighted_rank: float = 0.0

    def __str__(self) -> str:
        return (
            f"Strike: {self.strike}, CE Open Interest: {self.ce_open_interest}, "
            f"CE Change Open Interest: {self.ce_change_open_interest}, "
            f"PE Open Interest: {self.pe_open_interest}, "
            f"PE Change Open Interest: {self.pe_change_open_interest}"
        )


def _fill_leg(row: RankedStrikeView, prefix: str, leg: Optional[OptionLeg]) -> None:
    if leg is None:
        return
    setattr(row, f"{prefix}_open_interest", leg.open_interest)
    setattr(row, f"{prefix}_change_open_interest", leg.change_open_interest)
    setattr(row, f"{prefix}_traded_volume", leg.traded_volume)
    setattr(row, f"{prefix}_ltp", leg.last_price)


def _total(values: Iterable[Optional[int]]) -> int:
    return sum(v for v in values if v is not None)


@dataclass
class RankedChainView:
    """Ranked window of a chain plus window-level totals."""

    underlying_value: float
    atm_strike: Optional[int]
    rows: list[RankedStrikeView] = field(default_factory=list)

    total_ce_oi: int = 0
    total_ce_change_oi: int = 0
    total_ce_volume: int = 0

    total_pe_oi: int = 0
    total_pe_change_oi: int = 0
    total_pe_volume: int = 0

    def __post_init__(self) -> None:
        self.recompute_totals()

    def recompute_totals(self) -> None:
        self.total_ce_oi = _total(r.ce_open_interest for r in self.rows)
        self.total_ce_change_oi = _total(r.ce_change_open_interest for r in self.rows)
        self.total_ce_volume = _total(r.ce_traded_volume for r in self.rows)
        self.total_pe_oi = _total(r.pe_open_interest for r in self.rows)
        self.total_pe_change_oi = _total(r.pe_change_open_interest for r in self.rows)
        self.total_pe_volume = _total(r.pe_traded_volume for r in self.rows)

    @property
    def pcr_oi(self) -> float:
        return compute_pcr(self.total_pe_oi, self.total_ce_oi)

    @property
    def pcr_change_oi(self) -> float:
        return compute_pcr(self.total_pe_change_oi, self.total_ce_change_oi)

    @property
    def pcr_volume(self) -> float:
        return compute_pcr(self.total_pe_volume, self.total_ce_volume)

    @property
    def strong_rank_threshold(self) -> float:
        return len(self.rows) / STRONG_RANK_DIVISOR

    def to_frame(self) -> pd.DataFrame:
        """Rows as a DataFrame indexed by strike (absent legs become NaN)."""
        columns = [f.name for f in fields(RankedStrikeView)]
        records = [{name: getattr(row, name) for name in columns} for row in self.rows]
        df = pd.DataFrame.from_records(records, columns=columns)
        return df.set_index("strike")


def _metric(getter: Callable[[RankedStrikeView], Optional[float]]) -> Callable[[RankedStrikeView], float]:
    def key(row: RankedStrikeView) -> float:
        value = getter(row)
        return 0.0 if value is None else float(value)

    return key


def _assign_ranks(
    rows: Sequence[RankedStrikeView],
    key: Callable[[RankedStrikeView], float],
    attr: str,
) -> None:
    """Rank ``rows`` descending by ``key`` (ties keep sequence order), 1-based."""
    if not rows:
        return
    snapshot = list(rows)
    values = np.array([key(row) for row in snapshot], dtype=float)
    order = np.argsort(-values, kind="stable")
    for rank, idx in enumerate(order, start=1):
        setattr(snapshot[idx], attr, rank)


class RankingEngine:
    """Builds and ranks :class:`RankedChainView` windows."""

    def __init__(self, weights: RankingWeights | None = None):
        self.weights = weights or RankingWeights()

    def build_view(self, chain: OptionChain, strikes: Iterable[int]) -> RankedChainView:
        """Rank the strikes of ``strikes`` that exist in ``chain``.

        Strikes missing from the chain are skipped, so the view may be shorter
        than the window. Rows come back sorted ascending by strike.
        """
        rows: list[RankedStrikeView] = []
        for strike in strikes:
            record = chain.get(strike)
            if record is None:
                logger.debug("Strike %d not in %s chain, skipping", strike, chain.symbol)
                continue
            row = RankedStrikeView(strike=strike)
            _fill_leg(row, "ce", record.call)
            _fill_leg(row, "pe", record.put)
            row.pcr_oi = compute_pcr(row.pe_open_interest, row.ce_open_interest)
            row.pcr_change_oi = compute_pcr(row.pe_change_open_interest, row.ce_change_open_interest)
            row.pcr_volume = compute_pcr(row.pe_traded_volume, row.ce_traded_volume)
            rows.append(row)

        view = RankedChainView(
            underlying_value=chain.underlying_value,
            atm_strike=chain.atm_strike() if chain.strike_step > 0 else None,
            rows=rows,
        )
        self.rank_oi(view)
        self.rank_oi_change(view)
        self.rank_volume(view)
        self.weighted_rank(view)
        view.rows.sort(key=lambda r: r.strike)
        return view

    def rank_oi(self, view: RankedChainView) -> None:
        _assign_ranks(view.rows, _metric(lambda r: r.ce_open_interest), "ce_oi_rank")
        _assign_ranks(view.rows, _metric(lambda r: r.pe_open_interest), "pe_oi_rank")

    def rank_volume(self, view: RankedChainView) -> None:
        _assign_ranks(view.rows, _metric(lambda r: r.ce_traded_volume), "ce_volume_rank")
        _assign_ranks(view.rows, _metric(lambda r: r.pe_traded_volume), "pe_volume_rank")

    def rank_oi_change(self, view: RankedChainView) -> None:
        _assign_ranks(view.rows, _metric(lambda r: r.ce_change_open_interest), "ce_change_oi_rank")
        _assign_ranks(view.rows, _metric(lambda r: r.pe_change_open_interest), "pe_change_oi_rank")

    def weighted_rank(self, view: RankedChainView) -> None:
        """Blend the three ranks per leg. Run after all rank passes."""
        w = self.weights
        for row in view.rows:
            row.ce_weighted_rank = (
                row.ce_oi_rank * w.oi_weight
                + row.ce_volume_rank * w.volume_weight
                + row.ce_change_oi_rank * w.change_oi_weight
            )
            row.pe_weighted_rank = (
                row.pe_oi_rank * w.oi_weight
                + row.pe_volume_rank * w.volume_weight
                + row.pe_change_oi_rank * w.change_oi_weight
            )


__all__ = ["RankingWeights", "RankedStrikeView", "RankedChainView", "RankingEngine"]
