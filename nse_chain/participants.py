"""
F&O participant open interest from the NSE archives.

NSE publishes one CSV per trading day (``fao_participant_oi_DDMMYYYY.csv``)
with long/short positions per client type (Client, DII, FII, Pro, TOTAL).
This module parses that file, derives the daily futures/options statistics
tracked for DII, FII and Pro, and keeps them in a flat CSV file.
"""
from __future__ import annotations

import io
import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .utils import to_number

logger = logging.getLogger(__name__)

ARCHIVE_URL_PREFIX = "https://archives.nseindia.com/content/nsccl/fao_participant_oi_"

CLIENT_TYPE = "Client Type"

# CSV column -> ParticipantPosition attribute
POSITION_COLUMNS = {
    "Future Index Long": "future_index_long",
    "Future Index Short": "future_index_short",
    "Future Stock Long": "future_stock_long",
    "Future Stock Short": "future_stock_short",
    "Option Index Call Long": "option_index_call_long",
    "Option Index Put Long": "option_index_put_long",
    "Option Index Call Short": "option_index_call_short",
    "Option Index Put Short": "option_index_put_short",
    "Option Stock Call Long": "option_stock_call_long",
    "Option Stock Put Long": "option_stock_put_long",
    "Option Stock Call Short": "option_stock_call_short",
    "Option Stock Put Short": "option_stock_put_short",
    "Total Long Contracts": "total_long_contracts",
    "Total Short Contracts": "total_short_contracts",
}


@dataclass(slots=True)
class ParticipantPosition:
    """One row of the participant OI file."""

    client_type: str
    future_index_long: int = 0
    future_index_short: int = 0
    future_stock_long: int = 0
    future_stock_short: int = 0
    option_index_call_long: int = 0
    option_index_put_long: int = 0
    option_index_call_short: int = 0
    option_index_put_short: int = 0
    option_stock_call_long: int = 0
    option_stock_put_long: int = 0
    option_stock_call_short: int = 0
    option_stock_put_short: int = 0
    total_long_contracts: int = 0
    total_short_contracts: int = 0

    @property
    def net_future_index_position(self) -> int:
        return self.future_index_long - self.future_index_short

    @property
    def net_option_index_call_position(self) -> int:
        return self.option_index_call_long - self.option_index_call_short

    @property
    def net_option_index_put_position(self) -> int:
        return self.option_index_put_long - self.option_index_put_short

    @property
    def net_option_index_open_interest(self) -> int:
        return self.net_option_index_call_position - self.net_option_index_put_position


def archive_date_suffix(day: date) -> str:
    """``DDMMYYYY`` as used in the archive file names."""
    return f"{day.day:02d}{day.month:02d}{day.year}"


def archive_file_name(day: date) -> str:
    return f"fao_participant_oi_{archive_date_suffix(day)}"


def archive_url(day: date) -> str:
    return f"{ARCHIVE_URL_PREFIX}{archive_date_suffix(day)}.csv"


def _to_int(value: object, column: str, client_type: str) -> int:
    number = to_number(value)
    if number is None:
        logger.warning("Failed to parse %s for client type %s (value=%r)", column, client_type, value)
        return 0
    return int(number)


def parse_participant_csv(text: str) -> List[ParticipantPosition]:
    """
    Parse the participant OI file.

    The archive files start with a quoted title line
    (``"Participant wise Open Interest ..."``) that is dropped before the header.

    Raises:
        ValueError: If the header has no ``Client Type`` column.
    """
    lines = text.splitlines()
    if lines and lines[0].startswith('"'):
        lines = lines[1:]
    if not lines:
        return []

    df = pd.read_csv(io.StringIO("\n".join(lines)), dtype=str, skipinitialspace=True)
    df.columns = [str(col).strip() for col in df.columns]
    if CLIENT_TYPE not in df.columns:
        raise ValueError(f"Missing required column: {CLIENT_TYPE}")

    missing = [col for col in POSITION_COLUMNS if col not in df.columns]
    if missing:
        logger.warning("Participant file is missing columns: %s", missing)

    positions: List[ParticipantPosition] = []
    for row in df.to_dict(orient="records"):
        client_type = str(row[CLIENT_TYPE]).strip()
        values = {
            attr: _to_int(row.get(column), column, client_type)
            for column, attr in POSITION_COLUMNS.items()
            if column in df.columns
        }
        positions.append(ParticipantPosition(client_type=client_type, **values))
    logger.debug("Parsed %d participant rows", len(positions))
    return positions


def find_client(positions: List[ParticipantPosition], client_type: str) -> Optional[ParticipantPosition]:
    for position in positions:
        if position.client_type == client_type:
            return position
    return None


@dataclass
class FuturesStats:
    total_long: int = 0
    total_short: int = 0
    net: int = 0
    net_change: int = 0

    def fill(self, today: ParticipantPosition, yesterday: Optional["FuturesStats"]) -> None:
        self.total_long = today.future_index_long
        self.total_short = today.future_index_short
        self.fill_net_values(yesterday)

    def fill_net_values(self, yesterday: Optional["FuturesStats"]) -> None:
        self.net = self.total_long - self.total_short
        if yesterday is not None:
            self.net_change = self.net - yesterday.net


@dataclass
class OptionsStats:
    total_call_long: int = 0
    total_call_short: int = 0
    total_put_long: int = 0
    total_put_short: int = 0
    net_call: int = 0
    net_put: int = 0
    net: int = 0
    pcr: float = 0.0
    net_call_change: int = 0
    net_put_change: int = 0
    net_change: int = 0

    def fill(self, today: ParticipantPosition, yesterday: Optional["OptionsStats"]) -> None:
        self.total_call_long = today.option_index_call_long
        self.total_call_short = today.option_index_call_short
        self.total_put_long = today.option_index_put_long
        self.total_put_short = today.option_index_put_short
        self.fill_net_values(yesterday)

    def fill_net_values(self, yesterday: Optional["OptionsStats"]) -> None:
        self.net_call = self.total_call_long - self.total_call_short
        self.net_put = self.total_put_long - self.total_put_short
        self.net = self.net_call - self.net_put
        # net positions can be negative; only a zero denominator is guarded
        self.pcr = self.net_put / self.net_call if self.net_call != 0 else 0.0
        if yesterday is not None:
            self.net_call_change = self.net_call - yesterday.net_call
            self.net_put_change = self.net_put - yesterday.net_put
            self.net_change = self.net - yesterday.net


@dataclass
class DailyParticipantStats:
    """Futures and options positioning for one trading day."""

    day: date
    futures_dii: FuturesStats = field(default_factory=FuturesStats)
    futures_fii: FuturesStats = field(default_factory=FuturesStats)
    futures_pro: FuturesStats = field(default_factory=FuturesStats)
    futures_total: FuturesStats = field(default_factory=FuturesStats)
    options_fii: OptionsStats = field(default_factory=OptionsStats)
    options_pro: OptionsStats = field(default_factory=OptionsStats)
    options_total: OptionsStats = field(default_factory=OptionsStats)

    _SECTIONS = (
        "futures_dii",
        "futures_fii",
        "futures_pro",
        "futures_total",
        "options_fii",
        "options_pro",
        "options_total",
    )

    def to_row(self) -> Dict[str, object]:
        """Flatten into ``{"date": ..., "<section>_<field>": ...}``."""
        row: Dict[str, object] = {"date": self.day.isoformat()}
        for section in self._SECTIONS:
            for key, value in asdict(getattr(self, section)).items():
                row[f"{section}_{key}"] = value
        return row

    @classmethod
    def from_row(cls, row: Dict[str, object]) -> "DailyParticipantStats":
        record = cls(day=date.fromisoformat(str(row["date"])))
        for section in cls._SECTIONS:
            stats = getattr(record, section)
            for key in asdict(stats):
                column = f"{section}_{key}"
                if column not in row:
                    continue
                value = to_number(row[column])
                if value is None:
                    continue
                setattr(stats, key, value if key == "pcr" else int(value))
        return record


def build_daily_stats(
    day: date,
    positions: List[ParticipantPosition],
    previous: Optional[DailyParticipantStats] = None,
) -> DailyParticipantStats:
    """Derive one day's statistics from the parsed participant rows.

    Day-over-day changes are computed against ``previous`` when given.
    """
    record = DailyParticipantStats(day=day)

    dii = find_client(positions, "DII")
    if dii is not None:
        record.futures_dii.fill(dii, previous.futures_dii if previous else None)

    fii = find_client(positions, "FII")
    if fii is not None:
        record.futures_fii.fill(fii, previous.futures_fii if previous else None)
        record.options_fii.fill(fii, previous.options_fii if previous else None)

    pro = find_client(positions, "Pro")
    if pro is not None:
        record.futures_pro.fill(pro, previous.futures_pro if previous else None)
        record.options_pro.fill(pro, previous.options_pro if previous else None)

    futures = [record.futures_dii, record.futures_fii, record.futures_pro]
    total_fut = record.futures_total
    total_fut.total_long = sum(f.total_long for f in futures)
    total_fut.total_short = sum(f.total_short for f in futures)
    total_fut.fill_net_values(previous.futures_total if previous else None)

    options = [record.options_fii, record.options_pro]
    total_opt = record.options_total
    total_opt.total_call_long = sum(o.total_call_long for o in options)
    total_opt.total_call_short = sum(o.total_call_short for o in options)
    total_opt.total_put_long = sum(o.total_put_long for o in options)
    total_opt.total_put_short = sum(o.total_put_short for o in options)
    total_opt.fill_net_values(previous.options_total if previous else None)
    return record


class ParticipantStatsStore:
    """Daily participant statistics kept in a CSV file, oldest first."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.records: List[DailyParticipantStats] = []

    def read(self) -> List[DailyParticipantStats]:
        """Load every record; a missing or empty file yields no records."""
        if not self.path.exists() or self.path.stat().st_size == 0:
            self.records = []
            return self.records
        df = pd.read_csv(self.path, dtype=str)
        self.records = [DailyParticipantStats.from_row(row) for row in df.to_dict(orient="records")]
        logger.info("Loaded %d participant stats records from %s", len(self.records), self.path)
        return self.records

    def append(self, record: DailyParticipantStats) -> None:
        write_header = not self.path.exists() or self.path.stat().st_size == 0
        df = pd.DataFrame([record.to_row()])
        df.to_csv(self.path, mode="a", header=write_header, index=False)
        self.records.append(record)

    def latest(self) -> Optional[DailyParticipantStats]:
        if not self.records:
            return None
        return self.records[-1]

    def records_between(self, start: date, end: date) -> List[DailyParticipantStats]:
        """Records strictly after ``start`` and strictly before ``end``."""
        return [r for r in self.records if start < r.day < end]

    def records_for_range(self, day: date, num_days: int) -> List[DailyParticipantStats]:
        if num_days <= 0:
            raise ValueError("num_days must be a positive integer")
        return self.records_between(day - timedelta(days=num_days), day)


__all__ = [
    "ParticipantPosition",
    "parse_participant_csv",
    "archive_date_suffix",
    "archive_file_name",
    "archive_url",
    "find_client",
    "FuturesStats",
    "OptionsStats",
    "DailyParticipantStats",
    "build_daily_stats",
    "ParticipantStatsStore",
]
