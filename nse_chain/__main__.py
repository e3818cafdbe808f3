"""Command line interface for polling and ranking NSE option chains."""
from __future__ import annotations

import argparse
import logging
import time
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

import pandas as pd

from .config import Settings, load_settings
from .errors import AuthRequired, MalformedPayload, NetworkError, NseError, ServerError, UnknownExpiry
from .nse_client import STRIKE_STEPS, NseClient
from .option_chain import OptionChain
from .participants import DailyParticipantStats, ParticipantStatsStore, archive_file_name, build_daily_stats
from .ranking import RankedChainView, RankingEngine, RankingWeights
from .utils import setup_logging

logger = logging.getLogger("nse_chain.cli")

SEPARATOR = "=" * 46

TABLE_COLUMNS = [
    "CeLtp",
    "CeOi",
    "CeChangeOi",
    "CeVolume",
    "Strike",
    "PeVolume",
    "PeChangeOi",
    "PeOi",
    "PeLtp",
    "PcrOi",
    "PcrVolume",
    "PcrChangeOi",
    "CE_VR",
    "CE_OIR",
    "CE_COIR",
    "PE_VR",
    "PE_OIR",
    "PE_COIR",
    "CE_RANK",
    "PE_RANK",
]


def parse_args(argv: Optional[Sequence[str]] = None, defaults: Settings | None = None) -> argparse.Namespace:
    defaults = defaults or Settings()
    parser = argparse.ArgumentParser(prog="nse_chain", description=__doc__)
    parser.add_argument("--symbol", type=str, default="BANKNIFTY", help="Index symbol (default: %(default)s)")
    parser.add_argument("--expiry", type=str, default=None, help="Expiry date as listed by NSE, e.g. 01-Jun-2023")
    parser.add_argument(
        "--strike-step",
        type=int,
        default=None,
        help=f"Strike spacing; required for symbols other than {', '.join(STRIKE_STEPS)}",
    )
    parser.add_argument(
        "--strikes",
        type=int,
        default=defaults.strike_window,
        help="Number of strikes around ATM to rank (default: %(default)s)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=defaults.poll_interval,
        help="Seconds between polls (default: %(default)s)",
    )
    parser.add_argument("--once", action="store_true", help="Fetch and print a single cycle, then exit")
    parser.add_argument(
        "--update-participants",
        action="store_true",
        help="Update the F&O participant statistics file instead of polling the chain",
    )
    parser.add_argument(
        "--stats-file",
        type=str,
        default=defaults.stats_file,
        help="CSV file holding daily participant statistics (default: %(default)s)",
    )
    parser.add_argument(
        "--report-days",
        type=int,
        default=0,
        help="With --update-participants, print stats for the last N days (default: %(default)s)",
    )
    args = parser.parse_args(argv)
    if not args.update_participants and not args.expiry:
        parser.error("--expiry is required unless --update-participants is given")
    if args.strikes <= 0:
        parser.error("--strikes must be positive")
    if args.report_days < 0:
        parser.error("--report-days must not be negative")
    return args


def _cell(value: Optional[float], spec: str = "d") -> str:
    if value is None:
        return "-"
    return format(value, spec)


def format_header(chain: OptionChain, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    lines = [
        SEPARATOR,
        f"Time              {now:%Y-%m-%d %H:%M:%S}",
        f"Symbol            {chain.symbol} {chain.expiry_date}",
        f"Exchange time     {chain.timestamp}",
        f"Underlying Value  {chain.underlying_value:.2f}",
        f"ATM Strike Price  {chain.atm_strike()}",
        f"Total PCR         {chain.pcr:.4f}",
        f"Total CE OI       {chain.total_call_oi}",
        f"Total PE OI       {chain.total_put_oi}",
        SEPARATOR,
    ]
    return "\n".join(lines)


def format_table(view: RankedChainView) -> str:
    """Render the ranked window.

    ``*`` marks the ATM strike and ``+`` marks legs whose composite rank is
    at or below the strong-rank threshold.
    """
    if not view.rows:
        return "No strikes of the window are listed in the chain."

    strong = view.strong_rank_threshold
    records = []
    for row in view.rows:
        atm = "*" if row.strike == view.atm_strike else " "
        records.append(
            {
                "CeLtp": _cell(row.ce_ltp, ".2f"),
                "CeOi": _cell(row.ce_open_interest),
                "CeChangeOi": _cell(row.ce_change_open_interest),
                "CeVolume": _cell(row.ce_traded_volume),
                "Strike": f"{atm}{row.strike}",
                "PeVolume": _cell(row.pe_traded_volume),
                "PeChangeOi": _cell(row.pe_change_open_interest),
                "PeOi": _cell(row.pe_open_interest),
                "PeLtp": _cell(row.pe_ltp, ".2f"),
                "PcrOi": f"{row.pcr_oi:.2f}",
                "PcrVolume": f"{row.pcr_volume:.2f}",
                "PcrChangeOi": f"{row.pcr_change_oi:.2f}",
                "CE_VR": row.ce_volume_rank,
                "CE_OIR": row.ce_oi_rank,
                "CE_COIR": row.ce_change_oi_rank,
                "PE_VR": row.pe_volume_rank,
                "PE_OIR": row.pe_oi_rank,
                "PE_COIR": row.pe_change_oi_rank,
                "CE_RANK": f"{row.ce_weighted_rank:.1f}{'+' if row.ce_weighted_rank <= strong else ''}",
                "PE_RANK": f"{row.pe_weighted_rank:.1f}{'+' if row.pe_weighted_rank <= strong else ''}",
            }
        )
    table = pd.DataFrame.from_records(records, columns=TABLE_COLUMNS).to_string(index=False)

    totals = [
        "",
        "Totals:",
        f"Total CE Open Interest:        {view.total_ce_oi}",
        f"Total CE Change Open Interest: {view.total_ce_change_oi}",
        f"Total CE Traded Volume:        {view.total_ce_volume}",
        f"Total PE Open Interest:        {view.total_pe_oi}",
        f"Total PE Change Open Interest: {view.total_pe_change_oi}",
        f"Total PE Traded Volume:        {view.total_pe_volume}",
        "------------------------------",
        f"PCR OI:                        {view.pcr_oi:.4f}",
        f"PCR Volume:                    {view.pcr_volume:.4f}",
        f"PCR Change OI:                 {view.pcr_change_oi:.4f}",
    ]
    return table + "\n" + "\n".join(totals)


def render_cycle(chain: OptionChain, engine: RankingEngine, strikes: int, now: Optional[datetime] = None) -> str:
    window = chain.atm_strikes(strikes)
    view = engine.build_view(chain.derive_sub_chain(window), window)
    return format_header(chain, now) + "\n" + format_table(view)


def poll(
    client: NseClient,
    engine: RankingEngine,
    args: argparse.Namespace,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Fetch, rank and print until interrupted.

    Returns:
        Process exit code: 0 after a clean stop, 1 when the payload no longer
        matches what the parser expects (or ``--once`` failed).
    """
    while True:
        try:
            chain = client.fetch_option_chain(args.symbol, args.expiry, strike_step=args.strike_step)
            print(render_cycle(chain, engine, args.strikes))
        except (MalformedPayload, UnknownExpiry, ValueError) as e:
            logger.error("Failed to fetch %s option chain: %s", args.symbol, e)
            return 1
        except (NetworkError, ServerError, AuthRequired) as e:
            logger.error("Failed to fetch %s option chain, retrying next cycle: %s", args.symbol, e)
            if args.once:
                return 1
        except NseError as e:
            logger.error("Stopping: %s", e)
            return 1
        else:
            if args.once:
                return 0
        sleep(args.interval)


def update_participants(
    client: NseClient,
    store: ParticipantStatsStore,
    today: Optional[date] = None,
    pause: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Append stats for every day after the latest stored record up to yesterday.

    Days whose archive cannot be fetched (holidays, weekends) are skipped.

    Returns:
        Number of records appended.
    """
    today = today or date.today()
    store.read()
    latest = store.latest()
    day = latest.day + timedelta(days=1) if latest else today.replace(day=1)

    appended = 0
    while day < today:
        try:
            positions = client.fetch_participant_data(day)
        except (NetworkError, ServerError, AuthRequired, ValueError) as e:
            logger.error("Failed to fetch %s for date=%s, err=%s", archive_file_name(day), day.isoformat(), e)
            day += timedelta(days=1)
            continue

        record = build_daily_stats(day, positions, store.latest())
        store.append(record)
        appended += 1
        logger.info("Wrote participant stats for %s", day.isoformat())
        day += timedelta(days=1)
        if pause > 0 and day < today:
            sleep(pause)
    return appended


REPORT_COLUMNS = ["Date", "FutNet", "FutNetChange", "FiiFutNet", "OptNet", "OptNetChange", "OptPcr"]


def format_participant_report(records: Sequence[DailyParticipantStats]) -> str:
    if not records:
        return "No participant stats stored for the requested range."
    rows = [
        {
            "Date": r.day.isoformat(),
            "FutNet": r.futures_total.net,
            "FutNetChange": r.futures_total.net_change,
            "FiiFutNet": r.futures_fii.net,
            "OptNet": r.options_total.net,
            "OptNetChange": r.options_total.net_change,
            "OptPcr": f"{r.options_total.pcr:.2f}",
        }
        for r in records
    ]
    return pd.DataFrame.from_records(rows, columns=REPORT_COLUMNS).to_string(index=False)


def participant_report(store: ParticipantStatsStore, num_days: int, today: Optional[date] = None) -> str:
    """Stats for the ``num_days`` days before ``today`` (exclusive)."""
    today = today or date.today()
    return format_participant_report(store.records_for_range(today, num_days))


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = load_settings()
    setup_logging(settings.log_level)
    args = parse_args(argv, defaults=settings)

    client = NseClient(settings)
    try:
        if args.update_participants:
            store = ParticipantStatsStore(args.stats_file)
            count = update_participants(client, store)
            print(f"Appended {count} participant records to {args.stats_file}")
            if args.report_days > 0:
                print(participant_report(store, args.report_days))
            return 0

        engine = RankingEngine(
            RankingWeights(
                oi_weight=settings.oi_weight,
                volume_weight=settings.volume_weight,
                change_oi_weight=settings.change_oi_weight,
            )
        )
        return poll(client, engine, args)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        client.shutdown()
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
