"""Tests for participant OI parsing, daily statistics and the stats store."""
from dataclasses import replace
from datetime import date

import pytest

from nse_chain.participants import (
    DailyParticipantStats,
    ParticipantStatsStore,
    archive_date_suffix,
    archive_file_name,
    archive_url,
    build_daily_stats,
    find_client,
    parse_participant_csv,
)


class TestParse:
    def test_title_line_dropped_and_rows_parsed(self, participant_csv):
        positions = parse_participant_csv(participant_csv)

        assert [p.client_type for p in positions] == ["Client", "DII", "FII", "Pro", "TOTAL"]

    def test_columns_mapped_with_whitespace_stripped(self, participant_csv):
        fii = find_client(parse_participant_csv(participant_csv), "FII")

        assert fii.future_index_long == 3000
        assert fii.future_stock_short == 60
        assert fii.total_long_contracts == 4267
        assert fii.total_short_contracts == 1573

    def test_net_helpers(self, participant_csv):
        fii = find_client(parse_participant_csv(participant_csv), "FII")

        assert fii.net_future_index_position == 2000
        assert fii.net_option_index_call_position == 300
        assert fii.net_option_index_put_position == 400
        assert fii.net_option_index_open_interest == -100

    def test_file_without_title_line(self, participant_csv):
        body = participant_csv.split("\n", 1)[1]

        assert len(parse_participant_csv(body)) == 5

    def test_unparsable_value_reads_as_zero(self, participant_csv, caplog):
        body = participant_csv.replace("DII,1000,", "DII,n/a,")
        with caplog.at_level("WARNING"):
            dii = find_client(parse_participant_csv(body), "DII")

        assert dii.future_index_long == 0
        assert dii.future_index_short == 200
        assert "Future Index Long" in caplog.text

    def test_missing_client_type_column(self):
        with pytest.raises(ValueError):
            parse_participant_csv("Type,Future Index Long\nFII,10\n")

    def test_empty_text(self):
        assert parse_participant_csv("") == []


def test_archive_names():
    day = date(2023, 6, 1)

    assert archive_date_suffix(day) == "01062023"
    assert archive_file_name(day) == "fao_participant_oi_01062023"
    assert archive_url(day) == "https://archives.nseindia.com/content/nsccl/fao_participant_oi_01062023.csv"


class TestDailyStats:
    def test_first_day(self, participant_csv):
        record = build_daily_stats(date(2023, 6, 1), parse_participant_csv(participant_csv))

        assert record.futures_dii.net == 800
        assert record.futures_fii.net == 2000
        assert record.futures_pro.net == -200
        assert record.futures_total.total_long == 4400
        assert record.futures_total.total_short == 1800
        assert record.futures_total.net == 2600
        assert record.futures_total.net_change == 0

        assert record.options_fii.net_call == 300
        assert record.options_fii.net_put == 400
        assert record.options_fii.net == -100
        assert record.options_fii.pcr == pytest.approx(400 / 300)
        assert record.options_pro.pcr == pytest.approx(-0.6)
        assert record.options_total.net_call == 250
        assert record.options_total.net_put == 430
        assert record.options_total.pcr == pytest.approx(1.72)

    def test_day_over_day_changes(self, participant_csv):
        positions = parse_participant_csv(participant_csv)
        yesterday = build_daily_stats(date(2023, 6, 1), positions)

        fii = find_client(positions, "FII")
        today_positions = [
            replace(p, future_index_long=3500, option_index_put_long=900) if p is fii else p
            for p in positions
        ]
        today = build_daily_stats(date(2023, 6, 2), today_positions, yesterday)

        assert today.futures_fii.net_change == 500
        assert today.futures_dii.net_change == 0
        assert today.futures_total.net_change == 500
        assert today.options_fii.net_put_change == 200
        assert today.options_fii.net_change == -200
        assert today.options_total.net_put_change == 200

    def test_options_pcr_zero_when_net_call_is_zero(self):
        record = DailyParticipantStats(day=date(2023, 6, 1))
        record.options_fii.total_put_long = 10
        record.options_fii.fill_net_values(None)

        assert record.options_fii.pcr == 0.0

    def test_missing_client_leaves_zeros(self, participant_csv):
        positions = [p for p in parse_participant_csv(participant_csv) if p.client_type != "DII"]
        record = build_daily_stats(date(2023, 6, 1), positions)

        assert record.futures_dii.net == 0
        assert record.futures_total.total_long == 3400


class TestStatsStore:
    def test_round_trip(self, tmp_path, participant_csv):
        path = tmp_path / "fo_daily_data.csv"
        positions = parse_participant_csv(participant_csv)
        first = build_daily_stats(date(2023, 6, 1), positions)
        second = build_daily_stats(date(2023, 6, 2), positions, first)

        store = ParticipantStatsStore(path)
        store.append(first)
        store.append(second)

        # header written once
        assert len(path.read_text().strip().splitlines()) == 3

        loaded = ParticipantStatsStore(path)
        records = loaded.read()
        assert len(records) == 2
        latest = loaded.latest()
        assert latest.day == date(2023, 6, 2)
        assert latest.futures_total.net == second.futures_total.net
        assert latest.options_pro.net_call == -50
        assert latest.options_fii.pcr == pytest.approx(second.options_fii.pcr)

    def test_missing_file_reads_empty(self, tmp_path):
        store = ParticipantStatsStore(tmp_path / "absent.csv")

        assert store.read() == []
        assert store.latest() is None

    def test_empty_file_gets_header(self, tmp_path):
        path = tmp_path / "fo_daily_data.csv"
        path.write_text("")
        store = ParticipantStatsStore(path)
        store.read()
        store.append(DailyParticipantStats(day=date(2023, 6, 1)))

        assert path.read_text().startswith("date,")

    def test_ranges_are_exclusive(self, tmp_path):
        store = ParticipantStatsStore(tmp_path / "stats.csv")
        for day in (1, 2, 5, 6):
            store.append(DailyParticipantStats(day=date(2023, 6, day)))

        assert [r.day.day for r in store.records_between(date(2023, 6, 1), date(2023, 6, 6))] == [2, 5]
        assert [r.day.day for r in store.records_for_range(date(2023, 6, 6), 5)] == [2, 5]

    def test_range_requires_positive_days(self, tmp_path):
        store = ParticipantStatsStore(tmp_path / "stats.csv")

        with pytest.raises(ValueError):
            store.records_for_range(date(2023, 6, 6), 0)
