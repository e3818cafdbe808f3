"""Tests for per-strike ranking and the weighted composite."""
import pytest

from nse_chain.option_chain import OptionChain, OptionLeg, StrikeRecord
from nse_chain.ranking import RankedChainView, RankedStrikeView, RankingEngine, RankingWeights
from nse_chain.response_parser import ChainResponseParser


@pytest.fixture
def chain(sample_payload):
    parser = ChainResponseParser("BANKNIFTY", sample_payload)
    return parser.get_expiry_view("BANKNIFTY", "01-Jun-2023", strike_step=100)


@pytest.fixture
def view(chain):
    return RankingEngine().build_view(chain, chain.atm_strikes(5))


def by_strike(view):
    return {row.strike: row for row in view.rows}


def test_view_covers_window_sorted_by_strike(view):
    assert [row.strike for row in view.rows] == [43400, 43500, 43600, 43700, 43800]
    assert view.atm_strike == 43600
    assert view.underlying_value == pytest.approx(43582.1)


def test_call_ranks(view):
    rows = by_strike(view)

    assert [rows[s].ce_oi_rank for s in (43600, 43700, 43800, 43500, 43400)] == [1, 2, 3, 4, 5]
    assert [rows[s].ce_volume_rank for s in (43600, 43700, 43800, 43500, 43400)] == [1, 2, 3, 4, 5]
    assert [rows[s].ce_change_oi_rank for s in (43600, 43700, 43500, 43400, 43800)] == [1, 2, 3, 4, 5]


def test_absent_put_leg_ranks_last(view):
    rows = by_strike(view)

    assert [rows[s].pe_oi_rank for s in (43400, 43500, 43600, 43700, 43800)] == [1, 2, 3, 4, 5]
    assert rows[43800].pe_open_interest is None
    assert rows[43800].pcr_oi == 0.0


def test_composite_for_top_call(view):
    assert by_strike(view)[43600].ce_weighted_rank == pytest.approx(1.0)


def test_row_pcrs(view):
    row = by_strike(view)[43400]

    assert row.pcr_oi == pytest.approx(5.0)
    assert row.pcr_volume == pytest.approx(3.0)
    assert row.pcr_change_oi == pytest.approx(5.0)
    # negative change in OI on one side gives the sentinel
    assert by_strike(view)[43500].pcr_change_oi == 0.0


def test_window_totals(view):
    assert view.total_ce_oi == 2500
    assert view.total_pe_oi == 1300
    assert view.total_ce_volume == 21000
    assert view.total_pe_volume == 8000
    assert view.total_ce_change_oi == 460
    assert view.pcr_oi == pytest.approx(0.52)


def test_missing_strikes_are_skipped(chain):
    view = RankingEngine().build_view(chain, chain.atm_strikes(16))

    assert len(view.rows) == 5
    assert view.strong_rank_threshold == pytest.approx(5 / 2.8)


def test_rows_sorted_even_for_reversed_window(chain):
    view = RankingEngine().build_view(chain, [43800, 43600, 43400])

    assert [row.strike for row in view.rows] == [43400, 43600, 43800]


def test_rank_oi_is_idempotent(view):
    before = [(row.strike, row.ce_oi_rank, row.pe_oi_rank) for row in view.rows]

    RankingEngine().rank_oi(view)

    assert [(row.strike, row.ce_oi_rank, row.pe_oi_rank) for row in view.rows] == before


def test_ties_keep_window_order():
    chain = OptionChain("NIFTY", "01-Jun-2023", "ts", 18600.0, strike_step=50)
    for strike in (18550, 18600, 18650):
        chain.add_record(StrikeRecord(strike, call=OptionLeg(open_interest=10), put=OptionLeg(open_interest=10)))

    view = RankingEngine().build_view(chain, [18650, 18550, 18600])
    rows = by_strike(view)

    assert rows[18650].ce_oi_rank == 1
    assert rows[18550].ce_oi_rank == 2
    assert rows[18600].ce_oi_rank == 3


def test_weighted_rank_formula():
    row = RankedStrikeView(strike=43600, ce_oi_rank=2, ce_volume_rank=3, ce_change_oi_rank=1)
    view = RankedChainView(underlying_value=43582.0, atm_strike=43600, rows=[row])

    RankingEngine().weighted_rank(view)

    assert row.ce_weighted_rank == pytest.approx(2.2)


def test_custom_weights(chain):
    engine = RankingEngine(RankingWeights(oi_weight=1.0, volume_weight=0.0, change_oi_weight=0.0))
    custom = engine.build_view(chain, chain.atm_strikes(5))

    for row in custom.rows:
        assert row.ce_weighted_rank == pytest.approx(row.ce_oi_rank)


def test_empty_window(chain):
    view = RankingEngine().build_view(chain, [50000, 50100])

    assert view.rows == []
    assert view.total_ce_oi == 0
    assert view.pcr_oi == 0.0


def test_chain_without_step_has_no_atm():
    chain = OptionChain("BANKNIFTY", "01-Jun-2023", "ts", 43582.0)
    chain.add_record(StrikeRecord(43600, call=OptionLeg(open_interest=1)))

    view = RankingEngine().build_view(chain, [43600])

    assert view.atm_strike is None
    assert len(view.rows) == 1


def test_to_frame(view):
    df = view.to_frame()

    assert list(df.index) == [43400, 43500, 43600, 43700, 43800]
    assert df.loc[43600, "ce_oi_rank"] == 1
    assert "pe_weighted_rank" in df.columns


def test_str(view):
    text = str(by_strike(view)[43600])

    assert "Strike: 43600" in text
    assert "CE Open Interest: 900" in text
