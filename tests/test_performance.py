import pytest

import config
from aggregation import aggregate_stocks
from conftest import DAY, NOW, YEAR
from optimizer import Strategy
from performance import filter_for_result, recommend_filters, summarize_modes
from trades import TradeFilter, filter_trades


@pytest.fixture
def history(make_trade):
    trades = []
    for i in range(12):
        trades.append(make_trade(
            f"Q{i:02d}", float((i * 5) % 17 - 6),
            entry_time=NOW - (300 - i * 20) * DAY, mode="quant",
        ))
    trades.append(make_trade("Q00", 4.0, entry_time=NOW - 5 * DAY, mode="quant", is_open=True))
    trades.append(make_trade("D1", 8.0, entry_time=NOW - 40 * DAY, mode="defensive"))
    trades.append(make_trade("D2", -2.0, entry_time=NOW - 3 * YEAR, mode="defensive"))
    return trades


def test_summarize_modes_covers_every_mode(history):
    summaries = summarize_modes(history, time_range="1y", allocation=100, now=NOW)

    assert list(summaries) == list(config.MODES)
    assert summaries["quant"].title == config.MODES["quant"]
    assert summaries["quant"].metrics.total_trades == 12
    assert summaries["quant"].simulation.open_count == 1
    assert summaries["trader"].metrics is None
    assert summaries["trader"].simulation is None


def test_time_range_cuts_old_trades(history):
    one_year = summarize_modes(history, time_range="1y", now=NOW, modes=["defensive"])
    everything = summarize_modes(history, time_range="all", now=NOW, modes=["defensive"])

    assert one_year["defensive"].metrics.total_trades == 1
    assert everything["defensive"].metrics.total_trades == 2


def test_extra_filter_is_applied_per_mode(history):
    summaries = summarize_modes(
        history,
        time_range="all",
        trade_filter=TradeFilter(mode="defensive", symbols=frozenset({"Q01", "D1"}), closed_only=True),
        now=NOW,
        modes=["quant", "defensive"],
    )
    assert [t.symbol for t in summaries["quant"].trades] == ["Q01"]
    assert [t.symbol for t in summaries["defensive"].trades] == ["D1"]


def test_recommendation_feeds_back_into_trade_filter(history):
    results = recommend_filters(history, "quant", time_range="1y", now=NOW)
    assert results
    assert results[0].strategy is Strategy.MAX_RETURN

    pool = aggregate_stocks(history, mode="quant", since=NOW - YEAR)
    for result in results:
        selection = filter_trades(history, filter_for_result(pool, result, mode="quant"))
        assert {t.symbol for t in selection} == set(result.symbols)


def test_recommend_filters_for_empty_mode(history):
    assert recommend_filters(history, "trader", now=NOW) == []
