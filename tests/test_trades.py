import json

import pytest

from conftest import DAY, NOW, YEAR
from trades import (
    Direction,
    ExitReason,
    Trade,
    TradeFilter,
    TradeValidationError,
    cutoff_for_range,
    filter_trades,
    load_trades,
    parse_trades,
    trades_to_df,
)


def feed_record(**overrides):
    record = {
        "mode": "defensive",
        "symbol": "MSFT",
        "name": "Microsoft",
        "entry_price": 100.0,
        "exit_price": 110.0,
        "current_price": 110.0,
        "entry_date": NOW - 10 * DAY,
        "exit_date": NOW - 5 * DAY,
        "status": "CLOSED",
        "return_pct": 10.0,
        "win_rate": 60.0,
        "risk_reward": 1.5,
        "avg_return": 2.0,
        "market_cap": 3e12,
    }
    record.update(overrides)
    return record


def test_from_record_reads_closed_feed_trade():
    trade = Trade.from_record(feed_record(exit_reason="tp"))
    assert trade.is_open is False
    assert trade.exit_time == NOW - 5 * DAY
    assert trade.exit_price == 110.0
    assert trade.exit_reason is ExitReason.TP
    assert trade.direction is Direction.LONG
    assert trade.mode == "defensive"
    assert trade.market_cap == 3e12


def test_from_record_open_trade_drops_zeroed_exit_fields():
    trade = Trade.from_record(feed_record(status="OPEN", exit_date=0, exit_price=0, current_price=104.0))
    assert trade.is_open is True
    assert trade.exit_time is None
    assert trade.exit_price is None
    assert trade.current_price == 104.0


def test_from_record_accepts_canonical_names():
    trade = Trade.from_record({
        "symbol": "NVDA",
        "direction": "short",
        "entry_time": 1_000,
        "entry_price": 50,
        "exit_time": 2_000,
        "exit_price": 45,
        "is_open": False,
        "return_pct": 10,
    })
    assert trade.direction is Direction.SHORT
    assert trade.exit_time == 2_000


def test_open_trade_with_exit_fields_is_rejected():
    with pytest.raises(TradeValidationError):
        Trade(symbol="A", entry_time=0, entry_price=1.0, return_pct=0.0, is_open=True, exit_time=5)


def test_closed_trade_needs_exit_time():
    with pytest.raises(TradeValidationError):
        Trade(symbol="A", entry_time=0, entry_price=1.0, return_pct=0.0)


def test_exit_before_entry_is_rejected():
    with pytest.raises(TradeValidationError):
        Trade(symbol="A", entry_time=100, entry_price=1.0, return_pct=0.0, exit_time=50, exit_price=1.0)


def test_non_finite_return_is_rejected():
    with pytest.raises(TradeValidationError):
        Trade(symbol="A", entry_time=0, entry_price=1.0, return_pct=float("nan"), is_open=True)


def test_bad_direction_is_a_validation_error():
    with pytest.raises(TradeValidationError):
        Trade.from_record(feed_record(direction="SIDEWAYS"))


def test_parse_trades_skips_invalid_records_unless_strict():
    records = [feed_record(), feed_record(entry_price=0), feed_record(symbol="AMZN")]
    trades = parse_trades(records)
    assert [t.symbol for t in trades] == ["MSFT", "AMZN"]

    with pytest.raises(TradeValidationError):
        parse_trades(records, strict=True)


@pytest.mark.parametrize("bad", [
    feed_record(exit_date="n/a"),
    feed_record(exit_price="n/a"),
    feed_record(entry_date="yesterday"),
    None,
    ["MSFT", 100.0],
])
def test_parse_trades_skips_malformed_records(bad):
    assert [t.symbol for t in parse_trades([feed_record(), bad])] == ["MSFT"]

    with pytest.raises(TradeValidationError):
        parse_trades([feed_record(), bad], strict=True)


def test_load_trades_skips_null_entries(tmp_path):
    path = tmp_path / "history.json"
    path.write_text(json.dumps([feed_record(), None, feed_record(symbol="AMZN", exit_price="?")]))
    assert [t.symbol for t in load_trades(path)] == ["MSFT"]


def test_load_trades_reads_json_array(tmp_path):
    path = tmp_path / "history.json"
    path.write_text(json.dumps([feed_record(), feed_record(symbol="AMZN", status="OPEN")]))
    trades = load_trades(path)
    assert len(trades) == 2
    assert trades[1].is_open


def test_load_trades_rejects_non_array(tmp_path):
    path = tmp_path / "history.json"
    path.write_text(json.dumps({"trades": []}))
    with pytest.raises(TradeValidationError):
        load_trades(path)


def test_trades_to_df_has_enum_values(make_trade):
    df = trades_to_df([make_trade("A", 5.0), make_trade("B", -2.0)])
    assert list(df["symbol"]) == ["A", "B"]
    assert list(df["direction"]) == ["LONG", "LONG"]
    assert trades_to_df([]).empty


class TestTradeFilter:
    def test_no_filter_keeps_everything_in_order(self, make_trade):
        trades = [make_trade("B"), make_trade("A"), make_trade("C")]
        assert filter_trades(trades) == trades
        assert filter_trades(trades, TradeFilter()) == trades

    def test_empty_symbol_set_excludes_everything(self, make_trade):
        trades = [make_trade("A"), make_trade("B")]
        assert filter_trades(trades, TradeFilter(symbols=frozenset())) == []

    def test_absent_symbol_set_is_no_restriction(self, make_trade):
        trades = [make_trade("A"), make_trade("B")]
        assert filter_trades(trades, TradeFilter(symbols=None)) == trades

    def test_symbol_allow_set(self, make_trade):
        trades = [make_trade("A"), make_trade("B"), make_trade("A", 3.0)]
        kept = filter_trades(trades, TradeFilter(symbols=frozenset({"A"})))
        assert kept == [trades[0], trades[2]]

    def test_mode_window_and_status(self, make_trade):
        old = make_trade("A", mode="quant", entry_time=NOW - 2 * YEAR)
        recent = make_trade("B", mode="quant", entry_time=NOW - 10 * DAY)
        running = make_trade("C", mode="quant", entry_time=NOW - 5 * DAY, is_open=True)
        other = make_trade("D", mode="ditz", entry_time=NOW - 5 * DAY)
        trades = [old, recent, running, other]

        assert filter_trades(trades, TradeFilter(mode="quant")) == [old, recent, running]
        assert filter_trades(trades, TradeFilter(mode="quant", since=NOW - YEAR)) == [recent, running]
        assert filter_trades(trades, TradeFilter(mode="quant", since=NOW - YEAR, closed_only=True)) == [recent]

    def test_statistic_bounds(self, make_trade):
        strong = make_trade("A", win_rate=70, risk_reward=2.0, avg_return=3.0, market_cap=100e9)
        weak = make_trade("B", win_rate=40, risk_reward=0.8, avg_return=-1.0, market_cap=5e9)
        trades = [strong, weak]

        assert filter_trades(trades, TradeFilter(min_win_rate=50)) == [strong]
        assert filter_trades(trades, TradeFilter(max_win_rate=50)) == [weak]
        assert filter_trades(trades, TradeFilter(min_risk_reward=1.0)) == [strong]
        assert filter_trades(trades, TradeFilter(max_risk_reward=1.0)) == [weak]
        assert filter_trades(trades, TradeFilter(min_avg_return=0)) == [strong]
        assert filter_trades(trades, TradeFilter(max_avg_return=0)) == [weak]
        assert filter_trades(trades, TradeFilter(min_market_cap=10)) == [strong]


def test_cutoff_for_range():
    assert cutoff_for_range("1y", NOW) == NOW - YEAR
    assert cutoff_for_range("3m", NOW) == NOW - 90 * DAY
    assert cutoff_for_range("all", NOW) == 0
    assert cutoff_for_range(None, NOW) == 0
