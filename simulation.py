"""
Bot Performance Lab — Portfolio Simulation

Turns a trade set plus a fixed capital allocation per trade into:
    - required capital (peak concurrent positions x allocation)
    - total profit, ROI and CAGR
    - a time-indexed equity curve (realized + time-prorated unrealized)

Model: every position, open or historical, consumes one fixed-size capital
slot; the strategy needs enough capital for its worst-case simultaneous
exposure. Open trades use `now` as their exit time.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

import config
from metrics import Metrics, calculate_metrics, closed_trades, sort_by_entry
from trades import Trade

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class EquityPoint:
    time: int
    value: float


@dataclass(frozen=True)
class SimulatedTrade:
    """One trade as deployed with the fixed allocation."""
    symbol: str
    name: Optional[str]
    entry_time: int
    exit_time: Optional[int]
    entry_price: float
    exit_price: Optional[float]  # current price for open trades
    return_pct: float
    profit: float
    received: float
    is_open: bool


@dataclass(frozen=True)
class SimulationResult:
    allocation: float
    trades: List[SimulatedTrade]
    trade_count: int
    open_count: int
    max_concurrent_positions: int
    required_capital: float
    total_profit: float
    end_capital: float
    roi: float
    cagr: float
    years: float
    equity_curve: List[EquityPoint]
    metrics: Metrics

    # Win/loss aggregates over the simulated (closed) set
    @property
    def wins(self) -> int:
        return self.metrics.wins

    @property
    def losses(self) -> int:
        return self.metrics.losses

    @property
    def win_rate(self) -> float:
        return self.metrics.win_rate

    @property
    def risk_reward(self):
        return self.metrics.risk_reward


def _now(now: Optional[int]) -> int:
    return int(time.time()) if now is None else int(now)


def _exit_for(trade: Trade, now: int) -> int:
    # An open trade entered after `now` is treated as a zero-length position
    return max(trade.entry_time, trade.resolved_exit(now))


# =============================================================================
# Concurrency
# =============================================================================

def max_concurrent_positions(trades: Iterable[Trade], now: Optional[int] = None) -> int:
    """
    Maximum number of positions open at the same instant.

    Sweeps +1/-1 entry/exit events in time order. On equal timestamps opens
    are processed before closes, so a position closing exactly when another
    opens still counts as overlapping.
    """
    now = _now(now)
    events = []
    for t in trades:
        events.append((t.entry_time, 1))
        events.append((_exit_for(t, now), -1))
    events.sort(key=lambda e: (e[0], -e[1]))

    running = peak = 0
    for _, delta in events:
        running += delta
        if running > peak:
            peak = running
    return peak


# =============================================================================
# Equity Curve
# =============================================================================

def _sample_times(start: int, end: int, max_points: int) -> np.ndarray:
    days = math.ceil((end - start) / config.SECONDS_PER_DAY)
    if days > max_points:
        step = math.ceil(days / max_points) * config.SECONDS_PER_DAY
    else:
        step = config.SECONDS_PER_DAY

    times = np.arange(start, end + 1, step, dtype=np.int64)
    if times[-1] < end:
        times = np.append(times, np.int64(end))
    return times


def build_equity_curve(
    trades: Iterable[Trade],
    allocation: float,
    required_capital: float,
    now: Optional[int] = None,
    max_points: Optional[int] = None,
) -> List[EquityPoint]:
    """
    Portfolio value over time.

    At each sample time t:
        realized   = profit of every trade exited at or before t
        unrealized = profit of every running trade x (t - entry) / duration
        value      = required_capital + realized + unrealized

    Samples run daily from the first entry to the last exit (or `now`); the
    step widens to whole days so there are about `max_points` samples. The
    last sample always lands exactly on the end time.
    """
    trades = list(trades)
    if not trades:
        return []
    now = _now(now)
    if max_points is None:
        max_points = config.EQUITY_CURVE_MAX_POINTS

    entries = np.array([t.entry_time for t in trades], dtype=float)
    exits = np.array([_exit_for(t, now) for t in trades], dtype=float)
    profits = np.array([allocation * t.return_pct / 100.0 for t in trades], dtype=float)

    times = _sample_times(int(entries.min()), int(exits.max()), max_points)
    ts = times.astype(float)[:, None]

    realized = np.where(ts >= exits, profits, 0.0).sum(axis=1)

    durations = exits - entries
    safe_durations = np.where(durations > 0, durations, 1.0)
    fraction = np.where(durations > 0, (ts - entries) / safe_durations, 0.0)
    running = (ts >= entries) & (ts < exits)
    unrealized = np.where(running, profits * fraction, 0.0).sum(axis=1)

    values = required_capital + realized + unrealized
    return [EquityPoint(time=int(t), value=float(v)) for t, v in zip(times, values)]


def equity_curve_df(result: SimulationResult) -> pd.DataFrame:
    """Get equity curve as DataFrame."""
    if not result.equity_curve:
        return pd.DataFrame(columns=['time', 'date', 'value'])
    df = pd.DataFrame([{'time': p.time, 'value': p.value} for p in result.equity_curve])
    df.insert(1, 'date', pd.to_datetime(df['time'], unit='s'))
    return df


# =============================================================================
# Simulator
# =============================================================================

def annualized_return(required_capital: float, end_capital: float, years: float, roi: float) -> float:
    """
    CAGR in percent, or `roi` when the span is too short (or capital was
    wiped out) to annualize meaningfully.
    """
    if required_capital <= 0:
        return 0.0
    if end_capital <= 0 or years < config.CAGR_MIN_YEARS:
        return roi
    try:
        cagr = ((end_capital / required_capital) ** (1.0 / years) - 1.0) * 100.0
    except OverflowError:
        return roi
    return cagr if math.isfinite(cagr) else roi


def simulate_portfolio(
    trades: Iterable[Trade],
    allocation: Optional[float] = None,
    now: Optional[int] = None,
) -> Optional[SimulationResult]:
    """
    Simulate deploying `allocation` per trade.

    Args:
        trades: Trade set (open trades count at their current return)
        allocation: Capital per trade (default: config.DEFAULT_ALLOCATION)
        now: Timestamp standing in for open trades' exit (default: wall clock)

    Returns:
        SimulationResult, or None when there is nothing to simulate
        (non-positive allocation or no closed trades).
    """
    if allocation is None:
        allocation = config.DEFAULT_ALLOCATION
    now = _now(now)
    ordered = sort_by_entry(trades)

    metrics = calculate_metrics(ordered)
    if allocation <= 0 or metrics is None:
        return None

    rows = []
    for t in ordered:
        profit = allocation * t.return_pct / 100.0
        rows.append(SimulatedTrade(
            symbol=t.symbol,
            name=t.name,
            entry_time=t.entry_time,
            exit_time=t.exit_time,
            entry_price=t.entry_price,
            exit_price=t.current_price if t.is_open else t.exit_price,
            return_pct=t.return_pct,
            profit=profit,
            received=allocation + profit,
            is_open=t.is_open,
        ))

    total_profit = sum(r.profit for r in rows)
    max_conc = max_concurrent_positions(ordered, now)
    required_capital = max_conc * allocation
    end_capital = required_capital + total_profit
    roi = total_profit / required_capital * 100.0 if required_capital > 0 else 0.0

    first = ordered[0].entry_time
    last = max(_exit_for(t, now) for t in ordered)
    years = (last - first) / config.SECONDS_PER_YEAR

    result = SimulationResult(
        allocation=allocation,
        trades=rows,
        trade_count=len(rows),
        open_count=len(ordered) - len(closed_trades(ordered)),
        max_concurrent_positions=max_conc,
        required_capital=required_capital,
        total_profit=total_profit,
        end_capital=end_capital,
        roi=roi,
        cagr=annualized_return(required_capital, end_capital, years, roi),
        years=years,
        equity_curve=build_equity_curve(ordered, allocation, required_capital, now),
        metrics=metrics,
    )

    logger.debug(f"Simulation complete: {result.trade_count} trades, "
                 f"capital={required_capital:,.2f}, ROI={roi:.2f}%, CAGR={result.cagr:.2f}%")
    return result
