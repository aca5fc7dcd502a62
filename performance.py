"""
Bot Performance Lab — Performance Overview

Thin adapter between the presentation layer and the pure core. Every call
recomputes from the trade list it is given; nothing is cached or held
between calls.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

import config
from aggregation import StockAggregate, aggregate_stocks
from metrics import Metrics, calculate_metrics
from optimizer import OptimizerResult, apply_thresholds, grid_search
from simulation import SimulationResult, simulate_portfolio
from trades import Trade, TradeFilter, cutoff_for_range, filter_trades

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModeSummary:
    mode: str
    title: str
    trades: List[Trade]
    metrics: Optional[Metrics]              # None = no closed trades
    simulation: Optional[SimulationResult]  # None = nothing to simulate


def summarize_modes(
    trades: Sequence[Trade],
    time_range: Optional[str] = None,
    trade_filter: Optional[TradeFilter] = None,
    allocation: Optional[float] = None,
    now: Optional[int] = None,
    modes: Optional[Sequence[str]] = None,
) -> Dict[str, ModeSummary]:
    """
    Metrics and portfolio simulation for every bot mode.

    `trade_filter` is applied on top of the per-mode and time-range
    restriction; its own `mode` and `since` are overridden.
    """
    now = int(time.time()) if now is None else int(now)
    if time_range is None:
        time_range = config.DEFAULT_TIME_RANGE
    if modes is None:
        modes = list(config.MODES)
    base = trade_filter or TradeFilter()
    since = cutoff_for_range(time_range, now)

    summaries = {}
    for mode in modes:
        mode_trades = filter_trades(trades, replace(base, mode=mode, since=since))
        summaries[mode] = ModeSummary(
            mode=mode,
            title=config.MODES.get(mode, mode),
            trades=mode_trades,
            metrics=calculate_metrics(mode_trades),
            simulation=simulate_portfolio(mode_trades, allocation, now),
        )
    return summaries


def recommend_filters(
    trades: Sequence[Trade],
    mode: str,
    time_range: Optional[str] = None,
    now: Optional[int] = None,
    workers: Optional[int] = None,
    progress: bool = False,
) -> List[OptimizerResult]:
    """Aggregate one mode's trades per symbol and run the grid search."""
    now = int(time.time()) if now is None else int(now)
    if time_range is None:
        time_range = config.DEFAULT_TIME_RANGE
    pool = aggregate_stocks(trades, mode=mode, since=cutoff_for_range(time_range, now))
    logger.info(f"{mode}: {len(pool)} symbols in pool")
    return grid_search(pool, now=now, workers=workers, progress=progress)


def filter_for_result(
    pool: Sequence[StockAggregate],
    result: OptimizerResult,
    mode: Optional[str] = None,
    since: Optional[int] = None,
) -> TradeFilter:
    """
    Trade filter restricted to exactly the symbols a recommendation keeps.

    Feeding this back into `filter_trades` re-filters the trade list to the
    recommended selection.
    """
    symbols = frozenset(s.symbol for s in apply_thresholds(pool, result.thresholds))
    return TradeFilter(mode=mode, symbols=symbols, since=since)
