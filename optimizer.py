"""
Bot Performance Lab — Optimizer

Grid search over minimum-threshold filters on the per-symbol pool, scored
under four named stock-selection strategies.

Axes: trade count, win rate, risk/reward, total return. Each axis holds
{0} plus pool percentiles; the sweep is the full Cartesian product, which
stays small (a few hundred combinations) for pools of dozens to hundreds
of symbols.

Annualized return of a selection = mean total_return of the surviving
symbols / pool-wide years, where pool-wide years run from the earliest
first trade in the WHOLE pool to now (a common time base for every
combination, unlike the simulator's own CAGR span).
"""

import json
import logging
import math
import time
from dataclasses import dataclass, asdict
from enum import Enum
from itertools import product
from multiprocessing import Pool, cpu_count
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

import config
from aggregation import StockAggregate
from metrics import Metrics, calculate_metrics
from trades import Trade

logger = logging.getLogger(__name__)

# Below this the dispersion of a selection counts as zero
_STD_EPSILON = 1e-12


class OptimizationCancelled(Exception):
    """Raised when a sweep is cancelled; the partial result is discarded."""


# =============================================================================
# Strategies
# =============================================================================

class Strategy(Enum):
    MAX_RETURN = "Max Rendite"
    TOP_PICKS = "Top Picks"
    BROAD_STABLE = "Breit & Stabil"
    RISK_ADJUSTED = "Risiko-Optimiert"

    @classmethod
    def from_label(cls, label: str) -> "Strategy":
        for strategy in cls:
            if label in (strategy.value, strategy.name):
                return strategy
        raise ValueError(f"Unknown strategy: {label!r}")

    @property
    def description(self) -> str:
        return {
            Strategy.MAX_RETURN: "Best annualized return",
            Strategy.TOP_PICKS: "Few top performers",
            Strategy.BROAD_STABLE: "Many stocks, good annualized return",
            Strategy.RISK_ADJUSTED: "Stable annualized return",
        }[self]

    def min_stocks(self, pool_size: int) -> int:
        if self is Strategy.MAX_RETURN:
            return config.MAX_RETURN_MIN_STOCKS
        if self is Strategy.TOP_PICKS:
            return config.TOP_PICKS_MIN_STOCKS
        if self is Strategy.BROAD_STABLE:
            return max(config.BROAD_MIN_STOCKS, math.floor(pool_size * config.BROAD_MIN_POOL_SHARE))
        return config.RISK_ADJUSTED_MIN_STOCKS

    def max_stocks(self, pool_size: int) -> Optional[int]:
        if self is Strategy.TOP_PICKS:
            return max(config.TOP_PICKS_MAX_STOCKS, math.floor(pool_size * config.TOP_PICKS_MAX_POOL_SHARE))
        return None

    def score(self, returns_pa: np.ndarray, pool_size: int) -> Optional[float]:
        """
        Score a selection, given each surviving symbol's annualized return.

        Returns None when the selection violates the cardinality constraint.
        """
        n = len(returns_pa)
        upper = self.max_stocks(pool_size)
        if n < self.min_stocks(pool_size) or (upper is not None and n > upper):
            return None

        pa = float(returns_pa.mean())
        if self is Strategy.RISK_ADJUSTED:
            std = float(returns_pa.std())
            if std < _STD_EPSILON:
                std = 1.0
            # Sharpe-like, scaled by p.a.
            return pa * (pa / std)
        return pa


# =============================================================================
# Thresholds
# =============================================================================

AXES = ('min_trades', 'min_win_rate', 'min_risk_reward', 'min_total_return')


@dataclass(frozen=True)
class Thresholds:
    """Minimum per-symbol values; None means the axis is not constrained."""
    min_trades: Optional[float] = None
    min_win_rate: Optional[float] = None
    min_risk_reward: Optional[float] = None
    min_total_return: Optional[float] = None

    def accepts(self, stock: StockAggregate) -> bool:
        if self.min_trades is not None and stock.total_trades < self.min_trades:
            return False
        if self.min_win_rate is not None and stock.win_rate < self.min_win_rate:
            return False
        if self.min_risk_reward is not None and stock.risk_reward < self.min_risk_reward:
            return False
        if self.min_total_return is not None and stock.total_return < self.min_total_return:
            return False
        return True

    def to_dict(self) -> Dict[str, float]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "Thresholds":
        unknown = set(data) - set(AXES)
        if unknown:
            raise ValueError(f"Unknown threshold axes: {sorted(unknown)}")
        return cls(**{k: float(v) for k, v in data.items()})


def apply_thresholds(pool: Iterable[StockAggregate], thresholds: Thresholds) -> List[StockAggregate]:
    """Symbols meeting or exceeding every threshold, pool order preserved."""
    return [s for s in pool if thresholds.accepts(s)]


def _axis_values(pool: Sequence[StockAggregate]) -> Dict[str, np.ndarray]:
    return {
        'min_trades': np.array([s.total_trades for s in pool], dtype=float),
        'min_win_rate': np.array([s.win_rate for s in pool], dtype=float),
        'min_risk_reward': np.array([s.risk_reward for s in pool], dtype=float),
        'min_total_return': np.array([s.total_return for s in pool], dtype=float),
    }


def _percentiles(values: np.ndarray, pcts: Sequence[float]) -> List[float]:
    """Nearest-rank style: sorted[min(floor(p * n), n - 1)]."""
    ordered = np.sort(values)
    n = len(ordered)
    return [float(ordered[min(math.floor(p * n), n - 1)]) for p in pcts]


def _unique_rounded(values: Iterable[float]) -> List[float]:
    out = []
    for v in values:
        r = round(float(v), 2)
        if r not in out:
            out.append(r)
    return out


def threshold_axes(pool: Sequence[StockAggregate]) -> Dict[str, List[float]]:
    """
    Candidate thresholds per axis, deduplicated and rounded to 2 decimals.

    The total-return axis starts with the pool floor (floor(min(0, min
    return))), its no-op value, since a 0 threshold already drops losers.
    """
    if not pool:
        return {axis: [0.0] for axis in AXES}
    values = _axis_values(pool)
    returns = values['min_total_return']
    return {
        'min_trades': _unique_rounded([0, *_percentiles(values['min_trades'], config.TRADES_PERCENTILES)]),
        'min_win_rate': _unique_rounded([0, *_percentiles(values['min_win_rate'], config.WIN_RATE_PERCENTILES)]),
        'min_risk_reward': _unique_rounded(
            [0, *_percentiles(values['min_risk_reward'], config.RISK_REWARD_PERCENTILES)]),
        'min_total_return': _unique_rounded(
            [math.floor(min(0.0, float(returns.min()))), 0,
             *_percentiles(returns, config.TOTAL_RETURN_PERCENTILES)]),
    }


def pool_years(pool: Sequence[StockAggregate], now: Optional[int] = None) -> float:
    """Years from the pool's earliest first trade to now (floored)."""
    now = int(time.time()) if now is None else int(now)
    if not pool:
        return config.OPTIMIZER_MIN_YEARS
    earliest = min(s.first_trade_time for s in pool)
    return max(config.OPTIMIZER_MIN_YEARS, (now - earliest) / config.SECONDS_PER_YEAR)


# =============================================================================
# Grid Search
# =============================================================================

@dataclass(frozen=True)
class OptimizerResult:
    strategy: Strategy
    thresholds: Thresholds   # no-op axes omitted
    count: int
    return_pa: float
    score: float
    symbols: Tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            'strategy': self.strategy.value,
            'description': self.strategy.description,
            'thresholds': self.thresholds.to_dict(),
            'count': self.count,
            'return_pa': self.return_pa,
            'score': self.score,
            'symbols': list(self.symbols),
        }


def _score_combo(
    columns: Tuple[np.ndarray, ...],
    returns_pa: np.ndarray,
    pool_size: int,
    strategies: Tuple[Strategy, ...],
    combo: Tuple[float, ...],
) -> Tuple[int, Tuple[Optional[float], ...]]:
    mask = np.ones(pool_size, dtype=bool)
    for column, threshold in zip(columns, combo):
        mask &= column >= threshold
    selected = returns_pa[mask]
    return int(mask.sum()), tuple(s.score(selected, pool_size) for s in strategies)


def _score_chunk(args: Tuple) -> List[Tuple[int, Tuple[Optional[float], ...]]]:
    """Score a chunk of combinations (worker function)."""
    columns, returns_pa, pool_size, strategies, combos = args
    return [_score_combo(columns, returns_pa, pool_size, strategies, c) for c in combos]


def _chunks(items: List, size: int) -> List[List]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def _locked_thresholds(combo: Tuple[float, ...], columns: Tuple[np.ndarray, ...]) -> Thresholds:
    # An axis at or below every symbol's value filters nothing
    locked = {}
    for axis, threshold, column in zip(AXES, combo, columns):
        if threshold > column.min():
            locked[axis] = threshold
    return Thresholds(**locked)


def grid_search(
    pool: Sequence[StockAggregate],
    strategies: Optional[Iterable[Strategy]] = None,
    now: Optional[int] = None,
    workers: Optional[int] = None,
    progress: bool = False,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> List[OptimizerResult]:
    """
    Find the best threshold combination per strategy.

    Args:
        pool: Per-symbol aggregates for one bot mode
        strategies: Strategies to score (default: all four)
        now: Reference timestamp for pool-wide years (default: wall clock)
        workers: Worker processes (default: config.OPTIMIZER_WORKERS)
        progress: Show progress bar
        should_cancel: Polled between combinations; True aborts the sweep

    Returns:
        One OptimizerResult per strategy that found a qualifying
        combination, in strategy order. Ties keep the first combination in
        enumeration order, whether or not the sweep runs in parallel.

    Raises:
        OptimizationCancelled: if `should_cancel` returned True
    """
    strategies = tuple(Strategy) if strategies is None else tuple(strategies)
    if workers is None:
        workers = config.OPTIMIZER_WORKERS
    pool = list(pool)
    if len(pool) < config.OPTIMIZER_MIN_POOL or not strategies:
        return []

    years = pool_years(pool, now)
    values = _axis_values(pool)
    columns = tuple(values[axis] for axis in AXES)
    returns_pa = values['min_total_return'] / years
    pool_size = len(pool)

    axes = threshold_axes(pool)
    combos = list(product(*(axes[axis] for axis in AXES)))
    logger.info(f"Grid search: {len(combos)} combinations, {pool_size} symbols, "
                f"{len(strategies)} strategies")

    def check_cancel():
        if should_cancel is not None and should_cancel():
            logger.info("Grid search cancelled")
            raise OptimizationCancelled()

    # Scores in enumeration order
    scored = []
    workers = max(1, min(workers, cpu_count()))
    if workers == 1:
        iterator = tqdm(combos, desc="Grid search") if progress else combos
        for combo in iterator:
            check_cancel()
            scored.append(_score_combo(columns, returns_pa, pool_size, strategies, combo))
    else:
        chunk_size = max(1, len(combos) // (workers * 4))
        args_list = [(columns, returns_pa, pool_size, strategies, chunk)
                     for chunk in _chunks(combos, chunk_size)]
        with Pool(processes=workers) as mp_pool:
            iterator = mp_pool.imap(_score_chunk, args_list)
            if progress:
                iterator = tqdm(iterator, total=len(args_list), desc="Grid search")
            for chunk_scores in iterator:
                check_cancel()
                scored.extend(chunk_scores)

    best = {}
    for combo, (count, scores) in zip(combos, scored):
        for strategy, score in zip(strategies, scores):
            if score is None:
                continue
            current = best.get(strategy)
            if current is None or score > current[0]:
                best[strategy] = (score, combo, count)

    results = []
    for strategy in strategies:
        if strategy not in best:
            logger.info(f"{strategy.value}: no qualifying combination")
            continue
        score, combo, count = best[strategy]
        mask = np.ones(pool_size, dtype=bool)
        for column, threshold in zip(columns, combo):
            mask &= column >= threshold
        results.append(OptimizerResult(
            strategy=strategy,
            thresholds=_locked_thresholds(combo, columns),
            count=count,
            return_pa=float(returns_pa[mask].mean()),
            score=score,
            symbols=tuple(s.symbol for s, keep in zip(pool, mask) if keep),
        ))

    logger.info(f"Grid search complete: {len(results)}/{len(strategies)} strategies qualified")
    return results


# =============================================================================
# Locked Filter Evaluation
# =============================================================================

@dataclass(frozen=True)
class ThresholdEvaluation:
    stocks: List[StockAggregate]
    count: int
    medians: Dict[str, float]
    trade_count: int
    metrics: Optional[Metrics]   # over the matching trades; None = no data
    return_pa: float


def evaluate_thresholds(
    pool: Sequence[StockAggregate],
    thresholds: Thresholds,
    trades: Iterable[Trade] = (),
    mode: Optional[str] = None,
    since: int = 0,
    now: Optional[int] = None,
) -> ThresholdEvaluation:
    """
    Evaluate one locked threshold set.

    Annualization here uses the surviving symbols' own earliest trade (with
    the same floor), matching what the user sees for a manual selection.
    """
    now = int(time.time()) if now is None else int(now)
    stocks = apply_thresholds(pool, thresholds)
    symbols = {s.symbol for s in stocks}

    if stocks:
        medians = {
            'total_trades': float(np.median([s.total_trades for s in stocks])),
            'win_rate': float(np.median([s.win_rate for s in stocks])),
            'risk_reward': round(float(np.median([s.risk_reward for s in stocks])), 1),
            'total_return': float(round(np.median([s.total_return for s in stocks]))),
            'market_cap': float(round(np.median([s.market_cap / 1e9 for s in stocks]))),
        }
        return_pa = float(np.mean([s.total_return for s in stocks])) / pool_years(stocks, now)
    else:
        medians = {k: 0.0 for k in ('total_trades', 'win_rate', 'risk_reward', 'total_return', 'market_cap')}
        return_pa = 0.0

    matching = [
        t for t in trades
        if t.symbol in symbols and (mode is None or t.mode == mode) and t.entry_time >= since
    ]
    return ThresholdEvaluation(
        stocks=stocks,
        count=len(stocks),
        medians=medians,
        trade_count=len(matching),
        metrics=calculate_metrics(matching),
        return_pa=return_pa,
    )


# =============================================================================
# Presets I/O
# =============================================================================

def save_presets(results: List[OptimizerResult], filename=None):
    """Save recommended filters to JSON file."""
    if filename is None:
        config.RESULTS_DIR.mkdir(parents=True, exist_ok=True)
        filename = config.RESULTS_DIR / "recommended_filters.json"

    with open(filename, 'w') as f:
        json.dump([r.to_dict() for r in results], f, indent=2)

    logger.info(f"Saved {len(results)} presets to {filename}")


def load_presets(filename=None) -> List[dict]:
    """Load recommended filters from JSON file."""
    if filename is None:
        filename = config.RESULTS_DIR / "recommended_filters.json"

    with open(filename, 'r') as f:
        return json.load(f)
