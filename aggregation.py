"""
Bot Performance Lab — Stock Aggregation

Collapses trade records into one summary per symbol. This is the search
space for the optimizer.

The per-symbol statistics (win rate, risk/reward, average return, market
cap) arrive pre-computed on every trade record and are passed through, not
recomputed. Only the trade count, the summed return and the first/last
trade dates are reduced here.
"""

from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

import pandas as pd

from trades import Trade


@dataclass(frozen=True)
class StockAggregate:
    symbol: str
    win_rate: float
    risk_reward: float
    avg_return: float
    market_cap: float
    total_trades: int
    total_return: float       # simple sum of return_pct
    first_trade_time: int     # earliest entry
    last_trade_time: int      # latest entry


def aggregate_stocks(
    trades: Iterable[Trade],
    mode: Optional[str] = None,
    since: int = 0,
) -> List[StockAggregate]:
    """
    Group trades by symbol within a mode and time window.

    Args:
        trades: Trade records
        mode: Only aggregate trades of this bot mode (None = all)
        since: Minimum entry timestamp

    Returns:
        One StockAggregate per symbol, in first-seen order
    """
    rows = [
        {
            'symbol': t.symbol,
            'return_pct': t.return_pct,
            'entry_time': t.entry_time,
            'win_rate': t.win_rate,
            'risk_reward': t.risk_reward,
            'avg_return': t.avg_return,
            'market_cap': t.market_cap,
        }
        for t in trades
        if (mode is None or t.mode == mode) and t.entry_time >= since
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    grouped = df.groupby('symbol', sort=False).agg(
        total_trades=('return_pct', 'size'),
        total_return=('return_pct', 'sum'),
        first_trade_time=('entry_time', 'min'),
        last_trade_time=('entry_time', 'max'),
        win_rate=('win_rate', 'first'),
        risk_reward=('risk_reward', 'first'),
        avg_return=('avg_return', 'first'),
        market_cap=('market_cap', 'first'),
    ).reset_index()

    return [
        StockAggregate(
            symbol=row.symbol,
            win_rate=float(row.win_rate),
            risk_reward=float(row.risk_reward),
            avg_return=float(row.avg_return),
            market_cap=float(row.market_cap),
            total_trades=int(row.total_trades),
            total_return=float(row.total_return),
            first_trade_time=int(row.first_trade_time),
            last_trade_time=int(row.last_trade_time),
        )
        for row in grouped.itertuples(index=False)
    ]


def aggregates_to_df(pool: List[StockAggregate]) -> pd.DataFrame:
    """Convert stock aggregates to a DataFrame for display/export."""
    if not pool:
        return pd.DataFrame()
    return pd.DataFrame([asdict(s) for s in pool])
