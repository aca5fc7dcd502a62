"""
Bot Performance Lab — Metrics

Win rate, risk/reward, total & average return and max drawdown for a set of
trades. Pure functions: the same input list always yields the same Metrics.

Conventions:
    - Only closed trades are counted; open trades are dropped first.
    - A return of exactly 0 counts as a win.
    - total_return is the simple sum of return_pct (not compounded).
    - max_drawdown walks the trades in ascending entry_time order on a
      compounded equity index starting at 100.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

import numpy as np

from trades import Trade


# =============================================================================
# Risk/Reward Ratio
# =============================================================================

class RatioKind(str, Enum):
    FINITE = "finite"
    UNBOUNDED = "unbounded"   # wins but no losses
    UNDEFINED = "undefined"   # nothing to compare


@dataclass(frozen=True)
class RiskReward:
    """
    Discriminated risk/reward result.

    Never holds a float infinity; callers must go through `as_float` to get
    a number and decide what an unbounded ratio means for them.
    """
    kind: RatioKind
    value: Optional[float] = None

    @classmethod
    def finite(cls, value: float) -> "RiskReward":
        return cls(RatioKind.FINITE, float(value))

    @classmethod
    def unbounded(cls) -> "RiskReward":
        return cls(RatioKind.UNBOUNDED)

    @classmethod
    def undefined(cls) -> "RiskReward":
        return cls(RatioKind.UNDEFINED)

    @property
    def is_finite(self) -> bool:
        return self.kind is RatioKind.FINITE

    @property
    def is_unbounded(self) -> bool:
        return self.kind is RatioKind.UNBOUNDED

    def as_float(self, unbounded: Optional[float] = None) -> Optional[float]:
        """Numeric value; `unbounded` is returned for the unbounded case."""
        if self.kind is RatioKind.FINITE:
            return self.value
        if self.kind is RatioKind.UNBOUNDED:
            return unbounded
        return None

    def __str__(self) -> str:
        if self.kind is RatioKind.FINITE:
            return f"{self.value:.2f}"
        if self.kind is RatioKind.UNBOUNDED:
            return "∞"
        return "n/a"


def risk_reward_ratio(avg_win: float, avg_loss: float) -> RiskReward:
    """Average win over average (absolute) loss."""
    if avg_loss > 0:
        return RiskReward.finite(avg_win / avg_loss)
    if avg_win > 0:
        return RiskReward.unbounded()
    return RiskReward.finite(0.0)


# =============================================================================
# Metrics
# =============================================================================

@dataclass(frozen=True)
class Metrics:
    total_trades: int
    wins: int
    losses: int
    win_rate: float
    risk_reward: RiskReward
    total_return: float
    avg_return: float
    avg_win: float
    avg_loss: float
    max_drawdown: float

    def to_dict(self) -> dict:
        return {
            'total_trades': self.total_trades,
            'wins': self.wins,
            'losses': self.losses,
            'win_rate': self.win_rate,
            'risk_reward': self.risk_reward.as_float(),
            'risk_reward_kind': self.risk_reward.kind.value,
            'total_return': self.total_return,
            'avg_return': self.avg_return,
            'avg_win': self.avg_win,
            'avg_loss': self.avg_loss,
            'max_drawdown': self.max_drawdown,
        }


def closed_trades(trades: Iterable[Trade]) -> List[Trade]:
    return [t for t in trades if not t.is_open]


def sort_by_entry(trades: Iterable[Trade]) -> List[Trade]:
    # sorted() is stable: equal entry times keep their input order
    return sorted(trades, key=lambda t: t.entry_time)


def max_drawdown(trades: Iterable[Trade]) -> float:
    """
    Largest peak-to-trough decline (%) of a compounded equity index.

    The index starts at 100 and is multiplied by (1 + return_pct/100) per
    trade in ascending entry_time order.
    """
    ordered = sort_by_entry(trades)
    if not ordered:
        return 0.0

    returns = np.array([t.return_pct for t in ordered], dtype=float)
    equity = np.concatenate(([100.0], 100.0 * np.cumprod(1.0 + returns / 100.0)))
    peak = np.maximum.accumulate(equity)
    drawdown = (peak - equity) / peak * 100.0
    return float(drawdown.max())


def compound_growth(trades: Iterable[Trade]) -> float:
    """Compounded growth factor of the closed trades, in entry order."""
    return math.prod(1.0 + t.return_pct / 100.0 for t in sort_by_entry(closed_trades(trades)))


def calculate_metrics(trades: Iterable[Trade]) -> Optional[Metrics]:
    """
    Calculate performance metrics for a trade set.

    Returns:
        Metrics, or None when there are no closed trades ("no data").
    """
    closed = closed_trades(trades)
    if not closed:
        return None

    returns = [t.return_pct for t in closed]
    wins = [r for r in returns if r >= 0]
    losses = [r for r in returns if r < 0]

    total = len(returns)
    total_return = sum(returns)
    avg_win = sum(wins) / len(wins) if wins else 0.0
    avg_loss = sum(abs(r) for r in losses) / len(losses) if losses else 0.0

    return Metrics(
        total_trades=total,
        wins=len(wins),
        losses=len(losses),
        win_rate=len(wins) / total * 100,
        risk_reward=risk_reward_ratio(avg_win, avg_loss),
        total_return=total_return,
        avg_return=total_return / total,
        avg_win=avg_win,
        avg_loss=avg_loss,
        max_drawdown=max_drawdown(closed),
    )
