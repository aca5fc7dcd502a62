"""
Bot Performance Lab — Trade Records

Trade data model, ingestion/validation, and the trade-set normalizer
(mode / symbol / time-window / status filters).

Trades are values: they are validated once at construction and never
mutated afterwards.
"""

import json
import logging
import math
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional

import pandas as pd

import config

logger = logging.getLogger(__name__)


class TradeValidationError(ValueError):
    """Raised when a trade record violates the data model."""


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class ExitReason(str, Enum):
    TP = "TP"
    SL = "SL"
    TSL = "TSL"
    SIGNAL = "SIGNAL"
    END = "END"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class Trade:
    """
    One historical trade of a bot.

    `return_pct` is authoritative: every derived figure uses it instead of
    recomputing from prices. Open trades carry their current unrealized
    return and have no exit fields.
    """
    symbol: str
    entry_time: int
    entry_price: float
    return_pct: float
    direction: Direction = Direction.LONG
    is_open: bool = False
    exit_time: Optional[int] = None
    exit_price: Optional[float] = None
    exit_reason: Optional[ExitReason] = None
    current_price: Optional[float] = None
    mode: Optional[str] = None
    name: Optional[str] = None
    # Per-symbol statistics attached by the history service
    win_rate: float = 0.0
    risk_reward: float = 0.0
    avg_return: float = 0.0
    market_cap: float = 0.0

    def __post_init__(self):
        if not self.symbol:
            raise TradeValidationError("symbol is required")
        if not self.entry_price > 0:
            raise TradeValidationError(f"{self.symbol}: entry_price must be positive")
        if self.exit_price is not None and not self.exit_price > 0:
            raise TradeValidationError(f"{self.symbol}: exit_price must be positive")
        for field_name in ('return_pct', 'win_rate', 'risk_reward', 'avg_return', 'market_cap'):
            if not math.isfinite(getattr(self, field_name)):
                raise TradeValidationError(f"{self.symbol}: {field_name} must be finite")

        if self.is_open:
            if self.exit_time is not None or self.exit_price is not None or self.exit_reason is not None:
                raise TradeValidationError(f"{self.symbol}: open trade cannot have exit fields")
        else:
            if self.exit_time is None:
                raise TradeValidationError(f"{self.symbol}: closed trade needs exit_time")
            if self.exit_time < self.entry_time:
                raise TradeValidationError(f"{self.symbol}: exit_time before entry_time")

    def resolved_exit(self, now: int) -> int:
        """Exit timestamp, with `now` standing in for open trades."""
        return self.exit_time if self.exit_time is not None else now

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Trade":
        """
        Build a trade from a history-feed record.

        Accepts the canonical field names as well as the feed's wire names
        (`entry_date`/`exit_date`, `status` = OPEN/CLOSED, exit_date 0 = none).
        """
        if not isinstance(record, Mapping):
            raise TradeValidationError(f"expected a trade record mapping, got {type(record).__name__}")

        def pick(*keys):
            for key in keys:
                value = record.get(key)
                if value is not None:
                    return value
            return None

        symbol = str(record.get('symbol') or '')
        try:
            entry_time = pick('entry_time', 'entry_date')
            if entry_time is None:
                raise TradeValidationError(f"{symbol}: entry_time is required")
            entry_time = int(entry_time)

            exit_time = pick('exit_time', 'exit_date')
            if exit_time is not None:
                exit_time = int(exit_time) or None
            exit_price = pick('exit_price')
            if exit_price is not None:
                exit_price = float(exit_price) or None
            exit_reason = pick('exit_reason')

            status = str(record.get('status') or '').upper()
            if record.get('is_open') is not None:
                is_open = bool(record['is_open'])
            elif status:
                is_open = status == 'OPEN'
            else:
                is_open = exit_time is None

            if is_open:
                # Feeds send zeroed exit fields for open positions
                exit_time = exit_price = exit_reason = None

            return cls(
                symbol=symbol,
                entry_time=entry_time,
                entry_price=float(pick('entry_price') or 0),
                return_pct=float(record.get('return_pct') or 0),
                direction=Direction(str(record.get('direction') or 'LONG').upper()),
                is_open=is_open,
                exit_time=exit_time,
                exit_price=exit_price,
                exit_reason=ExitReason(str(exit_reason).upper()) if exit_reason else None,
                current_price=float(record['current_price']) if record.get('current_price') else None,
                mode=record.get('mode'),
                name=record.get('name'),
                win_rate=float(record.get('win_rate') or 0),
                risk_reward=float(record.get('risk_reward') or 0),
                avg_return=float(record.get('avg_return') or 0),
                market_cap=float(record.get('market_cap') or 0),
            )
        except TradeValidationError:
            raise
        except (TypeError, ValueError) as e:
            raise TradeValidationError(f"{symbol}: {e}") from e


# =============================================================================
# Ingestion
# =============================================================================

def parse_trades(records: Iterable[Mapping[str, Any]], strict: bool = False) -> List[Trade]:
    """
    Build trades from raw records.

    In non-strict mode, invalid records are logged and skipped.
    """
    trades = []
    skipped = 0
    for record in records:
        try:
            trades.append(Trade.from_record(record))
        except TradeValidationError as e:
            if strict:
                raise
            skipped += 1
            logger.warning(f"Skipping invalid trade record: {e}")
    if skipped:
        logger.info(f"Parsed {len(trades)} trades ({skipped} skipped)")
    return trades


def load_trades(path, strict: bool = False) -> List[Trade]:
    """Load trades from a JSON file holding an array of records."""
    with open(Path(path), 'r') as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise TradeValidationError(f"{path}: expected a JSON array of trade records")
    return parse_trades(records, strict=strict)


def trades_to_df(trades: List[Trade]) -> pd.DataFrame:
    """Convert trades to a DataFrame for analysis/export."""
    if not trades:
        return pd.DataFrame()
    rows = []
    for t in trades:
        row = asdict(t)
        row['direction'] = t.direction.value
        row['exit_reason'] = t.exit_reason.value if t.exit_reason else None
        rows.append(row)
    return pd.DataFrame(rows)


# =============================================================================
# Normalizer
# =============================================================================

@dataclass(frozen=True)
class TradeFilter:
    """
    Filter specification for a trade set.

    `symbols=None` means no symbol restriction; an empty set excludes
    everything. Statistic bounds compare the per-symbol values attached to
    each trade (market cap bound is in billions).
    """
    mode: Optional[str] = None
    symbols: Optional[FrozenSet[str]] = None
    since: Optional[int] = None
    closed_only: bool = False
    min_win_rate: Optional[float] = None
    max_win_rate: Optional[float] = None
    min_risk_reward: Optional[float] = None
    max_risk_reward: Optional[float] = None
    min_avg_return: Optional[float] = None
    max_avg_return: Optional[float] = None
    min_market_cap: Optional[float] = None

    def matches(self, trade: Trade) -> bool:
        if self.mode is not None and trade.mode != self.mode:
            return False
        if self.symbols is not None and trade.symbol not in self.symbols:
            return False
        if self.since is not None and trade.entry_time < self.since:
            return False
        if self.closed_only and trade.is_open:
            return False
        if self.min_win_rate is not None and trade.win_rate < self.min_win_rate:
            return False
        if self.max_win_rate is not None and trade.win_rate > self.max_win_rate:
            return False
        if self.min_risk_reward is not None and trade.risk_reward < self.min_risk_reward:
            return False
        if self.max_risk_reward is not None and trade.risk_reward > self.max_risk_reward:
            return False
        if self.min_avg_return is not None and trade.avg_return < self.min_avg_return:
            return False
        if self.max_avg_return is not None and trade.avg_return > self.max_avg_return:
            return False
        if self.min_market_cap is not None and trade.market_cap < self.min_market_cap * 1e9:
            return False
        return True


def filter_trades(trades: Iterable[Trade], trade_filter: Optional[TradeFilter] = None) -> List[Trade]:
    """Return the trades matching `trade_filter`, order preserved."""
    if trade_filter is None:
        return list(trades)
    return [t for t in trades if trade_filter.matches(t)]


def cutoff_for_range(time_range: Optional[str], now: int) -> int:
    """
    Minimum entry timestamp for a dashboard time-range key.

    'all' (or an unknown key) means no cutoff.
    """
    lookback = config.TIME_RANGES.get(time_range or 'all')
    return now - lookback if lookback else 0
