import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from trades import Trade  # noqa: E402

DAY = 86_400
YEAR = 365 * DAY
NOW = 1_739_491_200  # 2025-02-14 00:00 UTC


def build_trade(
    symbol="AAPL",
    return_pct=0.0,
    entry_time=NOW - 60 * DAY,
    exit_time=None,
    is_open=False,
    **extra,
):
    """Closed trade by default, exiting 30 days after entry."""
    if not is_open and exit_time is None:
        exit_time = entry_time + 30 * DAY
    exit_price = None if is_open else 100 * (1 + return_pct / 100) or 1.0
    return Trade(
        symbol=symbol,
        entry_time=entry_time,
        entry_price=100.0,
        return_pct=return_pct,
        is_open=is_open,
        exit_time=exit_time,
        exit_price=exit_price,
        **extra,
    )


@pytest.fixture
def make_trade():
    return build_trade


@pytest.fixture
def now():
    return NOW
