"""
Bot Performance Lab — Configuration

config.py is the single source of truth for parameters.
You can override in notebook sessions:

    import config
    config.DEFAULT_ALLOCATION = 500
    config.OPTIMIZER_WORKERS = 4
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# =============================================================================
# Paths
# =============================================================================
BASE_DIR = Path(__file__).parent
RESULTS_DIR = Path(os.getenv("PERF_RESULTS_DIR", BASE_DIR / "results"))


# =============================================================================
# Time
# =============================================================================
SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Dashboard time-range keys -> lookback in seconds ('all' = no cutoff)
TIME_RANGES = {
    '1m': 30 * SECONDS_PER_DAY,
    '3m': 90 * SECONDS_PER_DAY,
    '6m': 180 * SECONDS_PER_DAY,
    '1y': SECONDS_PER_YEAR,
    '2y': 2 * SECONDS_PER_YEAR,
    '3y': 3 * SECONDS_PER_YEAR,
    '4y': 4 * SECONDS_PER_YEAR,
    '5y': 5 * SECONDS_PER_YEAR,
    '10y': 10 * SECONDS_PER_YEAR,
}
DEFAULT_TIME_RANGE = '1y'


# =============================================================================
# Bot Modes
# =============================================================================
# Key -> display title, in dashboard order
MODES = {
    'defensive': 'Defensiv',
    'aggressive': 'Aggressiv',
    'quant': 'Quant',
    'ditz': 'Ditz',
    'trader': 'Trader',
}


# =============================================================================
# Portfolio Simulation
# =============================================================================
DEFAULT_ALLOCATION = float(os.getenv("PERF_ALLOCATION", "100"))  # Capital per trade
CAGR_MIN_YEARS = 0.1              # Below this span, report ROI instead of CAGR
EQUITY_CURVE_MAX_POINTS = 1000    # Step is widened (whole days) above this


# =============================================================================
# Optimizer (Grid Search)
# =============================================================================
OPTIMIZER_MIN_YEARS = 0.25        # Floor for pool-wide annualization
OPTIMIZER_MIN_POOL = 2            # Fewer symbols -> no recommendations

# Candidate thresholds per axis (percentiles of the pool)
TRADES_PERCENTILES = (0.25, 0.5, 0.75)
WIN_RATE_PERCENTILES = (0.25, 0.5, 0.75, 0.9)
RISK_REWARD_PERCENTILES = (0.25, 0.5, 0.75)
TOTAL_RETURN_PERCENTILES = (0.25, 0.5, 0.75)

# Strategy cardinality constraints
MAX_RETURN_MIN_STOCKS = 3
TOP_PICKS_MIN_STOCKS = 5
TOP_PICKS_MAX_STOCKS = 15
TOP_PICKS_MAX_POOL_SHARE = 0.25
BROAD_MIN_STOCKS = 5
BROAD_MIN_POOL_SHARE = 0.40
RISK_ADJUSTED_MIN_STOCKS = 3

# Process fan-out for the sweep (1 = sequential)
OPTIMIZER_WORKERS = int(os.getenv("PERF_OPTIMIZER_WORKERS", "1"))


# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL = os.getenv("PERF_LOG_LEVEL", "INFO")
LOG_FILE = BASE_DIR / "performance_lab.log"


# =============================================================================
# Helper Functions
# =============================================================================
def setup_logging(to_file: bool = False):
    """Configure root logging for CLI runs (optionally also to LOG_FILE)."""
    handlers = [logging.StreamHandler()]
    if to_file:
        handlers.append(logging.FileHandler(LOG_FILE))
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S',
        handlers=handlers,
    )


def print_config_summary():
    """Print a summary of current configuration."""
    print("=" * 60)
    print("Bot Performance Lab - Configuration Summary")
    print("=" * 60)
    print(f"Results Dir: {RESULTS_DIR}")
    print(f"Modes: {', '.join(MODES)}")
    print(f"Default Time Range: {DEFAULT_TIME_RANGE}")
    print("-" * 60)
    print("Simulation:")
    print(f"  Capital per Trade: {DEFAULT_ALLOCATION:,.2f}")
    print(f"  CAGR Min Years: {CAGR_MIN_YEARS}")
    print(f"  Equity Curve Max Points: {EQUITY_CURVE_MAX_POINTS}")
    print("-" * 60)
    print("Optimizer:")
    print(f"  Min Years: {OPTIMIZER_MIN_YEARS}")
    print(f"  Min Pool: {OPTIMIZER_MIN_POOL}")
    print(f"  Top Picks: {TOP_PICKS_MIN_STOCKS}-max({TOP_PICKS_MAX_STOCKS}, {TOP_PICKS_MAX_POOL_SHARE:.0%} of pool)")
    print(f"  Broad: >= max({BROAD_MIN_STOCKS}, {BROAD_MIN_POOL_SHARE:.0%} of pool)")
    print(f"  Workers: {OPTIMIZER_WORKERS}")
    print("=" * 60)


if __name__ == "__main__":
    print_config_summary()
