#!/usr/bin/env python
"""
Filter Optimization Script

This script runs:
1. Per-symbol aggregation of one bot mode's trade history
2. Grid search over minimum thresholds (trades, win rate, R:R, total return)
3. One recommended filter set per selection strategy

Usage:
    python run_optimization.py --trades history.json --mode defensive
    python run_optimization.py --trades history.json --mode quant --range 3y --workers 4 --save
"""

import argparse
import sys
import time

import config


def print_recommendations(results, pool_size: int):
    """Pretty print optimizer results."""
    print("\n" + "=" * 70)
    print("RECOMMENDED FILTERS")
    print("=" * 70)

    if not results:
        print("No strategy found a qualifying combination.")
        return

    print(f"\n{'Strategy':<20} {'Stocks':>7} {'p.a.':>9}  Thresholds")
    print("-" * 70)
    for r in results:
        thresholds = r.thresholds.to_dict()
        locked = ", ".join(f"{k}={v:g}" for k, v in thresholds.items()) or "(none)"
        print(f"{r.strategy.value:<20} {r.count:>3}/{pool_size:<3} {r.return_pa:>+8.2f}%  {locked}")
    print("-" * 70)


def main():
    parser = argparse.ArgumentParser(description='Recommend stock-selection filters per strategy')
    parser.add_argument('--trades', type=str, required=True,
                        help='Trade history JSON file')
    parser.add_argument('--mode', type=str, required=True, choices=list(config.MODES),
                        help='Bot mode to optimize')
    parser.add_argument('--range', dest='time_range', type=str, default=config.DEFAULT_TIME_RANGE,
                        choices=[*config.TIME_RANGES, 'all'],
                        help=f'Time range (default: {config.DEFAULT_TIME_RANGE})')
    parser.add_argument('--workers', type=int, default=config.OPTIMIZER_WORKERS,
                        help=f'Worker processes (default: {config.OPTIMIZER_WORKERS})')
    parser.add_argument('--save', action='store_true',
                        help='Save recommendations to results/recommended_filters.json')
    parser.add_argument('--quiet', action='store_true',
                        help='Suppress progress output')
    parser.add_argument('--log', action='store_true',
                        help=f'Also write log output to {config.LOG_FILE.name}')
    args = parser.parse_args()

    config.setup_logging(to_file=args.log)

    from aggregation import aggregate_stocks, aggregates_to_df
    from optimizer import grid_search, save_presets
    from trades import cutoff_for_range, load_trades

    print("=" * 70)
    print("BOT PERFORMANCE LAB — FILTER OPTIMIZATION")
    print("=" * 70)

    try:
        trades = load_trades(args.trades)
    except (OSError, ValueError) as e:
        print(f"Could not load trades: {e}", file=sys.stderr)
        return 1

    now = int(time.time())
    pool = aggregate_stocks(trades, mode=args.mode, since=cutoff_for_range(args.time_range, now))
    print(f"Mode: {config.MODES[args.mode]} | Range: {args.time_range} | Symbols: {len(pool)}")

    if not args.quiet and pool:
        top = aggregates_to_df(pool).sort_values('total_return', ascending=False).head(10)
        print("\nTop symbols by total return:")
        print(top[['symbol', 'total_trades', 'win_rate', 'risk_reward', 'total_return']].to_string(index=False))

    start = time.time()
    results = grid_search(pool, now=now, workers=args.workers, progress=not args.quiet)
    print_recommendations(results, len(pool))
    print(f"\nSearch time: {time.time() - start:.1f}s")

    if args.save:
        save_presets(results)
        print(f"Saved to: {config.RESULTS_DIR / 'recommended_filters.json'}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
