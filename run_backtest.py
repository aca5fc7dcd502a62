#!/usr/bin/env python
"""
Bot Performance Lab — CLI Entry Point

Per-mode performance metrics and portfolio simulation for an exported
trade history (JSON array of trade records).

Usage examples:
    python run_backtest.py --trades history.json
    python run_backtest.py --trades history.json --range 3y --allocation 500
    python run_backtest.py --trades history.json --mode quant --export-curve curve.csv
    python run_backtest.py --config  # Show configuration
"""

import argparse
import sys
from datetime import datetime, timezone

import config


def _fmt_date(ts):
    if not ts:
        return '-'
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime('%Y-%m-%d')


def print_mode_summary(summary):
    """Pretty print one mode's metrics and simulation."""
    print("\n" + "=" * 60)
    print(f"{summary.title.upper()} ({summary.mode})")
    print("=" * 60)

    m = summary.metrics
    if m is None:
        print("No closed trades in range.")
        return

    print(f"Trades:          {m.total_trades} ({m.wins} W / {m.losses} L)")
    print(f"Win Rate:        {m.win_rate:.1f}%")
    print(f"Risk/Reward:     {m.risk_reward}")
    print(f"Total Return:    {m.total_return:+.2f}%")
    print(f"Avg Return:      {m.avg_return:+.2f}%")
    print(f"Max Drawdown:    {m.max_drawdown:.2f}%")

    sim = summary.simulation
    if sim is None:
        return
    print("-" * 60)
    print(f"Capital/Trade:   {sim.allocation:,.2f}")
    print(f"Required:        {sim.required_capital:,.2f} "
          f"({sim.max_concurrent_positions} x {sim.allocation:,.2f})")
    print(f"Profit:          {sim.total_profit:+,.2f}")
    print(f"End Capital:     {sim.end_capital:,.2f}")
    print(f"ROI:             {sim.roi:+.2f}%")
    print(f"CAGR:            {sim.cagr:+.2f}% ({sim.years:.2f} years)")
    print(f"Open Positions:  {sim.open_count}")
    print(f"Period:          {_fmt_date(sim.trades[0].entry_time)} to "
          f"{_fmt_date(sim.equity_curve[-1].time)}")


def main():
    parser = argparse.ArgumentParser(
        description='Bot Performance Lab',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_backtest.py --trades history.json                  # All modes, 1 year
  python run_backtest.py --trades history.json --range all      # Full history
  python run_backtest.py --config                               # Show configuration
        """
    )

    parser.add_argument('--config', action='store_true',
                        help='Show current configuration')
    parser.add_argument('--trades', type=str,
                        help='Trade history JSON file')
    parser.add_argument('--mode', type=str, choices=list(config.MODES),
                        help='Only this bot mode (default: all)')
    parser.add_argument('--range', dest='time_range', type=str, default=config.DEFAULT_TIME_RANGE,
                        choices=[*config.TIME_RANGES, 'all'],
                        help=f'Time range (default: {config.DEFAULT_TIME_RANGE})')
    parser.add_argument('--allocation', type=float, default=config.DEFAULT_ALLOCATION,
                        help=f'Capital per trade (default: {config.DEFAULT_ALLOCATION:,.0f})')
    parser.add_argument('--symbols', type=str,
                        help='Comma-separated symbol allow-list')
    parser.add_argument('--closed-only', action='store_true',
                        help='Ignore open trades')
    parser.add_argument('--strict', action='store_true',
                        help='Fail on invalid trade records instead of skipping them')

    # Output options
    parser.add_argument('--export-curve', type=str,
                        help='Export equity curve to CSV (requires --mode)')
    parser.add_argument('--export-trades', type=str,
                        help='Export filtered trades to CSV (requires --mode)')

    parser.add_argument('--log', action='store_true',
                        help=f'Also write log output to {config.LOG_FILE.name}')

    args = parser.parse_args()
    config.setup_logging(to_file=args.log)

    if args.config:
        config.print_config_summary()
        return 0

    if not args.trades:
        parser.print_help()
        return 1

    if (args.export_curve or args.export_trades) and not args.mode:
        parser.error('--export-curve/--export-trades require --mode')

    from trades import TradeFilter, load_trades, trades_to_df
    from performance import summarize_modes
    from simulation import equity_curve_df

    try:
        trades = load_trades(args.trades, strict=args.strict)
    except (OSError, ValueError) as e:
        print(f"Could not load trades: {e}", file=sys.stderr)
        return 1

    symbols = None
    if args.symbols is not None:
        symbols = frozenset(s.strip() for s in args.symbols.split(',') if s.strip())
    trade_filter = TradeFilter(symbols=symbols, closed_only=args.closed_only)

    print("\n" + "=" * 60)
    print("Bot Performance Overview")
    print("=" * 60)
    print(f"Trades Loaded:   {len(trades)}")
    print(f"Time Range:      {args.time_range}")
    print(f"Capital/Trade:   {args.allocation:,.2f}")

    summaries = summarize_modes(
        trades,
        time_range=args.time_range,
        trade_filter=trade_filter,
        allocation=args.allocation,
        modes=[args.mode] if args.mode else None,
    )
    for summary in summaries.values():
        print_mode_summary(summary)

    if args.mode:
        summary = summaries[args.mode]
        if args.export_curve:
            if summary.simulation is None:
                print("\nNothing to export: no simulation for this mode.")
            else:
                equity_curve_df(summary.simulation).to_csv(args.export_curve, index=False)
                print(f"\nEquity curve exported to: {args.export_curve}")
        if args.export_trades:
            trades_df = trades_to_df(summary.trades)
            if len(trades_df) > 0:
                trades_df.to_csv(args.export_trades, index=False)
                print(f"\nTrades exported to: {args.export_trades}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
