#!/usr/bin/env python3
"""
Replay a fetch trace through the Branch History Table simulator.

Usage:
    python run_simulation.py --trace traces/loop.trace --entries 16 --history 2
    python run_simulation.py --sample traces/loop.trace --compare-history
"""

import sys
import argparse
from pathlib import Path

# Add project to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bhtsim.components.tables import TableRow
from bhtsim.errors import BHTError
from bhtsim.simulation.metrics import ResultsExporter
from bhtsim.simulation.simulator import BHTSimulator, SimulationConfig
from bhtsim.trace.parser import create_sample_trace
from bhtsim.utils.helpers import load_config, save_results, setup_logging


def build_config(args: argparse.Namespace) -> SimulationConfig:
    """Merge the YAML config (if any) with command line overrides."""
    values = load_config(args.config) if args.config else {}

    if args.entries is not None:
        values['num_entries'] = args.entries
    if args.history is not None:
        values['history_length'] = args.history
    if args.initial is not None:
        values['initial_bias'] = args.initial == 'take'
    if args.legacy_bgtz:
        values['strict_bgtz'] = False
    if args.verbose:
        values['verbose'] = True

    return SimulationConfig.from_dict(values)


def print_table(rows: list) -> None:
    """Print the final table state."""
    print(f"{TableRow.COLUMNS[0]:>5}  {TableRow.COLUMNS[1]:<8} {TableRow.COLUMNS[2]:<10} "
          f"{TableRow.COLUMNS[3]:>8} {TableRow.COLUMNS[4]:>10} {TableRow.COLUMNS[5]:>10}")
    print("-" * 58)
    for row in rows:
        if row['correct'] + row['incorrect'] == 0:
            continue
        print(f"{row['index']:>5}  {row['history']:<8} {row['prediction']:<10} "
              f"{row['correct']:>8} {row['incorrect']:>10} {row['precision']:>9.2f}%")


def main():
    parser = argparse.ArgumentParser(description='Branch History Table simulator')
    parser.add_argument('--trace', '-t', type=str,
                       help='Fetch trace file (.trace, optionally .gz/.xz/.bz2)')
    parser.add_argument('--sample', type=str, default=None,
                       help='Write a nested loop sample trace here and replay it')
    parser.add_argument('--config', '-c', type=str, default=None,
                       help='YAML config file')
    parser.add_argument('--entries', '-e', type=int, default=None,
                       help='Number of table entries (power of 2)')
    parser.add_argument('--history', '-H', type=int, choices=[1, 2], default=None,
                       help='History length per entry')
    parser.add_argument('--initial', choices=['take', 'not-take'], default=None,
                       help='Initial prediction of every entry')
    parser.add_argument('--legacy-bgtz', action='store_true',
                       help='Evaluate bgtz as rs >= 0 like the MARS BHT tool')
    parser.add_argument('--compare-history', action='store_true',
                       help='Run with 1 and 2 outcome history and compare')
    parser.add_argument('--max-fetches', '-n', type=int, default=None,
                       help='Stop after this many fetches')
    parser.add_argument('--output', '-o', type=str, default=None,
                       help='Directory to save results to')
    parser.add_argument('--formats', nargs='+', default=['json', 'csv'],
                       choices=['json', 'csv', 'yaml'],
                       help='Result formats')
    parser.add_argument('--log-level', default='WARNING',
                       help='Logging level (DEBUG prints every prediction)')
    parser.add_argument('--log-file', default=None,
                       help='Also log to this file')
    parser.add_argument('--verbose', '-v', action='store_true',
                       help='Show progress bar')

    args = parser.parse_args()
    try:
        setup_logging(args.log_level, args.log_file)
    except BHTError as e:
        parser.error(str(e))

    if args.sample:
        create_sample_trace(args.sample)
        trace_path = Path(args.sample)
        print(f"Sample trace written to: {trace_path}")
    elif args.trace:
        trace_path = Path(args.trace)
    else:
        parser.error("one of --trace or --sample is required")

    if not trace_path.exists():
        print(f"Error: Trace file not found: {trace_path}")
        sys.exit(1)

    try:
        config = build_config(args)
        history_lengths = [1, 2] if args.compare_history else [config.history_length]

        for history_length in history_lengths:
            config.history_length = history_length
            simulator = BHTSimulator(config)
            results = simulator.run(trace_path, max_fetches=args.max_fetches)

            print(f"\n{'='*58}")
            print(f"{config.num_entries} entries, {history_length}-bit history")
            print(f"{'='*58}")
            print(results.get_summary())
            print()
            print_table(results.table)

            if args.output:
                paths = save_results(results.to_dict(), args.output,
                                     name=f"bht_{config.num_entries}x{history_length}",
                                     formats=tuple(args.formats))
                for fmt, path in paths.items():
                    print(f"Saved {fmt}: {path}")
                table_path = Path(args.output) / f"bht_{config.num_entries}x{history_length}_table.csv"
                ResultsExporter.to_csv(results, str(table_path))
                print(f"Saved table: {table_path}")
    except BHTError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
