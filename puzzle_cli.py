#!/usr/bin/env python3
"""
Command-line entry point for the edge-matching puzzle GA.

Every run is described by a YAML run configuration; the few flags below
only override values from that file.

Examples:
    # Evolve a solution for the sample puzzle
    python3 puzzle_cli.py examples/evolve_run.yaml

    # Same run with a different seed and per-generation output
    python3 puzzle_cli.py --config examples/evolve_run.yaml --seed 7 --verbose

    # Score a saved arrangement against the sample puzzle
    python3 puzzle_cli.py examples/evaluate_run.yaml
"""

import argparse
import sys
from pathlib import Path

# Add project root to path if needed
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the puzzle GA CLI."""
    parser = argparse.ArgumentParser(
        description="Genetic algorithm for edge-matching tile puzzles",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        'config_file',
        nargs='?',
        help='Run configuration YAML file'
    )

    parser.add_argument(
        '--config', '-c',
        dest='config_option',
        help='Run configuration YAML file (alternative to the positional argument)'
    )

    parser.add_argument(
        '--seed', '-s',
        type=int,
        help="Override the configuration's random_seed"
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Print a line per generation'
    )
    verbosity.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress per-generation output'
    )

    return parser


def main(argv=None):
    """Main entry point for puzzle GA CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config_path = args.config_option or args.config_file
    if config_path is None:
        parser.print_help()
        sys.exit(1)

    overrides = {}
    if args.seed is not None:
        overrides['random_seed'] = args.seed
    if args.verbose or args.quiet:
        overrides['verbose'] = args.verbose

    try:
        from puzzle_ga.cli import run_from_config
        run_from_config(config_path, overrides)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
