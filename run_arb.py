#!/usr/bin/env python3
"""
Two-venue spread arbitrage CLI.

Watches a Liquidity Book pair and a constant-product pair for swaps and runs
one detect -> simulate -> execute cycle at a time. Runs in dry-run mode
unless settlement.is_deployed is set in the config.

Usage:
    python3 run_arb.py
    python3 run_arb.py --config configs/avax_wavax_usdc.yaml --once
    python3 run_arb.py --config configs/avax_wavax_usdc.yaml --analyze
"""

import argparse
import asyncio
import sys

from lb_arbitrage import logging_config
from lb_arbitrage.config import get_private_key, load_config
from lb_arbitrage.exceptions import ConfigError
from lb_arbitrage.runner import ArbRunner
from lb_arbitrage.utils import get_logger

logger = get_logger(__name__, minimal=True)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Liquidity Book / constant-product spread arbitrage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch both venues (dry run unless settlement.is_deployed)
  python3 run_arb.py --config configs/avax_wavax_usdc.yaml

  # Evaluate a single cycle and exit
  python3 run_arb.py --once

  # Simulate a range of trade sizes against current pool state
  python3 run_arb.py --analyze
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/avax_wavax_usdc.yaml",
        help="Path to config YAML file (default: configs/avax_wavax_usdc.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Run the trade-size analysis and exit",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )

    return parser.parse_args(argv)


async def _run(runner: ArbRunner, args: argparse.Namespace) -> None:
    await runner.build()
    if args.analyze:
        await runner.analyze()
    elif args.once:
        await runner.run_once()
    else:
        await runner.run()


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Config error: {e}")
        return 1

    runner = ArbRunner(config, private_key=get_private_key())
    try:
        runner.connect()
        asyncio.run(_run(runner, args))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Runner failed: {e}", exc_info=args.debug)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
