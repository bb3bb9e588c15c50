"""Command line entry point for cross-chain cost comparison runs."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from enum import Enum
from typing import TypeVar

from .config import Settings
from .exceptions import ChainCostError
from .export import write_csv
from .orchestrator import Orchestrator
from .types import ChainId, NetworkType, OperationId, OperationResult

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_enum_list(raw: str, enum_type: type[E]) -> list[E]:
    """Parse a comma separated list of enum values, keeping order and dropping repeats."""

    values: list[E] = []
    for item in raw.split(","):
        item = item.strip().lower()
        if not item:
            continue
        try:
            value = enum_type(item)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in enum_type)
            raise argparse.ArgumentTypeError(
                f"invalid value '{item}' (choose from {allowed})"
            ) from exc
        if value not in values:
            values.append(value)
    if not values:
        raise argparse.ArgumentTypeError("at least one value is required")
    return values


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chaincost",
        description="Benchmark the cost of equivalent operations across ledgers",
    )
    parser.add_argument(
        "--network",
        choices=[network.value for network in NetworkType],
        default=None,
        help="Network to target (defaults to CHAINCOST_NETWORK or testnet)",
    )
    parser.add_argument(
        "--chains",
        type=lambda raw: parse_enum_list(raw, ChainId),
        default=list(ChainId),
        help="Comma separated chains (default: all)",
    )
    parser.add_argument(
        "--operations",
        type=lambda raw: parse_enum_list(raw, OperationId),
        default=list(OperationId),
        help="Comma separated operation identifiers (default: all)",
    )
    parser.add_argument("--output-dir", default="output", help="Directory for the CSV report")
    parser.add_argument("--base-name", default="results", help="CSV file name prefix")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="INFO")
    return parser


def format_summary(results: Sequence[OperationResult]) -> str:
    lines = []
    for result in results:
        cost = (
            f"{result.native_cost} {result.native_currency_symbol} (${result.usd_cost})"
            if result.usd_cost is not None
            else "-"
        )
        suffix = f"  {result.error}" if result.error else ""
        lines.append(
            f"{result.chain.value:<10} {result.operation.value:<24} "
            f"{result.status.value:<15} {cost}{suffix}"
        )
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = Settings.from_env(args.network, dotenv_path=args.env_file)
        logger.info(
            "Starting %s run on %s",
            settings.network.value,
            ", ".join(chain.value for chain in args.chains),
        )
        orchestrator = Orchestrator(settings)
        results = asyncio.run(orchestrator.run(args.chains, args.operations))
    except ChainCostError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    print(format_summary(results))
    path = write_csv(results, args.output_dir, args.base_name)
    print(f"Results written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
