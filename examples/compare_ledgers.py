"""Compare the cost of token operations on Stellar and the XRP Ledger."""

import asyncio
import logging

from dotenv import load_dotenv

from chaincost import (
    ChainId,
    NoHealthyChainsError,
    OperationId,
    OperationStatus,
    Orchestrator,
    Settings,
    write_csv,
)

# Load environment variables from .env file
load_dotenv()

CHAINS = [ChainId.STELLAR, ChainId.RIPPLE]
OPERATIONS = [
    OperationId.CREATE_NATIVE_FT,
    OperationId.MINT_NATIVE_FT,
    OperationId.TRANSFER_NATIVE_FT,
    OperationId.SUBMIT_MESSAGE,
]


async def main():
    settings = Settings.from_env("testnet")
    orchestrator = Orchestrator(settings)

    try:
        report = await orchestrator.run_report(CHAINS, OPERATIONS)
    except NoHealthyChainsError as exc:
        print(f"Nothing to compare: {exc.unhealthy}")
        return

    for chain in report.skipped_chains:
        print(f"Skipped {chain.value} (health check failed)")

    for result in report.results:
        if result.status is OperationStatus.SUCCESS:
            print(
                f"{result.chain.value:<8} {result.operation.value:<22} "
                f"{result.native_cost} {result.native_currency_symbol} (${result.usd_cost})"
            )
        else:
            print(f"{result.chain.value:<8} {result.operation.value:<22} {result.status.value}")

    path = write_csv(report.results, "output", "ledger_comparison")
    print(f"Saved to {path}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
