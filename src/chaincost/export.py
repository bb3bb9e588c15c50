"""CSV export of run results."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from .types import OperationResult

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "chain",
    "operation",
    "status",
    "transactionHash",
    "transactionLink",
    "nativeCost",
    "usdCost",
    "nativeCurrencySymbol",
    "timestamp",
    "error",
)


def timestamped_filename(base_name: str, now: datetime | None = None) -> str:
    """Return ``<base>_<MM-DD-YYYY>_<HH-MM-SS>.csv``."""

    moment = now or datetime.now()
    return f"{base_name}_{moment:%m-%d-%Y}_{moment:%H-%M-%S}.csv"


def write_csv(
    results: Iterable[OperationResult],
    output_dir: str | Path,
    base_name: str = "results",
    *,
    now: datetime | None = None,
) -> Path:
    """Write ``results`` to a timestamped CSV file and return its path."""

    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / timestamped_filename(base_name, now)

    count = 0
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for result in results:
            writer.writerow(result.as_row())
            count += 1

    logger.info("Wrote %d result(s) to %s", count, path)
    return path
