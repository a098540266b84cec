#!/usr/bin/env python3
"""Export the alert log as CSV."""

import argparse
import asyncio
import sys
from pathlib import Path

from fleetwatch.lib.alertlog import ALL_KINDS, filter_alerts, project, to_csv
from fleetwatch.lib.config import AlertKind
from fleetwatch.lib.exceptions import StoreError
from fleetwatch.lib.store import FleetStore, RedisStore
from fleetwatch.logging import configure, get_logger

logger = get_logger("export")


async def export_alerts(store: FleetStore, kind: str | None = None) -> str:
    """Read the alert log once and render it as CSV, newest first."""
    alerts = filter_alerts(project(await store.fetch_alerts()), kind)
    logger.info("Exporting %d alert(s)", len(alerts))
    return to_csv(alerts)


async def _run(kind: str | None, output: Path | None) -> int:
    try:
        async with RedisStore() as store:
            csv = await export_alerts(store, kind)
    except (StoreError, OSError) as e:
        logger.error("Export failed: %s", e)
        return 1

    if output is None:
        sys.stdout.write(csv + "\n")
    else:
        output.write_text(csv + "\n", encoding="utf-8")
        logger.info("Saved to: %s", output)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Export the fleet alert log as CSV"
    )
    parser.add_argument(
        "--kind",
        choices=[ALL_KINDS, *AlertKind],
        default=ALL_KINDS,
        help="Only export alerts of this kind (default: All)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="File to write (default: stdout)",
    )
    args = parser.parse_args(argv)

    configure()
    return asyncio.run(_run(args.kind, args.output))


if __name__ == "__main__":
    sys.exit(main())
