#!/usr/bin/env python3
"""Show or update the fleet thresholds in the store.

Without options, prints the active thresholds. With any of the options,
applies them over the active thresholds and saves the result as a whole.
"""

import argparse
import asyncio
import json
import sys

from fleetwatch.lib.editor import ThresholdEditor
from fleetwatch.lib.exceptions import (
    InvalidThresholdError,
    StoreError,
    ThresholdSaveError,
)
from fleetwatch.lib.monitor import FleetMonitor
from fleetwatch.lib.store import RedisStore
from fleetwatch.logging import configure, get_logger

logger = get_logger("thresholds")


async def _run(edits: dict[str, float]) -> int:
    try:
        async with RedisStore() as store:
            await store.sync()
            with FleetMonitor(store) as monitor:
                editor = ThresholdEditor(store, monitor)
                editor.start()
                try:
                    if edits:
                        editor.update(**edits)
                        await editor.save()
                    thresholds = editor.draft
                finally:
                    editor.close()
    except InvalidThresholdError as e:
        logger.error("Invalid thresholds: %s", e)
        return 2
    except ThresholdSaveError as e:
        logger.error(e.user_message)
        return 1
    except (StoreError, OSError) as e:
        logger.error("Store unavailable: %s", e)
        return 1

    sys.stdout.write(json.dumps(thresholds.to_dict()) + "\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Show or update fleet thresholds")
    parser.add_argument("--max-humidity", type=float, help="Humidity ceiling (%%)")
    parser.add_argument(
        "--max-temperature", type=float, help="Temperature ceiling (°C)"
    )
    parser.add_argument("--min-battery", type=int, help="Low battery level (%%)")
    args = parser.parse_args(argv)

    edits = {name: value for name, value in vars(args).items() if value is not None}

    configure()
    return asyncio.run(_run(edits))


if __name__ == "__main__":
    sys.exit(main())
