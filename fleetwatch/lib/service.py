"""Service runner utility for event-driven services."""

import asyncio
import signal
from collections.abc import Awaitable, Callable
from contextlib import suppress

from fleetwatch.logging import configure, get_logger


def run_service(
    main: Callable[[], Awaitable[None]],
    *,
    enabled: Callable[[], bool] | None = None,
    name: str = "service",
) -> None:
    """Run an async service with signal handling.

    Provides a standard entry point for event-driven services that:
    - Configures logging
    - Optionally checks if the service is enabled
    - Cancels the service on SIGTERM/SIGINT so its cleanup runs
    - Runs the async service function

    Args:
        main: Async function to run (typically named ``run``).
        enabled: Optional callable that returns False to skip running.
        name: Service name for logging (used in disabled message).
    """
    logger = get_logger(f"{name}.service")

    configure()

    if enabled is not None and not enabled():
        logger.info("%s service is disabled, exiting", name.capitalize())
        return

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(main())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, task.cancel)

    with suppress(KeyboardInterrupt, asyncio.CancelledError):
        loop.run_until_complete(task)
    loop.close()
