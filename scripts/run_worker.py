#!/usr/bin/env python3
"""Standalone queue worker process.

Polls SQS until SIGINT/SIGTERM, then finishes the batch in flight and exits.
Use this instead of WORKER_ENABLED=true when the worker should scale
separately from the API.

Run (local / container):
  python -m scripts.run_worker

Optional env vars:
  WORKER_MAX_ITERATIONS=3   stop after N polls (smoke tests)
"""

import asyncio
import logging
import os
import signal
import sys


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gamecatalog.container import open_container  # noqa: E402
from gamecatalog.settings import get_settings  # noqa: E402


async def main() -> None:
    settings = get_settings()
    max_iterations = int(os.getenv("WORKER_MAX_ITERATIONS", "0")) or None

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with open_container(settings) as container:
        await container.worker.run(stop_event=stop, max_iterations=max_iterations)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(main())
