#!/usr/bin/env python3
"""Counter sweep job for cron.

Recounts every game's ratings from DynamoDB and overwrites games.likes /
games.dislikes where they drifted (lost updates from concurrent raters).
Each game is guarded by a Redis lock, so overlapping runs skip instead of
racing.

Run (local / cron):
  python -m scripts.reconcile_counters

Optional env vars:
  SWEEP_GAME_IDS="id1,id2"   only sweep these games
"""

import asyncio
import logging
import os
import sys


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gamecatalog.container import open_container  # noqa: E402
from gamecatalog.settings import get_settings  # noqa: E402


def _parse_csv_env(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [p.strip() for p in raw.split(",") if p.strip()]


async def main() -> None:
    settings = get_settings()

    async with open_container(settings) as container:
        game_ids = _parse_csv_env("SWEEP_GAME_IDS") or await container.counters.list_game_ids()
        results = await container.reconciler.sweep_games(game_ids)

        # Final output for cron logs (single JSON-ish blob)
        print(
            {
                "ok": not any(r.failed for r in results),
                "games": len(results),
                "skipped": sum(1 for r in results if r.skipped and not r.failed),
                "failed": [r.game_id for r in results if r.failed],
                "drifted": [r.game_id for r in results if r.drifted],
            }
        )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(main())
