from __future__ import annotations

import asyncio

from config.defaults import DOWNLOAD_SWEEP_INTERVAL_SECONDS
from config.defaults import PRESENCE_REASSERT_SECONDS


async def sweep_downloads_once(media) -> list[str]:
    removed = await asyncio.to_thread(media.sweep)
    if removed:
        print(f"[Sweep] Removed {len(removed)} stale file(s) from {media.download_dir}")
    return removed


async def sweep_loop(
    *,
    media,
    interval_seconds: float = DOWNLOAD_SWEEP_INTERVAL_SECONDS,
) -> None:
    while True:
        try:
            await sweep_downloads_once(media)
        except Exception as e:
            print(f"[Sweep] maintenance loop error: {e}")

        await asyncio.sleep(max(60.0, float(interval_seconds)))


async def presence_loop(
    *,
    presence,
    interval_seconds: float = PRESENCE_REASSERT_SECONDS,
) -> None:
    while True:
        await asyncio.sleep(max(5.0, float(interval_seconds)))
        try:
            await presence.apply()
        except Exception as e:
            print(f"[Status] reassert loop error: {e}")
