"""
Background Cache Refresh Scheduler

REFRESH SCHEDULE:
- Local cache refresh: every CACHE_REFRESH_INTERVAL_MINUTES (default 10)

A failed refresh is logged and the job keeps running on its next interval.

Usage:
    python -m tasks.scheduler           # Run scheduler (foreground)
    python -m tasks.scheduler --once    # Refresh the local cache once
"""

import argparse
import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import CACHE_REFRESH_INTERVAL_MINUTES
from services.portal import CampusPortal, get_portal


class CacheRefreshScheduler:
    """Runs the periodic local cache refresh for a portal"""

    JOB_ID = "refresh_cache"

    def __init__(self, portal: CampusPortal, interval_minutes: int = CACHE_REFRESH_INTERVAL_MINUTES):
        self.portal = portal
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()
        self.last_result: Optional[Dict[str, Any]] = None

    def start(self):
        """Start the scheduler with the refresh job"""
        self.scheduler.add_job(
            self.refresh_cache,
            IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            name=f"Refresh Local Cache (every {self.interval_minutes} min)",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()

        print("[SCHEDULER] Started with the following jobs:")
        for job in self.scheduler.get_jobs():
            print(f"  - {job.name}: {job.trigger}")

    def shutdown(self):
        """Shutdown the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            print("[SCHEDULER] Stopped")

    async def refresh_cache(self) -> Optional[Dict[str, Any]]:
        """Refresh every tracked collection; failures are logged, not raised"""
        try:
            result = await self.portal.refresh()
        except Exception as e:
            print(f"[ERROR] Cache refresh failed: {e}")
            return None

        self.last_result = result
        print(f"[{datetime.now()}] Cache refresh: {len(result['refreshed'])} refreshed, "
              f"{len(result['skipped'])} skipped, {len(result['errors'])} errors")
        return result


async def run_scheduler():
    """Start the portal and refresh its cache until interrupted"""
    portal = get_portal()
    await portal.start()

    scheduler = CacheRefreshScheduler(portal)
    scheduler.start()

    try:
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        scheduler.shutdown()
        portal.stop()


async def run_once():
    portal = get_portal()
    await portal.start()
    result = await CacheRefreshScheduler(portal).refresh_cache()
    print(f"Result: {result}")
    portal.stop()


def main():
    parser = argparse.ArgumentParser(description="Campus Portal cache refresh scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Refresh the local cache once and exit"
    )
    args = parser.parse_args()

    if args.once:
        asyncio.run(run_once())
    else:
        asyncio.run(run_scheduler())


if __name__ == "__main__":
    main()
