"""
Schedule Service

Schedule events carry a calendar date ("YYYY-MM-DD") and an optional start
time ("HH:MM"). Date filters compare parsed dates; events with a malformed
date are left out of date-based views.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from core.errors import PortalError
from services.collections import CollectionService

DateLike = Union[date, str]


def parse_date(value: Optional[DateLike]) -> Optional[date]:
    """Parse a date or ISO date/datetime string. Returns None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError:
        return None


class ScheduleService:
    """Service for schedule events."""

    COLLECTION = "schedules"

    def __init__(self, collections: CollectionService):
        self.collections = collections

    async def create_schedule(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a schedule event (staff only)."""
        return await self.collections.create(self.COLLECTION, data)

    async def update_schedule(self, schedule_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self.collections.update(self.COLLECTION, schedule_id, data)

    async def delete_schedule(self, schedule_id: str) -> Dict[str, Any]:
        return await self.collections.delete(self.COLLECTION, schedule_id)

    async def get_schedules(self) -> List[Dict[str, Any]]:
        """Get all schedule events."""
        try:
            schedules = await self.collections.read(self.COLLECTION)
            print(f"[SCHEDULES] Retrieved {len(schedules)} schedule events")
            return schedules
        except PortalError as e:
            print(f"[ERROR] Could not load schedules: {e}")
            return []

    async def get_schedules_by_date_range(self, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
        """Events dated between start and end, inclusive."""
        start_date, end_date = parse_date(start), parse_date(end)
        if start_date is None or end_date is None:
            print(f"[SCHEDULES] Invalid date range: {start} - {end}")
            return []

        results = []
        for schedule in await self.get_schedules():
            event_date = parse_date(schedule.get("date"))
            if event_date is not None and start_date <= event_date <= end_date:
                results.append(schedule)
        return results

    async def get_today_schedules(self, today: Optional[date] = None) -> List[Dict[str, Any]]:
        today = today or date.today()
        return await self.get_schedules_by_date_range(today, today)

    async def get_upcoming_schedules(
        self, today: Optional[date] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Events from today onwards, ordered by date then start time."""
        today = today or date.today()
        upcoming = [
            s for s in await self.get_schedules()
            if (parse_date(s.get("date")) or date.min) >= today
        ]
        upcoming.sort(key=lambda s: (parse_date(s["date"]), s.get("time") or ""))
        return upcoming[:limit] if limit else upcoming
