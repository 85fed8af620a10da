# barber_scheduling/availability.py
"""
Availability planner: the read path answering "what's free on date X for
service Y".

Walks the business day in local wall-clock time at ``slot_interval_min``
granularity and keeps every start time whose full ``[start, start+duration)``
interval is in the future beyond the minimum notice, free of non-terminal
appointments and outside every active time block. Reads here are advisory;
the booking itself re-checks conflicts inside a serializable transaction.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List

import pytz

from .blackouts import BlackoutRegistry
from .business_calendar import BusinessCalendar
from .catalog import ServiceCatalog
from .conflicts import ConflictDetector, overlaps_appointment
from .core import resolve_timezone, utc_now, weekday_name, weekday_number
from .exceptions import NotFoundException, ValidationException
from .schemas import AvailabilityResponse, BusinessHours

logger = logging.getLogger(__name__)


def _wall_clock(day: date, minute_of_day: int, tz: pytz.BaseTzInfo) -> datetime:
    naive = datetime.combine(day, time(minute_of_day // 60, minute_of_day % 60))
    return tz.normalize(tz.localize(naive)).astimezone(timezone.utc)


class AvailabilityPlanner:
    def __init__(
        self,
        calendar: BusinessCalendar,
        blackouts: BlackoutRegistry,
        conflicts: ConflictDetector,
        services: ServiceCatalog,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.calendar = calendar
        self.blackouts = blackouts
        self.conflicts = conflicts
        self.services = services
        self.clock = clock

    def compute_slots(self, day: date, service_id: int) -> AvailabilityResponse:
        settings = self.calendar.get()

        weekday = weekday_number(day)
        if weekday not in settings.working_days:
            open_days = ", ".join(weekday_name(d) for d in sorted(settings.working_days))
            raise NotFoundException(
                f"{weekday_name(weekday)} is not a working day. Open days: {open_days}",
                code="CLOSED_WEEKDAY",
                details={"date": day.isoformat(), "weekday": weekday, "working_days": sorted(settings.working_days)},
            )

        service = self.services.find_by_id(service_id)
        if service is None:
            raise NotFoundException(
                f"Service {service_id} not found",
                code="SERVICE_NOT_FOUND",
                details={"service_id": service_id},
            )
        if not service.active:
            raise ValidationException(
                f'The service "{service.name}" is no longer available for booking',
                code="SERVICE_INACTIVE",
                details={"service_id": service_id},
            )

        tz = resolve_timezone(settings.timezone)
        now = self.clock()
        min_lead = timedelta(hours=settings.min_advance_hours)
        duration = timedelta(minutes=service.duration_min)

        # one read of the day's appointments and candidate blocks, then filter in memory
        window_start = _wall_clock(day, settings.open_minutes, tz)
        window_end = _wall_clock(day, settings.close_minutes, tz)
        appointments = self.conflicts.active_between(window_start, window_end)
        blocks = self.blackouts.candidates(window_start, window_end)

        slots: List[datetime] = []
        minute = settings.open_minutes
        while minute + service.duration_min <= settings.close_minutes:
            slot_start = _wall_clock(day, minute, tz)
            slot_end = slot_start + duration
            minute += settings.slot_interval_min

            if slot_start <= now:
                continue
            if slot_start - now < min_lead:
                continue
            if any(overlaps_appointment(a, slot_start, slot_end) for a in appointments):
                continue
            if self.blackouts.first_match(blocks, slot_start, slot_end) is not None:
                continue
            slots.append(slot_start)

        logger.debug("%d free slot(s) on %s for service %s", len(slots), day, service_id)
        return AvailabilityResponse(
            date=day,
            service_id=service_id,
            slots=slots,
            business_hours=BusinessHours(open_time=settings.open_time, close_time=settings.close_time),
        )
