# barber_scheduling/business_calendar.py
"""
Business calendar: opening hours, working days, slot granularity and the
advance-booking window.

The settings row is a singleton created lazily with defaults. Reads go
through ``SettingsCache`` (bounded freshness, explicit invalidation); the
transactional conflict check never depends on it.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from .config import config
from .core import (
    hhmm_to_minutes,
    minutes_of_day,
    resolve_timezone,
    to_local,
    weekday_name,
    weekday_number,
)
from .data import DEFAULT_SETTINGS
from .exceptions import ValidationException
from .models import BusinessSettings
from .schemas import SettingsPublic, SettingsUpdate

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1

START = "start"
END = "end"


class SettingsCache:
    """Holds the last settings snapshot for at most ``ttl_seconds``."""

    def __init__(
        self,
        ttl_seconds: float = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = config.settings_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.clock = clock
        self._entry: Optional[Tuple[SettingsPublic, float]] = None

    def get(self) -> Optional[SettingsPublic]:
        entry = self._entry
        if entry is None:
            return None
        snapshot, stored_at = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            self._entry = None
            return None
        return snapshot

    def put(self, snapshot: SettingsPublic) -> None:
        self._entry = (snapshot, self.clock())

    def invalidate(self) -> None:
        self._entry = None


class BusinessCalendar:
    def __init__(self, session: Session, cache: Optional[SettingsCache] = None):
        self.session = session
        self.cache = cache or SettingsCache(ttl_seconds=0)

    def get(self, fresh: bool = False) -> SettingsPublic:
        if not fresh:
            cached = self.cache.get()
            if cached is not None:
                return cached
        snapshot = SettingsPublic.model_validate(self._load_or_create())
        self.cache.put(snapshot)
        return snapshot

    def update(self, patch: SettingsUpdate) -> SettingsPublic:
        row = self._load_or_create()
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)

        open_time = changes.get("open_time", row.open_time)
        close_time = changes.get("close_time", row.close_time)
        if ("open_time" in changes or "close_time" in changes) and hhmm_to_minutes(open_time) >= hhmm_to_minutes(close_time):
            raise ValidationException(
                f"Opening time ({open_time}) must be earlier than closing time ({close_time})",
                code="INVALID_HOURS",
                details={"open_time": open_time, "close_time": close_time},
            )

        working_days = changes.get("working_days")
        if working_days is not None and len(set(working_days)) != len(working_days):
            raise ValidationException(
                "working_days cannot contain duplicate days",
                code="DUPLICATE_WORKING_DAYS",
                details={"working_days": working_days},
            )

        if "timezone" in changes:
            resolve_timezone(changes["timezone"])

        for field, value in changes.items():
            setattr(row, field, value)
        row.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)

        self.cache.invalidate()
        snapshot = SettingsPublic.model_validate(row)
        self.cache.put(snapshot)
        logger.info("Business settings updated: %s", sorted(changes))
        return snapshot

    @staticmethod
    def weekday_name(number: int) -> str:
        return weekday_name(number)

    def is_within_business_hours(self, instant: datetime) -> bool:
        settings = self.get()
        local = to_local(instant, resolve_timezone(settings.timezone))
        if weekday_number(local) not in settings.working_days:
            return False
        return settings.open_minutes <= minutes_of_day(local) < settings.close_minutes

    def check_instant(
        self,
        instant: datetime,
        now: datetime,
        boundary: str = START,
        settings: Optional[SettingsPublic] = None,
    ) -> None:
        """Raise ValidationException if ``instant`` breaks a calendar rule.

        A start boundary must fall in [open, close); an end boundary in
        (open, close], so an appointment may end exactly at closing time.
        """
        settings = settings or self.get()
        tz = resolve_timezone(settings.timezone)
        local = to_local(instant, tz)
        details = {"instant": instant.isoformat(), "boundary": boundary}

        day = weekday_number(local)
        if day not in settings.working_days:
            open_days = ", ".join(weekday_name(d) for d in sorted(settings.working_days))
            raise ValidationException(
                f"We are closed on {weekday_name(day)}. The selected date "
                f"({local.strftime('%A, %B %d, %Y')}) is not available. Open days: {open_days}.",
                code="CLOSED_WEEKDAY",
                details={**details, "weekday": day, "working_days": sorted(settings.working_days)},
            )

        minute = minutes_of_day(local)
        if boundary == END:
            inside = settings.open_minutes < minute <= settings.close_minutes
        else:
            inside = settings.open_minutes <= minute < settings.close_minutes
        if not inside:
            raise ValidationException(
                f"The selected time ({local.strftime('%H:%M')} on {local.strftime('%d/%m/%Y')}) "
                f"is outside business hours. We are open from {settings.open_time} "
                f"to {settings.close_time}.",
                code="OUTSIDE_BUSINESS_HOURS",
                details={**details, "open_time": settings.open_time, "close_time": settings.close_time},
            )

        lead = instant - now
        if lead < timedelta(hours=settings.min_advance_hours):
            unit = "hour" if settings.min_advance_hours == 1 else "hours"
            raise ValidationException(
                f"Appointments must be booked at least {settings.min_advance_hours} {unit} "
                "in advance. Please choose a later time.",
                code="TOO_SOON",
                details={**details, "min_advance_hours": settings.min_advance_hours},
            )
        if lead > timedelta(days=settings.max_advance_days):
            unit = "day" if settings.max_advance_days == 1 else "days"
            raise ValidationException(
                f"Appointments cannot be booked more than {settings.max_advance_days} {unit} "
                "ahead. Please choose an earlier date.",
                code="TOO_FAR_AHEAD",
                details={**details, "max_advance_days": settings.max_advance_days},
            )

    def _load_or_create(self) -> BusinessSettings:
        row = self.session.get(BusinessSettings, SETTINGS_ROW_ID)
        if row is not None:
            return row

        row = BusinessSettings(
            id=SETTINGS_ROW_ID,
            timezone=config.business_timezone,
            **{**DEFAULT_SETTINGS, "working_days": list(DEFAULT_SETTINGS["working_days"])},
        )
        self.session.add(row)
        try:
            self.session.commit()
        except IntegrityError:
            # a concurrent request created the singleton first
            self.session.rollback()
            return self.session.get(BusinessSettings, SETTINGS_ROW_ID)
        self.session.refresh(row)
        logger.info("Created default business settings")
        return row

