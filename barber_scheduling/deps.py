# barber_scheduling/deps.py

from datetime import datetime
from typing import Callable

from fastapi import Depends, Request
from sqlmodel import Session

from .availability import AvailabilityPlanner
from .blackouts import BlackoutRegistry
from .business_calendar import BusinessCalendar, SettingsCache
from .catalog import ClientDirectory, ServiceCatalog
from .conflicts import ConflictDetector
from .db import get_session
from .engine import SchedulingEngine


def get_settings_cache(request: Request) -> SettingsCache:
    return request.app.state.settings_cache


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


def get_calendar(
    session: Session = Depends(get_session),
    cache: SettingsCache = Depends(get_settings_cache),
) -> BusinessCalendar:
    return BusinessCalendar(session, cache)


def get_blackouts(
    session: Session = Depends(get_session),
    calendar: BusinessCalendar = Depends(get_calendar),
) -> BlackoutRegistry:
    return BlackoutRegistry(session, calendar)


def get_scheduling_engine(
    session: Session = Depends(get_session),
    calendar: BusinessCalendar = Depends(get_calendar),
    blackouts: BlackoutRegistry = Depends(get_blackouts),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SchedulingEngine:
    return SchedulingEngine(
        session,
        calendar,
        blackouts,
        ConflictDetector(session),
        ServiceCatalog(session),
        ClientDirectory(session),
        clock=clock,
    )


def get_planner(
    session: Session = Depends(get_session),
    calendar: BusinessCalendar = Depends(get_calendar),
    blackouts: BlackoutRegistry = Depends(get_blackouts),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AvailabilityPlanner:
    return AvailabilityPlanner(
        calendar,
        blackouts,
        ConflictDetector(session),
        ServiceCatalog(session),
        clock=clock,
    )
