# tests/conftest.py

from datetime import date, datetime, time, timezone

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from barber_scheduling.availability import AvailabilityPlanner
from barber_scheduling.blackouts import BlackoutRegistry
from barber_scheduling.business_calendar import BusinessCalendar, SettingsCache
from barber_scheduling.catalog import ClientDirectory, ServiceCatalog
from barber_scheduling.conflicts import ConflictDetector
from barber_scheduling.db import build_engine, create_db_and_tables
from barber_scheduling.engine import SchedulingEngine
from barber_scheduling.main import create_app
from barber_scheduling.models import Service
from barber_scheduling.schemas import SettingsUpdate

TZ_NAME = "America/Sao_Paulo"  # UTC-03:00, no daylight saving
TZ = pytz.timezone(TZ_NAME)

MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
FRIDAY = date(2026, 10, 23)
SATURDAY = date(2026, 10, 24)
SUNDAY = date(2026, 10, 25)

# Monday 06:00 in the shop
NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    """Naive wall-clock time in the shop, as a caller without an offset would send it."""
    return datetime.combine(day, time(hour, minute))


def as_utc(day: date, hour: int, minute: int = 0) -> datetime:
    return TZ.localize(local(day, hour, minute)).astimezone(timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'barber-test.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def calendar(session):
    calendar = BusinessCalendar(session, SettingsCache(ttl_seconds=0))
    calendar.update(SettingsUpdate(timezone=TZ_NAME))
    return calendar


@pytest.fixture
def services(session):
    catalog = ServiceCatalog(session)
    return {
        "haircut": catalog.create("haircut", 30),
        "beard_trim": catalog.create("beard_trim", 15),
        "full_package": catalog.create("full_package", 60),
        "retired": catalog.create("retired", 30, active=False),
    }


@pytest.fixture
def client_row(session):
    return ClientDirectory(session).create("João Pedro", phone="83966554433")


@pytest.fixture
def blackouts(session, calendar):
    return BlackoutRegistry(session, calendar)


@pytest.fixture
def conflicts(session):
    return ConflictDetector(session)


@pytest.fixture
def scheduler(session, calendar, blackouts, conflicts, clock):
    return SchedulingEngine(
        session,
        calendar,
        blackouts,
        conflicts,
        ServiceCatalog(session),
        ClientDirectory(session),
        clock=clock,
    )


@pytest.fixture
def planner(session, calendar, blackouts, conflicts, clock):
    return AvailabilityPlanner(
        calendar,
        blackouts,
        conflicts,
        ServiceCatalog(session),
        clock=clock,
    )


@pytest.fixture
def api(db_engine, clock):
    app = create_app(bind=db_engine, clock=clock)
    with TestClient(app) as client:
        response = client.patch("/settings", json={"timezone": TZ_NAME})
        assert response.status_code == 200
        yield client


@pytest.fixture
def service_ids(api, db_engine):
    with Session(db_engine) as session:
        return {service.name: service.id for service in session.exec(select(Service)).all()}
