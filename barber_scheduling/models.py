# barber_scheduling/models.py

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import NaiveDatetime
from sqlalchemy.types import JSON, DateTime
from sqlmodel import Column, Field, SQLModel


def _utcnow_naive() -> datetime:
    # stored as naive UTC, see core.to_storage
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc_column(index: bool = False) -> Column:
    return Column(DateTime(timezone=False), index=index, nullable=False)


class AppointmentStatus(str, Enum):
    pending = "PENDING"
    confirmed = "CONFIRMED"
    canceled = "CANCELED"
    completed = "COMPLETED"
    no_show = "NO_SHOW"


# These statuses leave the conflict-detection population
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.canceled, AppointmentStatus.completed, AppointmentStatus.no_show}
)

# What a new appointment may start as
INITIAL_STATUSES = frozenset({AppointmentStatus.pending, AppointmentStatus.confirmed})


class BlockType(str, Enum):
    lunch = "LUNCH"
    break_ = "BREAK"
    day_off = "DAY_OFF"
    vacation = "VACATION"
    custom = "CUSTOM"


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    duration_min: int
    price: Optional[float] = None
    active: bool = True


class Client(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    phone: Optional[str] = None


class BusinessSettings(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    business_name: str = "Barber Boss"
    timezone: str
    open_time: str = "08:00"
    close_time: str = "18:00"
    working_days: List[int] = Field(sa_column=Column(JSON))  # 0=Sun..6=Sat
    slot_interval_min: int = 15
    min_advance_hours: int = 2
    max_advance_days: int = 30
    updated_at: NaiveDatetime = Field(default_factory=_utcnow_naive, sa_column=_naive_utc_column())


class TimeBlock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    type: BlockType = BlockType.custom
    reason: Optional[str] = None
    starts_at: NaiveDatetime = Field(sa_column=_naive_utc_column(index=True))
    ends_at: NaiveDatetime = Field(sa_column=_naive_utc_column(index=True))
    is_recurring: bool = False
    recurring_days: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    active: bool = Field(default=True, index=True)

    created_at: NaiveDatetime = Field(default_factory=_utcnow_naive, sa_column=_naive_utc_column())
    updated_at: NaiveDatetime = Field(default_factory=_utcnow_naive, sa_column=_naive_utc_column())


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    starts_at: NaiveDatetime = Field(sa_column=_naive_utc_column(index=True))
    ends_at: NaiveDatetime = Field(sa_column=_naive_utc_column(index=True))

    # exactly one of these two is set
    client_id: Optional[int] = Field(default=None, foreign_key="client.id")
    client_name: Optional[str] = None

    service_id: int = Field(foreign_key="service.id")
    barber_id: Optional[int] = None
    status: AppointmentStatus = Field(default=AppointmentStatus.confirmed, index=True)
    notes: Optional[str] = None

    created_at: NaiveDatetime = Field(default_factory=_utcnow_naive, sa_column=_naive_utc_column())
    updated_at: NaiveDatetime = Field(default_factory=_utcnow_naive, sa_column=_naive_utc_column())
