# barber_scheduling/schemas.py

from datetime import date as Date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core import from_storage, hhmm_to_minutes
from .exceptions import ValidationException
from .models import AppointmentStatus, BlockType

HHMM_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

Weekday = Annotated[int, Field(ge=0, le=6)]  # 0=Sunday..6=Saturday


# Appointment subject: a registered client or a free-text walk-in name, never both


class RegisteredClient(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["registered"] = "registered"
    client_id: int


class WalkInClient(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["walk_in"] = "walk_in"
    name: str


Subject = Annotated[Union[RegisteredClient, WalkInClient], Field(discriminator="kind")]


def subject_from_fields(client_id: Optional[int], client_name: Optional[str]) -> Subject:
    has_client_id = client_id is not None
    name = client_name.strip() if client_name else ""

    if not has_client_id and not name:
        raise ValidationException(
            "Provide either client_id (registered client) or client_name (walk-in booking)",
            code="SUBJECT_REQUIRED",
        )
    if has_client_id and name:
        raise ValidationException(
            "Provide ONLY client_id (registered client) OR client_name (walk-in booking), not both",
            code="SUBJECT_AMBIGUOUS",
            details={"client_id": client_id, "client_name": name},
        )
    if has_client_id:
        return RegisteredClient(client_id=client_id)
    return WalkInClient(name=name)


# Appointments


class AppointmentCreate(BaseModel):
    starts_at: datetime
    ends_at: Optional[datetime] = None
    timezone: Optional[str] = None

    client_id: Optional[int] = None
    client_name: Optional[str] = None

    service_id: int
    barber_id: Optional[int] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class AppointmentUpdate(BaseModel):
    """Partial update. An explicit null on client_id/client_name clears that side."""

    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    timezone: Optional[str] = None

    client_id: Optional[int] = None
    client_name: Optional[str] = None

    service_id: Optional[int] = None
    barber_id: Optional[int] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    def merged_subject(self, current: Subject) -> Subject:
        provided = self.model_fields_set & {"client_id", "client_name"}
        if not provided:
            return current

        client_id = self.client_id if "client_id" in provided else None
        client_name = self.client_name if "client_name" in provided else None
        if client_id is not None or client_name is not None:
            return subject_from_fields(client_id, client_name)

        # only explicit nulls were sent
        clears_current = (
            isinstance(current, RegisteredClient) and "client_id" in provided
        ) or (isinstance(current, WalkInClient) and "client_name" in provided)
        if clears_current:
            raise ValidationException(
                "Clearing the current client would leave the appointment without one; "
                "send the replacement client_id or client_name in the same update",
                code="SUBJECT_REQUIRED",
            )
        return current


class AppointmentPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    starts_at: datetime
    ends_at: datetime
    client_id: Optional[int] = None
    client_name: Optional[str] = None
    service_id: int
    barber_id: Optional[int] = None
    status: AppointmentStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("starts_at", "ends_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return from_storage(value)


# Settings


class SettingsPublic(BaseModel):
    """Immutable snapshot of the business calendar."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    business_name: str
    timezone: str
    open_time: str
    close_time: str
    working_days: List[int]
    slot_interval_min: int
    min_advance_hours: int
    max_advance_days: int

    @property
    def open_minutes(self) -> int:
        return hhmm_to_minutes(self.open_time)

    @property
    def close_minutes(self) -> int:
        return hhmm_to_minutes(self.close_time)


class SettingsUpdate(BaseModel):
    business_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    timezone: Optional[str] = None
    open_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    close_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    working_days: Optional[List[Weekday]] = Field(default=None, min_length=1, max_length=7)
    slot_interval_min: Optional[int] = Field(default=None, ge=5, le=120)
    min_advance_hours: Optional[int] = Field(default=None, ge=0, le=72)
    max_advance_days: Optional[int] = Field(default=None, ge=1, le=365)


# Time blocks


class TimeBlockCreate(BaseModel):
    type: BlockType = BlockType.custom
    reason: Optional[str] = Field(default=None, min_length=2, max_length=200)
    starts_at: datetime
    ends_at: datetime
    timezone: Optional[str] = None
    is_recurring: bool = False
    recurring_days: List[Weekday] = Field(default_factory=list)


class TimeBlockUpdate(BaseModel):
    type: Optional[BlockType] = None
    reason: Optional[str] = Field(default=None, min_length=2, max_length=200)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    timezone: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurring_days: Optional[List[Weekday]] = None
    active: Optional[bool] = None


class TimeBlockPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: BlockType
    reason: Optional[str] = None
    starts_at: datetime
    ends_at: datetime
    is_recurring: bool
    recurring_days: List[int]
    active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("starts_at", "ends_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return from_storage(value)


class BlockCheckResponse(BaseModel):
    blocked: bool
    block: Optional[TimeBlockPublic] = None


# Availability


class BusinessHours(BaseModel):
    open_time: str
    close_time: str


class AvailabilityResponse(BaseModel):
    date: Date
    service_id: int
    slots: List[datetime]
    business_hours: BusinessHours
