# barber_scheduling/engine.py
"""
Scheduling engine: validates and commits appointment writes.

Every business rule is checked before a transaction is opened. Only the
conflict re-check (appointments and time blocks) runs inside the
serializable unit of work, together with the insert or update, so two
concurrent requests can never both commit overlapping non-terminal
intervals. Nothing here retries: contention and store failures propagate
as the exceptions raised by ``db.serializable_transaction``.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List, Optional

import pytz
from sqlalchemy import or_
from sqlmodel import Session, col, select

from .blackouts import BlackoutRegistry
from .business_calendar import END, START, BusinessCalendar
from .catalog import ClientDirectory, ServiceCatalog
from .conflicts import ConflictDetector
from .core import from_storage, localize, parse_instant, resolve_timezone, to_local, to_storage, utc_now
from .db import serializable_transaction
from .exceptions import (
    BlockedIntervalException,
    BookingConflictException,
    NotFoundException,
    ValidationException,
)
from .models import (
    INITIAL_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
    BlockType,
    Client,
    Service,
    TimeBlock,
)
from .schemas import (
    AppointmentCreate,
    AppointmentUpdate,
    RegisteredClient,
    SettingsPublic,
    Subject,
    WalkInClient,
    subject_from_fields,
)

logger = logging.getLogger(__name__)

BLOCK_LABELS = {
    BlockType.lunch: "lunch break",
    BlockType.break_: "break",
    BlockType.day_off: "day off",
    BlockType.vacation: "vacation",
    BlockType.custom: "blocked period",
}


def subject_of(appointment: Appointment) -> Subject:
    if appointment.client_id is not None:
        return RegisteredClient(client_id=appointment.client_id)
    return WalkInClient(name=appointment.client_name or "")


class SchedulingEngine:
    def __init__(
        self,
        session: Session,
        calendar: BusinessCalendar,
        blackouts: BlackoutRegistry,
        conflicts: ConflictDetector,
        services: ServiceCatalog,
        clients: ClientDirectory,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.calendar = calendar
        self.blackouts = blackouts
        self.conflicts = conflicts
        self.services = services
        self.clients = clients
        self.clock = clock

    # Reads

    def get(self, appointment_id: int) -> Appointment:
        appointment = self.session.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFoundException(
                f"Appointment {appointment_id} not found",
                code="APPOINTMENT_NOT_FOUND",
                details={"appointment_id": appointment_id},
            )
        return appointment

    def list_appointments(
        self,
        day: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
        client_id: Optional[int] = None,
        barber_id: Optional[int] = None,
    ) -> List[Appointment]:
        stmt = select(Appointment)
        if day is not None:
            tz = resolve_timezone(self.calendar.get().timezone)
            day_start = localize(datetime.combine(day, time.min), tz)
            day_end = localize(datetime.combine(day + timedelta(days=1), time.min), tz)
            stmt = stmt.where(Appointment.starts_at >= to_storage(day_start))
            stmt = stmt.where(Appointment.starts_at < to_storage(day_end))
        if status is not None:
            stmt = stmt.where(Appointment.status == status)
        if client_id is not None:
            stmt = stmt.where(Appointment.client_id == client_id)
        if barber_id is not None:
            stmt = stmt.where(Appointment.barber_id == barber_id)
        stmt = stmt.order_by(Appointment.starts_at)
        return list(self.session.exec(stmt).all())

    def client_history(
        self, client_name: Optional[str] = None, phone: Optional[str] = None
    ) -> List[Appointment]:
        """Appointments of a client found by partial name or phone, newest first.

        The name matches walk-in names and registered client names alike
        (case-insensitive); the phone matches registered clients only.
        """
        client_name = client_name.strip() if client_name else ""
        phone = phone.strip() if phone else ""
        if not client_name and not phone:
            raise ValidationException(
                "Provide a client name or phone to search the appointment history",
                code="CLIENT_SEARCH_REQUIRED",
            )

        conditions = []
        client_filters = []
        if client_name:
            conditions.append(col(Appointment.client_name).ilike(f"%{client_name}%"))
            client_filters.append(col(Client.name).ilike(f"%{client_name}%"))
        if phone:
            client_filters.append(col(Client.phone).contains(phone))
        matching_clients = select(Client.id).where(or_(*client_filters))
        conditions.append(col(Appointment.client_id).in_(matching_clients))

        stmt = (
            select(Appointment)
            .where(or_(*conditions))
            .order_by(col(Appointment.starts_at).desc(), col(Appointment.id).desc())
        )
        return list(self.session.exec(stmt).all())

    # Writes

    def create(self, request: AppointmentCreate) -> Appointment:
        # 1) registered client XOR walk-in name
        subject = subject_from_fields(request.client_id, request.client_name)

        status = request.status or AppointmentStatus.confirmed
        if status not in INITIAL_STATUSES:
            raise ValidationException(
                f"A new appointment must be PENDING or CONFIRMED, not {status.value}",
                code="INVALID_STATUS",
                details={"status": status.value},
            )

        # 2) service exists and is active
        service = self._active_service(request.service_id)

        # 3) normalize to UTC; derive the end from the live service duration
        settings = self.calendar.get()
        tz_name = request.timezone or settings.timezone
        starts_at = parse_instant(request.starts_at, tz_name)
        if request.ends_at is not None:
            ends_at = parse_instant(request.ends_at, tz_name)
        else:
            ends_at = starts_at + timedelta(minutes=service.duration_min)

        # 4-6) interval, calendar and blackout rules
        self._check_interval(starts_at, ends_at, settings)

        # 7) registered client must exist
        if isinstance(subject, RegisteredClient):
            self._require_client(subject.client_id)

        service_id = service.id
        self._assert_no_conflict(starts_at, ends_at, exclude_id=None, settings=settings)

        # 8) authoritative re-check and insert in one serializable unit of work
        with serializable_transaction(self.session):
            self._assert_no_conflict(starts_at, ends_at, exclude_id=None, settings=settings)
            self._assert_not_blocked(starts_at, ends_at, settings, at_commit=True)
            appointment = Appointment(
                starts_at=to_storage(starts_at),
                ends_at=to_storage(ends_at),
                service_id=service_id,
                barber_id=request.barber_id,
                status=status,
                notes=request.notes,
            )
            _apply_subject(appointment, subject)
            self.session.add(appointment)

        self.session.refresh(appointment)
        logger.info(
            "Appointment %s created for %s - %s (%s)",
            appointment.id,
            starts_at.isoformat(),
            ends_at.isoformat(),
            status.value,
        )
        return appointment

    def update(self, appointment_id: int, patch: AppointmentUpdate) -> Appointment:
        appointment = self.get(appointment_id)

        current_subject = subject_of(appointment)
        subject = patch.merged_subject(current_subject)

        settings = self.calendar.get()
        starts_at = from_storage(appointment.starts_at)
        ends_at = from_storage(appointment.ends_at)
        service_id = appointment.service_id

        # only values that differ from the stored ones count as a change
        tz_name = patch.timezone or settings.timezone
        service_changed = patch.service_id is not None and patch.service_id != appointment.service_id
        if service_changed:
            service_id = self._active_service(patch.service_id).id

        new_starts_at = parse_instant(patch.starts_at, tz_name) if patch.starts_at is not None else starts_at
        if patch.ends_at is not None:
            new_ends_at = parse_instant(patch.ends_at, tz_name)
        elif new_starts_at != starts_at or service_changed:
            new_ends_at = new_starts_at + self._duration(service_id, starts_at, ends_at)
        else:
            new_ends_at = ends_at

        interval_changed = service_changed or new_starts_at != starts_at or new_ends_at != ends_at
        starts_at, ends_at = new_starts_at, new_ends_at

        status = patch.status or appointment.status
        blocking = status not in TERMINAL_STATUSES
        reactivated = blocking and appointment.status in TERMINAL_STATUSES
        recheck_rules = interval_changed or reactivated
        if recheck_rules:
            self._check_interval(starts_at, ends_at, settings)

        if isinstance(subject, RegisteredClient) and subject != current_subject:
            self._require_client(subject.client_id)

        if blocking:
            self._assert_no_conflict(starts_at, ends_at, exclude_id=appointment_id, settings=settings)

        with serializable_transaction(self.session):
            if blocking:
                self._assert_no_conflict(starts_at, ends_at, exclude_id=appointment_id, settings=settings)
                if recheck_rules:
                    self._assert_not_blocked(starts_at, ends_at, settings, at_commit=True)

            appointment = self.get(appointment_id)
            appointment.starts_at = to_storage(starts_at)
            appointment.ends_at = to_storage(ends_at)
            appointment.service_id = service_id
            appointment.status = status
            _apply_subject(appointment, subject)
            if "barber_id" in patch.model_fields_set:
                appointment.barber_id = patch.barber_id
            if "notes" in patch.model_fields_set:
                appointment.notes = patch.notes
            appointment.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
            self.session.add(appointment)

        self.session.refresh(appointment)
        logger.info("Appointment %s updated (%s)", appointment_id, appointment.status.value)
        return appointment

    def delete(self, appointment_id: int) -> None:
        appointment = self.get(appointment_id)
        self.session.delete(appointment)
        self.session.commit()
        logger.info("Appointment %s deleted", appointment_id)

    # Rule checks

    def _active_service(self, service_id: int) -> Service:
        service = self.services.find_by_id(service_id)
        if service is None:
            raise NotFoundException(
                "The selected service was not found. Please choose a valid service from the list.",
                code="SERVICE_NOT_FOUND",
                details={"service_id": service_id},
            )
        if not service.active:
            raise ValidationException(
                f'The service "{service.name}" is no longer available for booking.',
                code="SERVICE_INACTIVE",
                details={"service_id": service_id},
            )
        return service

    def _duration(self, service_id: int, starts_at: datetime, ends_at: datetime) -> timedelta:
        # live duration; the stored length only if the service row is gone
        service = self.services.find_by_id(service_id)
        if service is None:
            return ends_at - starts_at
        return timedelta(minutes=service.duration_min)

    def _require_client(self, client_id: int) -> None:
        if not self.clients.exists(client_id):
            raise NotFoundException(
                "Client not found. Check that the client is registered.",
                code="CLIENT_NOT_FOUND",
                details={"client_id": client_id},
            )

    def _check_interval(self, starts_at: datetime, ends_at: datetime, settings: SettingsPublic) -> None:
        tz = resolve_timezone(settings.timezone)
        if starts_at >= ends_at:
            raise ValidationException(
                f"The start ({_fmt(starts_at, tz, '%d/%m/%Y %H:%M')}) must be before "
                f"the end ({_fmt(ends_at, tz, '%d/%m/%Y %H:%M')})",
                code="INVALID_INTERVAL",
                details=_interval_details(starts_at, ends_at),
            )

        now = self.clock()
        self.calendar.check_instant(starts_at, now, boundary=START, settings=settings)
        self.calendar.check_instant(ends_at, now, boundary=END, settings=settings)
        self._assert_not_blocked(starts_at, ends_at, settings, at_commit=False)

    def _assert_not_blocked(
        self, starts_at: datetime, ends_at: datetime, settings: SettingsPublic, at_commit: bool
    ) -> None:
        block = self.blackouts.find_blocking(starts_at, ends_at)
        if block is None:
            return

        tz = resolve_timezone(settings.timezone)
        message = _block_message(block, tz)
        details = {
            **_interval_details(starts_at, ends_at),
            "time_block_id": block.id,
            "block_type": block.type.value,
        }
        logger.info("Interval %s - %s hits time block %s", starts_at, ends_at, block.id)
        if at_commit:
            raise BlockedIntervalException(message, details=details)
        raise ValidationException(message, code="TIME_BLOCKED", details=details)

    def _assert_no_conflict(
        self,
        starts_at: datetime,
        ends_at: datetime,
        exclude_id: Optional[int],
        settings: SettingsPublic,
    ) -> None:
        conflicts = self.conflicts.find_conflicts(starts_at, ends_at, exclude_id=exclude_id)
        if not conflicts:
            return

        conflict = conflicts[0]
        tz = resolve_timezone(settings.timezone)
        client = self._client_label(conflict)
        service = self.services.find_by_id(conflict.service_id)
        service_name = service.name if service is not None else "a service"
        raise BookingConflictException(
            f"This time is already booked. {client} has an appointment for "
            f'"{service_name}" on {_fmt(conflict.starts_at, tz, "%d/%m/%Y")} from '
            f"{_fmt(conflict.starts_at, tz, '%H:%M')} to {_fmt(conflict.ends_at, tz, '%H:%M')}. "
            "Please choose another available time.",
            details={
                **_interval_details(starts_at, ends_at),
                "conflicting_appointment_id": conflict.id,
                "conflict_starts_at": from_storage(conflict.starts_at).isoformat(),
                "conflict_ends_at": from_storage(conflict.ends_at).isoformat(),
                "client": client,
                "service": service_name,
            },
        )

    def _client_label(self, appointment: Appointment) -> str:
        if appointment.client_id is not None:
            client = self.clients.get(appointment.client_id)
            if client is not None:
                return client.name
        return appointment.client_name or "Another client"


def _apply_subject(appointment: Appointment, subject: Subject) -> None:
    if isinstance(subject, RegisteredClient):
        appointment.client_id = subject.client_id
        appointment.client_name = None
    else:
        appointment.client_id = None
        appointment.client_name = subject.name


def _fmt(instant: datetime, tz: pytz.BaseTzInfo, pattern: str) -> str:
    return to_local(instant, tz).strftime(pattern)


def _interval_details(starts_at: datetime, ends_at: datetime) -> dict:
    return {"requested_starts_at": starts_at.isoformat(), "requested_ends_at": ends_at.isoformat()}


def _block_message(block: TimeBlock, tz: pytz.BaseTzInfo) -> str:
    label = BLOCK_LABELS.get(block.type, "blocked period")
    reason = f" ({block.reason})" if block.reason else ""
    return (
        f"This time cannot be booked. There is a {label}{reason} from "
        f"{_fmt(block.starts_at, tz, '%H:%M')} to {_fmt(block.ends_at, tz, '%H:%M')}."
    )
