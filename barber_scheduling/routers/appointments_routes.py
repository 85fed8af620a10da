# barber_scheduling/routers/appointments_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from barber_scheduling.availability import AvailabilityPlanner
from barber_scheduling.deps import get_planner, get_scheduling_engine
from barber_scheduling.engine import SchedulingEngine
from barber_scheduling.models import AppointmentStatus
from barber_scheduling.schemas import (
    AppointmentCreate,
    AppointmentPublic,
    AppointmentUpdate,
    AvailabilityResponse,
)

router = APIRouter(
    prefix="/appointments",
    tags=["appointments"],
)


@router.get("/available-slots", response_model=AvailabilityResponse)
def get_available_slots(
    date: date,
    service_id: int,
    planner: AvailabilityPlanner = Depends(get_planner),
):
    return planner.compute_slots(date, service_id)


@router.post("", response_model=AppointmentPublic, status_code=201)
def create_appointment(
    appt: AppointmentCreate,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return engine.create(appt)


@router.get("", response_model=List[AppointmentPublic])
def list_appointments(
    on_date: Optional[date] = None,
    status: Optional[AppointmentStatus] = None,
    client_id: Optional[int] = None,
    barber_id: Optional[int] = None,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return engine.list_appointments(
        day=on_date, status=status, client_id=client_id, barber_id=barber_id
    )


@router.get("/client-history", response_model=List[AppointmentPublic])
def get_client_history(
    client_name: Optional[str] = Query(default=None, min_length=2),
    phone: Optional[str] = Query(default=None, min_length=10),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return engine.client_history(client_name=client_name, phone=phone)


@router.get("/{appointment_id}", response_model=AppointmentPublic)
def get_appointment(
    appointment_id: int,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return engine.get(appointment_id)


@router.patch("/{appointment_id}", response_model=AppointmentPublic)
def update_appointment(
    appointment_id: int,
    patch: AppointmentUpdate,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return engine.update(appointment_id, patch)


@router.delete("/{appointment_id}", status_code=204)
def delete_appointment(
    appointment_id: int,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    engine.delete(appointment_id)
    return Response(status_code=204)
