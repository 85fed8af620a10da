# barber_scheduling/routers/settings_routes.py

from fastapi import APIRouter, Depends

from barber_scheduling.business_calendar import BusinessCalendar
from barber_scheduling.deps import get_calendar
from barber_scheduling.schemas import SettingsPublic, SettingsUpdate

router = APIRouter(
    prefix="/settings",
    tags=["settings"],
)


@router.get("", response_model=SettingsPublic)
def get_settings(calendar: BusinessCalendar = Depends(get_calendar)):
    return calendar.get()


@router.patch("", response_model=SettingsPublic)
def update_settings(
    patch: SettingsUpdate,
    calendar: BusinessCalendar = Depends(get_calendar),
):
    return calendar.update(patch)
