# barber_scheduling/routers/time_blocks_routes.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Response

from barber_scheduling.blackouts import BlackoutRegistry
from barber_scheduling.core import parse_instant
from barber_scheduling.deps import get_blackouts
from barber_scheduling.exceptions import ValidationException
from barber_scheduling.schemas import (
    BlockCheckResponse,
    TimeBlockCreate,
    TimeBlockPublic,
    TimeBlockUpdate,
)

router = APIRouter(
    prefix="/time-blocks",
    tags=["time-blocks"],
)


@router.post("", response_model=TimeBlockPublic, status_code=201)
def create_time_block(
    block: TimeBlockCreate,
    blackouts: BlackoutRegistry = Depends(get_blackouts),
):
    return blackouts.create(block)


@router.get("", response_model=List[TimeBlockPublic])
def list_time_blocks(
    starts_at: Optional[datetime] = None,
    ends_at: Optional[datetime] = None,
    timezone: Optional[str] = None,
    blackouts: BlackoutRegistry = Depends(get_blackouts),
):
    if starts_at is None and ends_at is None:
        return blackouts.list_active()
    if starts_at is None or ends_at is None:
        raise ValidationException(
            "starts_at and ends_at must be given together",
            code="INVALID_INTERVAL",
        )
    tz_name = timezone or blackouts.calendar.get().timezone
    return blackouts.list_in_range(parse_instant(starts_at, tz_name), parse_instant(ends_at, tz_name))


@router.get("/check", response_model=BlockCheckResponse)
def check_blocked(
    starts_at: datetime,
    ends_at: datetime,
    timezone: Optional[str] = None,
    blackouts: BlackoutRegistry = Depends(get_blackouts),
):
    tz_name = timezone or blackouts.calendar.get().timezone
    block = blackouts.find_blocking(parse_instant(starts_at, tz_name), parse_instant(ends_at, tz_name))
    return BlockCheckResponse(
        blocked=block is not None,
        block=TimeBlockPublic.model_validate(block) if block is not None else None,
    )


@router.get("/{block_id}", response_model=TimeBlockPublic)
def get_time_block(
    block_id: int,
    blackouts: BlackoutRegistry = Depends(get_blackouts),
):
    return blackouts.get(block_id)


@router.patch("/{block_id}", response_model=TimeBlockPublic)
def update_time_block(
    block_id: int,
    patch: TimeBlockUpdate,
    blackouts: BlackoutRegistry = Depends(get_blackouts),
):
    return blackouts.update(block_id, patch)


@router.delete("/{block_id}", status_code=204)
def delete_time_block(
    block_id: int,
    blackouts: BlackoutRegistry = Depends(get_blackouts),
):
    blackouts.delete(block_id)
    return Response(status_code=204)
