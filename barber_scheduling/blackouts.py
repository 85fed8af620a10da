# barber_scheduling/blackouts.py
"""
Blackout registry: one-off and weekly recurring time blocks.

A one-off block is an absolute interval. A recurring block is a day-agnostic
template: only the time-of-day of its interval matters, applied on every
weekday listed in ``recurring_days`` (0=Sunday..6=Saturday), evaluated in
the business timezone.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import pytz
from sqlalchemy import and_, or_
from sqlmodel import Session, select

from .business_calendar import BusinessCalendar
from .core import (
    from_storage,
    intervals_overlap,
    minutes_of_day,
    parse_instant,
    resolve_timezone,
    to_local,
    to_storage,
    weekday_number,
)
from .exceptions import NotFoundException, ValidationException
from .models import TimeBlock
from .schemas import TimeBlockCreate, TimeBlockUpdate

logger = logging.getLogger(__name__)


def block_matches(block: TimeBlock, start: datetime, end: datetime, tz: pytz.BaseTzInfo) -> bool:
    """Does ``block`` intersect the half-open interval ``[start, end)``?"""
    if not block.is_recurring:
        return intervals_overlap(start, end, from_storage(block.starts_at), from_storage(block.ends_at))

    local_start = to_local(start, tz)
    if weekday_number(local_start) not in (block.recurring_days or []):
        return False
    # second pass on minutes since midnight, independent of the calendar date
    return intervals_overlap(
        minutes_of_day(local_start),
        minutes_of_day(to_local(end, tz)),
        minutes_of_day(to_local(block.starts_at, tz)),
        minutes_of_day(to_local(block.ends_at, tz)),
    )


class BlackoutRegistry:
    def __init__(self, session: Session, calendar: BusinessCalendar):
        self.session = session
        self.calendar = calendar

    # Queries

    def candidates(self, window_start: datetime, window_end: datetime) -> List[TimeBlock]:
        """Active blocks that may intersect the window, oldest first.

        One-off blocks are narrowed in SQL; recurring blocks are all returned
        and resolved by ``block_matches``.
        """
        start, end = to_storage(window_start), to_storage(window_end)
        stmt = (
            select(TimeBlock)
            .where(TimeBlock.active == True)  # noqa: E712
            .where(
                or_(
                    and_(
                        TimeBlock.is_recurring == False,  # noqa: E712
                        TimeBlock.starts_at < end,
                        TimeBlock.ends_at > start,
                    ),
                    TimeBlock.is_recurring == True,  # noqa: E712
                )
            )
            .order_by(TimeBlock.created_at, TimeBlock.id)
        )
        return list(self.session.exec(stmt).all())

    def first_match(
        self, blocks: Iterable[TimeBlock], start: datetime, end: datetime
    ) -> Optional[TimeBlock]:
        tz = self._timezone()
        for block in blocks:
            if block_matches(block, start, end, tz):
                return block
        return None

    def find_blocking(self, start: datetime, end: datetime) -> Optional[TimeBlock]:
        return self.first_match(self.candidates(start, end), start, end)

    def is_blocked(self, start: datetime, end: datetime) -> bool:
        return self.find_blocking(start, end) is not None

    # CRUD

    def create(self, payload: TimeBlockCreate) -> TimeBlock:
        tz_name = payload.timezone or self.calendar.get().timezone
        starts_at = parse_instant(payload.starts_at, tz_name)
        ends_at = parse_instant(payload.ends_at, tz_name)
        recurring_days = self._validate(starts_at, ends_at, payload.is_recurring, payload.recurring_days)

        block = TimeBlock(
            type=payload.type,
            reason=payload.reason,
            starts_at=to_storage(starts_at),
            ends_at=to_storage(ends_at),
            is_recurring=payload.is_recurring,
            recurring_days=recurring_days,
        )
        self.session.add(block)
        self.session.commit()
        self.session.refresh(block)
        logger.info(
            "Time block %s created (%s, recurring=%s)", block.id, block.type.value, block.is_recurring
        )
        return block

    def get(self, block_id: int) -> TimeBlock:
        block = self.session.get(TimeBlock, block_id)
        if block is None or not block.active:
            raise NotFoundException(
                f"Time block {block_id} not found",
                code="TIME_BLOCK_NOT_FOUND",
                details={"time_block_id": block_id},
            )
        return block

    def list_active(self) -> List[TimeBlock]:
        stmt = select(TimeBlock).where(TimeBlock.active == True).order_by(TimeBlock.starts_at)  # noqa: E712
        return list(self.session.exec(stmt).all())

    def list_in_range(self, start: datetime, end: datetime) -> List[TimeBlock]:
        stmt = (
            select(TimeBlock)
            .where(TimeBlock.active == True)  # noqa: E712
            .where(TimeBlock.starts_at < to_storage(end))
            .where(TimeBlock.ends_at > to_storage(start))
            .order_by(TimeBlock.starts_at)
        )
        return [
            block
            for block in self.session.exec(stmt).all()
            if intervals_overlap(start, end, from_storage(block.starts_at), from_storage(block.ends_at))
        ]

    def update(self, block_id: int, patch: TimeBlockUpdate) -> TimeBlock:
        block = self.get(block_id)
        tz_name = patch.timezone or self.calendar.get().timezone

        starts_at = parse_instant(patch.starts_at, tz_name) if patch.starts_at else from_storage(block.starts_at)
        ends_at = parse_instant(patch.ends_at, tz_name) if patch.ends_at else from_storage(block.ends_at)
        is_recurring = block.is_recurring if patch.is_recurring is None else patch.is_recurring
        recurring_days = block.recurring_days if patch.recurring_days is None else patch.recurring_days
        recurring_days = self._validate(starts_at, ends_at, is_recurring, recurring_days)

        if patch.type is not None:
            block.type = patch.type
        if "reason" in patch.model_fields_set:
            block.reason = patch.reason
        if patch.active is not None:
            block.active = patch.active
        block.starts_at = to_storage(starts_at)
        block.ends_at = to_storage(ends_at)
        block.is_recurring = is_recurring
        block.recurring_days = recurring_days
        block.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)

        self.session.add(block)
        self.session.commit()
        self.session.refresh(block)
        logger.info("Time block %s updated", block.id)
        return block

    def delete(self, block_id: int) -> None:
        block = self.get(block_id)
        # soft delete: inactive blocks are invisible to every check
        block.active = False
        block.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
        self.session.add(block)
        self.session.commit()
        logger.info("Time block %s deactivated", block_id)

    def _timezone(self) -> pytz.BaseTzInfo:
        return resolve_timezone(self.calendar.get().timezone)

    @staticmethod
    def _validate(
        starts_at: datetime, ends_at: datetime, is_recurring: bool, recurring_days: List[int]
    ) -> List[int]:
        if starts_at >= ends_at:
            raise ValidationException(
                "A time block must start before it ends",
                code="INVALID_INTERVAL",
                details={"starts_at": starts_at.isoformat(), "ends_at": ends_at.isoformat()},
            )
        if is_recurring and not recurring_days:
            raise ValidationException(
                "recurring_days is required when is_recurring is true",
                code="INVALID_RECURRENCE",
            )
        return sorted(set(recurring_days or []))
