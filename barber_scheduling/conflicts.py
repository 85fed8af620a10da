# barber_scheduling/conflicts.py

import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, col, select

from .core import from_storage, intervals_overlap, to_storage
from .models import TERMINAL_STATUSES, Appointment

logger = logging.getLogger(__name__)


class ConflictDetector:
    """Finds non-terminal appointments overlapping a candidate interval.

    The authoritative call happens inside the same serializable transaction
    as the write; the planner also uses it for advisory reads.
    """

    def __init__(self, session: Session):
        self.session = session

    def active_between(
        self,
        window_start: datetime,
        window_end: datetime,
        exclude_id: Optional[int] = None,
    ) -> List[Appointment]:
        """Blocking appointments that touch the window, ordered by creation."""
        stmt = (
            select(Appointment)
            .where(col(Appointment.status).not_in(list(TERMINAL_STATUSES)))
            .where(Appointment.starts_at < to_storage(window_end))
            .where(Appointment.ends_at > to_storage(window_start))
            .order_by(Appointment.created_at, Appointment.id)
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        return list(self.session.exec(stmt).all())

    def find_conflicts(
        self,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> List[Appointment]:
        conflicts = [
            appointment
            for appointment in self.active_between(start, end, exclude_id)
            if overlaps_appointment(appointment, start, end)
        ]
        if conflicts:
            logger.warning(
                "Found %d conflicting appointment(s) for %s - %s",
                len(conflicts),
                start.isoformat(),
                end.isoformat(),
            )
        return conflicts


def overlaps_appointment(appointment: Appointment, start: datetime, end: datetime) -> bool:
    return intervals_overlap(
        start, end, from_storage(appointment.starts_at), from_storage(appointment.ends_at)
    )
