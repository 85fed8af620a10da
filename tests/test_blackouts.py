# tests/test_blackouts.py

from datetime import date

import pytest

from barber_scheduling.exceptions import NotFoundException, ValidationException
from barber_scheduling.models import BlockType
from barber_scheduling.schemas import TimeBlockCreate, TimeBlockUpdate

from conftest import FRIDAY, MONDAY, SATURDAY, TUESDAY, as_utc, local


@pytest.fixture
def lunch(blackouts):
    # created on a Monday; only the time of day matters for recurring blocks
    return blackouts.create(
        TimeBlockCreate(
            type=BlockType.lunch,
            reason="Lunch",
            starts_at=local(MONDAY, 12, 0),
            ends_at=local(MONDAY, 13, 0),
            is_recurring=True,
            recurring_days=[5, 1, 2, 3, 4, 1],
        )
    )


def test_recurring_days_are_normalized(lunch):
    assert lunch.recurring_days == [1, 2, 3, 4, 5]


def test_recurring_block_applies_on_every_listed_weekday(blackouts, lunch):
    assert blackouts.is_blocked(as_utc(TUESDAY, 12, 30), as_utc(TUESDAY, 13, 0))
    assert blackouts.is_blocked(as_utc(TUESDAY, 11, 30), as_utc(TUESDAY, 12, 30))
    assert blackouts.is_blocked(as_utc(TUESDAY, 11, 0), as_utc(TUESDAY, 14, 0))
    later_friday = date(2026, 11, 6)
    assert blackouts.is_blocked(as_utc(later_friday, 12, 0), as_utc(later_friday, 12, 30))
    assert blackouts.find_blocking(as_utc(FRIDAY, 12, 15), as_utc(FRIDAY, 12, 45)).id == lunch.id


def test_recurring_block_ignores_other_weekdays_and_touching_intervals(blackouts, lunch):
    assert not blackouts.is_blocked(as_utc(SATURDAY, 12, 0), as_utc(SATURDAY, 12, 30))
    assert not blackouts.is_blocked(as_utc(TUESDAY, 13, 0), as_utc(TUESDAY, 13, 30))
    assert not blackouts.is_blocked(as_utc(TUESDAY, 11, 30), as_utc(TUESDAY, 12, 0))


def test_one_off_block_is_absolute(blackouts):
    blackouts.create(
        TimeBlockCreate(
            type=BlockType.day_off,
            starts_at=local(TUESDAY, 8, 0),
            ends_at=local(TUESDAY, 18, 0),
        )
    )
    assert blackouts.is_blocked(as_utc(TUESDAY, 15, 0), as_utc(TUESDAY, 15, 30))
    next_tuesday = date(2026, 10, 27)
    assert not blackouts.is_blocked(as_utc(next_tuesday, 15, 0), as_utc(next_tuesday, 15, 30))


def test_oldest_matching_block_wins(blackouts, lunch):
    blackouts.create(
        TimeBlockCreate(
            type=BlockType.custom,
            reason="Supplier visit",
            starts_at=local(TUESDAY, 12, 0),
            ends_at=local(TUESDAY, 12, 30),
        )
    )
    assert blackouts.find_blocking(as_utc(TUESDAY, 12, 0), as_utc(TUESDAY, 12, 30)).id == lunch.id


def test_deleted_blocks_are_invisible(blackouts, lunch):
    blackouts.delete(lunch.id)
    assert not blackouts.is_blocked(as_utc(TUESDAY, 12, 0), as_utc(TUESDAY, 12, 30))
    assert blackouts.list_active() == []
    with pytest.raises(NotFoundException) as exc:
        blackouts.get(lunch.id)
    assert exc.value.code == "TIME_BLOCK_NOT_FOUND"


def test_deactivating_through_update(blackouts, lunch):
    blackouts.update(lunch.id, TimeBlockUpdate(active=False))
    assert not blackouts.is_blocked(as_utc(TUESDAY, 12, 0), as_utc(TUESDAY, 12, 30))


def test_create_validation(blackouts):
    with pytest.raises(ValidationException) as exc:
        blackouts.create(
            TimeBlockCreate(starts_at=local(TUESDAY, 13, 0), ends_at=local(TUESDAY, 12, 0))
        )
    assert exc.value.code == "INVALID_INTERVAL"

    with pytest.raises(ValidationException) as exc:
        blackouts.create(
            TimeBlockCreate(
                starts_at=local(TUESDAY, 12, 0),
                ends_at=local(TUESDAY, 13, 0),
                is_recurring=True,
            )
        )
    assert exc.value.code == "INVALID_RECURRENCE"


def test_update_moves_block_and_clears_reason(blackouts, lunch):
    updated = blackouts.update(
        lunch.id,
        TimeBlockUpdate(starts_at=local(MONDAY, 13, 0), ends_at=local(MONDAY, 14, 0), reason=None),
    )
    assert updated.reason is None
    assert not blackouts.is_blocked(as_utc(TUESDAY, 12, 0), as_utc(TUESDAY, 12, 30))
    assert blackouts.is_blocked(as_utc(TUESDAY, 13, 0), as_utc(TUESDAY, 13, 30))

    with pytest.raises(ValidationException):
        blackouts.update(lunch.id, TimeBlockUpdate(ends_at=local(MONDAY, 12, 0)))


def test_list_in_range_returns_overlapping_one_off_blocks(blackouts):
    inside = blackouts.create(
        TimeBlockCreate(starts_at=local(TUESDAY, 9, 0), ends_at=local(TUESDAY, 10, 0))
    )
    blackouts.create(
        TimeBlockCreate(starts_at=local(FRIDAY, 9, 0), ends_at=local(FRIDAY, 10, 0))
    )
    found = blackouts.list_in_range(as_utc(TUESDAY, 0, 0), as_utc(TUESDAY, 23, 59))
    assert [block.id for block in found] == [inside.id]
