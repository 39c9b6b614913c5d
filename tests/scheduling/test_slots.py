from datetime import date
from itertools import combinations

import pytest
from pydantic import ValidationError

from telehealth.scheduling.slots import (
    DAYS_OF_WEEK,
    TimeSlot,
    format_time_range,
    generate_time_slots,
    generate_weekly_slots,
    is_valid_time_range,
    weekday_name,
)


def test_generate_time_slots_default_window_has_24_slots() -> None:
    slots = generate_time_slots('Monday', 8, 20, 30)

    assert len(slots) == 24


def test_generate_time_slots_is_deterministic() -> None:
    first = generate_time_slots('Monday', 8, 20, 30)
    second = generate_time_slots('Monday', 8, 20, 30)

    assert [slot.model_dump(by_alias=True) for slot in first] == [slot.model_dump(by_alias=True) for slot in second]


def test_generate_time_slots_boundaries() -> None:
    slots = generate_time_slots('Monday', 8, 20, 30)

    assert slots[0].id == 'Monday-08:00'
    assert slots[0].start_time == '08:00'
    assert slots[0].end_time == '08:30'
    assert slots[0].is_available is True
    assert slots[-1].start_time == '19:30'
    assert slots[-1].end_time == '20:00'


def test_generated_slots_do_not_overlap() -> None:
    slots = generate_time_slots('Wednesday', 8, 20, 30)

    for first, second in combinations(slots, 2):
        assert not (first.start < second.end and second.start < first.end)


def test_generate_time_slots_caps_last_slot_at_end_of_day() -> None:
    slots = generate_time_slots('Friday', 23, 24, 30)

    assert [(slot.start_time, slot.end_time) for slot in slots] == [('23:00', '23:30'), ('23:30', '23:59')]


def test_generate_time_slots_normalizes_day_name() -> None:
    slots = generate_time_slots(' tuesday ', 9, 10, 60)

    assert [slot.id for slot in slots] == ['Tuesday-09:00']


@pytest.mark.parametrize(
    ('day', 'start_hour', 'end_hour', 'interval_minutes'),
    [
        ('Monday', 20, 8, 30),
        ('Monday', 8, 8, 30),
        ('Monday', -1, 8, 30),
        ('Monday', 8, 25, 30),
        ('Monday', 8, 20, 0),
        ('Monday', 8, 20, 45),
        ('Funday', 8, 20, 30),
    ],
)
def test_generate_time_slots_returns_empty_for_invalid_configuration(
    day: str,
    start_hour: int,
    end_hour: int,
    interval_minutes: int,
) -> None:
    assert generate_time_slots(day, start_hour, end_hour, interval_minutes) == []


def test_generate_weekly_slots_covers_every_day_in_order() -> None:
    weekly = generate_weekly_slots(9, 11, 60)

    assert list(weekly) == list(DAYS_OF_WEEK)
    assert [slot.id for slot in weekly['Sunday']] == ['Sunday-09:00', 'Sunday-10:00']


def test_time_slot_derives_id_and_accepts_wire_aliases() -> None:
    slot = TimeSlot.model_validate(
        {'id': 'ignored', 'day': 'monday', 'startTime': '9:00', 'endTime': '09:30', 'isAvailable': True}
    )

    assert slot.id == 'Monday-09:00'
    assert slot.model_dump(by_alias=True) == {
        'id': 'Monday-09:00',
        'day': 'Monday',
        'startTime': '09:00',
        'endTime': '09:30',
        'isAvailable': True,
    }


@pytest.mark.parametrize(
    ('start_time', 'end_time'),
    [
        ('09:30', '09:00'),
        ('09:00', '09:00'),
        ('25:00', '25:30'),
        ('nine', '10:00'),
    ],
)
def test_time_slot_rejects_invalid_times(start_time: str, end_time: str) -> None:
    with pytest.raises(ValidationError):
        TimeSlot(day='Monday', start_time=start_time, end_time=end_time)


def test_format_and_validate_time_range() -> None:
    assert format_time_range('09:00', '09:30') == '09:00 - 09:30'
    assert is_valid_time_range('09:00', '09:30') is True
    assert is_valid_time_range('10:00', '09:30') is False
    assert is_valid_time_range('bad', '09:30') is False


def test_weekday_name() -> None:
    assert weekday_name(date(2024, 1, 1)) == 'Monday'
    assert weekday_name(date(2024, 1, 7)) == 'Sunday'


def test_time_slot_is_always_available() -> None:
    slot = TimeSlot.model_validate({'day': 'Friday', 'startTime': '10:00', 'endTime': '10:30', 'isAvailable': False})

    assert slot.is_available is True
    assert slot.model_dump(by_alias=True)['isAvailable'] is True
