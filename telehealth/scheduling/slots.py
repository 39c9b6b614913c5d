"""Bookable time slot definitions and catalog generation."""

import logging
from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, Field, field_validator, model_validator

from telehealth.core import config

logger = logging.getLogger(__name__)

DAYS_OF_WEEK = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')
CLOCK_FORMAT = '%H:%M'
END_OF_DAY = '23:59'

_CLOCK_BASE_DATE = date(1970, 1, 1)


def parse_clock(value: str | time) -> time:
    """Parse an ``HH:MM`` wall-clock string; ``time`` objects pass through."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    return datetime.strptime(value.strip(), CLOCK_FORMAT).time()


def format_clock(value: time) -> str:
    return value.strftime(CLOCK_FORMAT)


def normalize_day(value: str) -> str:
    normalized = value.strip().capitalize()
    if normalized not in DAYS_OF_WEEK:
        raise ValueError(f'Unknown weekday: {value!r}.')
    return normalized


def slot_id(day: str, start_time: str) -> str:
    return f'{day}-{start_time}'


class TimeSlot(BaseModel):
    """A fixed-length bookable interval on a weekday.

    ``id`` is always derived from ``day`` and ``start_time``; any id supplied
    by a client is replaced. ``is_available`` is likewise always true: a slot
    in a doctor's selected set is bookable by definition.
    """

    id: str = ''
    day: str
    start_time: str = Field(alias='startTime')
    end_time: str = Field(alias='endTime')
    is_available: bool = Field(default=True, alias='isAvailable')

    class Config:
        populate_by_name = True

    @field_validator('day')
    @classmethod
    def validate_day(cls, value: str) -> str:
        return normalize_day(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_clock(cls, value: str) -> str:
        try:
            return format_clock(parse_clock(value))
        except (TypeError, ValueError) as exc:
            raise ValueError('Times must use the 24-hour HH:MM format.') from exc

    @model_validator(mode='after')
    def derive_id(self) -> 'TimeSlot':
        if self.start >= self.end:
            raise ValueError('Slot start time must be before its end time.')
        self.id = slot_id(self.day, self.start_time)
        self.is_available = True
        return self

    @property
    def start(self) -> time:
        return parse_clock(self.start_time)

    @property
    def end(self) -> time:
        return parse_clock(self.end_time)

    @property
    def time_range(self) -> str:
        return f'{self.start_time}-{self.end_time}'

    def matches(self, other: 'TimeSlot') -> bool:
        """Slots are the same selection when they share day and start time."""
        return self.day == other.day and self.start_time == other.start_time


def is_valid_slot_window(start_hour: int, end_hour: int, interval_minutes: int) -> bool:
    if not 0 <= start_hour < end_hour <= 24:
        return False
    # intervals must tile each hour exactly, otherwise generated slots overlap
    return 0 < interval_minutes <= 60 and 60 % interval_minutes == 0


def generate_time_slots(
    day: str,
    start_hour: int = config.SLOT_START_HOUR,
    end_hour: int = config.SLOT_END_HOUR,
    interval_minutes: int = config.SLOT_INTERVAL_MINUTES,
) -> list[TimeSlot]:
    """Enumerate the canonical slots for ``day`` covering ``[start_hour, end_hour)``.

    An invalid window or weekday yields an empty list. A slot that would run
    past midnight ends at 23:59 instead.
    """
    try:
        day = normalize_day(day)
    except ValueError:
        logger.warning('Slot generation requested for unknown weekday %r', day)
        return []

    if not is_valid_slot_window(start_hour, end_hour, interval_minutes):
        logger.warning(
            'Invalid slot window start_hour=%s end_hour=%s interval_minutes=%s',
            start_hour,
            end_hour,
            interval_minutes,
        )
        return []

    slots: list[TimeSlot] = []
    for hour in range(start_hour, end_hour):
        for minute in range(0, 60, interval_minutes):
            slot_start = datetime.combine(_CLOCK_BASE_DATE, time(hour, minute))
            slot_end = slot_start + timedelta(minutes=interval_minutes)
            start_time = format_clock(slot_start.time())
            end_time = format_clock(slot_end.time()) if slot_end.date() == _CLOCK_BASE_DATE else END_OF_DAY

            slots.append(
                TimeSlot(
                    day=day,
                    start_time=start_time,
                    end_time=end_time,
                    is_available=True,
                )
            )

    return slots


def generate_weekly_slots(
    start_hour: int = config.SLOT_START_HOUR,
    end_hour: int = config.SLOT_END_HOUR,
    interval_minutes: int = config.SLOT_INTERVAL_MINUTES,
) -> dict[str, list[TimeSlot]]:
    return {
        day: generate_time_slots(day, start_hour, end_hour, interval_minutes)
        for day in DAYS_OF_WEEK
    }


def format_time_range(start_time: str, end_time: str) -> str:
    return f'{start_time} - {end_time}'


def is_valid_time_range(start_time: str, end_time: str) -> bool:
    try:
        return parse_clock(start_time) < parse_clock(end_time)
    except (AttributeError, TypeError, ValueError):
        return False


def weekday_name(value: date) -> str:
    return DAYS_OF_WEEK[value.weekday()]
