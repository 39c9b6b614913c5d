"""Appointment time windows.

Chat and video-call access is only granted while a confirmed appointment is
in progress. Every check here fails closed: a record whose date or times
cannot be parsed is treated as a closed window instead of raising.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel

from telehealth.core import config
from telehealth.scheduling.conflicts import intervals_overlap
from telehealth.scheduling.slots import parse_clock

logger = logging.getLogger(__name__)

DATE_FORMAT = '%Y-%m-%d'
ACTIVE_STATUS = 'confirmed'
ONGOING_STATUS = 'ongoing'
INACTIVE_STATUSES = frozenset({'rejected', 'cancelled'})


class WindowState(str, Enum):
    OPEN = 'open'
    TOO_EARLY = 'too_early'
    ENDED = 'ended'
    NOT_CONFIRMED = 'not_confirmed'
    INVALID = 'invalid'


WINDOW_MESSAGES = {
    WindowState.OPEN: 'The appointment is in progress.',
    WindowState.TOO_EARLY: 'This appointment has not started yet. Chat and video open at the scheduled time.',
    WindowState.ENDED: 'Appointment time has ended.',
    WindowState.NOT_CONFIRMED: 'This appointment has not been confirmed by the doctor.',
    WindowState.INVALID: 'This appointment has an invalid date or time.',
}


class WindowCheck(BaseModel):
    state: WindowState
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    seconds_remaining: int | None = None

    @property
    def is_open(self) -> bool:
        return self.state is WindowState.OPEN

    @property
    def message(self) -> str:
        return WINDOW_MESSAGES[self.state]


def parse_appointment_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def resolve_window(
    appointment_date: str | date,
    start_time: str | time,
    end_time: str | time | None,
    default_duration_minutes: int | None = None,
) -> tuple[datetime, datetime]:
    """Absolute start and end of an appointment.

    Raises ``ValueError``, ``TypeError`` or ``OverflowError`` for malformed
    input, including an end that is not after the start or past ``date.max``.
    """
    duration = default_duration_minutes or config.DEFAULT_APPOINTMENT_DURATION_MINUTES
    day = parse_appointment_date(appointment_date)
    starts_at = datetime.combine(day, parse_clock(start_time))

    if end_time:
        ends_at = datetime.combine(day, parse_clock(end_time))
    else:
        ends_at = starts_at + timedelta(minutes=duration)

    if ends_at <= starts_at:
        raise ValueError('Appointment must end after it starts.')

    return starts_at, ends_at


def _local_naive(now: datetime) -> datetime:
    # stored appointment times are naive local wall-clock values
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def evaluate_window(
    now: datetime,
    appointment_date: str | date,
    start_time: str | time,
    end_time: str | time | None,
    status: str | None,
    default_duration_minutes: int | None = None,
) -> WindowCheck:
    try:
        starts_at, ends_at = resolve_window(appointment_date, start_time, end_time, default_duration_minutes)
    except (AttributeError, OverflowError, TypeError, ValueError):
        logger.warning(
            'Malformed appointment timestamp date=%r start_time=%r end_time=%r',
            appointment_date,
            start_time,
            end_time,
        )
        return WindowCheck(state=WindowState.INVALID)

    now = _local_naive(now)

    if (status or '').strip().lower() != ACTIVE_STATUS:
        state = WindowState.NOT_CONFIRMED
    elif now < starts_at:
        state = WindowState.TOO_EARLY
    elif now > ends_at:
        state = WindowState.ENDED
    else:
        return WindowCheck(
            state=WindowState.OPEN,
            starts_at=starts_at,
            ends_at=ends_at,
            seconds_remaining=int((ends_at - now).total_seconds()),
        )

    return WindowCheck(state=state, starts_at=starts_at, ends_at=ends_at)


def is_within_window(
    now: datetime,
    appointment_date: str | date,
    start_time: str | time,
    end_time: str | time | None,
    status: str | None,
    default_duration_minutes: int | None = None,
) -> bool:
    check = evaluate_window(now, appointment_date, start_time, end_time, status, default_duration_minutes)
    return check.is_open


def check_appointment_window(now: datetime, appointment: Any) -> WindowCheck:
    return evaluate_window(
        now,
        appointment.date,
        appointment.start_time,
        appointment.end_time,
        appointment.status,
    )


def effective_status(now: datetime, appointment: Any) -> str:
    """Stored status, or ``ongoing`` while the appointment window is open."""
    if check_appointment_window(now, appointment).is_open:
        return ONGOING_STATUS
    return appointment.status


def is_upcoming(now: datetime, appointment: Any) -> bool:
    try:
        starts_at, _ = resolve_window(appointment.date, appointment.start_time, appointment.end_time)
    except (AttributeError, OverflowError, TypeError, ValueError):
        return False
    return starts_at > _local_naive(now)


def find_booking_conflict(
    booked: Iterable[Any],
    appointment_date: str | date,
    start_time: str | time,
    end_time: str | time | None,
    rule: str | None = None,
) -> Any | None:
    """First active booking that overlaps the requested appointment.

    Rejected and cancelled bookings never block. Bookings whose stored times
    cannot be parsed are skipped with a warning.
    """
    starts_at, ends_at = resolve_window(appointment_date, start_time, end_time)

    for existing in booked:
        if (existing.status or '').strip().lower() in INACTIVE_STATUSES:
            continue
        try:
            existing_start, existing_end = resolve_window(existing.date, existing.start_time, existing.end_time)
        except (AttributeError, OverflowError, TypeError, ValueError):
            logger.warning('Skipping booking with malformed timestamp: %r', existing)
            continue
        if intervals_overlap(existing_start, existing_end, starts_at, ends_at, rule):
            return existing

    return None
