import pytest

from telehealth.scheduling.conflicts import (
    ADDED,
    LEGACY_RULE,
    REJECTED,
    REMOVED,
    STANDARD_RULE,
    build_slot_set,
    derive_available_days,
    intervals_overlap,
    toggle_slot,
)
from telehealth.scheduling.slots import TimeSlot, parse_clock


def _slot(day: str, start_time: str, end_time: str) -> TimeSlot:
    return TimeSlot(day=day, start_time=start_time, end_time=end_time)


@pytest.fixture
def monday_set() -> list[TimeSlot]:
    return [_slot('Monday', '09:00', '09:30')]


def test_toggle_slot_rejects_overlapping_candidate(monday_set: list[TimeSlot]) -> None:
    original = list(monday_set)

    result = toggle_slot(monday_set, _slot('Monday', '09:15', '09:45'), rule=STANDARD_RULE)

    assert result.action == REJECTED
    assert not result.accepted
    assert result.slots == original
    assert monday_set == original
    assert result.conflict.conflicting_range == '09:00-09:30'
    assert result.conflict.message == (
        'Time slot 09:15-09:45 conflicts with existing selection 09:00-09:30 on Monday.'
    )


def test_toggle_slot_accepts_adjacent_candidate(monday_set: list[TimeSlot]) -> None:
    candidate = _slot('Monday', '09:30', '10:00')

    result = toggle_slot(monday_set, candidate, rule=STANDARD_RULE)

    assert result.action == ADDED
    assert result.conflict is None
    assert result.slots == [*monday_set, candidate]
    assert len(monday_set) == 1


def test_toggle_slot_ignores_other_days(monday_set: list[TimeSlot]) -> None:
    result = toggle_slot(monday_set, _slot('Tuesday', '09:15', '09:45'), rule=STANDARD_RULE)

    assert result.action == ADDED


def test_toggle_slot_twice_is_identity(monday_set: list[TimeSlot]) -> None:
    candidate = _slot('Monday', '10:00', '10:30')

    added = toggle_slot(monday_set, candidate)
    removed = toggle_slot(added.slots, candidate)

    assert added.action == ADDED
    assert removed.action == REMOVED
    assert removed.slots == monday_set


def test_toggle_slot_removes_by_day_and_start_time(monday_set: list[TimeSlot]) -> None:
    result = toggle_slot(monday_set, _slot('Monday', '09:00', '10:00'))

    assert result.action == REMOVED
    assert result.slots == []


@pytest.mark.parametrize('rule', [STANDARD_RULE, LEGACY_RULE])
@pytest.mark.parametrize(
    ('candidate_range', 'expected'),
    [
        (('09:15', '09:45'), True),
        (('08:45', '09:15'), True),
        (('09:00', '09:30'), True),
        (('09:30', '10:00'), False),
        (('08:30', '09:00'), False),
    ],
)
def test_intervals_overlap_common_cases(rule: str, candidate_range: tuple[str, str], expected: bool) -> None:
    candidate_start, candidate_end = (parse_clock(value) for value in candidate_range)

    assert intervals_overlap(parse_clock('09:00'), parse_clock('09:30'), candidate_start, candidate_end, rule) is expected


def test_legacy_rule_misses_candidate_containing_existing_slot() -> None:
    current = [_slot('Monday', '09:15', '09:45')]
    candidate = _slot('Monday', '09:00', '10:00')

    assert toggle_slot(current, candidate, rule=LEGACY_RULE).action == ADDED
    assert toggle_slot(current, candidate, rule=STANDARD_RULE).action == REJECTED


def test_intervals_overlap_rejects_unknown_rule() -> None:
    with pytest.raises(ValueError):
        intervals_overlap(1, 2, 1, 2, rule='fuzzy')


def test_build_slot_set_accepts_disjoint_slots() -> None:
    slots = [_slot('Monday', '09:00', '09:30'), _slot('Monday', '09:30', '10:00'), _slot('Friday', '09:00', '09:30')]

    accepted, conflict = build_slot_set(slots)

    assert conflict is None
    assert accepted == slots


def test_build_slot_set_reports_first_conflict() -> None:
    slots = [_slot('Monday', '09:00', '10:00'), _slot('Monday', '09:30', '10:30'), _slot('Monday', '09:00', '09:30')]

    accepted, conflict = build_slot_set(slots)

    assert accepted == slots[:1]
    assert conflict.candidate == slots[1]
    assert conflict.conflicting == slots[0]


def test_build_slot_set_treats_duplicates_as_conflicts() -> None:
    slot = _slot('Monday', '09:00', '09:30')

    _, conflict = build_slot_set([slot, slot])

    assert conflict is not None


def test_derive_available_days_ignores_insertion_order() -> None:
    slots = [
        _slot('Wednesday', '09:00', '09:30'),
        _slot('Monday', '10:00', '10:30'),
        _slot('Wednesday', '11:00', '11:30'),
    ]

    assert derive_available_days(slots) == ['Monday', 'Wednesday']
    assert derive_available_days(list(reversed(slots))) == ['Monday', 'Wednesday']
    assert derive_available_days([]) == []
