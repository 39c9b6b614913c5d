"""Overlap checks that keep a doctor's selected slot set conflict-free."""

from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel

from telehealth.core import config
from telehealth.scheduling.slots import DAYS_OF_WEEK, TimeSlot

STANDARD_RULE = 'standard'
LEGACY_RULE = 'legacy'
OVERLAP_RULES = (STANDARD_RULE, LEGACY_RULE)

ADDED = 'added'
REMOVED = 'removed'
REJECTED = 'rejected'


def intervals_overlap(
    existing_start: Any,
    existing_end: Any,
    candidate_start: Any,
    candidate_end: Any,
    rule: str | None = None,
) -> bool:
    """Half-open interval overlap between an existing and a candidate interval.

    Works on any comparable bounds (``time``, ``datetime``). The ``legacy``
    rule only checks whether the candidate's start or end falls inside the
    existing interval, so a candidate that strictly contains an existing
    interval is not reported.
    """
    rule = rule or config.SLOT_OVERLAP_RULE

    if rule == STANDARD_RULE:
        return existing_start < candidate_end and candidate_start < existing_end

    if rule == LEGACY_RULE:
        return (
            (existing_start <= candidate_start and existing_end > candidate_start)
            or (existing_start < candidate_end and existing_end >= candidate_end)
        )

    raise ValueError(f'Unknown overlap rule: {rule!r}.')


class SlotConflict(BaseModel):
    candidate: TimeSlot
    conflicting: TimeSlot

    @property
    def conflicting_range(self) -> str:
        return self.conflicting.time_range

    @property
    def message(self) -> str:
        return (
            f'Time slot {self.candidate.time_range} conflicts with existing selection '
            f'{self.conflicting_range} on {self.conflicting.day}.'
        )


class ToggleResult(BaseModel):
    slots: list[TimeSlot]
    action: str
    conflict: SlotConflict | None = None

    @property
    def accepted(self) -> bool:
        return self.conflict is None


def find_slot_conflict(
    current: Iterable[TimeSlot],
    candidate: TimeSlot,
    rule: str | None = None,
) -> TimeSlot | None:
    for existing in current:
        if existing.day != candidate.day:
            continue
        if intervals_overlap(existing.start, existing.end, candidate.start, candidate.end, rule):
            return existing
    return None


def toggle_slot(
    current: Sequence[TimeSlot],
    candidate: TimeSlot,
    rule: str | None = None,
) -> ToggleResult:
    """Remove ``candidate`` if it is already selected, otherwise try to add it.

    ``current`` is never modified. On conflict the returned slots equal
    ``current`` and ``conflict`` names the clashing selection.
    """
    if any(existing.matches(candidate) for existing in current):
        remaining = [existing for existing in current if not existing.matches(candidate)]
        return ToggleResult(slots=remaining, action=REMOVED)

    conflicting = find_slot_conflict(current, candidate, rule)
    if conflicting is not None:
        return ToggleResult(
            slots=list(current),
            action=REJECTED,
            conflict=SlotConflict(candidate=candidate, conflicting=conflicting),
        )

    return ToggleResult(slots=[*current, candidate], action=ADDED)


def build_slot_set(
    slots: Iterable[TimeSlot],
    rule: str | None = None,
) -> tuple[list[TimeSlot], SlotConflict | None]:
    """Insert every slot in order, stopping at the first overlap.

    Unlike :func:`toggle_slot` a repeated slot is a conflict, not a removal.
    """
    accepted: list[TimeSlot] = []
    for candidate in slots:
        conflicting = find_slot_conflict(accepted, candidate, rule)
        if conflicting is not None:
            return accepted, SlotConflict(candidate=candidate, conflicting=conflicting)
        accepted.append(candidate)
    return accepted, None


def derive_available_days(selected: Iterable[TimeSlot]) -> list[str]:
    present = {slot.day for slot in selected}
    return [day for day in DAYS_OF_WEEK if day in present]
