"""
Availability Engine

Turns a professional's weekly working-hours template into concrete bookable
start times, skipping anything that collides with an existing booking.
Pure and synchronous: no I/O and no state shared between calls.
"""

from datetime import date, datetime, timedelta
from typing import FrozenSet, Iterable, List, Sequence

from ..ports.scheduling_repo import Appointment, AppointmentStatus, Professional, WorkingHoursRule
from ...utils import parse_hhmm

# Only a cancellation releases the professional's time; booking and slot
# generation share this set
NON_BLOCKING_STATUSES: FrozenSet[AppointmentStatus] = frozenset({AppointmentStatus.CANCELED})


def slot_overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open interval intersection: touching intervals do not overlap."""
    return start < other_end and other_start < end


def weekday_of(day: date) -> int:
    """Weekday with 0 = Sunday, 6 = Saturday."""
    return (day.weekday() + 1) % 7


def slots_for_day(day: date, rules: Iterable[WorkingHoursRule], duration: timedelta) -> List[datetime]:
    """Candidate starts for every rule matching ``day``, in rule order."""
    candidates: List[datetime] = []
    weekday = weekday_of(day)
    for rule in rules:
        if rule.weekday != weekday:
            continue
        candidate = datetime.combine(day, parse_hhmm(rule.start))
        closing = datetime.combine(day, parse_hhmm(rule.end))
        while candidate + duration <= closing:
            candidates.append(candidate)
            candidate += duration
    return candidates


def compute_available_slots(
    professional: Professional,
    range_start: datetime,
    range_end: datetime,
    existing_appointments: Sequence[Appointment],
) -> List[datetime]:
    minutes = professional.consultation_duration_minutes
    if minutes <= 0 or range_end <= range_start:
        return []
    duration = timedelta(minutes=minutes)

    busy = [
        (a.start, a.end)
        for a in existing_appointments
        if a.professional_id == professional.id and a.status not in NON_BLOCKING_STATUSES
    ]

    candidates: List[datetime] = []
    day = range_start.date()
    while datetime.combine(day, datetime.min.time()) < range_end:
        for candidate in slots_for_day(day, professional.working_hours, duration):
            if candidate < range_start or candidate >= range_end:
                continue
            if any(slot_overlaps(candidate, candidate + duration, s, e) for s, e in busy):
                continue
            candidates.append(candidate)
        day += timedelta(days=1)

    # overlapping rules on one weekday: keep the earliest of any colliding pair
    slots: List[datetime] = []
    for candidate in sorted(candidates):
        if slots and candidate < slots[-1] + duration:
            continue
        slots.append(candidate)
    return slots
