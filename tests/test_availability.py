from datetime import datetime, timedelta

from church_admin.application.ports.scheduling_repo import AppointmentStatus, WorkingHoursRule
from church_admin.application.services.availability import (
    compute_available_slots,
    slot_overlaps,
    slots_for_day,
    weekday_of,
)
from tests.helpers import MON, MONDAY, make_appointment, make_professional


def week():
    return MONDAY, MONDAY + timedelta(days=7)


def test_weekday_zero_is_sunday():
    assert weekday_of(datetime(2023, 12, 31).date()) == 0
    assert weekday_of(MONDAY.date()) == 1
    assert weekday_of(datetime(2024, 1, 6).date()) == 6


def test_three_slots_on_monday_morning():
    slots = compute_available_slots(make_professional(), *week(), [])
    assert slots == [MONDAY.replace(hour=9), MONDAY.replace(hour=10), MONDAY.replace(hour=11)]


def test_booked_hour_is_removed():
    booked = make_appointment(MONDAY.replace(hour=10), MONDAY.replace(hour=11))
    slots = compute_available_slots(make_professional(), *week(), [booked])
    assert slots == [MONDAY.replace(hour=9), MONDAY.replace(hour=11)]


def test_partial_overlap_removes_candidate():
    booked = make_appointment(MONDAY.replace(hour=9, minute=30), MONDAY.replace(hour=10, minute=15))
    slots = compute_available_slots(make_professional(), *week(), [booked])
    assert slots == [MONDAY.replace(hour=11)]


def test_canceled_appointments_do_not_block():
    canceled = make_appointment(MONDAY.replace(hour=10), MONDAY.replace(hour=11), status=AppointmentStatus.CANCELED)
    slots = compute_available_slots(make_professional(), *week(), [canceled])
    assert MONDAY.replace(hour=10) in slots
    assert len(slots) == 3


def test_other_professionals_appointments_are_ignored():
    other = make_appointment(MONDAY.replace(hour=10), MONDAY.replace(hour=11), pid="p2")
    assert len(compute_available_slots(make_professional(), *week(), [other])) == 3


def test_zero_or_negative_duration_yields_nothing():
    assert compute_available_slots(make_professional(duration=0), *week(), []) == []
    assert compute_available_slots(make_professional(duration=-30), *week(), []) == []


def test_slot_ending_at_closing_time_is_included():
    rules = [WorkingHoursRule(MON, "09:00", "10:00")]
    assert compute_available_slots(make_professional(60, rules), *week(), []) == [MONDAY.replace(hour=9)]
    assert compute_available_slots(make_professional(61, rules), *week(), []) == []


def test_range_end_is_exclusive():
    # range ends exactly at Monday midnight: Monday is not considered
    sunday = MONDAY - timedelta(days=1)
    assert compute_available_slots(make_professional(), sunday, MONDAY, []) == []


def test_overlapping_rules_do_not_duplicate_or_self_overlap():
    rules = [
        WorkingHoursRule(MON, "09:00", "11:00"),
        WorkingHoursRule(MON, "09:00", "10:00"),
        WorkingHoursRule(MON, "09:30", "11:30"),
    ]
    slots = compute_available_slots(make_professional(60, rules), *week(), [])
    assert slots == sorted(slots)
    assert len(slots) == len(set(slots))
    for a, b in zip(slots, slots[1:]):
        assert not slot_overlaps(a, a + timedelta(hours=1), b, b + timedelta(hours=1))


def test_result_is_sorted_across_days_and_rules():
    rules = [
        WorkingHoursRule(3, "14:00", "15:00"),
        WorkingHoursRule(MON, "14:00", "15:00"),
        WorkingHoursRule(MON, "08:00", "09:00"),
    ]
    slots = compute_available_slots(make_professional(60, rules), *week(), [])
    assert slots == [
        MONDAY.replace(hour=8),
        MONDAY.replace(hour=14),
        (MONDAY + timedelta(days=2)).replace(hour=14),
    ]


def test_no_candidate_overlaps_any_blocking_appointment():
    rules = [WorkingHoursRule(d, "07:00", "21:00") for d in range(7)]
    professional = make_professional(50, rules)
    busy = [
        make_appointment(MONDAY.replace(hour=8, minute=10), MONDAY.replace(hour=9), aid="a1"),
        make_appointment(MONDAY.replace(hour=13), MONDAY.replace(hour=15, minute=5), aid="a2"),
    ]
    slots = compute_available_slots(professional, *week(), busy)
    for s in slots:
        for a in busy:
            assert not slot_overlaps(s, s + timedelta(minutes=50), a.start, a.end)


def test_slots_for_day_steps_by_duration():
    rules = [WorkingHoursRule(MON, "09:00", "10:40")]
    slots = slots_for_day(MONDAY.date(), rules, timedelta(minutes=50))
    assert slots == [MONDAY.replace(hour=9), MONDAY.replace(hour=9, minute=50)]


def test_touching_intervals_do_not_overlap():
    nine, ten, eleven = (MONDAY.replace(hour=h) for h in (9, 10, 11))
    assert not slot_overlaps(nine, ten, ten, eleven)
    assert slot_overlaps(nine, eleven, ten, ten + timedelta(minutes=1))
