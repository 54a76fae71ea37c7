"""Candidate slot ranking."""

from datetime import date
from typing import Optional

from app.core.intelligence.nlu.types import BookingIntent
from app.models.booking import Slot

# (staff, date, time) match -> score
_MATCH_SCORES: dict[tuple[bool, bool, bool], float] = {
    (True, True, True): 100,
    (True, True, False): 90,
    (True, False, True): 85,
    (True, False, False): 75,
    (False, True, True): 70,
    (False, True, False): 60,
    (False, False, True): 50,
}

# Slots matching nothing lose this much per day away from the target day
_DISTANCE_BASE = 40
_DISTANCE_PENALTY = 2


def score_slot(slot: Slot, intent: BookingIntent, today: date) -> float:
    """Score one slot against what the customer asked for."""
    staff_match = bool(intent.staff_id) and slot.staff_id == intent.staff_id
    if not staff_match and intent.staff_name and slot.staff_name:
        staff_match = intent.staff_name.strip().lower() in slot.staff_name.lower()

    date_match = intent.preferred_date is not None and slot.day == intent.preferred_date
    time_match = (
        intent.preferred_time is not None
        and slot.time == intent.preferred_time.strftime("%H:%M")
    )

    score = _MATCH_SCORES.get((staff_match, date_match, time_match))
    if score is None:
        target = intent.preferred_date or today
        days_diff = abs((slot.day - target).days)
        score = max(0, _DISTANCE_BASE - _DISTANCE_PENALTY * days_diff)

    slot.preferred = staff_match
    slot.score = float(score)
    return slot.score


def rank_slots(
    slots: list[Slot],
    intent: BookingIntent,
    today: Optional[date] = None,
    limit: Optional[int] = None,
) -> list[Slot]:
    """
    Order candidates best first: exact matches, then preferred staff, then
    closeness to the requested day. Ties go to the earlier slot.

    Duplicate (date, time, staff) entries are dropped.
    """
    today = today or date.today()

    unique: dict[tuple[str, str, str], Slot] = {}
    for slot in slots:
        unique.setdefault(slot.key, slot)

    for slot in unique.values():
        score_slot(slot, intent, today)

    ranked = sorted(unique.values(), key=lambda s: (-s.score, s.date, s.time))
    return ranked[:limit] if limit else ranked
