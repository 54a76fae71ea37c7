"""Tests for slot ranking."""

from datetime import date, time

from app.core.booking.ranking import rank_slots, score_slot
from app.core.intelligence.nlu.types import BookingIntent

from .conftest import make_slot

TODAY = date(2030, 6, 3)


class TestScoring:
    """Test per-slot match scores."""

    def test_exact_match_ranks_first(self):
        """Preferred staff on the requested day and time wins."""
        intent = BookingIntent(
            staff_name="Anna",
            preferred_date=date(2030, 6, 4),
            preferred_time=time(10, 0),
        )
        slots = {
            "A": make_slot("2030-06-04", "10:00", "staff-1", "Anna"),
            "B": make_slot("2030-06-04", "10:00", "staff-2", "Boris"),
            "C": make_slot("2030-06-04", "11:00", "staff-1", "Anna"),
            "D": make_slot("2030-06-05", "10:00", "staff-1", "Anna"),
            "E": make_slot("2030-06-08", "12:00", "staff-2", "Boris"),
            "F": make_slot("2030-06-04", "14:00", "staff-3", "Clara"),
            "G": make_slot("2030-06-06", "10:00", "staff-2", "Boris"),
            "H": make_slot("2030-06-07", "16:00", "staff-1", "Anna Maria"),
        }

        ranked = rank_slots(list(slots.values()), intent, today=TODAY)

        names = {id(slot): name for name, slot in slots.items()}
        assert [names[id(s)] for s in ranked] == ["A", "C", "D", "H", "B", "F", "G", "E"]
        assert [s.score for s in ranked] == [100, 90, 85, 75, 70, 60, 50, 32]

    def test_preferred_flag_follows_staff_match(self):
        """Only slots with the requested staff are flagged."""
        intent = BookingIntent(staff_id="staff-2")
        anna = make_slot(staff_id="staff-1")
        boris = make_slot(staff_id="staff-2", staff_name="Boris")

        score_slot(anna, intent, TODAY)
        score_slot(boris, intent, TODAY)

        assert boris.preferred is True
        assert anna.preferred is False
        assert boris.score == 75

    def test_distance_from_today_without_date(self):
        """With nothing requested, earlier days score higher."""
        intent = BookingIntent()

        assert score_slot(make_slot("2030-06-03"), intent, TODAY) == 40
        assert score_slot(make_slot("2030-06-06"), intent, TODAY) == 34
        assert score_slot(make_slot("2030-07-30"), intent, TODAY) == 0


class TestRanking:
    """Test ordering, dedup and limits."""

    def test_ties_go_to_earlier_slot(self):
        """Equal scores sort by date then time."""
        intent = BookingIntent()
        slots = [make_slot(slot_time="15:00"), make_slot(slot_time="09:00")]

        ranked = rank_slots(slots, intent, today=TODAY)

        assert [s.time for s in ranked] == ["09:00", "15:00"]

    def test_duplicates_dropped(self):
        """Same date, time and staff appear once."""
        intent = BookingIntent()
        slots = [make_slot(), make_slot(), make_slot(staff_id="staff-2")]

        assert len(rank_slots(slots, intent, today=TODAY)) == 2

    def test_limit(self):
        """At most `limit` slots are returned."""
        intent = BookingIntent()
        slots = [make_slot(slot_time=f"{8 + i:02d}:00") for i in range(12)]

        ranked = rank_slots(slots, intent, today=TODAY, limit=10)

        assert len(ranked) == 10
        assert ranked[0].time == "08:00"
