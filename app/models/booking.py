"""
Booking domain models.

Plain dataclasses shared by the availability/booking clients, the session
store and the interactive message builder. Dates are ISO strings
(YYYY-MM-DD) and times are 24h strings (HH:MM) so they survive a JSON
round trip through Redis unchanged.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


@dataclass
class Slot:
    """A bookable time + staff combination."""

    date: str                # YYYY-MM-DD
    time: str                # HH:MM (24h)
    staff_id: str
    staff_name: str = ""
    service_id: str = ""
    service_name: str = ""
    duration_minutes: int = 30
    price: str = ""          # Display string, e.g. "$45" or "1500 ₽"
    preferred: bool = False  # Matches the customer's staff preference
    score: float = 0.0       # Ranking score (higher is better)

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity used for membership checks."""
        return (self.date, self.time, self.staff_id)

    @property
    def start(self) -> datetime:
        """Start as a naive local datetime."""
        return datetime.fromisoformat(f"{self.date}T{self.time}")

    @property
    def day(self) -> date:
        """Calendar day of the slot."""
        return date.fromisoformat(self.date)

    def matches(self, slot_date: str, slot_time: str, staff_id: str) -> bool:
        """Check whether this slot is the one an identifier refers to."""
        return self.key == (slot_date, slot_time, staff_id)

    @classmethod
    def from_dict(cls, data: dict) -> "Slot":
        """Create from API response or stored dict."""
        slot_date = data.get("date", "")
        slot_time = data.get("time", "")

        # Availability service may send a single ISO start instead
        start = data.get("start_time") or data.get("start")
        if start and not (slot_date and slot_time):
            parsed = datetime.fromisoformat(start)
            slot_date = parsed.date().isoformat()
            slot_time = parsed.strftime("%H:%M")

        return cls(
            date=slot_date,
            time=slot_time,
            staff_id=str(data.get("staff_id", data.get("master_id", ""))),
            staff_name=data.get("staff_name", data.get("master_name", "")),
            service_id=str(data.get("service_id", "")),
            service_name=data.get("service_name", ""),
            duration_minutes=int(data.get("duration_minutes", data.get("duration", 30))),
            price=str(data.get("price", "")),
            preferred=bool(data.get("preferred", False)),
            score=float(data.get("score", 0.0)),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "date": self.date,
            "time": self.time,
            "staff_id": self.staff_id,
            "staff_name": self.staff_name,
            "service_id": self.service_id,
            "service_name": self.service_name,
            "duration_minutes": self.duration_minutes,
            "price": self.price,
            "preferred": self.preferred,
            "score": self.score,
        }


@dataclass
class Service:
    """Salon service resolved from a customer's free-text request."""

    id: str
    name: str
    duration_minutes: int = 30
    price: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Service":
        """Create from API response dict."""
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            duration_minutes=int(data.get("duration_minutes", 30)),
            price=data.get("price"),
        )


class BookingOutcome(str, Enum):
    """Result categories of a booking attempt."""

    CREATED = "created"
    CONFLICT = "conflict"    # Slot taken concurrently
    ERROR = "error"          # Downstream failure


@dataclass
class BookingResult:
    """Result of a booking-creation call."""

    outcome: BookingOutcome
    booking_id: Optional[str] = None
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == BookingOutcome.CREATED

    @property
    def is_conflict(self) -> bool:
        return self.outcome == BookingOutcome.CONFLICT
