"""Booking intent extracted from a customer's free-text request."""

from dataclasses import dataclass
from datetime import date, time
from typing import Optional


@dataclass
class BookingIntent:
    """What the customer asked for in their first message."""

    # Service
    service_name: Optional[str] = None   # "haircut", "маникюр"
    service_id: Optional[str] = None     # Resolved by the availability service

    # Date/time
    preferred_date: Optional[date] = None
    preferred_time: Optional[time] = None
    date_raw: Optional[str] = None       # "tomorrow", "next Tuesday"
    time_raw: Optional[str] = None       # "after 3", "morning"

    # Staff
    staff_name: Optional[str] = None     # "Anna"
    staff_id: Optional[str] = None

    # Metadata
    raw_response: str = ""
    processing_time_ms: float = 0.0

    def has_any(self) -> bool:
        """Check if anything was extracted."""
        return any([
            self.service_name,
            self.service_id,
            self.preferred_date,
            self.preferred_time,
            self.staff_name,
            self.staff_id,
        ])

    def to_dict(self) -> dict:
        """Convert to dictionary (session storage)."""
        return {
            "service_name": self.service_name,
            "service_id": self.service_id,
            "preferred_date": self.preferred_date.isoformat() if self.preferred_date else None,
            "preferred_time": self.preferred_time.strftime("%H:%M") if self.preferred_time else None,
            "date_raw": self.date_raw,
            "time_raw": self.time_raw,
            "staff_name": self.staff_name,
            "staff_id": self.staff_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "BookingIntent":
        """Create from stored dict."""
        if not data:
            return cls()

        preferred_date = data.get("preferred_date")
        preferred_time = data.get("preferred_time")

        return cls(
            service_name=data.get("service_name"),
            service_id=data.get("service_id"),
            preferred_date=date.fromisoformat(preferred_date) if preferred_date else None,
            preferred_time=time.fromisoformat(preferred_time) if preferred_time else None,
            date_raw=data.get("date_raw"),
            time_raw=data.get("time_raw"),
            staff_name=data.get("staff_name"),
            staff_id=data.get("staff_id"),
        )
