"""
Booking session (BookingContext) stored in Redis.

One record per customer phone number, alive from the first booking request
until confirmation, cancellation or 30 minutes of inactivity.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from app.core.intelligence.nlu.types import BookingIntent
from app.models.booking import Slot
from .state import DialogueState


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class SessionData:
    """
    Dialogue state for one booking attempt.

    `selected_slot` must always be one of the most recently offered
    `candidate_slots`; the engine checks membership before storing it.
    """

    # Identifiers
    session_id: str = field(default_factory=lambda: str(uuid4()))
    customer_id: str = ""          # Customer phone number (session key)
    salon_id: str = ""
    customer_name: Optional[str] = None

    # Language (changes only via explicit override)
    language: str = "en"

    # What the customer asked for
    original_intent: BookingIntent = field(default_factory=BookingIntent)

    # Offer and selection
    candidate_slots: list[Slot] = field(default_factory=list)
    selected_slot: Optional[Slot] = None

    # State machine
    state: DialogueState = DialogueState.NO_SESSION
    previous_state: Optional[DialogueState] = None
    booking_id: Optional[str] = None

    # Metadata
    created_at: datetime = field(default_factory=_utcnow)
    last_interaction_at: datetime = field(default_factory=_utcnow)

    def find_candidate(self, slot_date: str, slot_time: str, staff_id: str) -> Optional[Slot]:
        """Return the offered slot an identifier refers to, if still offered."""
        for slot in self.candidate_slots:
            if slot.matches(slot_date, slot_time, staff_id):
                return slot
        return None

    def remove_candidate(self, slot: Slot) -> None:
        """Drop a slot that turned out to be taken."""
        self.candidate_slots = [s for s in self.candidate_slots if s.key != slot.key]
        if self.selected_slot and self.selected_slot.key == slot.key:
            self.selected_slot = None

    def touch(self) -> None:
        """Record customer activity."""
        self.last_interaction_at = _utcnow()

    def to_json(self) -> str:
        """Convert to JSON string for Redis storage."""
        data = {
            "session_id": self.session_id,
            "customer_id": self.customer_id,
            "salon_id": self.salon_id,
            "customer_name": self.customer_name,
            "language": self.language,
            "original_intent": self.original_intent.to_dict(),
            "candidate_slots": [s.to_dict() for s in self.candidate_slots],
            "selected_slot": self.selected_slot.to_dict() if self.selected_slot else None,
            "state": self.state.value,
            "previous_state": self.previous_state.value if self.previous_state else None,
            "booking_id": self.booking_id,
            "created_at": self.created_at.isoformat(),
            "last_interaction_at": self.last_interaction_at.isoformat(),
        }
        return json.dumps(data, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "SessionData":
        """
        Create from a decoded Redis record.

        Records written by older versions may lack fields; missing values get
        safe defaults here and the manager rewrites the record.
        """
        created_at = data.get("created_at")
        last_interaction_at = data.get("last_interaction_at") or created_at
        selected = data.get("selected_slot")
        previous_state = data.get("previous_state")

        return cls(
            session_id=data.get("session_id") or str(uuid4()),
            customer_id=data.get("customer_id", ""),
            salon_id=data.get("salon_id", ""),
            customer_name=data.get("customer_name"),
            language=data.get("language") or "en",
            original_intent=BookingIntent.from_dict(data.get("original_intent")),
            candidate_slots=[Slot.from_dict(s) for s in data.get("candidate_slots", [])],
            selected_slot=Slot.from_dict(selected) if selected else None,
            state=DialogueState(data.get("state", DialogueState.SLOTS_OFFERED.value)),
            previous_state=DialogueState(previous_state) if previous_state else None,
            booking_id=data.get("booking_id"),
            created_at=datetime.fromisoformat(created_at) if created_at else _utcnow(),
            last_interaction_at=(
                datetime.fromisoformat(last_interaction_at) if last_interaction_at else _utcnow()
            ),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "SessionData":
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return json.loads(self.to_json())
