"""
Interactive message identifiers.

Every button and list row we send carries an id of the form
`{type}_{context}`; WhatsApp echoes it back when the customer taps.
All encoding and decoding of that grammar lives here.

    slot_2024-06-01_15:30_staff42     -> SlotRef
    confirm_booking_<ref>             -> ConfirmRef
    action_change_time / action_cancel-> ActionRef
    waitlist_<context>                -> WaitlistRef
    nav_<context>                     -> NavRef
    anything else                     -> Unrecognized
"""

import re
from dataclasses import dataclass
from typing import Union

# Platform limits
MAX_IDENTIFIER_LENGTH = 256
MAX_ROW_IDENTIFIER_LENGTH = 200

IDENTIFIER_PATTERN = re.compile(r"^(slot|confirm|waitlist|action|nav)_[A-Za-z0-9_:-]+$")

_SLOT_PATTERN = re.compile(r"^slot_(\d{4}-\d{2}-\d{2})_(\d{2}:\d{2})_([A-Za-z0-9_:-]+)$")
_CONFIRM_PREFIX = "confirm_booking_"

ACTION_CHANGE_TIME = "change_time"
ACTION_CANCEL = "cancel"


class IdentifierTooLongError(ValueError):
    """Encoded identifier does not fit the platform limit."""

    def __init__(self, identifier: str, max_length: int):
        self.identifier = identifier
        self.max_length = max_length
        super().__init__(
            f"Identifier is {len(identifier)} chars, limit is {max_length}: {identifier[:40]}..."
        )


@dataclass(frozen=True)
class SlotRef:
    date: str   # YYYY-MM-DD
    time: str   # HH:MM
    staff_id: str


@dataclass(frozen=True)
class ConfirmRef:
    booking_ref: str


@dataclass(frozen=True)
class ActionRef:
    action: str  # change_time | cancel | ...


@dataclass(frozen=True)
class WaitlistRef:
    context: str


@dataclass(frozen=True)
class NavRef:
    context: str


@dataclass(frozen=True)
class Unrecognized:
    raw: str


ParsedIdentifier = Union[SlotRef, ConfirmRef, ActionRef, WaitlistRef, NavRef, Unrecognized]


def is_valid_identifier(identifier: str, max_length: int = MAX_IDENTIFIER_LENGTH) -> bool:
    """Check grammar and length."""
    return (
        bool(identifier)
        and len(identifier) <= max_length
        and IDENTIFIER_PATTERN.match(identifier) is not None
    )


def _checked(identifier: str, max_length: int) -> str:
    if len(identifier) > max_length:
        raise IdentifierTooLongError(identifier, max_length)
    if not IDENTIFIER_PATTERN.match(identifier):
        raise ValueError(f"Identifier has invalid characters: {identifier[:40]}")
    return identifier


# === Encoding ===

def slot_id(slot_date: str, slot_time: str, staff_id: str,
            max_length: int = MAX_ROW_IDENTIFIER_LENGTH) -> str:
    """Encode a slot tap. Raises IdentifierTooLongError instead of truncating."""
    return _checked(f"slot_{slot_date}_{slot_time}_{staff_id}", max_length)


def confirm_id(booking_ref: str) -> str:
    """Encode the Confirm button."""
    return _checked(f"{_CONFIRM_PREFIX}{booking_ref}", MAX_IDENTIFIER_LENGTH)


def action_id(action: str) -> str:
    """Encode an action button such as change_time or cancel."""
    return _checked(f"action_{action}", MAX_IDENTIFIER_LENGTH)


# === Decoding ===

def parse_identifier(identifier: str) -> ParsedIdentifier:
    """
    Decode a tapped button/row id.

    Never raises: anything outside the grammar is Unrecognized.
    """
    if not is_valid_identifier(identifier):
        return Unrecognized(raw=identifier or "")

    kind, _, context = identifier.partition("_")

    if kind == "slot":
        match = _SLOT_PATTERN.match(identifier)
        if match is None:
            return Unrecognized(raw=identifier)
        return SlotRef(date=match.group(1), time=match.group(2), staff_id=match.group(3))

    if kind == "confirm":
        if not identifier.startswith(_CONFIRM_PREFIX) or len(identifier) == len(_CONFIRM_PREFIX):
            return Unrecognized(raw=identifier)
        return ConfirmRef(booking_ref=identifier[len(_CONFIRM_PREFIX):])

    if kind == "action":
        return ActionRef(action=context)

    if kind == "waitlist":
        return WaitlistRef(context=context)

    return NavRef(context=context)
