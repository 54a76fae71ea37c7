"""
Interactive Message Builder.

Pure functions turning candidate slots (or a selected slot) into WhatsApp
Cloud API `interactive` objects:

- 1-3 slots  -> reply buttons
- 4-10 slots -> list, one section per day
- anything else is the caller's problem (InvalidSlotCountError)

Labels are truncated to the platform limits; identifiers never are.
"""

from collections import Counter
from dataclasses import replace
from datetime import date, time
from typing import Optional

from app.models.booking import Slot
from .identifiers import (
    ACTION_CHANGE_TIME,
    MAX_IDENTIFIER_LENGTH,
    MAX_ROW_IDENTIFIER_LENGTH,
    action_id,
    confirm_id,
    slot_id,
)
from .translations import day_header, format_date, format_time, normalize_language, short_day_name, t

# WhatsApp interactive limits (characters)
MAX_BUTTON_TITLE = 20
MAX_ROW_TITLE = 24
MAX_ROW_DESCRIPTION = 72
MAX_SECTION_TITLE = 24
MAX_BODY = 1024
MAX_HEADER = 60
MAX_FOOTER = 60
MAX_LIST_BUTTON = 20

MAX_BUTTONS = 3
MAX_LIST_ROWS = 10

PREFERRED_MARKER = " ⭐"


class InvalidSlotCountError(ValueError):
    """Slot count outside 1-10; paging happens upstream."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Cannot build a slot message for {count} slots (expected 1-{MAX_LIST_ROWS})")


def truncate(text: str, max_length: int) -> str:
    """Cut to `max_length`, marking the cut with "..."."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def slot_title(slot: Slot, language: str, max_length: int, with_day: bool = False) -> str:
    """
    "3:30 PM - Anna ⭐", or "3:30 PM ⭐" when the staff name doesn't fit.

    `with_day` prefixes the short weekday ("Tue 3:30 PM - Anna") for offers
    spanning several days. The time always survives.
    """
    marker = PREFERRED_MARKER if slot.preferred else ""
    when = format_time(time.fromisoformat(slot.time), language)
    if with_day:
        when = f"{short_day_name(slot.day, language)} {when}"

    if slot.staff_name:
        full = f"{when} - {slot.staff_name}{marker}"
        if len(full) <= max_length:
            return full

    return truncate(f"{when}{marker}", max_length)


def distinct_titles(
    slots: list[Slot],
    language: str,
    max_length: int,
    with_day: bool = False,
) -> list[str]:
    """
    Titles for one message, no two alike.

    Colliding titles fall back to the staff initial ("3:30 PM - A"); anything
    still equal gets a counter suffix.
    """
    titles = [slot_title(slot, language, max_length, with_day) for slot in slots]
    counts = Counter(titles)
    titles = [
        slot_title(replace(slot, staff_name=slot.staff_name[0]), language, max_length, with_day)
        if counts[title] > 1 and slot.staff_name
        else title
        for slot, title in zip(slots, titles)
    ]

    seen: Counter = Counter()
    unique = []
    for title in titles:
        seen[title] += 1
        if seen[title] > 1:
            suffix = f" ({seen[title]})"
            title = truncate(title, max_length - len(suffix)) + suffix
        unique.append(title)
    return unique


def _service_lines(slot: Slot, language: str) -> list[str]:
    lines = []
    if slot.service_name:
        lines.append(slot.service_name)
    if slot.duration_minutes:
        lines.append(t("slots.duration", language, duration=slot.duration_minutes))
    if slot.price:
        lines.append(t("slots.price", language, price=slot.price))
    return lines


def _service_summary(slot: Slot, language: str) -> str:
    """One-line "Haircut • 30 min • $45", skipping missing parts."""
    parts = [
        slot.service_name,
        t("slots.minutes", language, duration=slot.duration_minutes) if slot.duration_minutes else "",
        slot.price,
    ]
    return " • ".join(p for p in parts if p)


def build_slot_message(slots: list[Slot], language: Optional[str] = None) -> dict:
    """
    Build the slot offer.

    Args:
        slots: Ranked candidate slots (1-10)
        language: Customer language code

    Returns:
        WhatsApp `interactive` object (button or list)

    Raises:
        InvalidSlotCountError: For 0 or more than 10 slots
        IdentifierTooLongError: When a slot id cannot be encoded
    """
    lang = normalize_language(language)
    count = len(slots)

    if count < 1 or count > MAX_LIST_ROWS:
        raise InvalidSlotCountError(count)
    if count <= MAX_BUTTONS:
        return _build_buttons(slots, lang)
    return _build_list(slots, lang)


def _build_buttons(slots: list[Slot], lang: str) -> dict:
    days = {slot.date for slot in slots}
    if len(days) == 1:
        heading = t("slots.available_on", lang, day=day_header(slots[0].day, lang))
    else:
        heading = t("slots.next_available", lang)

    body_lines = [heading, ""] + _service_lines(slots[0], lang)
    titles = distinct_titles(slots, lang, MAX_BUTTON_TITLE, with_day=len(days) > 1)

    buttons = [
        {
            "type": "reply",
            "reply": {
                "id": slot_id(slot.date, slot.time, slot.staff_id, max_length=MAX_IDENTIFIER_LENGTH),
                "title": title,
            },
        }
        for slot, title in zip(slots, titles)
    ]

    return {
        "type": "button",
        "body": {"text": truncate("\n".join(body_lines).strip(), MAX_BODY)},
        "footer": {"text": truncate(t("slots.tap_to_select", lang), MAX_FOOTER)},
        "action": {"buttons": buttons},
    }


def _build_list(slots: list[Slot], lang: str) -> dict:
    # Sections in calendar order; rows keep ranking order within a day
    by_day: dict[date, list[Slot]] = {}
    for slot in slots:
        by_day.setdefault(slot.day, []).append(slot)

    sections = []
    for day in sorted(by_day):
        rows = []
        day_slots = by_day[day]
        for slot, title in zip(day_slots, distinct_titles(day_slots, lang, MAX_ROW_TITLE)):
            row = {
                "id": slot_id(slot.date, slot.time, slot.staff_id, max_length=MAX_ROW_IDENTIFIER_LENGTH),
                "title": title,
            }
            description = _service_summary(slot, lang)
            if description:
                row["description"] = truncate(description, MAX_ROW_DESCRIPTION)
            rows.append(row)

        sections.append({
            "title": truncate(day_header(day, lang), MAX_SECTION_TITLE),
            "rows": rows,
        })

    body_lines = _service_lines(slots[0], lang) or [t("slots.tap_to_select", lang)]

    return {
        "type": "list",
        "header": {"type": "text", "text": truncate(t("slots.next_available", lang), MAX_HEADER)},
        "body": {"text": truncate("\n".join(body_lines), MAX_BODY)},
        "footer": {"text": truncate(t("slots.tap_to_select", lang), MAX_FOOTER)},
        "action": {
            "button": truncate(t("button.select_time", lang), MAX_LIST_BUTTON),
            "sections": sections,
        },
    }


def build_confirmation_card(slot: Slot, booking_ref: str, language: Optional[str] = None) -> dict:
    """
    Summary of the selected slot with exactly two buttons: Confirm and
    Change Time.

    Raises:
        IdentifierTooLongError: When the booking reference cannot be encoded
    """
    lang = normalize_language(language)

    lines = [
        t(
            "confirm.details", lang,
            date=format_date(slot.day, lang),
            time=format_time(time.fromisoformat(slot.time), lang),
        )
    ]
    if slot.staff_name:
        lines.append(t("confirm.with_staff", lang, staff=slot.staff_name))
    lines.append("")
    lines.append(_service_summary(slot, lang))

    return {
        "type": "button",
        "body": {"text": truncate("\n".join(lines).strip(), MAX_BODY)},
        "action": {
            "buttons": [
                {
                    "type": "reply",
                    "reply": {
                        "id": confirm_id(booking_ref),
                        "title": truncate(t("button.confirm", lang), MAX_BUTTON_TITLE),
                    },
                },
                {
                    "type": "reply",
                    "reply": {
                        "id": action_id(ACTION_CHANGE_TIME),
                        "title": truncate(t("button.change_time", lang), MAX_BUTTON_TITLE),
                    },
                },
            ]
        },
    }
