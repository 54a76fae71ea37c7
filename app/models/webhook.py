"""
WhatsApp Cloud API webhook payload models.

Only the fields the booking flow reads are declared; everything else is
accepted and ignored so new platform fields never break parsing.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TextBody(_Lenient):
    body: str = ""


class ReplyRef(_Lenient):
    """Id and title of a tapped button or list row."""
    id: str
    title: str = ""
    description: Optional[str] = None


class Interactive(_Lenient):
    type: str  # "button_reply" | "list_reply"
    button_reply: Optional[ReplyRef] = None
    list_reply: Optional[ReplyRef] = None


class InboundMessage(_Lenient):
    """A single customer message."""

    id: str
    from_: str = Field(alias="from")
    timestamp: Optional[str] = None
    type: str
    text: Optional[TextBody] = None
    interactive: Optional[Interactive] = None

    # Filled in by the router from the sibling `contacts` block
    contact_name: Optional[str] = None

    @property
    def sender(self) -> str:
        return self.from_

    @property
    def is_interactive(self) -> bool:
        return self.type == "interactive"

    @property
    def text_body(self) -> str:
        """Free text, empty for non-text messages."""
        return self.text.body if self.text else ""

    @property
    def reply(self) -> Optional[ReplyRef]:
        """The tapped button or list row, if any."""
        if self.interactive is None:
            return None
        return self.interactive.button_reply or self.interactive.list_reply

    @property
    def button_id(self) -> Optional[str]:
        reply = self.reply
        return reply.id if reply else None


class MessageStatus(_Lenient):
    """Delivery receipt for an outbound message."""

    id: str
    status: str  # sent | delivered | read | failed
    recipient_id: Optional[str] = None
    errors: list[dict] = Field(default_factory=list)


class ContactProfile(_Lenient):
    name: Optional[str] = None


class Contact(_Lenient):
    wa_id: str
    profile: Optional[ContactProfile] = None


class ChangeValue(_Lenient):
    messaging_product: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
    contacts: list[Contact] = Field(default_factory=list)
    messages: list[dict] = Field(default_factory=list)
    statuses: list[dict] = Field(default_factory=list)


class Change(_Lenient):
    field: str
    value: ChangeValue


class Entry(_Lenient):
    id: Optional[str] = None
    changes: list[Change] = Field(default_factory=list)


class WebhookPayload(_Lenient):
    """Top-level POST body."""

    object: str
    entry: list[Entry] = Field(default_factory=list)
