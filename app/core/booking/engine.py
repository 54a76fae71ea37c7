"""
Booking Dialogue Engine - the quick-booking state machine.

    NO_SESSION -> SLOTS_OFFERED -> SLOT_SELECTED -> CONFIRMED
                        ^               |
                        +---------------+  (change time / conflict)

A booking request creates a session and offers slots; every later tap
arrives as a button click carrying one of our identifiers. Handlers never
raise: each branch ends in an EngineResponse for the customer.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from app.config import settings
from app.core.intelligence.nlu import BookingIntent, IntentParser, get_intent_parser
from app.core.intelligence.session import (
    DialogueState,
    SessionData,
    SessionManager,
    get_session_manager,
)
from app.infra.whatsapp import mask_phone
from app.models.booking import Slot
from .availability import (
    AvailabilityClient,
    AvailabilityServiceError,
    BookingClient,
    get_availability_client,
    get_booking_client,
)
from .builder import MAX_LIST_ROWS, build_confirmation_card, build_slot_message
from .identifiers import (
    ACTION_CANCEL,
    ACTION_CHANGE_TIME,
    ActionRef,
    ConfirmRef,
    NavRef,
    SlotRef,
    WaitlistRef,
    parse_identifier,
    slot_id,
)
from .ranking import rank_slots
from .translations import format_date, format_time, is_supported_language, normalize_language, t

logger = logging.getLogger(__name__)

# Availability search windows
PREFERRED_WINDOW_DAYS = 7     # When no date was asked for
PREFERRED_SEARCH_LIMIT = 30
WIDE_WINDOW_DAYS = 14         # Fallback when the preferred window is empty
WIDE_SEARCH_LIMIT = 50


@dataclass
class EngineResponse:
    """
    What to send back to the customer.

    `text` and `interactive` may both be set; the text goes first
    (e.g. "this slot was just booked" followed by the remaining slots).
    """

    text: Optional[str] = None
    interactive: Optional[dict] = None
    state: DialogueState = DialogueState.NO_SESSION
    language: str = "en"
    session_id: Optional[str] = None
    booking_id: Optional[str] = None

    @property
    def is_interactive(self) -> bool:
        return self.interactive is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and API responses."""
        result = {
            "state": self.state.value,
            "language": self.language,
        }

        if self.text:
            result["text"] = self.text
        if self.interactive:
            result["interactive"] = self.interactive
        if self.session_id:
            result["session_id"] = self.session_id
        if self.booking_id:
            result["booking_id"] = self.booking_id

        return result


class BookingEngine:
    """
    Owns the multi-turn booking flow.

    Coordinates:
    - Intent parsing
    - Availability search and ranking
    - Session state (Redis)
    - Booking creation
    - Interactive message building
    """

    def __init__(
        self,
        session_manager: Optional[SessionManager] = None,
        availability_client: Optional[AvailabilityClient] = None,
        booking_client: Optional[BookingClient] = None,
        intent_parser: Optional[IntentParser] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_candidates: int = MAX_LIST_ROWS,
    ):
        """Initialize engine with optional dependencies.

        Args:
            session_manager: Session store
            availability_client: Slot availability service client
            booking_client: Booking creation service client
            intent_parser: NLU parser
            clock: Returns local "now" (for testing)
            max_candidates: Most slots offered at once
        """
        self._sessions = session_manager or get_session_manager()
        self._availability = availability_client or get_availability_client()
        self._booking = booking_client or get_booking_client()
        self._parser = intent_parser or get_intent_parser()
        self._clock = clock or datetime.now
        self._max_candidates = max_candidates

    def _today(self) -> date:
        return self._clock().date()

    # === Booking request ===

    async def handle_booking_request(
        self,
        text: str,
        customer_id: str,
        salon_id: str,
        language: Optional[str] = None,
        customer_name: Optional[str] = None,
    ) -> EngineResponse:
        """
        Start a booking: parse, search, rank and offer slots.

        Any previous session for this customer is replaced.

        Args:
            text: Customer's message
            customer_id: Customer phone number
            salon_id: Salon the message was sent to
            language: Detected or overridden language
            customer_name: WhatsApp profile name, if known

        Returns:
            Slot offer, or a text reply when nothing can be offered
        """
        lang = normalize_language(language or settings.default_language)

        try:
            intent = await self._parser.parse(text, today=self._today())

            if intent.service_name and not intent.service_id:
                service = await self._availability.resolve_service(salon_id, intent.service_name)
                if service is None:
                    logger.info(f"Unknown service '{intent.service_name}' for salon {salon_id}")
                    return EngineResponse(
                        text=t("error.unknown_service", lang, service=intent.service_name),
                        language=lang,
                    )
                intent.service_id = service.id

            candidates = await self._find_candidates(salon_id, intent)

        except AvailabilityServiceError:
            return self._error(lang)
        except Exception as e:
            logger.error(f"Booking request failed for {mask_phone(customer_id)}: {e}", exc_info=True)
            return self._error(lang)

        if not candidates:
            logger.info(f"No slots for {mask_phone(customer_id)} (salon {salon_id})")
            return EngineResponse(text=t("error.no_slots", lang), language=lang)

        session = SessionData(
            customer_id=customer_id,
            salon_id=salon_id,
            customer_name=customer_name,
            language=lang,
            original_intent=intent,
            candidate_slots=candidates,
        )

        try:
            interactive = build_slot_message(candidates, lang)
            await self._sessions.update_state(session, DialogueState.SLOTS_OFFERED, persist=False)
        except Exception as e:
            logger.error(f"Failed to build slot offer for {mask_phone(customer_id)}: {e}", exc_info=True)
            return self._error(lang)

        # A new attempt must not be blocked by an earlier confirmation
        await self._sessions.release_confirm_lock(customer_id)
        await self._sessions.save(session)

        logger.info(
            f"Offered {len(candidates)} slots to {mask_phone(customer_id)} "
            f"(session {session.session_id})"
        )
        return EngineResponse(
            interactive=interactive,
            state=session.state,
            language=lang,
            session_id=session.session_id,
        )

    # === Button clicks ===

    async def handle_button_click(
        self,
        button_id: str,
        customer_id: str,
        language: Optional[str] = None,
    ) -> EngineResponse:
        """
        Handle a tap on one of our buttons or list rows.

        Args:
            button_id: Identifier echoed back by WhatsApp
            customer_id: Customer phone number
            language: Explicit language override for this turn

        Returns:
            EngineResponse (never raises)
        """
        ref = parse_identifier(button_id)
        session = await self._sessions.get(customer_id)

        if session is None:
            lang = normalize_language(language or settings.default_language)
            if isinstance(ref, ConfirmRef) and await self._sessions.get_confirmation(customer_id):
                return self._already_confirmed(lang)
            logger.info(f"Button click without session from {mask_phone(customer_id)}")
            return EngineResponse(text=t("error.session_expired", lang), language=lang)

        stored_language = session.language
        lang = self.resolve_language(session, language)
        response = await self._route_click(session, ref, button_id, lang)

        if session.language != stored_language:
            # Runs after the handler's own save or delete, and only touches a
            # session that is still this one
            await self._sessions.update_language(customer_id, lang, session_id=session.session_id)
        return response

    async def _route_click(self, session: SessionData, ref, button_id: str, lang: str) -> EngineResponse:
        customer_id = session.customer_id
        try:
            if isinstance(ref, SlotRef):
                return await self._handle_slot(session, ref, lang)
            if isinstance(ref, ConfirmRef):
                return await self._handle_confirm(session, ref, lang)
            if isinstance(ref, ActionRef):
                return await self._handle_action(session, ref, lang)
            if isinstance(ref, (WaitlistRef, NavRef)):
                return EngineResponse(
                    text=t("error.unavailable", lang),
                    state=session.state,
                    language=lang,
                    session_id=session.session_id,
                )

            logger.warning(f"Unrecognized button id from {mask_phone(customer_id)}: {button_id[:60]}")
            return self._error(lang, session)

        except AvailabilityServiceError:
            return self._error(lang, session)
        except Exception as e:
            logger.error(f"Button click failed for {mask_phone(customer_id)}: {e}", exc_info=True)
            return self._error(lang, session)

    async def _handle_slot(self, session: SessionData, ref: SlotRef, lang: str) -> EngineResponse:
        slot = session.find_candidate(ref.date, ref.time, ref.staff_id)
        if slot is None:
            logger.info(f"Stale slot tap from {mask_phone(session.customer_id)}: {ref.date} {ref.time}")
            return await self._reoffer(session, lang, notice=t("error.stale_selection", lang))

        session.selected_slot = slot
        await self._sessions.update_state(session, DialogueState.SLOT_SELECTED)

        return EngineResponse(
            interactive=build_confirmation_card(slot, session.session_id, lang),
            state=session.state,
            language=lang,
            session_id=session.session_id,
        )

    async def _handle_confirm(self, session: SessionData, ref: ConfirmRef, lang: str) -> EngineResponse:
        customer_id = session.customer_id

        if ref.booking_ref != session.session_id or session.selected_slot is None:
            # Confirm from an older card, or nothing selected yet
            return await self._reoffer(session, lang, notice=t("error.stale_selection", lang))

        if session.state != DialogueState.SLOT_SELECTED:
            return await self._reoffer(session, lang)

        if not await self._sessions.acquire_confirm_lock(customer_id):
            logger.info(f"Duplicate confirmation from {mask_phone(customer_id)} ignored")
            return self._already_confirmed(lang)

        slot = session.selected_slot
        result = await self._booking.create_booking(
            slot,
            customer_id=customer_id,
            salon_id=session.salon_id,
            customer_name=session.customer_name,
            idempotency_key=session.session_id,
        )

        if result.success:
            session.booking_id = result.booking_id
            await self._sessions.update_state(session, DialogueState.CONFIRMED, persist=False)
            await self._sessions.complete_confirm_lock(customer_id, result.booking_id)
            await self._sessions.delete(customer_id)

            logger.info(f"Booking {result.booking_id} created for {mask_phone(customer_id)}")
            details = t(
                "confirm.details", lang,
                date=format_date(slot.day, lang),
                time=format_time(slot.start.time(), lang),
            )
            return EngineResponse(
                text=f"{t('booking.confirmed', lang)}\n\n{details}",
                state=DialogueState.CONFIRMED,
                language=lang,
                session_id=session.session_id,
                booking_id=result.booking_id,
            )

        await self._sessions.release_confirm_lock(customer_id)

        if result.is_conflict:
            session.remove_candidate(slot)
            return await self._reoffer(
                session, lang, notice=t("error.slot_taken", lang), exclude={slot.key}
            )

        logger.error(f"Booking failed for {mask_phone(customer_id)}: {result.message}")
        return self._error(lang, session)

    async def _handle_action(self, session: SessionData, ref: ActionRef, lang: str) -> EngineResponse:
        if ref.action == ACTION_CHANGE_TIME:
            return await self._reoffer(session, lang)

        if ref.action == ACTION_CANCEL:
            await self._sessions.delete(session.customer_id)
            logger.info(f"Booking flow cancelled by {mask_phone(session.customer_id)}")
            return EngineResponse(text=t("booking.cancelled", lang), language=lang)

        logger.warning(f"Unknown action '{ref.action}' from {mask_phone(session.customer_id)}")
        return self._error(lang, session)

    # === Helpers ===

    async def _reoffer(
        self,
        session: SessionData,
        lang: str,
        notice: Optional[str] = None,
        exclude: Optional[set] = None,
    ) -> EngineResponse:
        """
        Offer the session's candidates again, re-querying availability when
        they are all in the past (or gone). Moves the session to SLOTS_OFFERED.
        """
        now = self._clock()
        fresh = [s for s in session.candidate_slots if s.start > now]

        if not fresh:
            fresh = await self._find_candidates(session.salon_id, session.original_intent, exclude)

        if not fresh:
            await self._sessions.delete(session.customer_id)
            text = t("error.no_slots", lang)
            return EngineResponse(text=f"{notice}\n\n{text}" if notice else text, language=lang)

        session.candidate_slots = fresh
        session.selected_slot = None
        interactive = build_slot_message(fresh, lang)
        await self._sessions.update_state(session, DialogueState.SLOTS_OFFERED)

        return EngineResponse(
            text=notice,
            interactive=interactive,
            state=session.state,
            language=lang,
            session_id=session.session_id,
        )

    async def _find_candidates(
        self,
        salon_id: str,
        intent: BookingIntent,
        exclude: Optional[set] = None,
    ) -> list[Slot]:
        """
        Search the preferred window, widening to two weeks when it is empty.

        Raises:
            AvailabilityServiceError: If the availability service is down
        """
        today = self._today()
        start = intent.preferred_date if intent.preferred_date and intent.preferred_date >= today else today
        end = start if intent.preferred_date else start + timedelta(days=PREFERRED_WINDOW_DAYS - 1)

        slots = await self._availability.find_available_slots(
            salon_id,
            service_id=intent.service_id,
            date_from=start,
            date_to=end,
            limit=PREFERRED_SEARCH_LIMIT,
        )
        slots = self._usable(slots, exclude)

        if not slots:
            logger.debug(f"Preferred window empty for salon {salon_id}, widening search")
            slots = await self._availability.find_available_slots(
                salon_id,
                service_id=intent.service_id,
                date_from=today,
                date_to=start + timedelta(days=WIDE_WINDOW_DAYS),
                limit=WIDE_SEARCH_LIMIT,
            )
            slots = self._usable(slots, exclude)

        return rank_slots(slots, intent, today=today, limit=self._max_candidates)

    def _usable(self, slots: list[Slot], exclude: Optional[set]) -> list[Slot]:
        """Drop past, excluded and un-encodable slots."""
        now = self._clock()
        usable = []
        for slot in slots:
            if exclude and slot.key in exclude:
                continue
            try:
                if slot.start <= now:
                    continue
                slot_id(slot.date, slot.time, slot.staff_id)
            except ValueError as e:
                logger.warning(f"Skipping slot that cannot be offered: {e}")
                continue
            usable.append(slot)
        return usable

    def resolve_language(self, session: SessionData, override: Optional[str] = None) -> str:
        """
        Language for this turn: explicit override > session > default.

        A differing override is set on `session`; the caller persists it.
        """
        if override and is_supported_language(override):
            session.language = override
            return override

        return normalize_language(session.language or settings.default_language)

    def _already_confirmed(self, lang: str) -> EngineResponse:
        return EngineResponse(
            text=t("booking.already_confirmed", lang),
            state=DialogueState.CONFIRMED,
            language=lang,
        )

    def _error(self, lang: str, session: Optional[SessionData] = None) -> EngineResponse:
        return EngineResponse(
            text=t("error.generic", lang),
            state=session.state if session else DialogueState.NO_SESSION,
            language=lang,
            session_id=session.session_id if session else None,
        )


# Singleton
_engine: Optional[BookingEngine] = None


def get_booking_engine() -> BookingEngine:
    """Get singleton BookingEngine."""
    global _engine
    if _engine is None:
        _engine = BookingEngine()
    return _engine
