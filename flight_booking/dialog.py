"""Per-conversation booking dialog — drives the slot-filling state machine.

Each conversation gets a BookingDialog that:
  1. Holds the SessionState (stage, slots, last offers, selection)
  2. Routes every user turn to the handler of the current stage
  3. Validates extracted slots against the airport directory and today
  4. Loops on the confirmation summary until the user agrees, merging
     corrections into the stored slots field by field
  5. Searches offers, renders a bounded menu and resolves the selection

Stages run in order::

    collect_destination → collect_date → collect_source → confirm
        → search → select → complete

Any failed search or selection restarts from collect_destination with
empty slots.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from flight_booking.config import Settings, settings as default_settings
from flight_booking.directory import DirectoryUnavailable
from flight_booking.models.airport import Airport
from flight_booking.models.booking import BookingSlots, DateRange, PartialSlots, SlotHint
from flight_booking.models.events import (
    BotMessage,
    EndOfConversation,
    OfferCard,
    OfferMenu,
    OutboundEvent,
    UserTurn,
)
from flight_booking.models.offer import TIER_ORDER, AirlineOfferSet, FlightOffer
from flight_booking.models.session import DialogStage, SessionState
from flight_booking.services import BookingServices
from flight_booking.trace_events import TraceBroadcaster, remove_broadcaster

log = logging.getLogger("flight_booking.dialog")

WELCOME_PROMPT = (
    "Welcome, I will be your flight booking assistant. Where would you like to go?"
)
DESTINATION_PROMPT = "Where would you like to go?"
SOURCE_PROMPT = "Where will you be departing from?"
SELECT_PROMPT = "Please select one of the flights above."

INVALID_DESTINATION = "Please provide a valid destination airport."
INVALID_SOURCE = "Please provide a valid source airport."
INVALID_DATE = "Please provide a valid date or date range."
START_OVER = "Let's start over."
NO_FLIGHTS = "No flights available. Would you like to adjust your search?"
NO_SELECTION = "No flight was selected. Please try again."
INVALID_SELECTION = "Invalid selection. Please try again."
RESET_NOTICE = "The conversation will now be reset. Thank you!"
ERROR_RESTART = "Sorry, something went wrong. Let's start over."

TurnHandler = Callable[[str, list[OutboundEvent]], Awaitable[None]]


def format_price(price: Decimal, currency: str) -> str:
    if currency == "USD":
        return f"${price}"
    return f"{price} {currency}"


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "BookingDialog"] = {}


def register_session(dialog: "BookingDialog") -> str:
    """Register a dialog and return its unique ID.

    Dialogs idle for longer than ``session_ttl_seconds`` are dropped
    first; abandoned conversations have no other way to end.
    """
    expire_idle_sessions()
    session_id = secrets.token_urlsafe(18)
    dialog._session_id = session_id
    dialog._started_at = time.time()
    _active_sessions[session_id] = dialog
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Drop a dialog and its trace broadcaster."""
    _active_sessions.pop(session_id, None)
    remove_broadcaster(session_id)
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "BookingDialog"]:
    return _active_sessions


def get_session(session_id: str) -> "BookingDialog | None":
    return _active_sessions.get(session_id)


def expire_idle_sessions(now: float | None = None) -> list[str]:
    """Unregister sessions idle past their TTL. Returns the expired IDs."""
    now = now if now is not None else time.time()
    expired = []
    for session_id, dialog in list(_active_sessions.items()):
        ttl = dialog.config.session_ttl_seconds
        if ttl > 0 and now - dialog.last_active > ttl:
            expired.append(session_id)
            unregister_session(session_id)
    if expired:
        log.info("Expired %d idle sessions", len(expired))
    return expired


class BookingDialog:
    """One user's flight booking conversation.

    Typical lifecycle::

        dialog = BookingDialog(services)
        events = dialog.start()              # welcome prompt

        while not dialog.is_done:
            events = await dialog.handle_turn(UserTurn(text=user_text))
            # → render events to the user

    A turn is either free text or a menu selection
    (``UserTurn(selected_flight=...)``).
    """

    def __init__(
        self,
        services: BookingServices,
        config: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._services = services
        self._config = config or default_settings
        self._today = today

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0
        self._last_active: float = time.time()

        self._state = SessionState()
        self._started = False
        self._turn_lock = asyncio.Lock()
        self._tracer: TraceBroadcaster | None = None

        self._handlers: dict[DialogStage, TurnHandler] = {
            DialogStage.COLLECT_DESTINATION: self._collect_destination,
            DialogStage.COLLECT_DATE: self._collect_date,
            DialogStage.COLLECT_SOURCE: self._collect_source,
            DialogStage.CONFIRM: self._confirm,
        }

    # ── Public API ────────────────────────────────────────────

    @property
    def config(self) -> Settings:
        return self._config

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def stage(self) -> DialogStage:
        return self._state.stage

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def slots(self) -> BookingSlots:
        return self._state.slots

    @property
    def is_done(self) -> bool:
        return self._state.stage == DialogStage.COMPLETE

    @property
    def last_active(self) -> float:
        return self._last_active

    def attach_tracer(self, tracer: TraceBroadcaster) -> None:
        self._tracer = tracer

    def _emit_event(self, event_type: str, data: dict) -> None:
        if self._tracer:
            self._tracer.emit(event_type, self._state.stage.value, data)

    def start(self) -> list[OutboundEvent]:
        """Open the conversation with the welcome prompt."""
        self._started = True
        self._last_active = time.time()
        log.info("Dialog started: session=%s", self._session_id or "-")
        return [BotMessage(text=WELCOME_PROMPT)]

    async def handle_turn(self, turn: UserTurn) -> list[OutboundEvent]:
        """Process one inbound turn and return the outbound events.

        Turns for the same dialog are processed strictly one at a time.
        """
        async with self._turn_lock:
            self._last_active = time.time()

            if not self._started:
                return self.start()
            if self.is_done:
                self._reset()
                return self.start()

            self._emit_event("turn", {
                "text": turn.text,
                "selected_flight": turn.selected_flight,
            })

            out: list[OutboundEvent] = []
            try:
                await self._dispatch(turn, out)
            except Exception as e:
                log.exception("Turn failed in stage %s", self._state.stage.value)
                self._emit_event("error", {"error": str(e)})
                out.append(BotMessage(text=ERROR_RESTART))
                self._restart(out)
            return out

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize dialog state for the admin API."""
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "stage": self._state.stage.value,
            "is_done": self.is_done,
            "started_at": self._started_at,
            "last_active": self._last_active,
            "slots": self._state.slots.model_dump(mode="json"),
        }
        if detail:
            d["airlines"] = list(self._state.offers.keys())
            d["menu"] = list(self._state.menu.keys())
            d["attempts"] = self._state.attempts
            d["selected"] = (
                self._state.selected.model_dump(mode="json")
                if self._state.selected else None
            )
            if self._tracer:
                d["event_log"] = self._tracer.event_log
        return d

    # ── Internal: routing ─────────────────────────────────────

    async def _dispatch(self, turn: UserTurn, out: list[OutboundEvent]) -> None:
        stage = self._state.stage

        if stage == DialogStage.SELECT:
            await self._select(turn, out)
            return
        if stage == DialogStage.SEARCH:
            await self._search(out)
            return

        text = (turn.text or "").strip()
        if not text:
            # Stray selection or blank input: ask the current question again
            out.append(BotMessage(text=self._stage_prompt()))
            return

        await self._handlers[stage](text, out)

    def _advance(self, stage: DialogStage) -> None:
        previous = self._state.stage
        self._state.stage = stage
        self._state.attempts = 0
        log.info("Dialog advance: %s → %s (session=%s)",
                 previous.value, stage.value, self._session_id or "-")
        self._emit_event("transition", {"from": previous.value, "to": stage.value})

    def _reset(self) -> None:
        self._state = SessionState()

    def _restart(self, out: list[OutboundEvent]) -> None:
        """Discard all slots and go back to the first question."""
        self._emit_event("restart", {"slots": self._state.slots.model_dump(mode="json")})
        log.info("Dialog restart from %s (session=%s)",
                 self._state.stage.value, self._session_id or "-")
        self._reset()
        out.append(BotMessage(text=WELCOME_PROMPT))

    def _reprompt(self, error: str, out: list[OutboundEvent]) -> None:
        """Reject the answer and ask again, or restart past the retry cap."""
        self._state.attempts += 1
        cap = self._config.max_collect_attempts
        if cap and self._state.attempts >= cap:
            log.info("Retry cap (%d) reached in %s", cap, self._state.stage.value)
            out.append(BotMessage(text=START_OVER))
            self._restart(out)
            return
        out.append(BotMessage(text=error))
        out.append(BotMessage(text=self._stage_prompt()))

    def _stage_prompt(self) -> str:
        stage = self._state.stage
        slots = self._state.slots
        if stage == DialogStage.COLLECT_DATE and slots.destination:
            return f"When would you like to travel to {slots.destination.name}?"
        if stage == DialogStage.COLLECT_SOURCE:
            return SOURCE_PROMPT
        if stage == DialogStage.CONFIRM:
            return self.summary()
        if stage == DialogStage.SELECT:
            return SELECT_PROMPT
        return DESTINATION_PROMPT

    def summary(self) -> str:
        slots = self._state.slots
        if not slots.is_complete():
            raise RuntimeError("summary needs source, destination and dates")
        return (
            f"You would like to fly from {slots.source.label} to "
            f"{slots.destination.label} from {slots.dates.start.isoformat()} "
            f"to {slots.dates.end.isoformat()}. Is this correct? "
            "If not, tell me what to change."
        )

    # ── Internal: collaborators ───────────────────────────────

    async def _extract(self, text: str, hint: SlotHint) -> PartialSlots:
        extracted = await self._services.extractor.extract(text, hint, self._today())
        self._emit_event("extraction", {
            "hint": hint.value,
            "result": extracted.model_dump(mode="json", exclude_none=True),
        })
        return extracted

    async def _lookup(self, code: str | None) -> Airport | None:
        if not code:
            return None
        try:
            return await self._services.directory.resolve(code)
        except DirectoryUnavailable as e:
            log.warning("Airport directory unavailable, treating %s as unknown: %s", code, e)
            return None

    # ── Stage handlers ────────────────────────────────────────

    async def _collect_destination(self, text: str, out: list[OutboundEvent]) -> None:
        extracted = await self._extract(text, SlotHint.DESTINATION)
        airport = await self._lookup(extracted.destination_code)
        if airport is None:
            self._reprompt(INVALID_DESTINATION, out)
            return

        self._state.slots.destination = airport
        self._advance(DialogStage.COLLECT_DATE)
        out.append(BotMessage(text=self._stage_prompt()))

    async def _collect_date(self, text: str, out: list[OutboundEvent]) -> None:
        extracted = await self._extract(text, SlotHint.DATE)
        dates = DateRange.for_travel(extracted.start_date, extracted.end_date, self._today())
        if dates is None:
            self._reprompt(INVALID_DATE, out)
            return

        self._state.slots.dates = dates
        self._advance(DialogStage.COLLECT_SOURCE)
        out.append(BotMessage(text=self._stage_prompt()))

    async def _collect_source(self, text: str, out: list[OutboundEvent]) -> None:
        extracted = await self._extract(text, SlotHint.SOURCE)
        airport = await self._lookup(extracted.source_code)
        if airport is None:
            self._reprompt(INVALID_SOURCE, out)
            return

        self._state.slots.source = airport
        self._advance(DialogStage.CONFIRM)
        out.append(BotMessage(text=self.summary()))

    async def _confirm(self, text: str, out: list[OutboundEvent]) -> None:
        if await self._services.classifier.is_affirmative(text):
            self._advance(DialogStage.SEARCH)
            await self._search(out)
            return

        correction = await self._extract(text, SlotHint.CORRECTION)
        for notice in await self._apply_correction(correction):
            out.append(BotMessage(text=notice))
        out.append(BotMessage(text=self.summary()))

    async def _apply_correction(self, correction: PartialSlots) -> list[str]:
        """Overwrite only the corrected fields that validate.

        Returns a notice for each field that was given but rejected.
        """
        slots = self._state.slots
        notices: list[str] = []

        if correction.source_code:
            airport = await self._lookup(correction.source_code)
            if airport:
                slots.source = airport
            else:
                notices.append(
                    f"I couldn't find an airport for {correction.source_code}, "
                    f"so I kept {slots.source.label} as the departure."
                )

        if correction.destination_code:
            airport = await self._lookup(correction.destination_code)
            if airport:
                slots.destination = airport
            else:
                notices.append(
                    f"I couldn't find an airport for {correction.destination_code}, "
                    f"so I kept {slots.destination.label} as the destination."
                )

        if correction.start_date or correction.end_date:
            current = slots.dates
            if correction.start_date:
                start = correction.start_date
                end = correction.end_date or correction.start_date
            else:
                start, end = current.start, correction.end_date
            dates = DateRange.for_travel(start, end, self._today())
            if dates:
                slots.dates = dates
            else:
                notices.append(
                    f"Those dates don't work, so I kept {current.start.isoformat()} "
                    f"to {current.end.isoformat()}."
                )

        self._emit_event("correction", {
            "slots": slots.model_dump(mode="json"),
            "rejected": len(notices),
        })
        return notices

    async def _search(self, out: list[OutboundEvent]) -> None:
        slots = self._state.slots
        offers = await self._services.aggregator.query(
            slots.source, slots.destination, slots.dates.start,
        )
        self._emit_event("search", {
            "source": slots.source.iata,
            "destination": slots.destination.iata,
            "date": slots.dates.start.isoformat(),
            "airlines": len(offers),
        })

        if not offers:
            out.append(BotMessage(text=NO_FLIGHTS))
            self._restart(out)
            return

        self._state.offers = offers
        cards = self._build_menu(offers)
        out.append(OfferMenu(cards=cards))
        self._advance(DialogStage.SELECT)

    def _build_menu(self, offers: AirlineOfferSet) -> list[OfferCard]:
        """Render up to ``max_menu_airlines`` airlines × 3 tiers.

        Airlines are taken in map order, not ranked across airlines. The
        shown offers are indexed by flight id for the selection step.
        """
        cards: list[OfferCard] = []
        menu: dict[str, FlightOffer] = {}
        airlines = list(offers.items())[: self._config.max_menu_airlines]

        for airline, tiers in airlines:
            for tier in TIER_ORDER:
                offer = tiers.get(tier)
                if offer is None:
                    continue
                cards.append(OfferCard(
                    airline=airline,
                    tier=tier.label,
                    flight_id=offer.flight_id,
                    departure_time=offer.departure_time,
                    arrival_time=offer.arrival_time,
                    price=offer.price,
                    currency=offer.currency,
                    select_title=f"Select Flight {len(cards) + 1}",
                ))
                menu[offer.flight_id] = offer

        self._state.menu = menu
        return cards

    async def _select(self, turn: UserTurn, out: list[OutboundEvent]) -> None:
        flight_id = (turn.selected_flight or "").strip()
        if not flight_id:
            out.append(BotMessage(text=NO_SELECTION))
            self._restart(out)
            return

        offer = self._state.menu.get(flight_id)
        self._emit_event("selection", {"flight_id": flight_id, "matched": offer is not None})
        if offer is None:
            out.append(BotMessage(text=INVALID_SELECTION))
            self._restart(out)
            return

        self._state.selected = offer
        slots = self._state.slots
        out.append(BotMessage(text=(
            f"Thank you for booking your flight to {slots.destination.name} "
            f"from {slots.source.name} on {offer.departure_time.isoformat()} "
            f"for {format_price(offer.price, offer.currency)}."
        )))
        out.append(BotMessage(text=RESET_NOTICE))
        out.append(EndOfConversation())
        self._advance(DialogStage.COMPLETE)
        log.info("Booking complete: flight %s (session=%s)", offer.flight_id, self._session_id or "-")
