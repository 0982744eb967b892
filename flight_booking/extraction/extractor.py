"""LLM-backed SlotExtractor and AffirmationClassifier."""

from __future__ import annotations

import json
import logging
import re
from datetime import date
from typing import Optional

from pydantic import ValidationError

from flight_booking.extraction.base import AffirmationClassifier, SlotExtractor
from flight_booking.extraction.llm import LLMClient, LLMError
from flight_booking.models.booking import PartialSlots, SlotHint

log = logging.getLogger("flight_booking.extraction")

EXTRACT_SYSTEM_PROMPT = (
    "You are an assistant that extracts flight information from user input. "
    "If the user specifies a city or common name of an airport, return the "
    "corresponding IATA airport code."
)

# What the user is answering, prefixed to the utterance
_HINT_PREFIX = {
    SlotHint.DESTINATION: "Destination",
    SlotHint.SOURCE: "Source",
    SlotHint.DATE: "Date",
    SlotHint.CORRECTION: "Correction to a flight booking",
}

AFFIRM_SYSTEM_PROMPT = (
    "You are an assistant that determines if the user's response is "
    "affirmative (yes) or negative (no). Respond with 'yes' or 'no'."
)

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?({.*?})\s*\n?```", re.DOTALL)


def build_extraction_prompt(text: str, hint: SlotHint, today: date) -> str:
    labelled = f"{_HINT_PREFIX[hint]}: {text}"
    return (
        "Extract any available flight details (source airport, destination "
        "airport, start date, end date) from the following input: "
        f'"{labelled}". Return the information in JSON format with any of '
        '"src", "dst", "startDate", and "endDate" that are present, using '
        "YYYY-MM-DD dates. If there is only one date, set the same value for "
        '"startDate" and "endDate". Ensure the dates are not before today\'s '
        f"date ({today.isoformat()})."
    )


def parse_partial_slots(completion: str) -> PartialSlots:
    """Parse a completion into PartialSlots, degrading to empty.

    Looks for a fenced JSON block first, then the span from the first
    ``{`` to the last ``}``.
    """
    candidate: str | None = None
    match = _FENCED_JSON.search(completion)
    if match:
        candidate = match.group(1)
    else:
        start = completion.find("{")
        end = completion.rfind("}")
        if start != -1 and end > start:
            candidate = completion[start:end + 1]

    if candidate is None:
        log.warning("No JSON found in extraction response: %r", completion[:200])
        return PartialSlots()

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        log.warning("Unparsable extraction response: %r", completion[:200])
        return PartialSlots()

    if not isinstance(data, dict):
        log.warning("Extraction response is not an object: %r", completion[:200])
        return PartialSlots()

    try:
        return PartialSlots.model_validate(data)
    except ValidationError as e:
        log.warning("Extraction response failed validation: %s", e.errors()[:3])
        return PartialSlots()


class LLMSlotExtractor(SlotExtractor):
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def extract(
        self, text: str, hint: SlotHint, today: Optional[date] = None,
    ) -> PartialSlots:
        today = today or date.today()
        prompt = build_extraction_prompt(text, hint, today)
        try:
            completion = await self._llm.complete(EXTRACT_SYSTEM_PROMPT, prompt, max_tokens=200)
        except LLMError as e:
            log.warning("Slot extraction failed (hint=%s): %s", hint.value, e)
            return PartialSlots()

        slots = parse_partial_slots(completion)
        log.debug("Extracted (hint=%s): %s", hint.value, slots.model_dump(exclude_none=True))
        return slots


class LLMAffirmationClassifier(AffirmationClassifier):
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def is_affirmative(self, text: str) -> bool:
        prompt = f'Is the following response affirmative or negative? "{text}"'
        try:
            completion = await self._llm.complete(AFFIRM_SYSTEM_PROMPT, prompt, max_tokens=10)
        except LLMError as e:
            log.warning("Affirmation check failed, treating as negative: %s", e)
            return False
        return "yes" in completion.lower()
