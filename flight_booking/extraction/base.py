"""Abstract capabilities the booking dialog depends on.

The dialog only sees these interfaces, so tests and alternative backends
can substitute any implementation.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from flight_booking.models.booking import PartialSlots, SlotHint


class SlotExtractor(ABC):
    """Turns free text into a best-effort PartialSlots."""

    @abstractmethod
    async def extract(
        self, text: str, hint: SlotHint, today: Optional[date] = None,
    ) -> PartialSlots:
        """Extract whatever slots the text mentions.

        Args:
            text: The user's utterance.
            hint: Which slot the dialog is currently asking about.
            today: Grounding date for relative expressions; defaults to
                the current date.

        Returns:
            PartialSlots with absent fields for anything not identified.
            Implementations must not raise for unusable responses.
        """


class AffirmationClassifier(ABC):
    """Decides whether a reply confirms the summary."""

    @abstractmethod
    async def is_affirmative(self, text: str) -> bool:
        """Return True if ``text`` is a yes."""
