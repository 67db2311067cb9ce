"""Street autocomplete for the location step."""

from typing import Any, Callable, Optional

from colocapp.services.debounce import CancellableTimer
from colocapp.services.draft_reducer import ApplyAddress
from colocapp.services.places import PlacePrediction, PlacesClient
from colocapp.utils.errors import NetworkError
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

LOOKUP_ERROR_MESSAGE = "Address suggestions are unavailable. You can keep typing the address manually."


class AddressResolver:
    """Debounced place autocomplete feeding the draft's location fields.

    Every lookup takes a new sequence number; a response is applied only if it
    still carries the latest number, so late answers to superseded queries are
    dropped. Lookup failures only set ``error``; typed values stay untouched.
    """

    def __init__(
        self,
        places: PlacesClient,
        dispatch: Callable[[ApplyAddress], Any],
        country_bias: Optional[str] = None,
        debounce_seconds: float = 0.3,
        min_chars: int = 3,
    ):
        self.places = places
        self._dispatch = dispatch
        self.country_bias = country_bias
        self.min_chars = min_chars
        self.timer = CancellableTimer(debounce_seconds, name="address_autocomplete")
        self.predictions: list[PlacePrediction] = []
        self.error: Optional[str] = None
        self.loading = False
        self._sequence = 0
        self._alive = True

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _is_current(self, sequence: int) -> bool:
        return self._alive and sequence == self._sequence

    def on_street_changed(self, text: str) -> None:
        """Called on every keystroke in the street field."""
        if not self._alive:
            return
        # Invalidate anything in flight for the previous text
        self._next_sequence()
        query = (text or "").strip()
        if len(query) < self.min_chars:
            self.timer.cancel()
            self.predictions = []
            self.loading = False
            return
        self.timer.schedule(lambda: self.lookup(query))

    async def lookup(self, text: str) -> None:
        sequence = self._next_sequence()
        self.loading = True
        try:
            predictions = await self.places.autocomplete(text, self.country_bias)
        except NetworkError as e:
            logger.warning("Address autocomplete failed", error=str(e), query_length=len(text))
            if self._is_current(sequence):
                self.error = LOOKUP_ERROR_MESSAGE
                self.predictions = []
                self.loading = False
            return

        if not self._is_current(sequence):
            logger.debug("Stale autocomplete response discarded", sequence=sequence, latest=self._sequence)
            return
        self.predictions = predictions
        self.error = None
        self.loading = False

    async def select(self, prediction: PlacePrediction) -> bool:
        """Resolve a chosen prediction and overwrite the location fields in one action."""
        self.timer.cancel()
        sequence = self._next_sequence()
        self.loading = True
        try:
            address = await self.places.details(prediction.place_id)
        except NetworkError as e:
            logger.warning("Address details lookup failed", error=str(e), place_id=prediction.place_id)
            if self._is_current(sequence):
                self.error = LOOKUP_ERROR_MESSAGE
                self.loading = False
            return False

        if not self._is_current(sequence):
            return False

        self._dispatch(ApplyAddress(
            street=address.street or prediction.description,
            postal_code=address.postal_code,
            city=address.city,
            country=address.country,
            coordinates=address.coordinates,
        ))
        self.predictions = []
        self.error = None
        self.loading = False
        return True

    def close(self) -> None:
        self._alive = False
        self.timer.cancel()
