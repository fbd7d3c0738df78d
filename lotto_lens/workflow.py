"""
Scan workflow: what happens between a capture event and the results view.

Capture -> upload -> show ticket -> optional official lookup, plus retake and
logout. Uploads cannot be cancelled once sent, so every result is tagged with
the generation it was started under and dropped if the user has since
retaken, logged out or captured again.
"""

import asyncio
from typing import Callable, Optional

from loguru import logger

from lotto_lens.errors import LottoLensError
from lotto_lens.models import DrawResult, ExtractedTicket

ExtractFn = Callable[[bytes, str], ExtractedTicket]
LookupFn = Callable[[str], DrawResult]


def _error_message(error: Exception) -> str:
    if isinstance(error, LottoLensError):
        return error.message
    return str(error) or "Unknown error"


class ScanWorkflow:
    """
    Holds the visible state of one scanner screen.

    Args:
        extract: blocking call turning image bytes into an ExtractedTicket
        lookup: blocking call returning the DrawResult for a ticket date
        on_change: optional callback invoked after every state change
    """

    def __init__(self, extract: ExtractFn, lookup: LookupFn,
                 on_change: Optional[Callable[["ScanWorkflow"], None]] = None):
        self._extract = extract
        self._lookup = lookup
        self.on_change = on_change

        self.extracted: Optional[ExtractedTicket] = None
        self.draw_result: Optional[DrawResult] = None
        self.error: Optional[str] = None
        self.lookup_error: Optional[str] = None
        self.uploading = False
        self.looking_up = False
        self.show_camera = True
        self.active = True

        self._generation = 0
        self._lookup_seq = 0

    @property
    def generation(self) -> int:
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return self.active and generation == self._generation

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _reset(self) -> None:
        self._generation += 1
        self.extracted = None
        self.draw_result = None
        self.error = None
        self.lookup_error = None
        self.uploading = False
        self.looking_up = False

    async def handle_capture(self, image_data: bytes, mime_type: str = "image/jpeg") -> Optional[ExtractedTicket]:
        """
        Upload a captured image and show the extracted ticket.

        Returns:
            The ticket if it was applied, None on failure or if superseded
        """
        self._reset()
        generation = self._generation
        self.show_camera = False
        self.uploading = True
        self._changed()

        try:
            ticket = await asyncio.to_thread(self._extract, image_data, mime_type)
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Discarding failed upload from generation {generation}")
                return None
            logger.error(f"Error uploading or processing image: {e}")
            self.error = f"Failed to extract data: {_error_message(e)}"
            self.uploading = False
            self.show_camera = True
            self._changed()
            return None

        if not self._is_current(generation):
            logger.info(f"Discarding stale extraction result from generation {generation}")
            return None

        self.extracted = ticket
        self.uploading = False
        self._changed()
        return ticket

    async def fetch_winning_numbers(self) -> Optional[DrawResult]:
        """Look up the official results for the current ticket's date."""
        if self.extracted is None or not self.extracted.date:
            return None
        generation = self._generation
        self._lookup_seq += 1
        seq = self._lookup_seq
        ticket_date = self.extracted.date

        self.looking_up = True
        self.lookup_error = None
        self.draw_result = None
        self._changed()

        try:
            result = await asyncio.to_thread(self._lookup, ticket_date)
        except Exception as e:
            if self._is_current(generation) and seq == self._lookup_seq:
                self.lookup_error = f"Failed to fetch winning numbers: {_error_message(e)}"
                self.looking_up = False
                self._changed()
            return None

        if not self._is_current(generation) or seq != self._lookup_seq:
            logger.info("Discarding stale draw lookup result")
            return None

        self.draw_result = result
        self.looking_up = False
        self._changed()
        return result

    def retake(self) -> None:
        self._reset()
        self.show_camera = True
        self._changed()

    def logout(self, sign_out: Optional[Callable[[], None]] = None) -> None:
        if sign_out is not None:
            try:
                sign_out()
            except Exception as e:
                logger.error(f"Logout error: {e}")
                return
        self._reset()
        self.show_camera = True
        self._changed()

    def close(self) -> None:
        """The screen is gone; any in-flight result will be discarded."""
        self.active = False
        self._generation += 1
