"""
Error taxonomy for the lottery ticket reader.
Every error carries an HTTP status code so the API layer can render it directly.
"""

from typing import Optional


class LottoLensError(Exception):
    """Base error. Subclasses set a default status code."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class ExtractionError(LottoLensError):
    """
    The model response did not contain a usable JSON ticket.

    The raw response text is always attached so callers can log it.
    """

    status_code = 422

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text

    def to_dict(self) -> dict:
        return {
            "error": f"Could not parse data from AI: {self.message}",
            "raw_response": self.raw_text,
        }


class VisionServiceError(LottoLensError):
    """The vision model call itself failed or returned nothing."""

    status_code = 500


class CaptureCapabilityError(LottoLensError):
    """Camera device could not be acquired. Terminal for the session."""

    status_code = 503


class LookupNotFoundError(LottoLensError):
    """No official result exists for the derived draw identifier."""

    status_code = 404

    def __init__(self, draw_id: str, message: Optional[str] = None):
        super().__init__(message or f"No official results found for draw {draw_id}")
        self.draw_id = draw_id

    def to_dict(self) -> dict:
        return {"error": self.message, "draw_id": self.draw_id}


class DrawLookupError(LottoLensError):
    """The results API could not be reached or answered with an error."""

    status_code = 502

    def __init__(self, message: str, draw_id: Optional[str] = None):
        super().__init__(message)
        self.draw_id = draw_id


class AuthError(LottoLensError):
    """Missing, invalid or unauthorized token (401 or 403)."""

    status_code = 401


class ApiRequestError(LottoLensError):
    """Client side: the backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP error! status: {status_code}, message: {message}", status_code)
