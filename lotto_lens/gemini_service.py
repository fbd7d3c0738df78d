"""
Google Gemini AI Service for Lottery Ticket Reading
Sends a ticket photo to Gemini and returns the model's raw text answer.
Parsing that answer is the job of response_normalizer.
"""

from typing import Optional

from loguru import logger
import google.generativeai as genai

from lotto_lens.config import get_settings
from lotto_lens.errors import VisionServiceError


TICKET_PROMPT = (
    "Extract the winning numbers, date, and Sance number from this lottery ticket. "
    "Format the output as a JSON object with 'date' (date after string 'POCET SLOSOVANI'), "
    "'sanceNumber' (number after string 'Sance' in a same row, like '089229' with no colons "
    "or semicolons), and 'winningNumbers' (an array of strings, where each string represents "
    "a row of numbers like '05 21 32 36 38 46 NT')."
)


class GeminiService:
    """
    Google Gemini AI service for reading lottery ticket images.
    The model is treated as untyped: whatever text it returns is passed on as-is.
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        """Initialize the Gemini service with API configuration."""
        settings = get_settings()
        self.api_key = api_key or settings.gemini_api_key
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY environment variable is required")

        self.model_name = model_name or settings.gemini_model
        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(self.model_name)
        self.prompt_template = TICKET_PROMPT

        logger.info(f"Gemini service initialized with model {self.model_name}")

    def process_ticket_image(self, image_data: bytes, mime_type: str = "image/png") -> str:
        """
        Send a ticket image to Gemini.

        Args:
            image_data: Raw image bytes
            mime_type: MIME type of the upload

        Returns:
            Raw response text

        Raises:
            VisionServiceError: if the API call fails or returns no text
        """
        contents = [
            {"mime_type": mime_type or "image/png", "data": image_data},
            self.prompt_template,
        ]

        try:
            logger.debug(f"Sending {len(image_data)} bytes ({mime_type}) to Gemini")
            response = self.model.generate_content(contents)
            text = response.text
        except Exception as e:
            logger.error(f"Gemini processing error: {e}")
            raise VisionServiceError("Error processing image.") from e

        if not text:
            logger.error("Empty response from Gemini API")
            raise VisionServiceError("No response from Gemini API")

        logger.debug(f"Raw Gemini response: {text}")
        return text


_gemini_service: Optional[GeminiService] = None


def get_gemini_service() -> GeminiService:
    """Lazily created process-wide service (FastAPI dependency)."""
    global _gemini_service
    if _gemini_service is None:
        try:
            _gemini_service = GeminiService()
        except Exception as e:
            logger.error(f"Failed to create Gemini service: {e}")
            raise VisionServiceError("Vision service is not configured") from e
    return _gemini_service
