"""
HTTP client for the ticket reader API, used by the scanner front end.
"""

from typing import Callable, Optional

import requests
from loguru import logger

from lotto_lens.config import get_settings
from lotto_lens.date_utils import normalize_date_string
from lotto_lens.errors import ApiRequestError, AuthError
from lotto_lens.models import DrawResult, ExtractedTicket

TokenProvider = Callable[[], Optional[str]]


class LottoApiClient:
    """
    Calls /api/extract-lottery-data and /api/winning-numbers with the
    current user's bearer token.

    Args:
        token_provider: returns the current ID token, or None when logged out
        base_url: API root, defaults to API_BASE_URL
    """

    def __init__(self, token_provider: TokenProvider, base_url: Optional[str] = None,
                 timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.token_provider = token_provider
        self.base_url = (base_url or get_settings().api_base_url).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        token = self.token_provider()
        if not token:
            raise AuthError("You must be logged in.")
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _check(response: requests.Response) -> dict:
        if not response.ok:
            raise ApiRequestError(response.status_code, response.text)
        return response.json()

    def extract_ticket(self, image_data: bytes, mime_type: str = "image/jpeg",
                       filename: str = "ticket.jpg") -> ExtractedTicket:
        files = {"lotteryImage": (filename, image_data, mime_type)}
        response = self.session.post(
            f"{self.base_url}/api/extract-lottery-data",
            headers=self._headers(),
            files=files,
            timeout=self.timeout,
        )
        data = self._check(response)
        logger.debug(f"Extraction response: {data}")
        return ExtractedTicket.model_validate(data)

    def winning_numbers(self, ticket_date: str) -> DrawResult:
        response = self.session.get(
            f"{self.base_url}/api/winning-numbers",
            headers=self._headers(),
            params={"date": normalize_date_string(ticket_date)},
            timeout=self.timeout,
        )
        return DrawResult.model_validate(self._check(response))
