"""
Official draw results lookup.

The results API is keyed by a draw identifier derived from the draw date
(see date_utils.derive_draw_id). Only a handful of fields are republished.
"""

from datetime import date
from typing import Any, Dict, Optional, Union

import requests
from loguru import logger

from lotto_lens.config import get_settings
from lotto_lens.date_utils import derive_draw_id
from lotto_lens.errors import DrawLookupError, LookupNotFoundError
from lotto_lens.models import DrawResult


def _main_game(data: Dict[str, Any], index: int) -> Dict[str, Any]:
    games = (data.get("numbers") or {}).get("mainGameNumbers") or []
    if index < len(games) and isinstance(games[index], dict):
        return games[index]
    return {}


def _first_drum(game: Dict[str, Any]) -> list:
    drums = game.get("drawingDrums") or []
    return list(drums[0]) if drums and drums[0] else []


def parse_results_payload(data: Dict[str, Any]) -> DrawResult:
    """Pick the republished fields out of a raw results API payload."""
    game1 = _main_game(data, 0)
    game2 = _main_game(data, 1)
    return DrawResult(
        draw_date=data.get("drawDate"),
        main_game1_numbers=_first_drum(game1),
        main_game1_extra=game1.get("extraNumber"),
        main_game2_numbers=_first_drum(game2),
        main_game2_extra=game2.get("extraNumber"),
        addon_numbers=list((data.get("numbers") or {}).get("addonNumbers") or []),
    )


class DrawResultsClient:
    """Thin wrapper over the official results endpoint."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.sazka_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.lookup_timeout
        self.session = session or requests.Session()

    def results_url(self, draw_id: str) -> str:
        return f"{self.base_url}/{draw_id}/results"

    def fetch_by_id(self, draw_id: str) -> DrawResult:
        """
        Fetch the official result for a draw identifier.

        Raises:
            LookupNotFoundError: the API has no draw under this id
            DrawLookupError: network failure, other HTTP errors, bad payload
        """
        url = self.results_url(draw_id)
        logger.info(f"Fetching official results for draw {draw_id}")
        try:
            response = self.session.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(f"Results API timeout for draw {draw_id}")
            raise DrawLookupError("Results API timed out.", draw_id=draw_id) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Results API request failed for draw {draw_id}: {e}")
            raise DrawLookupError("Failed to fetch winning numbers.", draw_id=draw_id) from e

        if response.status_code == 404:
            logger.warning(f"No official results for draw {draw_id}")
            raise LookupNotFoundError(draw_id)
        if not response.ok:
            logger.error(f"Results API error {response.status_code} for draw {draw_id}")
            raise DrawLookupError(
                f"Failed to fetch winning numbers (results API status {response.status_code}).",
                draw_id=draw_id,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise DrawLookupError("Results API returned invalid JSON.", draw_id=draw_id) from e
        if not isinstance(payload, dict):
            raise DrawLookupError("Results API returned an unexpected payload.", draw_id=draw_id)

        result = parse_results_payload(payload)
        logger.debug(f"Draw {draw_id}: {result.to_response()}")
        return result

    def fetch_by_date(self, draw_date: Union[date, str]) -> DrawResult:
        return self.fetch_by_id(derive_draw_id(draw_date))


_results_client: Optional[DrawResultsClient] = None


def get_results_client() -> DrawResultsClient:
    """Process-wide client (FastAPI dependency)."""
    global _results_client
    if _results_client is None:
        _results_client = DrawResultsClient()
    return _results_client
