"""
API endpoints for reading tickets and looking up official results.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import BaseModel

from lotto_lens.auth_middleware import require_allowed_user
from lotto_lens.config import Settings, get_settings
from lotto_lens.date_utils import normalize_date_string, validate_date_format
from lotto_lens.draw_results import DrawResultsClient, get_results_client
from lotto_lens.errors import ExtractionError
from lotto_lens.gemini_service import GeminiService, get_gemini_service
from lotto_lens.models import ExtractedTicket
from lotto_lens.response_normalizer import normalize
from lotto_lens.ticket_verifier import verify_ticket

ticket_router = APIRouter(tags=["ticket"])


class VerifyTicketRequest(BaseModel):
    ticket: ExtractedTicket
    date: Optional[str] = None


def _require_lookup_date(date: Optional[str]) -> str:
    if not date:
        raise HTTPException(status_code=400, detail="Missing or invalid date parameter. Use YYYY-MM-DD.")
    if not validate_date_format(date):
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")
    return date


@ticket_router.post("/extract-lottery-data")
async def extract_lottery_data(
    lotteryImage: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(require_allowed_user),
    settings: Settings = Depends(get_settings),
    gemini: GeminiService = Depends(get_gemini_service),
):
    """
    Read a ticket photo with the vision model.

    Returns:
        ExtractedTicket JSON (date, bonusNumber, winningRows)
    """
    if lotteryImage is None:
        raise HTTPException(status_code=400, detail="No image file uploaded.")

    mime_type = lotteryImage.content_type or "image/png"
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image (JPG, PNG, etc.)")

    image_data = await lotteryImage.read()
    if len(image_data) == 0:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(image_data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File size too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB",
        )

    logger.info(f"Processing ticket image: {lotteryImage.filename}, size: {len(image_data)} bytes")
    raw_text = await run_in_threadpool(gemini.process_ticket_image, image_data, mime_type)

    try:
        ticket = normalize(raw_text)
    except ExtractionError as e:
        logger.error(f"Failed to parse Gemini response as JSON ({e.message}). Raw response: {raw_text}")
        raise

    logger.info(f"Extracted {len(ticket.winning_rows)} rows for draw date {ticket.date}")
    return ticket.to_response()


@ticket_router.get("/winning-numbers")
async def winning_numbers(
    date: Optional[str] = Query(None),
    user: Dict[str, Any] = Depends(require_allowed_user),
    results: DrawResultsClient = Depends(get_results_client),
):
    """Official results for a draw date (YYYY-MM-DD)."""
    lookup_date = _require_lookup_date(date)
    result = await run_in_threadpool(results.fetch_by_date, lookup_date)
    return result.to_response()


@ticket_router.post("/verify-ticket")
async def verify_ticket_endpoint(
    body: VerifyTicketRequest,
    user: Dict[str, Any] = Depends(require_allowed_user),
    results: DrawResultsClient = Depends(get_results_client),
):
    """Compare a previously extracted ticket with the official results."""
    lookup_date = _require_lookup_date(body.date or normalize_date_string(body.ticket.date))
    result = await run_in_threadpool(results.fetch_by_date, lookup_date)
    return verify_ticket(body.ticket, result).to_response()
