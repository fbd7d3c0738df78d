"""
Ticket Verification Module
Compares the rows read off a ticket against official draw results.
"""

import re
from typing import List, Optional, Tuple

from loguru import logger

from lotto_lens.models import (
    DrawResult,
    ExtractedTicket,
    GameMatch,
    RowVerification,
    TicketVerification,
)

NUMBER_TOKEN_RE = re.compile(r"^\d{1,2}$")


def split_row(row: str) -> Tuple[List[int], Optional[str]]:
    """
    Split a ticket row like "05 21 32 36 38 46 NT" into numbers and marker.

    Non-numeric tokens are treated as markers; only the last one is kept.
    """
    numbers: List[int] = []
    marker = None
    for token in row.split():
        if NUMBER_TOKEN_RE.match(token):
            numbers.append(int(token))
        else:
            marker = token
    return numbers, marker


def match_game(numbers: List[int], official: List[int], extra: Optional[int]) -> GameMatch:
    official_set = set(official)
    matched = [n for n in numbers if n in official_set]
    return GameMatch(
        matched_numbers=matched,
        match_count=len(matched),
        extra_matched=extra is not None and extra in numbers,
    )


def official_bonus_string(result: DrawResult) -> str:
    # Plain concatenation, no zero padding (see DESIGN.md)
    return "".join(str(n) for n in result.addon_numbers)


def verify_ticket(ticket: ExtractedTicket, result: DrawResult) -> TicketVerification:
    """
    Verify every ticket row against both main games of a draw.

    Args:
        ticket: Normalized ticket data
        result: Official draw result

    Returns:
        TicketVerification with per-row matches and the bonus comparison
    """
    rows = []
    for row in ticket.winning_rows:
        numbers, marker = split_row(row)
        rows.append(RowVerification(
            row=row,
            numbers=numbers,
            marker=marker,
            game1=match_game(numbers, result.main_game1_numbers, result.main_game1_extra),
            game2=match_game(numbers, result.main_game2_numbers, result.main_game2_extra),
        ))

    official_bonus = official_bonus_string(result)
    bonus_matched = bool(official_bonus) and ticket.bonus_number == official_bonus
    best = max((max(r.game1.match_count, r.game2.match_count) for r in rows), default=0)

    logger.info(f"Verified {len(rows)} rows for draw {result.draw_date}: best match {best}, "
                f"bonus matched: {bonus_matched}")

    return TicketVerification(
        draw_date=result.draw_date,
        rows=rows,
        bonus_number=ticket.bonus_number,
        official_bonus_number=official_bonus,
        bonus_matched=bonus_matched,
        best_match_count=best,
    )
