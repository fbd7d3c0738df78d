"""
Pydantic models shared by the API, the client and the core helpers.

Field names on the wire are camelCase; Python attributes are snake_case.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ExtractedTicket(BaseModel):
    """Structured data read off a photographed ticket."""

    model_config = ConfigDict(populate_by_name=True)

    date: str
    # Kept as a string: "089229" and 89229 are different tickets
    bonus_number: str = Field(
        serialization_alias="bonusNumber",
        validation_alias=AliasChoices("bonusNumber", "bonus_number", "sanceNumber"),
    )
    winning_rows: List[str] = Field(
        serialization_alias="winningRows",
        validation_alias=AliasChoices("winningRows", "winning_rows", "winningNumbers"),
        min_length=1,
    )

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


class DrawResult(BaseModel):
    """Official numbers for one draw, republished from the results API."""

    model_config = ConfigDict(populate_by_name=True)

    draw_date: Optional[str] = Field(default=None, alias="drawDate")
    main_game1_numbers: List[int] = Field(default_factory=list, alias="mainGame1Numbers")
    main_game1_extra: Optional[int] = Field(default=None, alias="mainGame1Extra")
    main_game2_numbers: List[int] = Field(default_factory=list, alias="mainGame2Numbers")
    main_game2_extra: Optional[int] = Field(default=None, alias="mainGame2Extra")
    addon_numbers: List[int] = Field(default_factory=list, alias="addonNumbers")

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


class GameMatch(BaseModel):
    matched_numbers: List[int] = Field(default_factory=list, alias="matchedNumbers")
    match_count: int = Field(default=0, alias="matchCount")
    extra_matched: bool = Field(default=False, alias="extraMatched")

    model_config = ConfigDict(populate_by_name=True)


class RowVerification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    row: str
    numbers: List[int]
    marker: Optional[str] = None
    game1: GameMatch
    game2: GameMatch


class TicketVerification(BaseModel):
    """Row by row comparison of a ticket against a draw result."""

    model_config = ConfigDict(populate_by_name=True)

    draw_date: Optional[str] = Field(default=None, alias="drawDate")
    rows: List[RowVerification]
    bonus_number: str = Field(alias="bonusNumber")
    official_bonus_number: str = Field(alias="officialBonusNumber")
    bonus_matched: bool = Field(alias="bonusMatched")
    best_match_count: int = Field(alias="bestMatchCount")

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)
