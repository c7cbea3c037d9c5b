"""
Pydantic request/response schemas for the AI Picks bankroll API.

Request bodies are validated here before they reach the ledger, so most
malformed input is rejected with a 422 and never touches stored state.
The ledger re-validates everything it is handed anyway.
"""

from __future__ import annotations

import math
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Bets
# ---------------------------------------------------------------------------

class GameRef(BaseModel):
    """The game a manual bet is placed on."""
    id: Optional[str] = None
    homeTeam: str = Field(..., min_length=1, max_length=120)
    awayTeam: str = Field(..., min_length=1, max_length=120)


class PlaceBetRequest(BaseModel):
    """
    Payload for POST /api/bankroll/bets.

    Give ``game_id`` to stake a prediction on the current slate (the bet is
    linked to it and settled when the pick is graded), or ``game`` to stake
    anything else.
    """

    game_id: Optional[str] = Field(None, description="Prediction id on today's slate")
    game: Optional[GameRef] = Field(None, description="Manual game reference")
    units: float = Field(..., gt=0, allow_inf_nan=False, description="Units to risk")
    odds: float = Field(-110, allow_inf_nan=False, description="American odds")

    @field_validator("odds")
    @classmethod
    def validate_american_odds(cls, v: float) -> float:
        if v == 0:
            raise ValueError("odds cannot be 0")
        if not math.isfinite(v):
            raise ValueError("odds must be finite")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {"game_id": "401585601", "units": 2, "odds": -110}
        }
    }


class BetResponse(BaseModel):
    id: str
    game: dict
    units: float
    odds: float
    riskAmount: float
    potentialWin: float
    result: str
    date: str
    resolvedDate: Optional[str] = None
    predictionId: Optional[str] = None


class ResolveBetRequest(BaseModel):
    """Payload for PUT /api/bankroll/bets/{bet_id}/outcome."""
    outcome: Literal["win", "loss", "push"]


class SettingsUpdate(BaseModel):
    """
    Payload for PUT /api/bankroll/settings.

    The current bankroll is recomputed as ``startingBankroll + totalProfit``.
    """

    starting_bankroll: float = Field(..., ge=100, allow_inf_nan=False, description="Dollars (min $100)")
    unit_percentage: float = Field(1.0, ge=0.1, le=10, allow_inf_nan=False, description="% of bankroll per unit")
    max_daily_risk: float = Field(5.0, ge=1, le=50, allow_inf_nan=False, description="% of bankroll per day")

    model_config = {
        "json_schema_extra": {
            "example": {
                "starting_bankroll": 1000,
                "unit_percentage": 1.0,
                "max_daily_risk": 5.0,
            }
        }
    }


class RestoreResponse(BaseModel):
    message: str
    active_bets: int
    settled_bets: int


# ---------------------------------------------------------------------------
# Picks
# ---------------------------------------------------------------------------

class ScoreRequest(BaseModel):
    """Payload for POST /api/picks/{game_id}/score."""
    result: Literal["W", "L", "P"] = Field(..., description="W = win, L = loss, P = push")

    @field_validator("result", mode="before")
    @classmethod
    def normalise_result(cls, v):
        return v.upper() if isinstance(v, str) else v


class GradedPickResponse(BaseModel):
    gameId: str
    league: Optional[str] = None
    away: str
    home: str
    pick: str
    spread: Optional[float] = None
    total: Optional[float] = None
    conf: float
    result: str
    date: str
    profit: float


class ScoreResponse(BaseModel):
    """Response after grading a pick."""
    message: str
    pick: GradedPickResponse
    settled_bet: Optional[BetResponse] = None


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------

class PredictionResponse(BaseModel):
    id: str
    homeTeam: str
    awayTeam: str
    pick: str
    confidence: float
    confidenceLevel: str
    spread: Optional[float] = None
    total: Optional[float] = None
    sport: Optional[str] = None
    commenceTime: Optional[str] = None


class TodaysPredictionsResponse(BaseModel):
    """Structure for the /api/predictions/today endpoint."""
    total_games: int
    last_refresh: Optional[str] = None
    predictions: list[PredictionResponse]


class RefreshResponse(BaseModel):
    message: str
    total_games: int
