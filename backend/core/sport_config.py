"""League labels and confidence tiers, all sport-specific constants in one place.

Graded picks carry the Odds-API style ``sport_key`` (``basketball_nba``,
``americanfootball_nfl``) in their ``league`` field.  Display code and the
per-sport analytics map those keys through :data:`LEAGUES` instead of
hard-coding ``"NBA"``/``"NFL"`` strings.

Typical usage::

    from backend.core.sport_config import league_label, confidence_level

    league_label("basketball_nba")   → "NBA"
    confidence_level(0.72)           → "high"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Final, Tuple


#: Sport identifier strings used in prediction records and graded picks.
SPORT_KEY_NBA: Final[str] = "basketball_nba"
SPORT_KEY_NFL: Final[str] = "americanfootball_nfl"


@dataclass(frozen=True)
class LeagueConfig:
    """Immutable description of one supported league.

    Attributes:
        sport_key: Identifier stored on predictions and graded picks.
        label: Short display name.
    """

    sport_key: str
    label: str


LEAGUES: Final[Tuple[LeagueConfig, ...]] = (
    LeagueConfig(sport_key=SPORT_KEY_NBA, label="NBA"),
    LeagueConfig(sport_key=SPORT_KEY_NFL, label="NFL"),
)

_LABEL_BY_KEY: Final[Dict[str, str]] = {lg.sport_key: lg.label for lg in LEAGUES}


def league_label(sport_key: str | None) -> str:
    """Display label for a sport key; unknown keys are upper-cased as-is."""
    if not sport_key:
        return "N/A"
    return _LABEL_BY_KEY.get(sport_key, sport_key.upper())


# ---------------------------------------------------------------------------
# Confidence tiers
# ---------------------------------------------------------------------------

#: Histogram buckets on the analytics page: (label, low-exclusive, high-inclusive).
#: The first bucket also includes 0.
CONFIDENCE_BUCKETS: Final[Tuple[Tuple[str, float, float], ...]] = (
    ("0-60%", 0.0, 0.6),
    ("60-70%", 0.6, 0.7),
    ("70-100%", 0.7, 1.0),
)

#: Risk tiers: low confidence = high risk.  Same boundary convention.
RISK_TIERS: Final[Tuple[Tuple[str, float, float], ...]] = (
    ("high", 0.0, 0.55),
    ("medium", 0.55, 0.65),
    ("low", 0.65, 1.0),
)

#: Prediction card tiers: > 0.7 high, > 0.6 medium, else low.
HIGH_CONFIDENCE: Final[float] = 0.7
MEDIUM_CONFIDENCE: Final[float] = 0.6


def confidence_level(confidence: float) -> str:
    """``"high"``, ``"medium"`` or ``"low"`` for a win probability."""
    if confidence > HIGH_CONFIDENCE:
        return "high"
    if confidence > MEDIUM_CONFIDENCE:
        return "medium"
    return "low"
