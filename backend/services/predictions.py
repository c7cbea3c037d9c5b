"""
Prediction Source adapters.

The bankroll core never computes predictions; it pulls them from a
source that returns zero or more game records:

    {"id", "homeTeam", "awayTeam", "spread", "total", "pick", "confidence", ...}

Sources
-------
  StaticPredictionSource   - fixed list (tests, manual slates)
  JsonFilePredictionSource - the ``latest-predictions.json`` envelope written
                             by the nightly prediction job
  HttpPredictionSource     - the same envelope served over HTTP

A source that fails must never block resolving or viewing existing bets.
``safe_fetch`` turns any failure into an empty slate and logs it.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import requests

from backend.core.sport_config import confidence_level

logger = logging.getLogger(__name__)

PREDICTIONS_URL = os.getenv("PREDICTIONS_URL")
PREDICTIONS_FILE = os.getenv("PREDICTIONS_FILE", "data/latest-predictions.json")


@dataclass
class Prediction:
    """One game on the AI picks slate."""

    game_id: str
    home_team: str
    away_team: str
    pick: str
    confidence: float
    spread: Optional[float] = None
    total: Optional[float] = None
    sport: Optional[str] = None
    commence_time: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def confidence_level(self) -> str:
        return confidence_level(self.confidence)

    @property
    def matchup(self) -> str:
        return f"{self.away_team} @ {self.home_team}"

    def game_ref(self) -> Dict[str, Any]:
        """The ``game`` object stored on a PlacedBet."""
        return {"id": self.game_id, "homeTeam": self.home_team, "awayTeam": self.away_team}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Prediction":
        """
        Accept both the camelCase file format and the snake_case
        Odds-API style (``home_team``/``sport_key``/``commence_time``).
        """
        def pick_key(*names):
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return None

        game_id = pick_key("id", "gameId", "game_id")
        home = pick_key("homeTeam", "home_team", "home")
        away = pick_key("awayTeam", "away_team", "away")
        if game_id is None or not home or not away:
            raise ValueError(f"Prediction record missing id/teams: {data!r}")

        spread = pick_key("spread")
        total = pick_key("total")
        confidence = pick_key("confidence", "conf")
        known = {
            "id", "gameId", "game_id", "homeTeam", "home_team", "home",
            "awayTeam", "away_team", "away", "spread", "total", "pick",
            "confidence", "conf", "sport", "sport_key", "league",
            "commenceTime", "commence_time",
        }
        return cls(
            game_id=str(game_id),
            home_team=home,
            away_team=away,
            pick=pick_key("pick") or home,
            confidence=float(confidence) if confidence is not None else 0.5,
            spread=float(spread) if spread is not None else None,
            total=float(total) if total is not None else None,
            sport=pick_key("sport", "sport_key", "league"),
            commence_time=pick_key("commenceTime", "commence_time"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.game_id,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "pick": self.pick,
            "confidence": self.confidence,
            "confidenceLevel": self.confidence_level,
            "spread": self.spread,
            "total": self.total,
            "sport": self.sport,
            "commenceTime": self.commence_time,
        }


class PredictionSource(Protocol):
    def fetch(self) -> List[Prediction]: ...


def parse_envelope(data: Any) -> List[Prediction]:
    """
    Parse ``{"date": ..., "predictions": [...]}`` (or a bare list).
    Malformed records are skipped with a warning.
    """
    records = data.get("predictions", []) if isinstance(data, dict) else data
    predictions: List[Prediction] = []
    for record in records or []:
        try:
            predictions.append(Prediction.from_dict(record))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping malformed prediction: %s", exc)
    return predictions


class StaticPredictionSource:
    """Serves a fixed list of predictions."""

    def __init__(self, predictions: Optional[List[Prediction]] = None):
        self._predictions = list(predictions or [])

    def fetch(self) -> List[Prediction]:
        return list(self._predictions)


class JsonFilePredictionSource:
    """Reads the latest-predictions envelope from disk on every fetch."""

    def __init__(self, path: str = PREDICTIONS_FILE):
        self.path = Path(path)

    def fetch(self) -> List[Prediction]:
        with self.path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        predictions = parse_envelope(data)
        logger.info("Loaded %d predictions from %s", len(predictions), self.path)
        return predictions


class HttpPredictionSource:
    """Fetches the latest-predictions envelope over HTTP."""

    def __init__(self, url: Optional[str] = None, timeout: float = 10.0):
        self.url = url or PREDICTIONS_URL
        if not self.url:
            raise ValueError("PREDICTIONS_URL not set in environment")
        self.timeout = timeout

    def fetch(self) -> List[Prediction]:
        response = requests.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        predictions = parse_envelope(response.json())
        logger.info("Prediction feed: %d games fetched from %s", len(predictions), self.url)
        return predictions


def safe_fetch(source: Optional[PredictionSource]) -> List[Prediction]:
    """Fetch from ``source``; any failure degrades to an empty slate."""
    if source is None:
        return []
    try:
        return source.fetch()
    except (requests.exceptions.RequestException, OSError, ValueError) as exc:
        logger.error("Prediction source unavailable: %s", exc)
        return []


def default_source() -> PredictionSource:
    """HTTP feed if ``PREDICTIONS_URL`` is set, else the local JSON file."""
    if PREDICTIONS_URL:
        return HttpPredictionSource(PREDICTIONS_URL)
    return JsonFilePredictionSource(PREDICTIONS_FILE)
