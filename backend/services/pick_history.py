"""
Pick History: the append-only log of graded AI predictions.

Each graded pick is booked as a one-unit stake at -110 regardless of how
(or whether) it was staked in the Bet Ledger, which makes accuracy, ROI
and streaks comparable across users with different bankroll settings.

Records are stored under ``aiHist`` as a JSON array using the dashboard's
field names (``gameId``, ``home``, ``away``, ``conf``, ``result`` ...).

Grading the same prediction twice produces two records.  The history is an
audit log of user actions; removing the prediction from the slate after
grading is the caller's job (see ``backend.services.session``).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from backend.core.errors import InvalidOutcome
from backend.core.odds_math import UNIT_STAKE, settle_unit_profit
from backend.services.predictions import Prediction
from backend.services.storage import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)

HISTORY_KEY = "aiHist"
PICK_OUTCOMES = ("W", "L", "P")

#: Look-back windows for ``PickHistory.filter``
PERIOD_DAYS = {"week": 7, "month": 30, "quarter": 90}


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value).astimezone()


@dataclass(frozen=True)
class GradedPick:
    """One graded prediction.  Immutable once recorded."""

    game_id: str
    league: Optional[str]
    home: str
    away: str
    pick: str
    spread: Optional[float]
    total: Optional[float]
    conf: float
    result: str
    date: str
    profit: float

    @property
    def matchup(self) -> str:
        return f"{self.away} @ {self.home}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gameId": self.game_id,
            "league": self.league,
            "away": self.away,
            "home": self.home,
            "pick": self.pick,
            "spread": self.spread,
            "total": self.total,
            "conf": self.conf,
            "result": self.result,
            "date": self.date,
            "profit": self.profit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GradedPick":
        result = data.get("result") or ""
        profit = data.get("profit")
        return cls(
            game_id=str(data["gameId"]),
            league=data.get("league"),
            home=data["home"],
            away=data["away"],
            pick=data.get("pick", ""),
            spread=data.get("spread"),
            total=data.get("total"),
            conf=float(data.get("conf") or 0.0),
            result=result,
            date=data["date"],
            profit=float(profit) if profit is not None else settle_unit_profit(result),
        )


class PickHistory:
    """Graded picks in the order they were recorded."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or _local_now
        self._picks: List[GradedPick] = self._load()

    def _load(self) -> List[GradedPick]:
        picks = []
        for record in load_json(self._store, HISTORY_KEY, []):
            try:
                picks.append(GradedPick.from_dict(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed graded pick: %s", exc)
        return picks

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def record_result(self, prediction: Prediction, outcome: str) -> GradedPick:
        """Append a graded pick for ``prediction`` with result W, L or P."""
        if outcome not in PICK_OUTCOMES:
            raise InvalidOutcome(
                "Result must be one of W, L, P", {"outcome": outcome}
            )
        graded = GradedPick(
            game_id=prediction.game_id,
            league=prediction.sport,
            home=prediction.home_team,
            away=prediction.away_team,
            pick=prediction.pick,
            spread=prediction.spread,
            total=prediction.total,
            conf=prediction.confidence,
            result=outcome,
            date=self._clock().isoformat(),
            profit=settle_unit_profit(outcome),
        )
        picks = self._picks + [graded]
        save_json(self._store, HISTORY_KEY, [p.to_dict() for p in picks])
        self._picks = picks
        logger.info(
            "Pick graded %s: %s (%s, %.0f%% conf)",
            outcome, graded.matchup, graded.pick, graded.conf * 100,
        )
        return graded

    def restore(self, records: List[Dict[str, Any]]) -> int:
        """Replace the history with exported records; all must parse."""
        try:
            picks = [GradedPick.from_dict(r) for r in records]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise InvalidOutcome("Malformed pick history", {"error": str(exc)}) from exc
        bad = [p for p in picks if p.result not in PICK_OUTCOMES]
        if bad:
            raise InvalidOutcome(
                "Graded picks must have result W, L or P", {"game_id": bad[0].game_id}
            )
        save_json(self._store, HISTORY_KEY, [p.to_dict() for p in picks])
        self._picks = picks
        logger.info("Pick history restored: %d picks", len(picks))
        return len(picks)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def picks(self) -> List[GradedPick]:
        return list(self._picks)

    @property
    def graded(self) -> List[GradedPick]:
        return [p for p in self._picks if p.result]

    def __len__(self) -> int:
        return len(self._picks)

    def record_counts(self) -> Dict[str, int]:
        graded = self.graded
        return {
            "wins": sum(1 for p in graded if p.result == "W"),
            "losses": sum(1 for p in graded if p.result == "L"),
            "pushes": sum(1 for p in graded if p.result == "P"),
        }

    def total_profit(self) -> float:
        return sum(p.profit for p in self.graded)

    def accuracy(self) -> float:
        """Wins over graded picks (0-1); 0 when nothing is graded."""
        graded = self.graded
        if not graded:
            return 0.0
        return self.record_counts()["wins"] / len(graded)

    def roi(self) -> float:
        """Unit ROI in percent: profit / (graded * 1.1) * 100."""
        wagered = len(self.graded) * UNIT_STAKE
        return self.total_profit() / wagered * 100.0 if wagered > 0 else 0.0

    def average_confidence(self) -> float:
        if not self._picks:
            return 0.0
        return sum(p.conf for p in self._picks) / len(self._picks)

    # --- Streaks ---

    def best_streak(self) -> int:
        """Longest run of consecutive wins; P and L both break it."""
        best = run = 0
        for p in self.graded:
            if p.result == "W":
                run += 1
                best = max(best, run)
            else:
                run = 0
        return best

    def current_streak(self) -> int:
        """Consecutive wins at the end of the history."""
        run = 0
        for p in reversed(self.graded):
            if p.result != "W":
                break
            run += 1
        return run

    def current_streak_label(self) -> str:
        """Most recent run of any result, e.g. ``W3`` or ``L2``; ``-`` if empty."""
        graded = self.graded
        if not graded:
            return "-"
        kind = graded[-1].result
        run = 0
        for p in reversed(graded):
            if p.result != kind:
                break
            run += 1
        return f"{kind}{run}"

    # --- Views ---

    def recent(self, n: int = 5) -> List[GradedPick]:
        """Last ``n`` picks, newest first."""
        return list(reversed(self._picks[-n:])) if n > 0 else []

    def filter(
        self,
        period: Optional[str] = None,
        result: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[GradedPick]:
        """
        Picks matching all given filters.

        period: ``week``/``month``/``quarter`` (7/30/90 days back from now)
        result: ``W``/``L``/``P`` (case-insensitive)
        search: substring of home, away or picked team (case-insensitive)
        """
        picks = self.picks
        if period in PERIOD_DAYS:
            cutoff = self._clock().astimezone() - timedelta(days=PERIOD_DAYS[period])
            picks = [p for p in picks if _parse_ts(p.date) >= cutoff]
        if result and result.lower() != "all":
            wanted = result.upper()
            picks = [p for p in picks if p.result == wanted]
        if search and search.strip():
            term = search.strip().lower()
            picks = [
                p for p in picks
                if term in p.home.lower() or term in p.away.lower() or term in p.pick.lower()
            ]
        return picks
