"""
BettingContext: one ledger, one pick history and the current slate.

Constructed once per process (the API lifespan or a Streamlit session) and
passed to whatever needs it.  All mutations, including the scheduled
prediction refresh, run under the same re-entrant lock, so a refresh can
never interleave with a bet being placed or settled.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from backend.core.errors import BankrollError, PredictionNotFound
from backend.services.bankroll import BankrollLedger, BankrollSettings, PlacedBet
from backend.services.pick_history import GradedPick, PickHistory
from backend.services.predictions import Prediction, PredictionSource, safe_fetch
from backend.services.reconciliation import on_pick_graded
from backend.services.storage import KeyValueStore

logger = logging.getLogger(__name__)


class BettingContext:
    def __init__(
        self,
        store: KeyValueStore,
        source: Optional[PredictionSource] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.source = source
        self.ledger = BankrollLedger(store, clock=clock)
        self.history = PickHistory(store, clock=clock)
        self.lock = threading.RLock()
        self._slate: List[Prediction] = []
        self.last_refresh: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Slate
    # ------------------------------------------------------------------

    @property
    def slate(self) -> List[Prediction]:
        with self.lock:
            return list(self._slate)

    def refresh_predictions(self) -> int:
        """
        Re-pull the slate from the prediction source.

        Games already in the pick history stay off the slate.  A failing
        source leaves an empty slate rather than raising.
        """
        with self.lock:
            fetched = safe_fetch(self.source)
            graded_ids = {p.game_id for p in self.history.picks}
            self._slate = [p for p in fetched if p.game_id not in graded_ids]
            self.last_refresh = datetime.now().astimezone()
            logger.info(
                "Slate refreshed: %d predictions (%d already graded)",
                len(self._slate), len(fetched) - len(self._slate),
            )
            return len(self._slate)

    def scheduled_refresh(self) -> None:
        """Scheduler hook: refresh only while there is a slate to keep fresh."""
        with self.lock:
            if not self._slate:
                logger.debug("Slate empty; skipping scheduled refresh")
                return
            self.refresh_predictions()

    def find_prediction(self, game_id: str) -> Prediction:
        with self.lock:
            for p in self._slate:
                if p.game_id == str(game_id):
                    return p
        raise PredictionNotFound(f"No prediction for game {game_id}", {"game_id": game_id})

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def score_game(self, game_id: str, result: str) -> Tuple[GradedPick, Optional[PlacedBet]]:
        """
        Grade a slate prediction W/L/P.

        Records the pick, settles the matching staked bet if there is one,
        and removes the game from the slate.  Returns (graded pick, settled
        bet or None).

        Once the pick is recorded the game leaves the slate even if settling
        the bet fails; the bet stays active and can be resolved directly.
        """
        with self.lock:
            prediction = self.find_prediction(game_id)
            graded = self.history.record_result(prediction, result)
            try:
                settled = on_pick_graded(self.ledger, graded)
            except BankrollError:
                logger.error(
                    "Pick %s graded but its bet could not be settled", graded.game_id
                )
                raise
            finally:
                self._slate = [p for p in self._slate if p.game_id != prediction.game_id]
            return graded, settled

    def place_bet_on(self, game_id: str, units: float, odds: float) -> PlacedBet:
        """Stake a slate prediction; the bet is linked to it for settlement."""
        with self.lock:
            prediction = self.find_prediction(game_id)
            return self.ledger.place_bet(
                prediction.game_ref(), units, odds, prediction_id=prediction.game_id
            )

    def place_bet(self, game: Dict, units: float, odds: float) -> PlacedBet:
        """Stake a game that is not on the slate; settled by team match."""
        with self.lock:
            return self.ledger.place_bet(game, units, odds)

    def resolve_bet(self, bet_id: str, outcome: str) -> PlacedBet:
        with self.lock:
            return self.ledger.resolve_bet(bet_id, outcome)

    def update_settings(
        self, starting_bankroll: float, unit_percentage: float, max_daily_risk: float
    ) -> BankrollSettings:
        with self.lock:
            return self.ledger.update_settings(starting_bankroll, unit_percentage, max_daily_risk)

    def reset_bankroll(self) -> None:
        with self.lock:
            self.ledger.reset()

    def restore_bankroll(self, payload: Dict) -> Tuple[int, int]:
        with self.lock:
            return self.ledger.restore(payload)
