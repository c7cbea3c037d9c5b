"""
Reconciliation: settle staked bets when their pick is graded.

A graded pick does not have to correspond to a staked bet; when nothing
matches, grading is a no-op for the ledger.
"""

import logging
from typing import List, Optional

from backend.services.bankroll import BankrollLedger, PlacedBet
from backend.services.pick_history import GradedPick

logger = logging.getLogger(__name__)

OUTCOME_MAP = {"W": "win", "L": "loss", "P": "push"}


def find_candidates(ledger: BankrollLedger, pick: GradedPick) -> List[PlacedBet]:
    """
    Pending bets this pick settles, in placement order.

    Bets linked to the prediction by ``predictionId`` win over bets that
    merely share the ``(away, home)`` matchup.
    """
    pending = [b for b in ledger.active_bets if b.is_pending]
    linked = [b for b in pending if b.prediction_id == pick.game_id]
    if linked:
        return linked
    by_teams = [
        b for b in pending
        if b.prediction_id is None
        and b.away_team == pick.away
        and b.home_team == pick.home
    ]
    return by_teams


def on_pick_graded(ledger: BankrollLedger, pick: GradedPick) -> Optional[PlacedBet]:
    """Resolve the earliest matching pending bet; ``None`` when none matches."""
    outcome = OUTCOME_MAP.get(pick.result)
    if outcome is None:
        return None

    candidates = find_candidates(ledger, pick)
    if not candidates:
        logger.debug("No staked bet for graded pick %s (%s)", pick.game_id, pick.matchup)
        return None
    if len(candidates) > 1:
        logger.warning(
            "%d pending bets match %s; settling the earliest (%s)",
            len(candidates), pick.matchup, candidates[0].id,
        )
    return ledger.resolve_bet(candidates[0].id, outcome)
