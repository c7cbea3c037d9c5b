"""Fundamental odds mathematics: the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services or models.

Two accounting paths live side by side and both are required:

1. **Exact-odds payout** — :func:`potential_win` prices a staked bet in the
   Bet Ledger from its American odds.  Used for every dollar movement of the
   simulated bankroll.
2. **Unit convention** — :func:`settle_unit_profit` books a graded AI pick
   as a one-unit stake at the standard -110 price.  Used by Pick History and
   every analytics view, independently of how (or whether) the pick was
   actually staked.

Design decisions
----------------
* American odds are accepted as ``int`` or ``float`` because the dashboard
  form posts whatever the user typed.  Only zero is rejected: it has no
  payout definition.  Magnitudes below 100 are unusual but still priced by
  the same formula.
* The unit convention is deliberately asymmetric (+0.91 / -1.10).  A win
  at -110 returns 100/110 ≈ 0.909 units; a loss costs the full 1.1 units a
  bettor lays to win one.  ROI on the unit path therefore divides by
  ``graded * 1.1``.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from typing import Final

from backend.core.errors import InvalidOdds

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Unit profit booked for a winning pick (one unit laid at -110).
UNIT_WIN_PROFIT: Final[float] = 0.91

#: Unit loss booked for a losing pick (the 1.1 units laid).
UNIT_LOSS: Final[float] = -1.10

#: Units wagered per graded pick; denominator of the unit ROI.
UNIT_STAKE: Final[float] = 1.1

_WIN_LABELS: Final[frozenset] = frozenset({"W", "win"})
_LOSS_LABELS: Final[frozenset] = frozenset({"L", "loss"})


# ---------------------------------------------------------------------------
# Exact-odds payout
# ---------------------------------------------------------------------------


def potential_win(risk_amount: float, american_odds: int | float) -> float:
    """Profit (excluding returned stake) of a winning bet.

    Examples::

        potential_win(20.0, -110) → 18.18   (20 * 100/110)
        potential_win(10.0, +150) → 15.00   (10 * 150/100)

    Args:
        risk_amount: Dollars staked.
        american_odds: Signed American odds.  Negative = favourite (risk
            ``|odds|`` to win 100), positive = underdog (risk 100 to win
            ``odds``).

    Returns:
        Profit in dollars.  Not rounded; round at the presentation layer.

    Raises:
        InvalidOdds: If ``american_odds`` is 0, NaN or infinite.
    """
    if american_odds == 0:
        raise InvalidOdds(
            "American odds cannot be 0", {"odds": american_odds}
        )
    if not math.isfinite(american_odds):
        raise InvalidOdds(
            "American odds must be a finite number", {"odds": american_odds}
        )
    if american_odds > 0:
        return risk_amount * (american_odds / 100.0)
    return risk_amount * (100.0 / abs(american_odds))


def format_american(american_odds: int | float) -> str:
    """Display string with an explicit sign for underdogs: ``+150``, ``-110``."""
    value = int(american_odds) if float(american_odds).is_integer() else american_odds
    return f"+{value}" if american_odds > 0 else f"{value}"


# ---------------------------------------------------------------------------
# Unit convention
# ---------------------------------------------------------------------------


def settle_unit_profit(result: str | None) -> float:
    """Unit profit for a graded pick under the fixed -110 convention.

    Accepts both the Pick History labels (``W``/``L``/``P``) and the Bet
    Ledger labels (``win``/``loss``/``push``/``pending``).

    Examples::

        settle_unit_profit("W")       →  0.91
        settle_unit_profit("loss")    → -1.10
        settle_unit_profit("P")       →  0.0
        settle_unit_profit("pending") →  0.0
    """
    if result in _WIN_LABELS:
        return UNIT_WIN_PROFIT
    if result in _LOSS_LABELS:
        return UNIT_LOSS
    return 0.0
