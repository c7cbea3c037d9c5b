"""Unit sizing and daily risk limits: stateless rules for the Bet Ledger.

All functions here are **pure**: they receive the current settings and the
existing exposure, and either return a number or raise.  The ledger owns
state; this module only decides.

Two rejections exist and callers must be able to tell them apart:

1. :class:`~backend.core.errors.DailyRiskExceeded` — the bet would push
   same-day exposure above ``maxDailyRisk`` percent of the current bankroll.
2. :class:`~backend.core.errors.InsufficientBankroll` — the bet alone risks
   more than the current bankroll.

The daily check runs first.  With ``maxDailyRisk`` capped at 50% the daily
cap always binds before the bankroll check, except when the bankroll has
been driven to zero or below, which is exactly when both messages matter.

"Same day" means the bet's placement timestamp falls on the same **local**
calendar date as ``as_of``.  Timestamps are stored as ISO-8601 strings; an
aware timestamp is converted to local time, a naive one is read as local.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Protocol

from backend.core.errors import DailyRiskExceeded, InsufficientBankroll


class _RiskSettings(Protocol):
    current_bankroll: float
    max_daily_risk: float


class _Exposure(Protocol):
    risk_amount: float
    date: str


def unit_size(current_bankroll: float, unit_percentage: float) -> float:
    """Dollar value of one unit: a percentage of the *current* bankroll."""
    return current_bankroll * unit_percentage / 100.0


def max_daily_risk_amount(settings: _RiskSettings) -> float:
    """Dollar cap on same-day exposure."""
    return settings.current_bankroll * settings.max_daily_risk / 100.0


def local_date(timestamp: str) -> date:
    """Local calendar date of an ISO-8601 timestamp."""
    return datetime.fromisoformat(timestamp).astimezone().date()


def daily_risk_used(active_bets: Iterable[_Exposure], as_of: date) -> float:
    """Sum of ``risk_amount`` over active bets placed on ``as_of``."""
    return sum(b.risk_amount for b in active_bets if local_date(b.date) == as_of)


def check_can_place(
    active_bets: Iterable[_Exposure],
    proposed_risk: float,
    settings: _RiskSettings,
    as_of: date,
) -> None:
    """Raise if a bet risking ``proposed_risk`` may not be placed.

    Raises:
        DailyRiskExceeded: ``used + proposed > current * maxDailyRisk / 100``.
        InsufficientBankroll: ``proposed > current``.
    """
    used = daily_risk_used(active_bets, as_of)
    cap = max_daily_risk_amount(settings)
    if used + proposed_risk > cap:
        raise DailyRiskExceeded(
            "Daily risk limit exceeded",
            {
                "used": round(used, 2),
                "proposed": round(proposed_risk, 2),
                "cap": round(cap, 2),
            },
        )
    if proposed_risk > settings.current_bankroll:
        raise InsufficientBankroll(
            "Insufficient bankroll",
            {
                "proposed": round(proposed_risk, 2),
                "current_bankroll": round(settings.current_bankroll, 2),
            },
        )


def can_place(
    active_bets: Iterable[_Exposure],
    proposed_risk: float,
    settings: _RiskSettings,
    as_of: date,
) -> bool:
    """Boolean form of :func:`check_can_place`."""
    try:
        check_can_place(active_bets, proposed_risk, settings, as_of)
    except (DailyRiskExceeded, InsufficientBankroll):
        return False
    return True
