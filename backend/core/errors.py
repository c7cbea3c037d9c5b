"""
Bankroll exception hierarchy.

Every ledger operation validates its inputs completely before touching
state, then raises one of these if something is wrong.  Callers tell the
failure kinds apart by class, not by message.

Exception classes:
- BankrollError: base class
- InvalidUnits / InvalidOdds / InvalidSetting / InvalidOutcome: bad input
- InsufficientBankroll / DailyRiskExceeded: risk policy rejections
- BetNotFound / PredictionNotFound: unknown identifiers
- PersistenceError: the key/value store failed to read or write
"""

from typing import Optional


class BankrollError(Exception):
    """Base exception for bankroll, pick history and reconciliation errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class InvalidUnits(BankrollError):
    """Bet size in units must be strictly positive."""


class InvalidOdds(BankrollError):
    """American odds of zero have no payout definition."""


class InvalidSetting(BankrollError):
    """A bankroll setting is outside its allowed range."""


class InvalidOutcome(BankrollError):
    """Outcome label is not one of win/loss/push (or W/L/P)."""


class InsufficientBankroll(BankrollError):
    """Proposed risk exceeds the current bankroll."""


class DailyRiskExceeded(BankrollError):
    """Proposed risk would push same-day exposure over the daily cap."""


class BetNotFound(BankrollError):
    """No active bet carries the requested id."""


class PredictionNotFound(BankrollError):
    """No prediction on the current slate carries the requested game id."""


class PersistenceError(BankrollError):
    """Reading from or writing to the key/value store failed."""
