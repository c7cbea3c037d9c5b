"""
Bet Ledger: simulated bankroll, placed bets and their settlement.

The ledger is the authoritative record of staked bets.  A bet is created
``pending`` by :meth:`BankrollLedger.place_bet`, transitions exactly once to
``win``/``loss``/``push`` via :meth:`BankrollLedger.resolve_bet`, and then
moves from the active set to history where it is never touched again.

Persistence
-----------
Settings, active bets and history are committed together as one JSON
envelope under ``bankrollState``: every logical operation is a single
key/value write, so a crash can never leave the bankroll updated while the
bet is still active.  Stores written by the three-key layout
(``bankrollSettings`` / ``activeBets`` / ``bettingHistory``) are migrated
into the envelope the first time they are loaded.

Every operation builds the new state on copies, writes it, and only then
swaps it in.  A validation error or a failed write leaves the ledger
exactly as it was.

Negative bankroll
-----------------
Losses are booked without clamping: a loss larger than the current
bankroll drives it below zero.  This mirrors a real drawdown and is kept on
purpose; a warning is logged when it happens.
"""

import logging
import math
import os
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from backend.core.errors import (
    BankrollError,
    BetNotFound,
    InvalidOutcome,
    InvalidSetting,
    InvalidUnits,
)
from backend.core.odds_math import potential_win
from backend.core.risk_policy import (
    check_can_place,
    daily_risk_used,
    max_daily_risk_amount,
    unit_size,
)
from backend.services.storage import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)

STATE_KEY = "bankrollState"
LEGACY_SETTINGS_KEY = "bankrollSettings"
LEGACY_HISTORY_KEY = "bettingHistory"
LEGACY_ACTIVE_KEY = "activeBets"
ENVELOPE_VERSION = 1

BET_OUTCOMES = ("win", "loss", "push")

# Validation ranges for update_settings
MIN_STARTING_BANKROLL = 100.0
UNIT_PERCENTAGE_RANGE = (0.1, 10.0)
MAX_DAILY_RISK_RANGE = (1.0, 50.0)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _validate_settings(
    starting_bankroll: float, unit_percentage: float, max_daily_risk: float
) -> None:
    """Raise InvalidSetting unless all three values are in their allowed ranges."""
    if not starting_bankroll >= MIN_STARTING_BANKROLL or not math.isfinite(starting_bankroll):
        raise InvalidSetting(
            f"Starting bankroll must be at least ${MIN_STARTING_BANKROLL:.0f}",
            {"starting_bankroll": starting_bankroll},
        )
    lo, hi = UNIT_PERCENTAGE_RANGE
    if not lo <= unit_percentage <= hi:
        raise InvalidSetting(
            f"Unit percentage must be between {lo}% and {hi:.0f}%",
            {"unit_percentage": unit_percentage},
        )
    lo, hi = MAX_DAILY_RISK_RANGE
    if not lo <= max_daily_risk <= hi:
        raise InvalidSetting(
            f"Max daily risk must be between {lo:.0f}% and {hi:.0f}%",
            {"max_daily_risk": max_daily_risk},
        )


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class BankrollSettings:
    """Bankroll configuration and running totals (one per ledger)."""

    starting_bankroll: float = 1000.0
    current_bankroll: float = 1000.0
    unit_percentage: float = 1.0
    max_daily_risk: float = 5.0
    peak_bankroll: float = 1000.0
    total_risked: float = 0.0
    total_profit: float = 0.0

    _FIELDS = (
        ("startingBankroll", "starting_bankroll"),
        ("currentBankroll", "current_bankroll"),
        ("unitPercentage", "unit_percentage"),
        ("maxDailyRisk", "max_daily_risk"),
        ("peakBankroll", "peak_bankroll"),
        ("totalRisked", "total_risked"),
        ("totalProfit", "total_profit"),
    )

    @classmethod
    def defaults(cls) -> "BankrollSettings":
        starting = float(os.getenv("STARTING_BANKROLL", "1000"))
        return cls(
            starting_bankroll=starting,
            current_bankroll=starting,
            peak_bankroll=starting,
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BankrollSettings":
        """Merge a stored settings object over the defaults.

        Missing keys fall back to defaults; unknown keys are ignored.
        """
        settings = cls.defaults()
        for json_key, attr in cls._FIELDS:
            if data and data.get(json_key) is not None:
                setattr(settings, attr, float(data[json_key]))
        return settings

    def to_dict(self) -> Dict[str, float]:
        return {json_key: getattr(self, attr) for json_key, attr in self._FIELDS}


@dataclass
class PlacedBet:
    """A staked bet.  ``game`` keeps the selected game record as given."""

    id: str
    game: Dict[str, Any]
    units: float
    odds: float
    risk_amount: float
    potential_win: float
    result: str = "pending"
    date: str = ""
    resolved_date: Optional[str] = None
    prediction_id: Optional[str] = None

    @property
    def home_team(self) -> str:
        return self.game.get("homeTeam", "")

    @property
    def away_team(self) -> str:
        return self.game.get("awayTeam", "")

    @property
    def matchup(self) -> str:
        return f"{self.away_team} @ {self.home_team}"

    @property
    def is_pending(self) -> bool:
        return self.result == "pending"

    @property
    def profit(self) -> float:
        """Signed bankroll delta this bet produced (0 while pending)."""
        if self.result == "win":
            return self.potential_win
        if self.result == "loss":
            return -self.risk_amount
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "game": dict(self.game),
            "units": self.units,
            "odds": self.odds,
            "riskAmount": self.risk_amount,
            "potentialWin": self.potential_win,
            "result": self.result,
            "date": self.date,
        }
        if self.resolved_date is not None:
            data["resolvedDate"] = self.resolved_date
        if self.prediction_id is not None:
            data["predictionId"] = self.prediction_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlacedBet":
        prediction_id = data.get("predictionId")
        return cls(
            id=str(data["id"]),
            game=dict(data.get("game") or {}),
            units=float(data["units"]),
            odds=float(data["odds"]),
            risk_amount=float(data["riskAmount"]),
            potential_win=float(data["potentialWin"]),
            result=data.get("result", "pending"),
            date=data.get("date", ""),
            resolved_date=data.get("resolvedDate"),
            prediction_id=str(prediction_id) if prediction_id is not None else None,
        )


@dataclass
class _LedgerState:
    settings: BankrollSettings
    active: List[PlacedBet] = field(default_factory=list)
    history: List[PlacedBet] = field(default_factory=list)

    def to_envelope(self) -> Dict[str, Any]:
        return {
            "version": ENVELOPE_VERSION,
            "settings": self.settings.to_dict(),
            "activeBets": [b.to_dict() for b in self.active],
            "bettingHistory": [b.to_dict() for b in self.history],
        }


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class BankrollLedger:
    """
    Owns bankroll settings plus the active and settled bet collections.

    Construct one per session context and pass it around; there is no
    module-level instance.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or _local_now
        self._state = self._load()
        self._last_id = max(
            (int(b.id) for b in self._state.active + self._state.history if b.id.isdigit()),
            default=0,
        )

    # ------------------------------------------------------------------
    # Loading / committing
    # ------------------------------------------------------------------

    def _load(self) -> _LedgerState:
        envelope = load_json(self._store, STATE_KEY, None)
        if isinstance(envelope, dict):
            return self._state_from_payload(
                envelope.get("settings"),
                envelope.get("activeBets") or [],
                envelope.get("bettingHistory") or [],
            )

        legacy_settings = load_json(self._store, LEGACY_SETTINGS_KEY, None)
        legacy_active = load_json(self._store, LEGACY_ACTIVE_KEY, None)
        legacy_history = load_json(self._store, LEGACY_HISTORY_KEY, None)
        if legacy_settings is None and legacy_active is None and legacy_history is None:
            return _LedgerState(settings=BankrollSettings.defaults())

        state = self._state_from_payload(
            legacy_settings, legacy_active or [], legacy_history or []
        )
        save_json(self._store, STATE_KEY, state.to_envelope())
        for key in (LEGACY_SETTINGS_KEY, LEGACY_ACTIVE_KEY, LEGACY_HISTORY_KEY):
            self._store.delete(key)
        logger.info(
            "Migrated legacy bankroll keys: %d active, %d settled bets",
            len(state.active), len(state.history),
        )
        return state

    @staticmethod
    def _state_from_payload(settings, active, history) -> _LedgerState:
        return _LedgerState(
            settings=BankrollSettings.from_dict(settings),
            active=[PlacedBet.from_dict(b) for b in active],
            history=[PlacedBet.from_dict(b) for b in history],
        )

    def _commit(self, state: _LedgerState) -> None:
        """Write the whole ledger in one ``set``, then adopt it in memory."""
        save_json(self._store, STATE_KEY, state.to_envelope())
        self._state = state

    def _next_id(self) -> str:
        """Millisecond timestamp, bumped if needed so ids strictly increase."""
        candidate = max(int(time.time() * 1000), self._last_id + 1)
        self._last_id = candidate
        return str(candidate)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def settings(self) -> BankrollSettings:
        return replace(self._state.settings)

    @property
    def active_bets(self) -> List[PlacedBet]:
        return list(self._state.active)

    def history(self, result: Optional[str] = None) -> List[PlacedBet]:
        """Settled bets in settlement order, optionally filtered by result."""
        if result in (None, "all"):
            return list(self._state.history)
        return [b for b in self._state.history if b.result == result]

    @property
    def unit_size(self) -> float:
        s = self._state.settings
        return unit_size(s.current_bankroll, s.unit_percentage)

    def max_drawdown(self) -> float:
        s = self._state.settings
        return s.peak_bankroll - min(s.current_bankroll, s.peak_bankroll)

    @property
    def bankroll_change(self) -> float:
        s = self._state.settings
        return s.current_bankroll - s.starting_bankroll

    @property
    def bankroll_change_pct(self) -> float:
        s = self._state.settings
        if s.starting_bankroll == 0:
            return 0.0
        return self.bankroll_change / s.starting_bankroll * 100.0

    @property
    def profit_pct(self) -> float:
        s = self._state.settings
        if s.starting_bankroll == 0:
            return 0.0
        return s.total_profit / s.starting_bankroll * 100.0

    @property
    def roi(self) -> float:
        """Stake-based ROI (%) over bets settled as win or loss."""
        s = self._state.settings
        return s.total_profit / s.total_risked * 100.0 if s.total_risked > 0 else 0.0

    def daily_risk_used(self) -> float:
        return daily_risk_used(self._state.active, self._clock().astimezone().date())

    def daily_risk_remaining(self) -> float:
        return max_daily_risk_amount(self._state.settings) - self.daily_risk_used()

    def find_active(self, bet_id: str) -> Optional[PlacedBet]:
        return next((b for b in self._state.active if b.id == str(bet_id)), None)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def place_bet(
        self,
        game: Dict[str, Any],
        units: float,
        odds: float,
        prediction_id: Optional[str] = None,
    ) -> PlacedBet:
        """
        Stake ``units`` on ``game`` at American ``odds``.

        Raises InvalidUnits, InvalidOdds, DailyRiskExceeded or
        InsufficientBankroll without changing anything.
        """
        if not game or not game.get("homeTeam") or not game.get("awayTeam"):
            raise BankrollError("A game with homeTeam and awayTeam is required")
        if not units > 0:
            raise InvalidUnits("Units must be greater than zero", {"units": units})

        state = self._state
        risk = units * unit_size(
            state.settings.current_bankroll, state.settings.unit_percentage
        )
        to_win = potential_win(risk, odds)

        now = self._clock()
        check_can_place(state.active, risk, state.settings, now.astimezone().date())

        bet = PlacedBet(
            id=self._next_id(),
            game=dict(game),
            units=units,
            odds=odds,
            risk_amount=risk,
            potential_win=to_win,
            result="pending",
            date=now.isoformat(),
            prediction_id=str(prediction_id) if prediction_id is not None else None,
        )
        self._commit(_LedgerState(
            settings=replace(state.settings),
            active=state.active + [bet],
            history=list(state.history),
        ))
        logger.info(
            "Bet placed: %s | %s units @ %s | risk $%.2f to win $%.2f",
            bet.matchup, units, odds, risk, to_win,
        )
        return bet

    def resolve_bet(self, bet_id: str, outcome: str) -> PlacedBet:
        """
        Settle an active bet and move it to history.

        Win credits ``potentialWin``, loss debits ``riskAmount``, push leaves
        the bankroll alone.  Peak bankroll is raised when exceeded.
        """
        if outcome not in BET_OUTCOMES:
            raise InvalidOutcome(
                f"Outcome must be one of {', '.join(BET_OUTCOMES)}", {"outcome": outcome}
            )
        state = self._state
        bet = self.find_active(bet_id)
        if bet is None:
            raise BetNotFound(f"No active bet with id {bet_id}", {"bet_id": bet_id})

        settings = replace(state.settings)
        settled = replace(bet, result=outcome, resolved_date=self._clock().isoformat())

        if outcome == "win":
            settings.current_bankroll += settled.potential_win
            settings.total_profit += settled.potential_win
        elif outcome == "loss":
            settings.current_bankroll -= settled.risk_amount
            settings.total_profit -= settled.risk_amount
        if outcome != "push":
            settings.total_risked += settled.risk_amount

        if settings.current_bankroll > settings.peak_bankroll:
            settings.peak_bankroll = settings.current_bankroll

        self._commit(_LedgerState(
            settings=settings,
            active=[b for b in state.active if b.id != settled.id],
            history=state.history + [settled],
        ))

        logger.info(
            "%s: bet %s (%s) | P&L $%.2f | bankroll $%.2f",
            outcome.upper(), settled.id, settled.matchup,
            settled.profit, settings.current_bankroll,
        )
        if settings.current_bankroll < 0:
            logger.warning(
                "Bankroll is negative ($%.2f) after settling bet %s",
                settings.current_bankroll, settled.id,
            )
        return settled

    def update_settings(
        self,
        starting_bankroll: float,
        unit_percentage: float,
        max_daily_risk: float,
    ) -> BankrollSettings:
        """
        Change bankroll settings.

        The current bankroll is re-based as ``starting + totalProfit``, so
        accumulated results survive a change of starting bankroll.
        """
        _validate_settings(starting_bankroll, unit_percentage, max_daily_risk)

        state = self._state
        settings = replace(
            state.settings,
            starting_bankroll=starting_bankroll,
            current_bankroll=starting_bankroll + state.settings.total_profit,
            unit_percentage=unit_percentage,
            max_daily_risk=max_daily_risk,
        )
        settings.peak_bankroll = max(settings.peak_bankroll, settings.current_bankroll)

        self._commit(_LedgerState(
            settings=settings,
            active=list(state.active),
            history=list(state.history),
        ))
        logger.info(
            "Settings updated: start $%.2f, unit %.2f%%, max daily risk %.1f%% -> bankroll $%.2f",
            starting_bankroll, unit_percentage, max_daily_risk, settings.current_bankroll,
        )
        return replace(settings)

    def reset(self) -> None:
        """Replace settings, active bets and history with defaults.  Irreversible."""
        self._commit(_LedgerState(settings=BankrollSettings.defaults()))
        for key in (LEGACY_SETTINGS_KEY, LEGACY_ACTIVE_KEY, LEGACY_HISTORY_KEY):
            self._store.delete(key)
        logger.warning("Bankroll reset: all settings and bets cleared")

    # ------------------------------------------------------------------
    # Export / restore
    # ------------------------------------------------------------------

    def export_data(self) -> Dict[str, Any]:
        """Full ledger dump in the dashboard's export format."""
        return {
            "settings": self._state.settings.to_dict(),
            "bettingHistory": [b.to_dict() for b in self._state.history],
            "activeBets": [b.to_dict() for b in self._state.active],
            "exportDate": self._clock().isoformat(),
        }

    def restore(self, payload: Dict[str, Any]) -> Tuple[int, int]:
        """
        Replace the ledger with a previously exported dump.

        Returns (active_count, settled_count).
        """
        try:
            state = self._state_from_payload(
                payload.get("settings"),
                payload.get("activeBets") or [],
                payload.get("bettingHistory") or [],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise BankrollError("Malformed bankroll export", {"error": str(exc)}) from exc

        s = state.settings
        non_finite = [k for k, v in s.to_dict().items() if not math.isfinite(v)]
        if non_finite:
            raise InvalidSetting("Bankroll settings must be finite numbers", {"fields": non_finite})
        _validate_settings(s.starting_bankroll, s.unit_percentage, s.max_daily_risk)
        if s.peak_bankroll < s.current_bankroll:
            raise InvalidSetting(
                "Peak bankroll cannot be below the current bankroll",
                {"peak_bankroll": s.peak_bankroll, "current_bankroll": s.current_bankroll},
            )
        if any(not b.is_pending for b in state.active):
            raise BankrollError("Active bets must all be pending")
        if any(b.result not in BET_OUTCOMES for b in state.history):
            raise BankrollError("Settled bets must be win, loss or push")
        for b in state.active + state.history:
            amounts = (b.units, b.odds, b.risk_amount, b.potential_win)
            if b.odds == 0 or not all(math.isfinite(v) for v in amounts):
                raise BankrollError("Bet amounts must be finite and odds nonzero", {"bet_id": b.id})
        active_ids = {b.id for b in state.active}
        history_ids = {b.id for b in state.history}
        if (
            active_ids & history_ids
            or len(active_ids) != len(state.active)
            or len(history_ids) != len(state.history)
        ):
            raise BankrollError("Bet ids must be unique across active and settled bets")

        self._commit(state)
        self._last_id = max(
            (int(i) for i in active_ids | history_ids if i.isdigit()),
            default=self._last_id,
        )
        logger.info(
            "Bankroll restored: %d active, %d settled bets", len(state.active), len(state.history)
        )
        return len(state.active), len(state.history)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view for the presentation layer."""
        s = self._state.settings
        return {
            "settings": s.to_dict(),
            "unit_size": round(self.unit_size, 2),
            "bankroll_change": round(self.bankroll_change, 2),
            "bankroll_change_pct": round(self.bankroll_change_pct, 2),
            "profit_pct": round(self.profit_pct, 2),
            "max_drawdown": round(self.max_drawdown(), 2),
            "roi": round(self.roi, 2),
            "daily_risk_used": round(self.daily_risk_used(), 2),
            "daily_risk_cap": round(max_daily_risk_amount(s), 2),
            "active_bets": len(self._state.active),
            "settled_bets": len(self._state.history),
            "is_negative": s.current_bankroll < 0,
        }
