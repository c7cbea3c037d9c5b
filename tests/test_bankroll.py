"""
Tests for the Bet Ledger: placement, settlement, settings and persistence
Run with: pytest tests/test_bankroll.py -v
"""

import json
from datetime import datetime, timedelta

import pytest

from backend.core.errors import (
    BankrollError,
    BetNotFound,
    DailyRiskExceeded,
    InvalidOdds,
    InvalidOutcome,
    InvalidSetting,
    InvalidUnits,
    PersistenceError,
)
from backend.services.bankroll import (
    LEGACY_ACTIVE_KEY,
    LEGACY_HISTORY_KEY,
    LEGACY_SETTINGS_KEY,
    STATE_KEY,
    BankrollLedger,
    BankrollSettings,
)
from backend.services.storage import InMemoryStore


class _Clock:
    def __init__(self, start=None):
        self.now = start or datetime(2025, 1, 15, 12, 0).astimezone()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class _FailingStore(InMemoryStore):
    """Accepts writes until ``fail`` is set."""

    def __init__(self):
        super().__init__()
        self.fail = False

    def set(self, key, value):
        if self.fail:
            raise PersistenceError("disk full")
        super().set(key, value)


def _game(home="Lakers", away="Celtics", game_id="g1"):
    return {"id": game_id, "homeTeam": home, "awayTeam": away}


def _ledger(store=None, clock=None):
    return BankrollLedger(store if store is not None else InMemoryStore(), clock=clock or _Clock())


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

def test_default_settings():
    s = _ledger().settings
    assert s.starting_bankroll == 1000.0
    assert s.current_bankroll == 1000.0
    assert s.unit_percentage == 1.0
    assert s.max_daily_risk == 5.0
    assert s.peak_bankroll == 1000.0
    assert s.total_profit == 0.0


def test_starting_bankroll_from_env(monkeypatch):
    monkeypatch.setenv("STARTING_BANKROLL", "2500")
    s = _ledger().settings
    assert s.current_bankroll == 2500.0
    assert s.peak_bankroll == 2500.0


def test_settings_merge_over_defaults():
    s = BankrollSettings.from_dict({"currentBankroll": 750, "bogus": 1})
    assert s.current_bankroll == 750.0
    assert s.starting_bankroll == 1000.0
    assert s.unit_percentage == 1.0


def test_settings_property_is_a_copy():
    ledger = _ledger()
    ledger.settings.current_bankroll = 5.0
    assert ledger.settings.current_bankroll == 1000.0


# ---------------------------------------------------------------------------
# Worked scenarios
# ---------------------------------------------------------------------------

class TestScenarios:

    def test_a_place_and_win(self):
        ledger = _ledger()
        assert ledger.unit_size == pytest.approx(10.0)

        bet = ledger.place_bet(_game(), units=2, odds=-110)
        assert bet.risk_amount == pytest.approx(20.0)
        assert bet.potential_win == pytest.approx(18.1818, abs=1e-4)
        assert bet.result == "pending"

        ledger.resolve_bet(bet.id, "win")
        s = ledger.settings
        assert s.current_bankroll == pytest.approx(1018.18, abs=0.01)
        assert s.total_profit == pytest.approx(18.18, abs=0.01)
        assert s.peak_bankroll == pytest.approx(1018.18, abs=0.01)

    def test_b_place_and_lose(self):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=2, odds=-110)
        ledger.resolve_bet(bet.id, "loss")
        s = ledger.settings
        assert s.current_bankroll == pytest.approx(980.0)
        assert s.total_profit == pytest.approx(-20.0)
        assert s.peak_bankroll == pytest.approx(1000.0)
        assert ledger.max_drawdown() == pytest.approx(20.0)

    def test_c_daily_risk_exceeded(self):
        ledger = _ledger()
        ledger.place_bet(_game(), units=3, odds=-110)
        with pytest.raises(DailyRiskExceeded):
            ledger.place_bet(_game("Heat", "Knicks", "g2"), units=2.5, odds=-110)
        assert len(ledger.active_bets) == 1

    def test_e_settings_rebase_keeps_profit(self):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=2, odds=-110)
        ledger.resolve_bet(bet.id, "win")

        s = ledger.update_settings(500, 1, 5)
        assert s.starting_bankroll == 500
        assert s.current_bankroll == pytest.approx(518.18, abs=0.01)
        assert s.peak_bankroll == pytest.approx(1018.18, abs=0.01)


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------

class TestPlaceBet:

    @pytest.mark.parametrize("units", [0, -1, -0.5])
    def test_rejects_non_positive_units(self, units):
        ledger = _ledger()
        with pytest.raises(InvalidUnits):
            ledger.place_bet(_game(), units=units, odds=-110)
        assert ledger.active_bets == []

    @pytest.mark.parametrize("odds", [float("nan"), float("inf"), float("-inf")])
    def test_rejects_non_finite_odds(self, odds):
        ledger = _ledger()
        with pytest.raises(InvalidOdds):
            ledger.place_bet(_game(), units=1, odds=odds)
        assert ledger.active_bets == []
        assert ledger.settings.current_bankroll == 1000.0

    def test_rejects_zero_odds(self):
        ledger = _ledger()
        with pytest.raises(InvalidOdds):
            ledger.place_bet(_game(), units=1, odds=0)
        assert ledger.active_bets == []

    def test_requires_teams(self):
        with pytest.raises(BankrollError):
            _ledger().place_bet({"id": "x", "homeTeam": "Lakers"}, units=1, odds=-110)

    def test_underdog_payout(self):
        bet = _ledger().place_bet(_game(), units=1, odds=150)
        assert bet.potential_win == pytest.approx(15.0)

    def test_daily_risk_resets_next_day(self):
        clock = _Clock()
        ledger = _ledger(clock=clock)
        ledger.place_bet(_game(), units=5, odds=-110)
        assert ledger.daily_risk_remaining() == pytest.approx(0.0)

        clock.advance(days=1)
        assert ledger.daily_risk_used() == 0
        ledger.place_bet(_game("Heat", "Knicks", "g2"), units=5, odds=-110)
        assert len(ledger.active_bets) == 2

    def test_ids_strictly_increase(self):
        ledger = _ledger()
        ids = [
            int(ledger.place_bet(_game(game_id=f"g{i}"), units=0.5, odds=-110).id)
            for i in range(5)
        ]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    def test_prediction_link_is_stored(self):
        bet = _ledger().place_bet(_game(), units=1, odds=-110, prediction_id=42)
        assert bet.prediction_id == "42"
        assert bet.to_dict()["predictionId"] == "42"

    def test_unit_size_tracks_current_bankroll(self):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=2, odds=-110)
        ledger.resolve_bet(bet.id, "loss")
        assert ledger.unit_size == pytest.approx(9.8)


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------

class TestResolveBet:

    def test_push_changes_nothing(self):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=2, odds=-110)
        settled = ledger.resolve_bet(bet.id, "push")
        s = ledger.settings
        assert settled.result == "push"
        assert s.current_bankroll == 1000.0
        assert s.total_profit == 0.0
        assert s.total_risked == 0.0

    def test_moves_bet_to_history(self):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=1, odds=-110)
        settled = ledger.resolve_bet(bet.id, "win")
        assert ledger.active_bets == []
        assert [b.id for b in ledger.history()] == [bet.id]
        assert settled.resolved_date is not None

    def test_unknown_id(self):
        with pytest.raises(BetNotFound):
            _ledger().resolve_bet("123", "win")

    def test_cannot_resolve_twice(self):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=1, odds=-110)
        ledger.resolve_bet(bet.id, "win")
        with pytest.raises(BetNotFound):
            ledger.resolve_bet(bet.id, "loss")
        assert ledger.settings.current_bankroll == pytest.approx(1009.09, abs=0.01)

    @pytest.mark.parametrize("outcome", ["W", "pending", "WIN", ""])
    def test_rejects_unknown_outcome(self, outcome):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=1, odds=-110)
        with pytest.raises(InvalidOutcome):
            ledger.resolve_bet(bet.id, outcome)
        assert len(ledger.active_bets) == 1

    def test_roi_over_win_and_loss(self):
        ledger = _ledger()
        bet = ledger.place_bet(_game(), units=2, odds=-110)
        ledger.resolve_bet(bet.id, "win")
        assert ledger.roi == pytest.approx(18.1818 / 20 * 100, abs=1e-3)

    def test_history_filter(self):
        ledger = _ledger()
        a = ledger.place_bet(_game(game_id="a"), units=1, odds=-110)
        b = ledger.place_bet(_game(game_id="b"), units=1, odds=-110)
        ledger.resolve_bet(a.id, "win")
        ledger.resolve_bet(b.id, "loss")
        assert [x.id for x in ledger.history("win")] == [a.id]
        assert len(ledger.history("all")) == 2

    def test_negative_bankroll_is_not_clamped(self, caplog):
        clock = _Clock()
        ledger = _ledger(clock=clock)
        ledger.update_settings(100, 10, 50)
        bets = []
        for day in range(3):
            bets.append(ledger.place_bet(_game(game_id=f"g{day}"), units=5, odds=-110))
            clock.advance(days=1)
        for bet in bets:
            ledger.resolve_bet(bet.id, "loss")

        assert ledger.settings.current_bankroll == pytest.approx(-50.0)
        assert ledger.snapshot()["is_negative"] is True
        assert "negative" in caplog.text


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------

class TestInvariants:

    def test_peak_never_decreases(self):
        clock = _Clock()
        ledger = _ledger(clock=clock)
        peaks = [ledger.settings.peak_bankroll]
        for i, outcome in enumerate(["win", "loss", "loss", "win", "push", "win", "loss"]):
            bet = ledger.place_bet(_game(game_id=str(i)), units=1, odds=-110)
            ledger.resolve_bet(bet.id, outcome)
            peaks.append(ledger.settings.peak_bankroll)
            clock.advance(hours=1)
        ledger.update_settings(200, 1, 5)
        peaks.append(ledger.settings.peak_bankroll)
        assert peaks == sorted(peaks)

    def test_active_and_history_disjoint(self):
        ledger = _ledger()
        bets = [ledger.place_bet(_game(game_id=str(i)), units=1, odds=-110) for i in range(4)]
        ledger.resolve_bet(bets[1].id, "win")
        ledger.resolve_bet(bets[3].id, "push")
        active = {b.id for b in ledger.active_bets}
        settled = {b.id for b in ledger.history()}
        assert active.isdisjoint(settled)
        assert len(active) + len(settled) == 4

    def test_total_profit_independent_of_order(self):
        outcomes = ["win", "loss", "push", "win"]

        def run(order):
            ledger = _ledger()
            bets = [
                ledger.place_bet(_game(game_id=str(i)), units=1, odds=odds, prediction_id=i)
                for i, odds in enumerate([-110, 150, -200, 120])
            ]
            for i in order:
                ledger.resolve_bet(bets[i].id, outcomes[i])
            return ledger

        forward = run([0, 1, 2, 3])
        backward = run([3, 2, 1, 0])
        expected = sum(b.profit for b in forward.history())

        assert forward.settings.total_profit == pytest.approx(expected)
        assert backward.settings.total_profit == pytest.approx(expected)
        assert forward.settings.current_bankroll == pytest.approx(backward.settings.current_bankroll)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("starting, unit_pct, daily", [
    (99, 1, 5),
    (1000, 0.05, 5),
    (1000, 11, 5),
    (1000, 1, 0.5),
    (1000, 1, 51),
])
def test_update_settings_rejects_out_of_range(starting, unit_pct, daily):
    ledger = _ledger()
    with pytest.raises(InvalidSetting):
        ledger.update_settings(starting, unit_pct, daily)
    assert ledger.settings == BankrollSettings.defaults()


def test_update_settings_never_lowers_peak():
    ledger = _ledger()
    ledger.update_settings(5000, 2, 10)
    assert ledger.settings.peak_bankroll == 5000
    ledger.update_settings(1000, 2, 10)
    assert ledger.settings.peak_bankroll == 5000
    assert ledger.settings.current_bankroll == 1000


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class TestPersistence:

    def test_round_trip(self):
        store = InMemoryStore()
        ledger = _ledger(store)
        won = ledger.place_bet(_game(game_id="a"), units=2, odds=-110)
        pending = ledger.place_bet(_game(game_id="b"), units=1, odds=130)
        ledger.resolve_bet(won.id, "win")

        reloaded = _ledger(store)
        assert reloaded.settings == ledger.settings
        assert [b.id for b in reloaded.active_bets] == [pending.id]
        assert [b.to_dict() for b in reloaded.history()] == [b.to_dict() for b in ledger.history()]

    def test_single_envelope_key(self):
        store = InMemoryStore()
        _ledger(store).place_bet(_game(), units=1, odds=-110)
        assert store.keys() == [STATE_KEY]
        envelope = json.loads(store.get(STATE_KEY))
        assert set(envelope) == {"version", "settings", "activeBets", "bettingHistory"}

    def test_new_ids_continue_after_reload(self):
        store = InMemoryStore()
        first = _ledger(store).place_bet(_game(game_id="a"), units=1, odds=-110)
        second = _ledger(store).place_bet(_game(game_id="b"), units=1, odds=-110)
        assert int(second.id) > int(first.id)

    def test_legacy_keys_migrated(self):
        store = InMemoryStore({
            LEGACY_SETTINGS_KEY: json.dumps({"startingBankroll": 500, "currentBankroll": 480}),
            LEGACY_ACTIVE_KEY: json.dumps([{
                "id": "1700000000000", "game": _game(), "units": 1, "odds": -110,
                "riskAmount": 4.8, "potentialWin": 4.36, "result": "pending",
                "date": "2025-01-14T20:00:00+00:00",
            }]),
            LEGACY_HISTORY_KEY: json.dumps([]),
        })
        ledger = _ledger(store)

        assert ledger.settings.current_bankroll == 480
        assert ledger.settings.unit_percentage == 1.0
        assert [b.id for b in ledger.active_bets] == ["1700000000000"]
        assert store.keys() == [STATE_KEY]

    def test_corrupt_envelope_falls_back_to_defaults(self):
        store = InMemoryStore({STATE_KEY: "{not json"})
        assert _ledger(store).settings == BankrollSettings.defaults()

    def test_failed_write_leaves_state_unchanged(self):
        store = _FailingStore()
        ledger = _ledger(store)
        bet = ledger.place_bet(_game(), units=2, odds=-110)
        before = store.get(STATE_KEY)

        store.fail = True
        with pytest.raises(PersistenceError):
            ledger.resolve_bet(bet.id, "win")
        with pytest.raises(PersistenceError):
            ledger.place_bet(_game(game_id="b"), units=1, odds=-110)

        assert ledger.settings.current_bankroll == 1000.0
        assert [b.id for b in ledger.active_bets] == [bet.id]
        assert ledger.history() == []
        assert store.get(STATE_KEY) == before


# ---------------------------------------------------------------------------
# Reset / export / restore
# ---------------------------------------------------------------------------

class TestExportRestore:

    def test_reset(self):
        store = InMemoryStore()
        ledger = _ledger(store)
        bet = ledger.place_bet(_game(), units=1, odds=-110)
        ledger.resolve_bet(bet.id, "win")
        ledger.reset()

        assert ledger.settings == BankrollSettings.defaults()
        assert ledger.active_bets == [] and ledger.history() == []
        assert store.keys() == [STATE_KEY]
        assert _ledger(store).settings == BankrollSettings.defaults()

    def test_reset_clears_legacy_keys(self):
        store = InMemoryStore({LEGACY_SETTINGS_KEY: json.dumps({"currentBankroll": 480})})
        ledger = _ledger(store)
        store.set(LEGACY_ACTIVE_KEY, "[]")
        ledger.reset()
        assert store.keys() == [STATE_KEY]

    def test_reset_with_failing_legacy_delete_keeps_memory_and_store_aligned(self):
        class _StuckDelete(InMemoryStore):
            def delete(self, key):
                if key == LEGACY_HISTORY_KEY:
                    raise PersistenceError("locked")
                super().delete(key)

        store = _StuckDelete()
        ledger = _ledger(store)
        bet = ledger.place_bet(_game(), units=1, odds=-110)
        ledger.resolve_bet(bet.id, "win")

        with pytest.raises(PersistenceError):
            ledger.reset()

        assert ledger.settings == BankrollSettings.defaults()
        assert ledger.history() == []
        assert _ledger(store).settings == ledger.settings
        assert _ledger(store).history() == []

    def test_export_shape(self):
        ledger = _ledger()
        ledger.place_bet(_game(), units=1, odds=-110)
        data = ledger.export_data()
        assert set(data) == {"settings", "bettingHistory", "activeBets", "exportDate"}
        assert len(data["activeBets"]) == 1

    def test_restore_round_trip(self):
        source = _ledger()
        a = source.place_bet(_game(game_id="a"), units=2, odds=-110)
        source.place_bet(_game(game_id="b"), units=1, odds=-110)
        source.resolve_bet(a.id, "loss")

        target = _ledger()
        assert target.restore(source.export_data()) == (1, 1)
        assert target.settings == source.settings

    def test_restore_rejects_duplicate_ids(self):
        source = _ledger()
        source.place_bet(_game(), units=1, odds=-110)
        data = source.export_data()
        settled = dict(data["activeBets"][0], result="win")
        data["bettingHistory"] = [settled]

        target = _ledger()
        with pytest.raises(BankrollError):
            target.restore(data)
        assert target.active_bets == []

    def test_restore_rejects_settled_active_bet(self):
        data = _ledger().export_data()
        data["activeBets"] = [{
            "id": "1", "game": _game(), "units": 1, "odds": -110,
            "riskAmount": 10, "potentialWin": 9.09, "result": "win", "date": "",
        }]
        with pytest.raises(BankrollError):
            _ledger().restore(data)

    def test_restore_rejects_malformed(self):
        with pytest.raises(BankrollError):
            _ledger().restore({"activeBets": [{"id": "1"}]})

    @pytest.mark.parametrize("settings", [
        {"startingBankroll": -5},
        {"startingBankroll": 50},
        {"unitPercentage": 500},
        {"unitPercentage": 0},
        {"maxDailyRisk": 400},
        {"maxDailyRisk": 0.5},
        {"currentBankroll": 2000, "peakBankroll": 10},
        {"currentBankroll": float("nan")},
        {"totalProfit": float("inf")},
    ])
    def test_restore_rejects_invalid_settings(self, settings):
        source = _ledger()
        source.place_bet(_game(), units=1, odds=-110)
        data = source.export_data()
        data["settings"] = dict(data["settings"], **settings)

        target = _ledger()
        with pytest.raises(InvalidSetting):
            target.restore(data)
        assert target.settings == BankrollSettings.defaults()
        assert target.active_bets == []

    def test_restore_accepts_peak_below_starting(self):
        # Raising the starting bankroll after a loss leaves peak under starting.
        source = _ledger()
        bet = source.place_bet(_game(), units=5, odds=-110)
        source.resolve_bet(bet.id, "loss")
        source.update_settings(2000, 1, 5)
        assert source.settings.peak_bankroll < source.settings.starting_bankroll

        target = _ledger()
        assert target.restore(source.export_data()) == (0, 1)
        assert target.settings == source.settings

    @pytest.mark.parametrize("field, value", [
        ("odds", float("nan")),
        ("odds", 0),
        ("riskAmount", float("inf")),
        ("potentialWin", float("nan")),
    ])
    def test_restore_rejects_bad_bet_amounts(self, field, value):
        source = _ledger()
        source.place_bet(_game(), units=1, odds=-110)
        data = source.export_data()
        data["activeBets"][0][field] = value
        with pytest.raises(BankrollError):
            _ledger().restore(data)


def test_snapshot_fields():
    ledger = _ledger()
    ledger.place_bet(_game(), units=2, odds=-110)
    snap = ledger.snapshot()
    assert snap["unit_size"] == 10.0
    assert snap["daily_risk_used"] == 20.0
    assert snap["daily_risk_cap"] == 50.0
    assert snap["active_bets"] == 1
    assert snap["settled_bets"] == 0
    assert snap["is_negative"] is False
