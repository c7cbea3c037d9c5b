"""
Performance analytics computation.

Read-only derivations over Pick History and Bet Ledger history for the
dashboard and the API.  Every function takes plain lists (or the owning
ledger/history object for the summaries) and returns plain dicts/lists, so
it can be called from FastAPI endpoints, Streamlit pages or background jobs
without importing any web-layer code.

Graded picks are scored with the fixed -110 unit convention; ledger bets
use their real dollar amounts.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from backend.core.odds_math import UNIT_STAKE, settle_unit_profit
from backend.core.sport_config import (
    CONFIDENCE_BUCKETS,
    LEAGUES,
    RISK_TIERS,
    league_label,
)
from backend.services.bankroll import BankrollLedger, PlacedBet
from backend.services.pick_history import GradedPick, PickHistory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _safe_roi(profit: float, risked: float) -> float:
    return round(profit / risked * 100.0, 2) if risked > 0 else 0.0


def _win_rate(wins: int, total: int) -> float:
    return round(wins / total, 4) if total > 0 else 0.0


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).astimezone()


def _graded(picks: Iterable[GradedPick]) -> List[GradedPick]:
    return [p for p in picks if p.result]


def _bucket(value: float, buckets) -> str:
    """Label of the first ``(label, lo, hi]`` bucket holding ``value``.

    The first bucket also takes values at or below its lower bound and the
    last one anything above its upper bound.
    """
    for label, _lo, hi in buckets:
        if value <= hi:
            return label
    return buckets[-1][0]


# ---------------------------------------------------------------------------
# Graded pick series
# ---------------------------------------------------------------------------

def cumulative_profit_series(picks: Iterable[GradedPick]) -> List[Dict]:
    """Running unit profit, one point per graded pick, sorted by date."""
    ordered = sorted(_graded(picks), key=lambda p: _ts(p.date))
    series = []
    running = 0.0
    for p in ordered:
        running += settle_unit_profit(p.result)
        series.append({
            "date": p.date,
            "result": p.result,
            "profit": settle_unit_profit(p.result),
            "cumulative": round(running, 2),
        })
    return series


def confidence_distribution(picks: Iterable[GradedPick]) -> Dict[str, int]:
    """Pick counts per confidence bucket: [0, .6], (.6, .7], (.7, 1]."""
    counts = {label: 0 for label, _, _ in CONFIDENCE_BUCKETS}
    for p in picks:
        counts[_bucket(p.conf, CONFIDENCE_BUCKETS)] += 1
    return counts


def risk_distribution(picks: Iterable[GradedPick]) -> Dict[str, int]:
    """Share of picks (rounded %) per risk tier; low confidence is high risk."""
    picks = list(picks)
    counts = {label: 0 for label, _, _ in RISK_TIERS}
    for p in picks:
        counts[_bucket(p.conf, RISK_TIERS)] += 1
    if not picks:
        return counts
    return {label: round(n / len(picks) * 100) for label, n in counts.items()}


def team_accuracy(
    picks: Iterable[GradedPick], min_games: int = 3, limit: int = 5
) -> List[Dict]:
    """
    Accuracy of picks involving each team.

    Every graded pick counts as a game for both teams; a win is credited
    to the picked team only.  Teams with fewer than ``min_games`` are left
    out; the rest are ranked by accuracy, best first.
    """
    stats: Dict[str, Dict[str, int]] = {}
    for p in _graded(picks):
        for team in (p.home, p.away):
            s = stats.setdefault(team, {"wins": 0, "total": 0})
            s["total"] += 1
            if p.result == "W" and p.pick == team:
                s["wins"] += 1

    rows = [
        {
            "team": team,
            "wins": s["wins"],
            "total": s["total"],
            "accuracy": _win_rate(s["wins"], s["total"]),
        }
        for team, s in stats.items()
        if s["total"] >= min_games
    ]
    rows.sort(key=lambda r: r["accuracy"], reverse=True)
    return rows[:limit]


def monthly_results(picks: Iterable[GradedPick]) -> List[Dict]:
    """Net unit profit and record per ``YYYY-MM`` (UTC), oldest month first."""
    months: Dict[str, Dict] = {}
    for p in _graded(picks):
        key = _ts(p.date).astimezone(timezone.utc).strftime("%Y-%m")
        m = months.setdefault(key, {"month": key, "wins": 0, "losses": 0, "pushes": 0, "profit": 0.0})
        if p.result == "W":
            m["wins"] += 1
        elif p.result == "L":
            m["losses"] += 1
        else:
            m["pushes"] += 1
        m["profit"] += settle_unit_profit(p.result)

    for m in months.values():
        m["profit"] = round(m["profit"], 2)
    return [months[k] for k in sorted(months)]


def sport_accuracy(picks: Iterable[GradedPick]) -> Dict[str, Dict]:
    """Record and accuracy per supported league, keyed by display label."""
    graded = _graded(picks)
    result = {}
    for league in LEAGUES:
        grp = [p for p in graded if p.league == league.sport_key]
        wins = sum(1 for p in grp if p.result == "W")
        result[league.label] = {
            "wins": wins,
            "total": len(grp),
            "accuracy": _win_rate(wins, len(grp)),
        }
    return result


def best_sport(picks: Iterable[GradedPick]) -> Optional[str]:
    """League label with the highest accuracy; ``None`` before any grades."""
    by_sport = {k: v for k, v in sport_accuracy(picks).items() if v["total"] > 0}
    if not by_sport:
        return None
    return max(by_sport, key=lambda k: by_sport[k]["accuracy"])


def rolling_win_rate(
    picks: Iterable[GradedPick], window: int = 10, step: int = 5
) -> List[Dict]:
    """
    Win rate over the trailing ``window`` picks, sampled every ``step`` picks.

    Empty until more than ``window`` picks are graded.
    """
    graded = _graded(picks)
    points = []
    for i in range(window, len(graded), step):
        chunk = graded[max(0, i - window + 1): i + 1]
        wins = sum(1 for p in chunk if p.result == "W")
        points.append({"pick": i + 1, "win_rate": _win_rate(wins, len(chunk))})
    return points


# ---------------------------------------------------------------------------
# Ledger series
# ---------------------------------------------------------------------------

def bankroll_series(starting_bankroll: float, history: Iterable[PlacedBet]) -> List[float]:
    """Balance after each settled bet, starting from ``starting_bankroll``."""
    balance = starting_bankroll
    series = [round(balance, 2)]
    for bet in history:
        if bet.is_pending:
            continue
        balance += bet.profit
        series.append(round(balance, 2))
    return series


def calculate_timeline(
    history: Iterable[PlacedBet], days: int = 30, now: Optional[datetime] = None
) -> Dict:
    """
    Daily ledger performance over the last ``days`` days, plus cumulative series.
    """
    now = (now or datetime.now()).astimezone()
    cutoff = now - timedelta(days=days)
    bets = [
        b for b in history
        if not b.is_pending and _ts(b.resolved_date or b.date) >= cutoff
    ]

    if not bets:
        return {"timeline": [], "cumulative_profit": [], "cumulative_roi": []}

    by_date: Dict[str, List[PlacedBet]] = {}
    for b in bets:
        d = _ts(b.resolved_date or b.date).astimezone().date().isoformat()
        by_date.setdefault(d, []).append(b)

    timeline = []
    cumulative_profit = []
    cumulative_roi = []
    cum_pl = 0.0
    cum_risked = 0.0

    for date_str in sorted(by_date):
        day = by_date[date_str]
        day_pl = sum(b.profit for b in day)
        day_risked = sum(b.risk_amount for b in day if b.result != "push")

        cum_pl += day_pl
        cum_risked += day_risked
        cumulative_profit.append(round(cum_pl, 2))
        cumulative_roi.append(_safe_roi(cum_pl, cum_risked))

        timeline.append({
            "date": date_str,
            "bets": len(day),
            "wins": sum(1 for b in day if b.result == "win"),
            "losses": sum(1 for b in day if b.result == "loss"),
            "pushes": sum(1 for b in day if b.result == "push"),
            "roi": _safe_roi(day_pl, day_risked),
            "profit": round(day_pl, 2),
        })

    return {
        "timeline": timeline,
        "cumulative_profit": cumulative_profit,
        "cumulative_roi": cumulative_roi,
    }


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

def pick_summary(history: PickHistory) -> Dict:
    """Headline numbers for the AI picks record."""
    picks = history.picks
    counts = history.record_counts()
    graded = sum(counts.values())
    avg_conf = _mean([p.conf for p in picks])
    return {
        "total_picks": len(picks),
        "graded": graded,
        **counts,
        "accuracy": round(history.accuracy(), 4),
        "roi": round(history.roi(), 2),
        "units_wagered": round(graded * UNIT_STAKE, 2),
        "total_profit_units": round(history.total_profit(), 2),
        "average_confidence": round(avg_conf, 4) if avg_conf is not None else 0.0,
        "best_streak": history.best_streak(),
        "current_streak": history.current_streak(),
        "current_streak_label": history.current_streak_label(),
        "best_sport": best_sport(picks),
    }


def bankroll_summary(ledger: BankrollLedger) -> Dict:
    """Ledger snapshot plus the settled-bet record."""
    settled = ledger.history()
    wins = sum(1 for b in settled if b.result == "win")
    losses = sum(1 for b in settled if b.result == "loss")
    summary = ledger.snapshot()
    summary.update({
        "wins": wins,
        "losses": losses,
        "pushes": len(settled) - wins - losses,
        "win_rate": _win_rate(wins, wins + losses),
    })
    return summary


def calculate_analytics(history: PickHistory) -> Dict:
    """Everything the analytics page draws, in one payload."""
    picks = history.picks
    logger.debug("Computing analytics over %d graded picks", len(picks))
    return {
        "summary": pick_summary(history),
        "cumulative_profit": cumulative_profit_series(picks),
        "confidence_distribution": confidence_distribution(picks),
        "risk_distribution": risk_distribution(picks),
        "team_accuracy": team_accuracy(picks),
        "monthly_results": monthly_results(picks),
        "sport_accuracy": sport_accuracy(picks),
        "rolling_win_rate": rolling_win_rate(picks),
        "leagues": league_breakdown(picks),
    }


def league_breakdown(picks: Iterable[GradedPick]) -> Dict[str, int]:
    """Graded pick counts per league label (``N/A`` when unknown)."""
    counts: Dict[str, int] = {}
    for p in _graded(picks):
        label = league_label(p.league)
        counts[label] = counts.get(label, 0) + 1
    return counts
