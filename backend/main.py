"""
FastAPI application for the AI Picks bankroll tracker
Includes REST API, scheduled prediction refresh, and error mapping
"""

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging
import os

from backend.core.errors import (
    BankrollError,
    BetNotFound,
    PersistenceError,
    PredictionNotFound,
)
from backend.models import init_db
from backend.services.bankroll import STATE_KEY, PlacedBet
from backend.services.performance import (
    bankroll_series,
    bankroll_summary,
    calculate_analytics,
    calculate_timeline,
    pick_summary,
)
from backend.services.predictions import default_source
from backend.services.session import BettingContext
from backend.services.storage import SqlAlchemyStore
from backend.schemas import (
    BetResponse,
    GradedPickResponse,
    PlaceBetRequest,
    RefreshResponse,
    ResolveBetRequest,
    RestoreResponse,
    ScoreRequest,
    ScoreResponse,
    SettingsUpdate,
    TodaysPredictionsResponse,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_NAME = "AI Picks Bankroll"
APP_VERSION = "1.0"

PREDICTION_REFRESH_MIN = int(os.getenv("PREDICTION_REFRESH_MIN", "5"))

router = APIRouter()


def get_context(request: Request) -> BettingContext:
    return request.app.state.context


def _bet_response(bet: Optional[PlacedBet]) -> Optional[BetResponse]:
    return BetResponse(**bet.to_dict()) if bet is not None else None


# ============================================================================
# SCHEDULER
# ============================================================================

def build_scheduler(context: BettingContext) -> BackgroundScheduler:
    """Periodic slate refresh; one run at a time, missed runs collapsed."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        _refresh_predictions_job,
        IntervalTrigger(minutes=PREDICTION_REFRESH_MIN),
        args=[context],
        id="refresh_predictions",
        name="Refresh Prediction Slate",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def _refresh_predictions_job(context: BettingContext):
    """Re-pull today's predictions while the slate is non-empty."""
    try:
        context.scheduled_refresh()
    except Exception as exc:
        logger.error("Prediction refresh job failed: %s", exc, exc_info=True)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@router.get("/")
async def root():
    """Health check"""
    return {
        "app": APP_NAME,
        "version": APP_VERSION,
        "status": "operational",
        "timestamp": datetime.now().astimezone().isoformat(),
    }


@router.get("/health")
def health_check(request: Request, context: BettingContext = Depends(get_context)):
    """Health check endpoint"""
    health = {"status": "healthy", "store": "connected", "scheduler": "disabled"}

    try:
        context.store.get(STATE_KEY)
    except PersistenceError as e:
        logger.error("Health check store error: %s", e)
        health["status"] = "degraded"
        health["store"] = f"error: {e}"

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        health["scheduler"] = "running" if scheduler.running else "stopped"
        if not scheduler.running:
            health["status"] = "degraded"

    return health


# ============================================================================
# PREDICTIONS
# ============================================================================

@router.get("/api/predictions/today", response_model=TodaysPredictionsResponse)
def get_todays_predictions(context: BettingContext = Depends(get_context)):
    """Ungraded predictions on the current slate."""
    slate = context.slate
    return TodaysPredictionsResponse(
        total_games=len(slate),
        last_refresh=context.last_refresh.isoformat() if context.last_refresh else None,
        predictions=[p.to_dict() for p in slate],
    )


@router.post("/api/predictions/refresh", response_model=RefreshResponse)
def refresh_predictions(context: BettingContext = Depends(get_context)):
    """Re-pull the slate now.  A failing source yields an empty slate."""
    total = context.refresh_predictions()
    return RefreshResponse(message="Predictions refreshed", total_games=total)


# ============================================================================
# PICKS
# ============================================================================

@router.post("/api/picks/{game_id}/score", response_model=ScoreResponse)
def score_pick(
    game_id: str,
    payload: ScoreRequest,
    context: BettingContext = Depends(get_context),
):
    """
    Grade a slate prediction W/L/P.

    Any pending bet staked on the same game is settled with the matching
    outcome, and the game leaves the slate.
    """
    graded, settled = context.score_game(game_id, payload.result)
    return ScoreResponse(
        message="Pick graded" + (" and bet settled" if settled else ""),
        pick=GradedPickResponse(**graded.to_dict()),
        settled_bet=_bet_response(settled),
    )


@router.get("/api/picks/history")
def get_pick_history(
    period: Optional[str] = Query(default=None, pattern="^(all|week|month|quarter)$"),
    result: Optional[str] = Query(default=None, pattern="^(all|W|L|P|w|l|p)$"),
    search: Optional[str] = Query(default=None, max_length=120),
    limit: int = Query(default=100, ge=1, le=1000),
    context: BettingContext = Depends(get_context),
):
    """Graded picks, newest first, with optional period/result/team filters."""
    picks = context.history.filter(period=period, result=result, search=search)
    rows = [p.to_dict() for p in reversed(picks)]
    return {"total": len(rows), "picks": rows[:limit]}


@router.get("/api/picks/recent")
def get_recent_picks(
    n: int = Query(default=5, ge=1, le=50),
    context: BettingContext = Depends(get_context),
):
    """Last ``n`` graded picks, newest first."""
    return {"picks": [p.to_dict() for p in context.history.recent(n)]}


@router.get("/api/picks/summary")
def get_pick_summary(context: BettingContext = Depends(get_context)):
    """Accuracy, unit ROI, streaks and record for the AI picks."""
    return pick_summary(context.history)


# ============================================================================
# BANKROLL
# ============================================================================

@router.get("/api/bankroll")
def get_bankroll(context: BettingContext = Depends(get_context)):
    """Bankroll snapshot: settings, unit size, drawdown, ROI, daily exposure."""
    return bankroll_summary(context.ledger)


@router.put("/api/bankroll/settings")
def update_bankroll_settings(
    payload: SettingsUpdate,
    context: BettingContext = Depends(get_context),
):
    """Change starting bankroll, unit size and daily risk cap."""
    settings = context.update_settings(
        payload.starting_bankroll, payload.unit_percentage, payload.max_daily_risk
    )
    return {"message": "Settings updated", "settings": settings.to_dict()}


@router.post("/api/bankroll/bets", response_model=BetResponse)
def place_bet(
    payload: PlaceBetRequest,
    context: BettingContext = Depends(get_context),
):
    """Stake a slate prediction (``game_id``) or a manual game (``game``)."""
    if payload.game_id is not None:
        bet = context.place_bet_on(payload.game_id, payload.units, payload.odds)
    elif payload.game is not None:
        bet = context.place_bet(payload.game.model_dump(), payload.units, payload.odds)
    else:
        raise HTTPException(status_code=422, detail="Provide game_id or game")
    return _bet_response(bet)


@router.get("/api/bankroll/bets")
def get_bets(
    status: str = Query(default="active", pattern="^(active|settled)$"),
    result: Optional[str] = Query(default=None, pattern="^(all|win|loss|push)$"),
    context: BettingContext = Depends(get_context),
):
    """Active bets, or settled bets (newest first) optionally filtered by result."""
    if status == "active":
        bets = context.ledger.active_bets
    else:
        bets = list(reversed(context.ledger.history(result)))
    return {"status": status, "total": len(bets), "bets": [b.to_dict() for b in bets]}


@router.put("/api/bankroll/bets/{bet_id}/outcome", response_model=BetResponse)
def resolve_bet(
    bet_id: str,
    payload: ResolveBetRequest,
    context: BettingContext = Depends(get_context),
):
    """Settle an active bet as win, loss or push."""
    return _bet_response(context.resolve_bet(bet_id, payload.outcome))


@router.get("/api/bankroll/export")
def export_bankroll(context: BettingContext = Depends(get_context)):
    """Full ledger dump: settings, history, active bets, export date."""
    return context.ledger.export_data()


# ============================================================================
# PERFORMANCE
# ============================================================================

@router.get("/api/performance/summary")
def get_performance_summary(context: BettingContext = Depends(get_context)):
    """Pick record (unit convention) next to the staked bankroll record."""
    return {
        "picks": pick_summary(context.history),
        "bankroll": bankroll_summary(context.ledger),
    }


@router.get("/api/performance/timeline")
def get_performance_timeline(
    days: int = Query(default=30, ge=1, le=365),
    context: BettingContext = Depends(get_context),
):
    """Daily settled-bet timeline with cumulative P&L and ROI series."""
    return calculate_timeline(context.ledger.history(), days=days)


@router.get("/api/performance/analytics")
def get_performance_analytics(context: BettingContext = Depends(get_context)):
    """Charts for the analytics page: profit curve, buckets, teams, months."""
    analytics = calculate_analytics(context.history)
    analytics["bankroll_series"] = bankroll_series(
        context.ledger.settings.starting_bankroll, context.ledger.history()
    )
    return analytics


# ============================================================================
# ADMIN
# ============================================================================

@router.post("/admin/bankroll/reset")
def reset_bankroll(context: BettingContext = Depends(get_context)):
    """Erase bankroll settings and all bets.  Pick history is kept."""
    context.reset_bankroll()
    return {"message": "Bankroll reset", "settings": context.ledger.settings.to_dict()}


@router.post("/admin/bankroll/import", response_model=RestoreResponse)
def import_bankroll(payload: dict, context: BettingContext = Depends(get_context)):
    """Replace the ledger with a previous export."""
    active, settled = context.restore_bankroll(payload)
    return RestoreResponse(message="Bankroll restored", active_bets=active, settled_bets=settled)


@router.get("/admin/scheduler/status")
def get_scheduler_status(request: Request):
    """Get scheduler job status"""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return {"running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {
        "running": scheduler.running,
        "jobs": jobs,
    }


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _status_for(exc: BankrollError) -> int:
    if isinstance(exc, (BetNotFound, PredictionNotFound)):
        return 404
    if isinstance(exc, PersistenceError):
        return 503
    return 400


async def bankroll_exception_handler(request, exc: BankrollError):
    """Ledger validation and lookup errors -> 4xx, store failures -> 503."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Store failure on %s: %s", request.url.path, exc)
    else:
        logger.info("Rejected %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "type": type(exc).__name__, "details": exc.details},
    )


async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": type(exc).__name__}
    )


# ============================================================================
# APP FACTORY
# ============================================================================

def create_app(
    context: Optional[BettingContext] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """
    Build the API around ``context``.

    Without one, the lifespan creates the tables and a context backed by
    the SQL store and the configured prediction source.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        logger.info("Starting %s", APP_NAME)
        if app.state.context is None:
            init_db()
            app.state.context = BettingContext(SqlAlchemyStore(), default_source())
            app.state.context.refresh_predictions()

        if start_scheduler:
            scheduler = build_scheduler(app.state.context)
            scheduler.start()
            app.state.scheduler = scheduler
            logger.info("Scheduler started: prediction refresh every %dmin", PREDICTION_REFRESH_MIN)

        yield

        logger.info("Shutting down %s", APP_NAME)
        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None and scheduler.running:
            scheduler.shutdown()

    app = FastAPI(
        title=APP_NAME,
        description="Bankroll and bet settlement for AI sports picks",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.context = context
    app.state.scheduler = None

    # CORS (adjust origins for production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8501"],  # Streamlit
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.add_exception_handler(BankrollError, bankroll_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
