"""
Streamlit Dashboard for AI Picks Bankroll
Today's slate, grading, bet placement and bankroll management
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
from datetime import datetime

import pandas as pd
import streamlit as st

from backend.core.odds_math import format_american
from dashboard.utils import (
    CONFIDENCE_COLORS,
    RESULT_ICONS,
    api_get,
    api_post,
    api_put,
    fmt_money,
    fmt_signed_money,
)

st.set_page_config(
    page_title="AI Picks Bankroll",
    page_icon="🎯",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
    <style>
    .big-metric { font-size: 24px; font-weight: bold; }
    .positive { color: green; }
    .negative { color: red; }
    </style>
""", unsafe_allow_html=True)


# ==============================================================================
# SIDEBAR
# ==============================================================================

with st.sidebar:
    st.title("🎯 AI Picks")
    st.caption("Bankroll & pick tracker")

    st.markdown("---")

    page = st.radio("Navigate", ["🎯 Today's Picks", "💰 Bankroll"])
    st.caption("See sidebar pages for Performance, Analytics & Pick History.")

    st.markdown("---")

    st.subheader("Quick Stats")
    bankroll = api_get("/api/bankroll")
    picks = api_get("/api/picks/summary")
    if bankroll:
        s = bankroll["settings"]
        st.metric(
            "Bankroll",
            fmt_money(s["currentBankroll"]),
            delta=f"{bankroll['bankroll_change_pct']:+.1f}%",
        )
        st.metric("Unit Size", fmt_money(bankroll["unit_size"]))
    if picks and picks.get("graded", 0) > 0:
        st.metric("AI Accuracy", f"{picks['accuracy']:.1%}")
        st.metric("Streak", picks["current_streak_label"])
    else:
        st.info("No graded picks yet")


# ==============================================================================
# TODAY'S PICKS PAGE
# ==============================================================================

if page == "🎯 Today's Picks":
    st.title("Today's AI Picks")

    top_l, top_r = st.columns([4, 1])
    with top_r:
        if st.button("🔄 Refresh"):
            api_post("/api/predictions/refresh")
            st.rerun()

    today = api_get("/api/predictions/today")
    slate = today.get("predictions", []) if today else []
    with top_l:
        if today and today.get("last_refresh"):
            ts = datetime.fromisoformat(today["last_refresh"]).strftime("%b %d, %I:%M %p")
            st.caption(f"{len(slate)} game(s) | last refreshed {ts}")

    if not slate:
        st.info("No predictions on the slate. Graded games drop off automatically.")
    else:
        unit = bankroll["unit_size"] if bankroll else 0.0
        for p in slate:
            conf_icon = CONFIDENCE_COLORS.get(p["confidenceLevel"], "")
            header = f"{p['awayTeam']} @ {p['homeTeam']} | {conf_icon} {p['confidence']:.0%}"
            with st.expander(header, expanded=True):
                c1, c2, c3 = st.columns(3)
                c1.metric("Pick", p["pick"])
                c2.metric("Spread", f"{p['spread']:+.1f}" if p.get("spread") is not None else "N/A")
                c3.metric("Total", f"{p['total']:.1f}" if p.get("total") is not None else "N/A")

                st.markdown("**Grade this pick**")
                g1, g2, g3 = st.columns(3)
                for col, label, result in ((g1, "✅ Win", "W"), (g2, "❌ Loss", "L"), (g3, "➖ Push", "P")):
                    if col.button(label, key=f"score_{p['id']}_{result}"):
                        graded = api_post(f"/api/picks/{p['id']}/score", {"result": result})
                        if graded:
                            settled = graded.get("settled_bet")
                            msg = f"Graded {RESULT_ICONS[result]} {p['awayTeam']} @ {p['homeTeam']}"
                            if settled:
                                msg += f" | bet settled {settled['result'].upper()}"
                            st.success(msg)
                            st.rerun()

                with st.form(f"bet_{p['id']}", clear_on_submit=True):
                    b1, b2 = st.columns(2)
                    units = b1.number_input(
                        "Units", min_value=0.5, max_value=10.0, value=1.0, step=0.5,
                        key=f"units_{p['id']}",
                    )
                    odds = b2.number_input(
                        "Odds (American)", value=-110, step=5, key=f"odds_{p['id']}",
                        help="e.g. -110, +150",
                    )
                    st.caption(f"Risk ≈ {fmt_money(units * unit)}")
                    if st.form_submit_button("Place Bet", type="primary"):
                        if odds == 0:
                            st.error("Odds cannot be 0.")
                        else:
                            bet = api_post(
                                "/api/bankroll/bets",
                                {"game_id": p["id"], "units": float(units), "odds": float(odds)},
                            )
                            if bet:
                                st.success(
                                    f"Bet placed: {bet['units']}u @ {format_american(bet['odds'])} | "
                                    f"risk {fmt_money(bet['riskAmount'])} to win "
                                    f"{fmt_money(bet['potentialWin'])}"
                                )

    st.markdown("---")
    st.subheader("Recent Results")
    recent = api_get("/api/picks/recent", {"n": 5})
    if recent and recent.get("picks"):
        for r in recent["picks"]:
            when = datetime.fromisoformat(r["date"]).strftime("%b %d")
            st.write(
                f"{RESULT_ICONS.get(r['result'], '')} **{r['away']} @ {r['home']}**: "
                f"{r['pick']} ({r['conf']:.0%}) | {when}"
            )
    else:
        st.caption("No results yet.")


# ==============================================================================
# BANKROLL PAGE
# ==============================================================================

elif page == "💰 Bankroll":
    st.title("Bankroll")

    if not bankroll:
        st.warning("Bankroll data unavailable.")
        st.stop()

    s = bankroll["settings"]
    if bankroll.get("is_negative"):
        st.error("Bankroll is below zero. Losses are booked in full; review your unit size.")

    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Current", fmt_money(s["currentBankroll"]),
              delta=fmt_signed_money(bankroll["bankroll_change"]))
    c2.metric("Peak", fmt_money(s["peakBankroll"]))
    c3.metric("Drawdown", fmt_money(bankroll["max_drawdown"]))
    c4.metric("ROI", f"{bankroll['roi']:.1f}%")
    c5.metric("Record", f"{bankroll['wins']}-{bankroll['losses']}-{bankroll['pushes']}")

    used, cap = bankroll["daily_risk_used"], bankroll["daily_risk_cap"]
    st.progress(min(used / cap, 1.0) if cap > 0 else 0.0,
                text=f"Today's risk: {fmt_money(used)} of {fmt_money(cap)}")

    tab_active, tab_settings, tab_data = st.tabs(["Active Bets", "Settings", "Export / Reset"])

    # --------------------------------------------------------------------------
    # TAB 1: ACTIVE BETS
    # --------------------------------------------------------------------------
    with tab_active:
        active = api_get("/api/bankroll/bets", {"status": "active"})
        bets = active.get("bets", []) if active else []
        if not bets:
            st.info("No active bets.")
        for bet in bets:
            g = bet["game"]
            placed = datetime.fromisoformat(bet["date"]).strftime("%b %d, %I:%M %p")
            header = (
                f"{g.get('awayTeam')} @ {g.get('homeTeam')} | {bet['units']}u "
                f"@ {format_american(bet['odds'])} | {placed}"
            )
            with st.expander(header):
                st.write(
                    f"Risk **{fmt_money(bet['riskAmount'])}** to win "
                    f"**{fmt_money(bet['potentialWin'])}**"
                )
                r1, r2, r3 = st.columns(3)
                for col, label, outcome in ((r1, "Win", "win"), (r2, "Loss", "loss"), (r3, "Push", "push")):
                    if col.button(label, key=f"resolve_{bet['id']}_{outcome}"):
                        result = api_put(f"/api/bankroll/bets/{bet['id']}/outcome", {"outcome": outcome})
                        if result:
                            st.success(f"Bet settled: {outcome.upper()}")
                            st.rerun()

    # --------------------------------------------------------------------------
    # TAB 2: SETTINGS
    # --------------------------------------------------------------------------
    with tab_settings:
        st.caption(
            "Changing the starting bankroll keeps your results: "
            "current = starting + total profit."
        )
        with st.form("settings_form"):
            starting = st.number_input(
                "Starting Bankroll ($)", min_value=100.0, value=float(s["startingBankroll"]), step=100.0
            )
            unit_pct = st.number_input(
                "Unit Size (% of bankroll)", min_value=0.1, max_value=10.0,
                value=float(s["unitPercentage"]), step=0.1,
            )
            max_daily = st.number_input(
                "Max Daily Risk (% of bankroll)", min_value=1.0, max_value=50.0,
                value=float(s["maxDailyRisk"]), step=1.0,
            )
            if st.form_submit_button("Save Settings", type="primary"):
                result = api_put("/api/bankroll/settings", {
                    "starting_bankroll": starting,
                    "unit_percentage": unit_pct,
                    "max_daily_risk": max_daily,
                })
                if result:
                    st.success("Settings saved")
                    st.rerun()

    # --------------------------------------------------------------------------
    # TAB 3: EXPORT / RESET
    # --------------------------------------------------------------------------
    with tab_data:
        export = api_get("/api/bankroll/export")
        if export:
            st.download_button(
                label="Export Bankroll (JSON)",
                data=json.dumps(export, indent=2).encode("utf-8"),
                file_name=f"bankroll-data-{datetime.now():%Y-%m-%d}.json",
                mime="application/json",
            )
            history = export.get("bettingHistory", [])
            if history:
                df = pd.DataFrame(
                    [{
                        "Date": b.get("resolvedDate") or b["date"],
                        "Matchup": f"{b['game'].get('awayTeam')} @ {b['game'].get('homeTeam')}",
                        "Units": b["units"],
                        "Odds": format_american(b["odds"]),
                        "Risk ($)": round(b["riskAmount"], 2),
                        "Result": b["result"],
                    } for b in history]
                )
                st.download_button(
                    label="Export Bet History (CSV)",
                    data=df.to_csv(index=False).encode("utf-8"),
                    file_name="ai_picks_bet_history.csv",
                    mime="text/csv",
                )

        st.markdown("---")
        st.warning("Reset erases bankroll settings, active bets and bet history. Pick history is kept.")
        confirm = st.checkbox("I understand this cannot be undone")
        if st.button("Reset Bankroll", disabled=not confirm):
            if api_post("/admin/bankroll/reset"):
                st.success("Bankroll reset")
                st.rerun()


# Footer
st.markdown("---")
st.caption("AI Picks Bankroll v1.0 | Built with Streamlit")
