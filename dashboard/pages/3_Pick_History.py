"""Pick History page: filterable table of graded picks and settled bets."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import pandas as pd
import streamlit as st
from backend.core.odds_math import format_american
from backend.core.sport_config import league_label
from dashboard.utils import RESULT_ICONS, api_get

st.set_page_config(page_title="Pick History | AI Picks", layout="wide")

st.title("Pick History")

tab_picks, tab_bets = st.tabs(["Graded Picks", "Settled Bets"])

# --------------------------------------------------------------------------
# Graded picks
# --------------------------------------------------------------------------
with tab_picks:
    col_f1, col_f2, col_f3 = st.columns(3)
    with col_f1:
        period = st.selectbox("Time", ["all", "week", "month", "quarter"])
    with col_f2:
        result = st.selectbox("Result", ["all", "W", "L", "P"])
    with col_f3:
        search = st.text_input("Team search", placeholder="e.g. Lakers")

    params = {"period": period, "result": result, "limit": 1000}
    if search:
        params["search"] = search
    data = api_get("/api/picks/history", params)

    if not data or not data.get("picks"):
        st.info("No graded picks for this filter.")
    else:
        df = pd.DataFrame(data["picks"])
        df["date"] = pd.to_datetime(df["date"], utc=True).dt.strftime("%Y-%m-%d")
        df["league"] = df["league"].fillna("").map(league_label)
        df["result"] = df["result"].map(lambda r: f"{RESULT_ICONS.get(r, '')} {r}")

        rename_map = {
            "date": "Date", "league": "League", "away": "Away", "home": "Home",
            "pick": "Pick", "spread": "Spread", "conf": "Conf", "result": "Result",
            "profit": "Units",
        }
        display_cols = [c for c in rename_map if c in df.columns]

        st.write(f"**{data['total']} pick(s)**")
        st.dataframe(
            df[display_cols].rename(columns=rename_map),
            use_container_width=True,
            hide_index=True,
        )

        wins = (df["profit"] > 0).sum()
        losses = (df["profit"] < 0).sum()
        units = df["profit"].sum()
        graded = len(df)
        roi = units / (graded * 1.1) * 100 if graded else 0.0
        st.markdown(
            f"**Summary:** {wins}W–{losses}L–{graded - wins - losses}P | "
            f"Units **{units:+.2f}** | ROI **{roi:.1f}%**"
        )

        st.markdown("---")
        csv = df[display_cols].rename(columns=rename_map).to_csv(index=False).encode("utf-8")
        st.download_button(
            label="Export to CSV",
            data=csv,
            file_name="ai_picks_history.csv",
            mime="text/csv",
        )

# --------------------------------------------------------------------------
# Settled bets
# --------------------------------------------------------------------------
with tab_bets:
    bet_result = st.selectbox("Outcome", ["all", "win", "loss", "push"])
    bets = api_get("/api/bankroll/bets", {"status": "settled", "result": bet_result})

    if not bets or not bets.get("bets"):
        st.info("No settled bets for this filter.")
    else:
        rows = []
        for b in bets["bets"]:
            profit = b["potentialWin"] if b["result"] == "win" else (
                -b["riskAmount"] if b["result"] == "loss" else 0.0
            )
            rows.append({
                "Settled": (b.get("resolvedDate") or b["date"])[:10],
                "Matchup": f"{b['game'].get('awayTeam')} @ {b['game'].get('homeTeam')}",
                "Units": b["units"],
                "Odds": format_american(b["odds"]),
                "Risk ($)": round(b["riskAmount"], 2),
                "Result": f"{RESULT_ICONS.get(b['result'], '')} {b['result']}",
                "P&L ($)": round(profit, 2),
            })
        df_bets = pd.DataFrame(rows)
        st.write(f"**{len(df_bets)} bet(s)**")
        st.dataframe(df_bets, use_container_width=True, hide_index=True)
        st.markdown(f"**Net P&L:** ${df_bets['P&L ($)'].sum():+.2f}")
