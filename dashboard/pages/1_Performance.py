"""Performance Overview page."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import pandas as pd
import plotly.graph_objects as go
import streamlit as st
from dashboard.utils import api_get, fmt_money

st.set_page_config(page_title="Performance | AI Picks", layout="wide")

st.title("Performance Overview")

perf = api_get("/api/performance/summary")

if not perf:
    st.stop()

picks = perf["picks"]
bankroll = perf["bankroll"]

# --- AI pick record (unit convention) ---
st.subheader("AI Picks")
if picks.get("graded", 0) == 0:
    st.info("No graded picks yet.")
else:
    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Record", f"{picks['wins']}-{picks['losses']}-{picks['pushes']}")
    c2.metric("Accuracy", f"{picks['accuracy']:.1%}")
    c3.metric("ROI", f"{picks['roi']:.1f}%")
    c4.metric("Profit", f"{picks['total_profit_units']:+.2f}u")
    c5.metric("Streak", picks["current_streak_label"], delta=f"best W{picks['best_streak']}")
    st.caption(
        f"{picks['graded']} graded picks at -110: win +0.91u, loss -1.10u. "
        f"Average confidence {picks['average_confidence']:.1%}"
        + (f" | best league {picks['best_sport']}" if picks.get("best_sport") else "")
    )

st.markdown("---")

# --- Staked bankroll ---
st.subheader("Bankroll")
s = bankroll["settings"]
c1, c2, c3, c4 = st.columns(4)
c1.metric("Current", fmt_money(s["currentBankroll"]), delta=f"{bankroll['bankroll_change_pct']:+.1f}%")
c2.metric("Total Profit", fmt_money(s["totalProfit"]), delta=f"{bankroll['profit_pct']:+.1f}%")
c3.metric("ROI", f"{bankroll['roi']:.1f}%")
c4.metric("Max Drawdown", fmt_money(bankroll["max_drawdown"]))

analytics = api_get("/api/performance/analytics")
series = analytics.get("bankroll_series", []) if analytics else []
if len(series) > 1:
    fig_br = go.Figure()
    fig_br.add_trace(go.Scatter(
        x=list(range(len(series))),
        y=series,
        mode="lines+markers",
        line=dict(color="green" if series[-1] >= series[0] else "red"),
    ))
    fig_br.add_hline(y=series[0], line_dash="dash", line_color="gray")
    fig_br.update_layout(xaxis_title="Settled Bet", yaxis_title="Bankroll ($)", height=320)
    st.plotly_chart(fig_br, use_container_width=True)

st.markdown("---")

# --- Timeline window selector ---
days = st.select_slider("History window (days)", [7, 14, 30, 60, 90, 180], value=30)
timeline_data = api_get("/api/performance/timeline", {"days": days})

if timeline_data and timeline_data.get("timeline"):
    df = pd.DataFrame(timeline_data["timeline"])
    cum_profit = timeline_data.get("cumulative_profit", [])

    st.subheader("Cumulative P&L")
    fig_pl = go.Figure()
    fig_pl.add_trace(go.Scatter(
        x=df["date"],
        y=cum_profit,
        mode="lines",
        fill="tozeroy",
        fillcolor="rgba(0,180,0,0.1)" if (cum_profit[-1] if cum_profit else 0) >= 0 else "rgba(220,0,0,0.1)",
        line=dict(color="green" if (cum_profit[-1] if cum_profit else 0) >= 0 else "red"),
    ))
    fig_pl.add_hline(y=0, line_dash="dash", line_color="gray")
    fig_pl.update_layout(xaxis_title="Date", yaxis_title="Cumulative P&L ($)", height=320)
    st.plotly_chart(fig_pl, use_container_width=True)

    st.dataframe(
        df.rename(columns={
            "date": "Date", "bets": "Bets", "wins": "W", "losses": "L",
            "pushes": "P", "roi": "ROI (%)", "profit": "P&L ($)",
        }),
        use_container_width=True,
        hide_index=True,
    )
else:
    st.info("No settled bets in this window.")

st.markdown("---")

# --- Rolling win rate ---
rolling = analytics.get("rolling_win_rate", []) if analytics else []
if rolling:
    st.subheader("Rolling Win Rate (last 10 picks)")
    df_roll = pd.DataFrame(rolling)
    fig_roll = go.Figure()
    fig_roll.add_trace(go.Scatter(x=df_roll["pick"], y=df_roll["win_rate"], mode="lines+markers"))
    fig_roll.add_hline(y=0.524, line_dash="dash", line_color="gray",
                       annotation_text="Break-even at -110", annotation_position="right")
    fig_roll.update_layout(xaxis_title="Pick #", yaxis_title="Win Rate", yaxis_tickformat=".0%", height=300)
    st.plotly_chart(fig_roll, use_container_width=True)
