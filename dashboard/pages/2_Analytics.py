"""Analytics page: profit curve, confidence buckets, teams, months."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st
from dashboard.utils import api_get

st.set_page_config(page_title="Analytics | AI Picks", layout="wide")

st.title("Pick Analytics")

data = api_get("/api/performance/analytics")

if not data or data["summary"].get("graded", 0) == 0:
    st.info("Grade a few picks to unlock analytics.")
    st.stop()

# --- Cumulative unit profit ---
cum = data.get("cumulative_profit", [])
if cum:
    st.subheader("Cumulative Profit (units)")
    df_cum = pd.DataFrame(cum)
    df_cum["date"] = pd.to_datetime(df_cum["date"], utc=True)
    last = df_cum["cumulative"].iloc[-1]
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df_cum["date"], y=df_cum["cumulative"], mode="lines+markers",
        line=dict(color="green" if last >= 0 else "red"),
    ))
    fig.add_hline(y=0, line_dash="dash", line_color="gray")
    fig.update_layout(xaxis_title="Date", yaxis_title="Units", height=320)
    st.plotly_chart(fig, use_container_width=True)

col_l, col_r = st.columns(2)

# --- Confidence buckets ---
with col_l:
    st.subheader("Confidence Distribution")
    conf = data.get("confidence_distribution", {})
    df_conf = pd.DataFrame({"bucket": list(conf), "picks": list(conf.values())})
    fig_conf = px.bar(df_conf, x="bucket", y="picks", labels={"bucket": "Confidence", "picks": "Picks"})
    fig_conf.update_layout(height=280)
    st.plotly_chart(fig_conf, use_container_width=True)

# --- Risk tiers ---
with col_r:
    st.subheader("Risk Profile")
    risk = data.get("risk_distribution", {})
    fig_risk = px.pie(
        names=[k.title() for k in risk],
        values=list(risk.values()),
        color_discrete_sequence=["#d62728", "#ff7f0e", "#2ca02c"],
    )
    fig_risk.update_layout(height=280)
    st.plotly_chart(fig_risk, use_container_width=True)

st.markdown("---")

col_l, col_r = st.columns(2)

# --- Team accuracy ---
with col_l:
    st.subheader("Best Teams (3+ games)")
    teams = data.get("team_accuracy", [])
    if teams:
        df_team = pd.DataFrame(teams)
        fig_team = px.bar(
            df_team, x="accuracy", y="team", orientation="h",
            text_auto=".0%", labels={"accuracy": "Accuracy", "team": ""},
        )
        fig_team.update_layout(height=280, yaxis=dict(autorange="reversed"), xaxis_tickformat=".0%")
        st.plotly_chart(fig_team, use_container_width=True)
    else:
        st.info("No team has 3 graded games yet.")

# --- Sport accuracy ---
with col_r:
    st.subheader("By League")
    sports = data.get("sport_accuracy", {})
    cols = st.columns(max(len(sports), 1))
    for col, (label, s) in zip(cols, sports.items()):
        col.metric(label, f"{s['accuracy']:.1%}" if s["total"] else "N/A", delta=f"{s['total']} picks")
    best = data["summary"].get("best_sport")
    if best:
        st.caption(f"Best league: **{best}**")

st.markdown("---")

# --- Monthly ---
months = data.get("monthly_results", [])
if months:
    st.subheader("Monthly Results")
    df_m = pd.DataFrame(months)
    fig_m = px.bar(
        df_m, x="month", y="profit", color="profit",
        color_continuous_scale="RdYlGn", labels={"profit": "Units", "month": "Month"},
        text_auto=".2f",
    )
    fig_m.update_layout(height=300, coloraxis_showscale=False)
    st.plotly_chart(fig_m, use_container_width=True)
    st.dataframe(
        df_m.rename(columns={"month": "Month", "wins": "W", "losses": "L", "pushes": "P", "profit": "Units"}),
        use_container_width=True,
        hide_index=True,
    )
