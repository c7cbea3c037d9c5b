"""Shared utilities for all dashboard pages."""

import os
import requests
import streamlit as st
from dotenv import load_dotenv

load_dotenv()

_API_URL = os.getenv("API_URL", "http://localhost:8000")

_JSON = {"Content-Type": "application/json"}


def _error_detail(exc: requests.HTTPError) -> str:
    try:
        return exc.response.json().get("detail", str(exc))
    except ValueError:
        return str(exc)


def api_get(endpoint: str, params: dict = None):
    try:
        r = requests.get(f"{_API_URL}{endpoint}", params=params, timeout=15)
        r.raise_for_status()
        return r.json()
    except requests.RequestException as exc:
        st.error(f"API error: {exc}")
        return None


def _send(method, endpoint: str, payload: dict):
    try:
        r = method(f"{_API_URL}{endpoint}", headers=_JSON, json=payload, timeout=15)
        r.raise_for_status()
        return r.json()
    except requests.HTTPError as exc:
        st.error(f"API {exc.response.status_code}: {_error_detail(exc)}")
        return None
    except requests.RequestException as exc:
        st.error(f"Request failed: {exc}")
        return None


def api_post(endpoint: str, payload: dict = None):
    return _send(requests.post, endpoint, payload or {})


def api_put(endpoint: str, payload: dict):
    return _send(requests.put, endpoint, payload)


def fmt_money(value: float) -> str:
    """``$1,018.18`` / ``-$20.00``"""
    return f"-${abs(value):,.2f}" if value < 0 else f"${value:,.2f}"


def fmt_signed_money(value: float) -> str:
    return f"+{fmt_money(value)}" if value > 0 else fmt_money(value)


RESULT_ICONS = {
    "W": "✅", "win": "✅",
    "L": "❌", "loss": "❌",
    "P": "➖", "push": "➖",
    "pending": "⏳",
}

CONFIDENCE_COLORS = {
    "high": "🟢",
    "medium": "🟡",
    "low": "🔴",
}
