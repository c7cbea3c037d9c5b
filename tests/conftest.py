import pytest


@pytest.fixture(autouse=True)
def _default_bankroll_env(monkeypatch):
    """Ledger defaults read STARTING_BANKROLL; keep every test on $1000."""
    monkeypatch.delenv("STARTING_BANKROLL", raising=False)
