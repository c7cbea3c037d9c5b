"""
import_bankroll.py - Load a bankroll export (and optionally a pick history)
into the database.

Inputs
------
  bankroll export   JSON written by "Export Bankroll" / GET /api/bankroll/export:
                    {"settings", "bettingHistory", "activeBets", "exportDate"}
  pick history      JSON array of graded picks (the ``aiHist`` record)

The import replaces whatever is stored.  Both files are validated in full
before anything is written.

Usage
-----
  python scripts/import_bankroll.py bankroll-data-2025-01-31.json            # dry-run
  python scripts/import_bankroll.py bankroll-data.json --picks aiHist.json --execute
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure the project root (one level up from scripts/) is on sys.path so that
# `from backend.xxx import ...` resolves correctly when the script is run
# directly (e.g.  python scripts/import_bankroll.py).
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("import_bankroll")


def _read(path: str):
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def main() -> None:
    parser = argparse.ArgumentParser(description="Import a bankroll export.")
    parser.add_argument("export", help="Bankroll export JSON file")
    parser.add_argument("--picks", help="Pick history JSON array (aiHist)")
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Actually write.  Without this flag the script only validates.",
    )
    args = parser.parse_args()

    from backend.core.errors import BankrollError
    from backend.models import init_db
    from backend.services.bankroll import BankrollLedger
    from backend.services.pick_history import PickHistory
    from backend.services.storage import InMemoryStore, SqlAlchemyStore

    try:
        export = _read(args.export)
        picks = _read(args.picks) if args.picks else None
    except (OSError, ValueError) as exc:
        logger.error("Cannot read input: %s", exc)
        sys.exit(1)

    # Validate against a scratch store first so a bad file never touches the DB.
    scratch = InMemoryStore()
    try:
        active, settled = BankrollLedger(scratch).restore(export)
        n_picks = PickHistory(scratch).restore(picks) if picks is not None else 0
    except BankrollError as exc:
        logger.error("Invalid input: %s", exc)
        sys.exit(1)

    logger.info("Export OK: %d active bets, %d settled bets, %d graded picks", active, settled, n_picks)

    if not args.execute:
        logger.info("Dry-run complete.  Re-run with --execute to import.")
        return

    init_db()
    store = SqlAlchemyStore()
    try:
        BankrollLedger(store).restore(export)
        if picks is not None:
            PickHistory(store).restore(picks)
    except BankrollError as exc:
        logger.error("Import failed: %s", exc)
        sys.exit(1)

    logger.info("Import complete.")


if __name__ == "__main__":
    main()
