"""
Key/value persistence adapters.

The ledger and pick history treat storage as an opaque text store with
``get``/``set``/``delete``.  Two adapters are provided:

  InMemoryStore   - dict-backed, used by tests and ephemeral sessions
  SqlAlchemyStore - one row per key in the ``kv_store`` table

Every write is its own committed transaction.  Callers that must update
several records atomically serialise them into a single key instead of
issuing several writes.
"""

import json
import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from backend.core.errors import PersistenceError
from backend.models import KeyValueEntry, SessionLocal

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Dict-backed store.  Not durable; useful for tests and previews."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class SqlAlchemyStore:
    """Store backed by the ``kv_store`` table, one session per operation."""

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            row = db.get(KeyValueEntry, key)
            return row.value if row else None
        except SQLAlchemyError as exc:
            logger.error("kv_store read failed for %s: %s", key, exc)
            raise PersistenceError(f"Failed to read {key!r}", {"error": str(exc)}) from exc
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(KeyValueEntry, key)
            if row is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                row.value = value
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("kv_store write failed for %s: %s", key, exc)
            raise PersistenceError(f"Failed to write {key!r}", {"error": str(exc)}) from exc
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self._session_factory()
        try:
            db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("kv_store delete failed for %s: %s", key, exc)
            raise PersistenceError(f"Failed to delete {key!r}", {"error": str(exc)}) from exc
        finally:
            db.close()


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def load_json(store: KeyValueStore, key: str, default: Any) -> Any:
    """Decode the JSON document at ``key``; ``default`` if absent or corrupt."""
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Ignoring corrupt JSON under %s: %s", key, exc)
        return default


def save_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Encode ``value`` and write it in a single ``set``."""
    try:
        store.set(key, json.dumps(value))
    except PersistenceError:
        raise
    except Exception as exc:
        raise PersistenceError(f"Failed to write {key!r}", {"error": str(exc)}) from exc
