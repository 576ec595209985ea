"""
Shared route helpers — payload parsing and the per-request data store.
"""

import logging
import os
from typing import Any, Callable, Iterator, List

from fastapi import HTTPException

from core.records import RecordError
from core.store import PostgresStore, StoreUnavailable, open_store

logger = logging.getLogger(__name__)


def _check_rows(rows: Any, key: str) -> List[dict]:
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise HTTPException(422, f"'{key}' must be a list of objects.")
    return rows


def rows_from_payload(payload: dict, key: str = "data") -> List[dict]:
    """Extract a non-empty list of row objects from the request payload."""
    rows = payload.get(key)
    if not rows:
        raise HTTPException(400, f"No {key} provided.")
    return _check_rows(rows, key)


def optional_rows_from_payload(payload: dict, key: str) -> List[dict]:
    """Like rows_from_payload, but a missing or empty key gives []."""
    rows = payload.get(key)
    if rows is None or rows == []:
        return []
    return _check_rows(rows, key)


def records_from_rows(rows: List[dict], convert: Callable[[dict], Any]) -> list:
    records = []
    for idx, row in enumerate(rows):
        try:
            records.append(convert(row))
        except RecordError as exc:
            raise HTTPException(422, f"Row {idx + 1}: {exc}") from exc
    return records


def from_store(query: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a store query; a stored row that cannot be normalized is a 500 with its error."""
    try:
        return query(*args, **kwargs)
    except RecordError as exc:
        logger.error("Invalid stored record from %s: %s", query.__name__, exc)
        raise HTTPException(500, f"Invalid stored record: {exc}") from exc


def get_store() -> Iterator[PostgresStore]:
    """FastAPI dependency: one connection per request, closed afterwards."""
    try:
        with open_store(os.getenv("DATABASE_URL", "")) as store:
            yield store
    except StoreUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc


def threshold_settings() -> dict:
    return {
        "attendance_warning": float(os.getenv("ATTENDANCE_WARNING", "75")),
        "attendance_critical": float(os.getenv("ATTENDANCE_CRITICAL", "60")),
        "score_warning": float(os.getenv("SCORE_WARNING", "50")),
        "score_critical": float(os.getenv("SCORE_CRITICAL", "40")),
    }
