"""
Expiry and compliance rules shared by every document code path.

All functions take an optional ``now`` so callers (and tests) can pin the
clock; stored naive datetimes are treated as UTC.
"""
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.models.enums import DocumentStatus
from app.utiles.custom_helpers import _now_utc, _as_utc

DEFAULT_EXPIRY_THRESHOLD_DAYS = 30
SECONDS_PER_DAY = 24 * 60 * 60


def is_document_expired(expiry_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expiry_date is None:
        return False
    now = _as_utc(now) or _now_utc()
    return _as_utc(expiry_date) < now


def is_document_expiring_soon(
    expiry_date: Optional[datetime],
    days: int = DEFAULT_EXPIRY_THRESHOLD_DAYS,
    now: Optional[datetime] = None,
) -> bool:
    if expiry_date is None:
        return False
    now = _as_utc(now) or _now_utc()
    expiry = _as_utc(expiry_date)
    return now < expiry <= now + timedelta(days=days)


def get_days_until_expiry(expiry_date: datetime, now: Optional[datetime] = None) -> int:
    now = _as_utc(now) or _now_utc()
    delta = _as_utc(expiry_date) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def derive_document_status(
    expiry_date: Optional[datetime],
    is_verified: bool,
    now: Optional[datetime] = None,
) -> str:
    """Status written alongside every document insert/update."""
    if is_document_expired(expiry_date, now):
        return DocumentStatus.EXPIRED.value
    if is_verified:
        return DocumentStatus.ACTIVE.value
    return DocumentStatus.PENDING_VERIFICATION.value


def is_entity_compliant(documents: Iterable[Mapping[str, Any]], now: Optional[datetime] = None) -> bool:
    """
    An entity is compliant when it has at least one document and every
    document is verified and unexpired. No documents means non-compliant.
    """
    documents = list(documents)
    if not documents:
        return False
    return all(
        doc.get("is_verified") and not is_document_expired(doc.get("expiry_date"), now)
        for doc in documents
    )


def summarize_documents(
    documents: Iterable[Mapping[str, Any]],
    days: int = DEFAULT_EXPIRY_THRESHOLD_DAYS,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Split an entity's documents into expired and expiring-soon lists."""
    now = _as_utc(now) or _now_utc()
    expired: List[Dict[str, Any]] = []
    expiring: List[Dict[str, Any]] = []

    for doc in documents:
        expiry = doc.get("expiry_date")
        if expiry is None:
            continue
        if is_document_expired(expiry, now):
            expired.append({
                "document_id": doc.get("document_id"),
                "type": doc.get("document_type"),
                "expiry_date": expiry,
                "days_overdue": -get_days_until_expiry(expiry, now),
            })
        elif is_document_expiring_soon(expiry, days, now):
            expiring.append({
                "document_id": doc.get("document_id"),
                "type": doc.get("document_type"),
                "expiry_date": expiry,
                "days_until_expiry": get_days_until_expiry(expiry, now),
            })

    return {
        "is_expired": bool(expired),
        "expiring_soon": bool(expiring),
        "expired_documents": expired,
        "expiring_soon_documents": expiring,
    }
