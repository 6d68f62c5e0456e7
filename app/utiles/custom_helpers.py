from datetime import datetime, timezone, date
from typing import Any, Optional
from uuid import uuid4
# ----------------------------
# Helpers
# ----------------------------
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return an aware UTC datetime; naive values are assumed to be UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = _to_utc_datetime_from_date(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def _to_storage(value: Optional[datetime]) -> Optional[datetime]:
    # Mongo stores naive UTC
    value = _as_utc(value)
    if value is None:
        return None
    return value.replace(tzinfo=None)

def _storage_now() -> datetime:
    return _to_storage(_now_utc())

def _to_utc_datetime_from_date(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, 0, 0, 0, tzinfo=timezone.utc)

def _normalize_email(email: str) -> str:
    return email.strip().lower()

def _gen_id() -> str:
    return str(uuid4())

def success_response(data: Any = None) -> dict:
    return {"success": True, "data": data}
