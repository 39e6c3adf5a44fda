from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Mapping

from rim.domain.errors import ValidationError


def _from_epoch(seconds: float, nanoseconds: float = 0) -> datetime:
    return datetime.fromtimestamp(float(seconds) + float(nanoseconds) / 1e9)


def _local_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def to_instant(raw: Any) -> datetime:
    """
    Normalizes every timestamp shape stored or received by the persistence
    layer to a naive local ``datetime``:
      datetime / date, ISO-8601 text ("2024-05-01 10:00:00", "...T...Z"),
      epoch seconds, {"seconds": .., "nanoseconds": ..} / {"_seconds": ..}
      mappings and objects exposing to_datetime() / ToDatetime().
    """
    if isinstance(raw, datetime):
        return _local_naive(raw)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min)
    if isinstance(raw, bool):
        raise ValidationError(f"Unsupported timestamp value: {raw!r}")
    if isinstance(raw, (int, float)):
        return _from_epoch(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _local_naive(datetime.fromisoformat(text))
        except ValueError:
            raise ValidationError(f"Unsupported timestamp text: {raw!r}") from None
    if isinstance(raw, Mapping):
        seconds = raw.get("seconds", raw.get("_seconds"))
        if seconds is not None:
            nanos = raw.get("nanoseconds", raw.get("_nanoseconds", 0)) or 0
            return _from_epoch(seconds, nanos)
    for attr in ("to_datetime", "ToDatetime", "to_pydatetime"):
        convert = getattr(raw, attr, None)
        if callable(convert):
            return to_instant(convert())
    raise ValidationError(f"Unsupported timestamp value: {raw!r}")


def to_storage(dt: datetime) -> str:
    return to_instant(dt).replace(microsecond=0).isoformat(sep=" ")
