"""
Utility helper functions
"""
from datetime import date, datetime, timezone
from typing import Any, Optional
import re


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_dt(value: Any) -> Optional[datetime]:
    """Parse ISO dates/datetimes (``Z`` suffix allowed) into naive UTC"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        raw = str(value).strip()
        if not raw:
            return None
        if len(raw) == 10:
            return datetime.strptime(raw, "%Y-%m-%d")
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_snake(name: str) -> str:
    """Convert camelCase / PascalCase keys to snake_case"""
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()

