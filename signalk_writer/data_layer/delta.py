"""
Delta model - Signal K update events and the points built from them.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

FieldValue = Union[float, int, str]

_FRACTION_RE = re.compile(r"(T\d{2}:\d{2}:\d{2})[.,](\d+)")


@dataclass(frozen=True)
class PathValue:
    """A single measurement inside an update."""
    path: str
    value: Any = None


@dataclass(frozen=True)
class Update:
    """A group of path values sharing one source timestamp."""
    timestamp: Optional[str] = None
    values: List[PathValue] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Update":
        values = []
        for item in data.get("values") or []:
            if isinstance(item, Mapping) and isinstance(item.get("path"), str):
                values.append(PathValue(path=item["path"], value=item.get("value")))
        return cls(timestamp=data.get("timestamp"), values=values)


@dataclass(frozen=True)
class Delta:
    """
    A Signal K delta: an optional vessel context plus its updates.

    has_context tells an absent context apart from an explicit null one.
    """
    context: Optional[str] = None
    updates: List[Update] = field(default_factory=list)
    has_context: bool = False

    def __post_init__(self):
        if self.context is not None:
            object.__setattr__(self, "has_context", True)

    @classmethod
    def from_dict(cls, data: Any) -> "Delta":
        """
        Build a delta from its decoded JSON form.

        Raises:
            ValueError: if the document is not a JSON object
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Delta must be a JSON object, got {type(data).__name__}")

        updates = [
            Update.from_dict(update)
            for update in data.get("updates") or []
            if isinstance(update, Mapping)
        ]
        return cls(
            context=data.get("context"),
            updates=updates,
            has_context="context" in data
        )


@dataclass
class Point:
    """One time-series record destined for the store."""
    measurement: str
    fields: Dict[str, FieldValue]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'measurement': self.measurement,
            'fields': dict(self.fields),
            'timestamp': self.timestamp.isoformat()
        }


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 update timestamp.

    Anything that does not parse to a valid instant falls back to the
    current time. Naive timestamps are taken to be UTC.
    """
    if isinstance(value, str) and value:
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        text = _FRACTION_RE.sub(
            lambda m: f"{m.group(1)}.{(m.group(2) + '000000')[:6]}", text, count=1
        )
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

    logger.warning(f"Invalid update timestamp {value!r}, using current time")
    return utc_now()
