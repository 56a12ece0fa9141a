"""Value types used by the instrumentation annotator."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True, slots=True)
class InstrumentationRecord:
    """A single ``{name, version}`` entry of the instrumentation source list."""

    name: str
    version: str

    @classmethod
    def from_mapping(cls, value: object) -> Optional["InstrumentationRecord"]:
        """Build a record from a payload mapping.

        Returns ``None`` when ``value`` is not a mapping or when either field is
        missing or not a string.
        """

        if not isinstance(value, Mapping):
            return None
        name = value.get("name")
        version = value.get("version")
        if not isinstance(name, str) or not isinstance(version, str):
            return None
        return cls(name=name, version=version)

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "version": self.version}


@dataclass(slots=True)
class LogEntry:
    """Minimal log entry as handed over by the surrounding logging client.

    Only :attr:`payload` is read or written by the annotator; the remaining
    fields are carried along untouched.
    """

    severity: str = "DEFAULT"
    payload: Optional[Any] = None
    log_name: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["InstrumentationRecord", "LogEntry"]
