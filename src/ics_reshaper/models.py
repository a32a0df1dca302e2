from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

_TRUE_VALUES: set[str] = {"true", "1", "yes", "on"}
_FALSE_VALUES: set[str] = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class EventBlock:
    index: int
    text: str
    synthetic: bool = False


@dataclass(frozen=True)
class FieldValue:
    name: str
    params: dict[str, str]
    value: str


@dataclass(frozen=True)
class Diagnostic:
    """A field that was skipped instead of failing the whole conversion."""

    block_index: int
    field: str
    raw_value: str | None
    reason: str


@dataclass(frozen=True)
class ProcessOptions:
    start_date: datetime | None = None
    is_weekly: bool = False
    weekly_count: int | None = None

    @property
    def occurrence_count(self) -> int:
        """Number of weekly passes; count is ignored unless weekly mode is on."""
        if not self.is_weekly:
            return 1
        if self.weekly_count is None or self.weekly_count < 1:
            return 1
        return self.weekly_count

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> ProcessOptions:
        """Build options from the camel-case record used by form-style callers."""
        from ics_reshaper.timeutil import parse_anchor

        raw_start = payload.get("startDate")
        start_date: datetime | None
        if isinstance(raw_start, datetime):
            start_date = raw_start.replace(tzinfo=None)
        elif raw_start:
            start_date = parse_anchor(str(raw_start))
        else:
            start_date = None

        raw_count = payload.get("weeklyCount")
        try:
            weekly_count = int(raw_count) if raw_count is not None else None
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid weeklyCount: {raw_count!r}. Expected an integer.") from exc

        return cls(
            start_date=start_date,
            is_weekly=_parse_flag(payload.get("isWeekly", False), "isWeekly"),
            weekly_count=weekly_count,
        )


@dataclass(frozen=True)
class GenerationResult:
    ics_content: str
    filename: str
    summary: str
    occurrence_count: int = 1
    block_count: int = 1
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, str]:
        return {
            "icsContent": self.ics_content,
            "filename": self.filename,
            "summary": self.summary,
        }


def _parse_flag(value: Any, key: str) -> bool:
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
    raise ValueError(f"Invalid {key}: {value!r}. Expected true or false.")
