from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timedelta

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from ics_reshaper.ics_lines import get_field
from ics_reshaper.models import Diagnostic, EventBlock

logger = logging.getLogger(__name__)

_NOT_DATE_CHAR_RE = re.compile(r"[^0-9T]")


def parse_ics_datetime(value: str) -> datetime | None:
    """Parse an ICS timestamp as floating (naive) local time.

    Every character except digits and ``T`` is discarded first, so ``Z`` suffixes and
    stray punctuation are tolerated. Returns None when fewer than 8 date digits remain
    or a component is out of range.
    """
    if ":" in value:
        value = value.rsplit(":", maxsplit=1)[1]
    cleaned = _NOT_DATE_CHAR_RE.sub("", value)
    date_part, separator, time_part = cleaned.partition("T")
    if len(date_part) < 8:
        return None

    year = int(date_part[0:4])
    month = int(date_part[4:6])
    day = int(date_part[6:8])
    hour = minute = second = 0
    if separator:
        time_digits = time_part.replace("T", "")
        hour = _int_or_zero(time_digits[0:2])
        minute = _int_or_zero(time_digits[2:4])
        second = _int_or_zero(time_digits[4:6])

    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def _int_or_zero(digits: str) -> int:
    return int(digits) if digits else 0


def format_ics_datetime(dt: datetime) -> str:
    """Render ``YYYYMMDDTHHMM00``; seconds are always written as zero."""
    return f"{dt.year:04d}{dt.month:02d}{dt.day:02d}T{dt.hour:02d}{dt.minute:02d}00"


def parse_anchor(value: str) -> datetime:
    """Parse 'YYYY-MM-DDTHH:MM' (or a bare date) as floating local time. Raises ValueError."""
    text = value.strip()
    if not text:
        raise ValueError("Start date must not be empty. Expected YYYY-MM-DDTHH:MM.")
    try:
        parsed = isoparse(text)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Invalid start date: {value!r}. Expected YYYY-MM-DDTHH:MM.") from exc
    return parsed.replace(tzinfo=None)


def weekly_shift(occurrence: int) -> relativedelta:
    return relativedelta(weeks=occurrence)


def read_time_field(
    block: EventBlock,
    name: str,
    diagnostics: list[Diagnostic] | None = None,
    *,
    required: bool = False,
) -> datetime | None:
    """Parse a DTSTART/DTEND style field of ``block``; skipped fields are recorded, never raised."""
    field = get_field(block.text, name)
    if field is None:
        if required:
            _record_skip(diagnostics, block.index, name, None, "missing")
        return None

    parsed = parse_ics_datetime(field.value)
    if parsed is None:
        _record_skip(diagnostics, block.index, name, field.value, "unparseable")
    return parsed


def _record_skip(
    diagnostics: list[Diagnostic] | None,
    block_index: int,
    field: str,
    raw_value: str | None,
    reason: str,
) -> None:
    logger.debug("ics_field_skipped block=%s field=%s reason=%s", block_index, field, reason)
    if diagnostics is not None:
        diagnostics.append(
            Diagnostic(block_index=block_index, field=field, raw_value=raw_value, reason=reason)
        )


def find_earliest_start(
    blocks: Iterable[EventBlock],
    diagnostics: list[Diagnostic] | None = None,
) -> datetime | None:
    earliest: datetime | None = None
    for block in blocks:
        start = read_time_field(block, "DTSTART", diagnostics, required=True)
        if start is None:
            continue
        if earliest is None or start < earliest:
            earliest = start
    return earliest


def compute_offset(
    blocks: Iterable[EventBlock],
    target: datetime | None,
    diagnostics: list[Diagnostic] | None = None,
) -> timedelta:
    """Signed shift that moves the earliest DTSTART onto ``target``; zero when nothing parses."""
    if target is None:
        return timedelta(0)
    target = target.replace(tzinfo=None)

    earliest = find_earliest_start(blocks, diagnostics)
    if earliest is None:
        logger.debug("ics_offset_skipped reason=no_parseable_start")
        return timedelta(0)
    return target - earliest
