from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from ics_reshaper.ics_lines import (
    format_field_line,
    get_field,
    insert_before_end,
    remove_fields,
    replace_field,
)
from ics_reshaper.models import Diagnostic, EventBlock, ProcessOptions
from ics_reshaper.timeutil import format_ics_datetime, read_time_field, weekly_shift

logger = logging.getLogger(__name__)

UID_DOMAIN = "ics-reshaper"


def expand_blocks(
    blocks: Sequence[EventBlock],
    *,
    offset: timedelta,
    options: ProcessOptions,
    generated_at: datetime,
    diagnostics: list[Diagnostic] | None = None,
) -> list[str]:
    """Emit one rewritten block per (occurrence, block), occurrence-major.

    Each occurrence is shifted by ``offset`` plus whole weeks. With more than one
    occurrence every output block gets its own UID, and in weekly mode RRULE lines are
    dropped because the series is written out explicitly.
    """
    occurrence_count = options.occurrence_count
    stamp = generated_at.strftime("%Y%m%dT%H%M%S")
    expanded: list[str] = []
    shared_uids = _shared_uids(blocks) if occurrence_count > 1 else set()
    seen_uids: set[str] = set()

    for occurrence in range(occurrence_count):
        shift = weekly_shift(occurrence)
        for block in blocks:
            text = block.text
            text = _shift_time_field(text, block, "DTSTART", offset, shift, diagnostics, required=True)
            text = _shift_time_field(text, block, "DTEND", offset, shift, diagnostics)
            if occurrence_count > 1:
                text = _ensure_unique_uid(
                    text, block.index, occurrence, stamp, shared_uids=shared_uids, seen_uids=seen_uids
                )
            if options.is_weekly:
                text = remove_fields(text, "RRULE")
            expanded.append(text)

    logger.debug(
        "ics_blocks_expanded blocks=%s occurrences=%s output=%s",
        len(blocks),
        occurrence_count,
        len(expanded),
    )
    return expanded


def _shift_time_field(
    text: str,
    block: EventBlock,
    name: str,
    offset: timedelta,
    shift: relativedelta,
    diagnostics: list[Diagnostic] | None,
    *,
    required: bool = False,
) -> str:
    original = read_time_field(block, name, diagnostics, required=required)
    if original is None:
        return text
    shifted = original + offset + shift
    return replace_field(text, name, format_field_line(name, format_ics_datetime(shifted)))


def _shared_uids(blocks: Sequence[EventBlock]) -> set[str]:
    """UIDs carried by more than one source block, e.g. a series and its RECURRENCE-ID override."""
    counts: dict[str, int] = {}
    for block in blocks:
        uid = get_field(block.text, "UID")
        if uid is not None:
            value = uid.value.strip()
            counts[value] = counts.get(value, 0) + 1
    return {value for value, count in counts.items() if count > 1}


def _ensure_unique_uid(
    text: str,
    block_index: int,
    occurrence: int,
    stamp: str,
    *,
    shared_uids: set[str],
    seen_uids: set[str],
) -> str:
    uid = get_field(text, "UID")
    if uid is None:
        candidate = f"evt-{block_index}-{occurrence}-{stamp}@{UID_DOMAIN}"
    else:
        base = uid.value.strip()
        if base in shared_uids:
            candidate = f"{base}-{block_index}-{occurrence}"
        else:
            candidate = f"{base}-{occurrence}"

    unique = candidate
    attempt = 1
    while unique in seen_uids:
        unique = f"{candidate}-{attempt}"
        attempt += 1
    seen_uids.add(unique)

    if uid is None:
        return insert_before_end(text, format_field_line("UID", unique))
    return replace_field(text, "UID", format_field_line("UID", unique, uid.params))
