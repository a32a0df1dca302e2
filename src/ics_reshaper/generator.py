from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime

from ics_reshaper.blocks import extract_event_blocks
from ics_reshaper.expander import expand_blocks
from ics_reshaper.ics_lines import CRLF, decode_text_value, get_field, normalize_line_endings
from ics_reshaper.models import Diagnostic, GenerationResult, ProcessOptions
from ics_reshaper.timeutil import compute_offset

logger = logging.getLogger(__name__)

DEFAULT_PRODID = "-//ICS Magic Converter//Raw Formatter//EN"
PLACEHOLDER_SUMMARY = "Processed Calendar Event"
DEFAULT_FILENAME_MAX_LENGTH = 30

_SLUG_RE = re.compile(r"[^a-zA-Z0-9]")


class EmptyInputError(ValueError):
    """Raised when the calendar text is empty after trimming."""


def wrap_calendar(blocks: Sequence[str], prodid: str = DEFAULT_PRODID) -> str:
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{prodid}",
        "CALSCALE:GREGORIAN",
        *(block for block in blocks if block),
        "END:VCALENDAR",
    ]
    return CRLF.join(lines)


def extract_summary(blocks: Sequence[str]) -> str:
    for text in blocks:
        field = get_field(text, "SUMMARY")
        if field is None:
            continue
        summary = decode_text_value(field.value).strip()
        if summary:
            return summary
    return PLACEHOLDER_SUMMARY


def slugify(summary: str, max_length: int = DEFAULT_FILENAME_MAX_LENGTH) -> str:
    return _SLUG_RE.sub("_", summary).lower()[:max_length]


def build_filename(
    summary: str,
    occurrence_count: int = 1,
    max_length: int = DEFAULT_FILENAME_MAX_LENGTH,
) -> str:
    slug = slugify(summary, max_length) or slugify(PLACEHOLDER_SUMMARY, max_length)
    if occurrence_count > 1:
        return f"{slug}_x{occurrence_count}.ics"
    return f"{slug}.ics"


def describe(summary: str, occurrence_count: int = 1) -> str:
    if occurrence_count > 1:
        return f"{summary} (weekly x{occurrence_count})"
    return summary


def generate_ics(
    text: str,
    options: ProcessOptions | None = None,
    *,
    prodid: str = DEFAULT_PRODID,
    filename_max_length: int = DEFAULT_FILENAME_MAX_LENGTH,
    generated_at: datetime | None = None,
) -> GenerationResult:
    """Normalize, re-anchor and expand calendar text into a single VCALENDAR document.

    Only empty input is an error. Anything else that cannot be parsed is skipped and
    reported through ``GenerationResult.diagnostics``.
    """
    options = options or ProcessOptions()
    clean_text = text.strip()
    if not clean_text:
        raise EmptyInputError("Input text cannot be empty.")

    normalized = normalize_line_endings(clean_text)
    blocks = extract_event_blocks(normalized)

    diagnostics: list[Diagnostic] = []
    offset = compute_offset(blocks, options.start_date, diagnostics)
    expanded = expand_blocks(
        blocks,
        offset=offset,
        options=options,
        generated_at=generated_at or datetime.now(),
        diagnostics=diagnostics,
    )

    summary = extract_summary(expanded)
    occurrence_count = options.occurrence_count
    result = GenerationResult(
        ics_content=wrap_calendar(expanded, prodid=prodid),
        filename=build_filename(summary, occurrence_count, filename_max_length),
        summary=describe(summary, occurrence_count),
        occurrence_count=occurrence_count,
        block_count=len(blocks),
        diagnostics=tuple(dict.fromkeys(diagnostics)),
    )
    logger.info(
        "ics_generated blocks=%s occurrences=%s offset_seconds=%s skipped_fields=%s",
        result.block_count,
        occurrence_count,
        int(offset.total_seconds()),
        len(result.diagnostics),
    )
    return result
