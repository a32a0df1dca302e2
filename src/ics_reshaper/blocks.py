from __future__ import annotations

import logging
import re

from ics_reshaper.ics_lines import strip_calendar_envelope
from ics_reshaper.models import EventBlock

logger = logging.getLogger(__name__)

_VEVENT_RE = re.compile(r"BEGIN:VEVENT.*?END:VEVENT", re.IGNORECASE | re.DOTALL)


def extract_event_blocks(text: str) -> list[EventBlock]:
    """Return VEVENT blocks in document order.

    Matching is non-greedy, so each END:VEVENT closes the nearest open block. When the
    text holds no VEVENT at all, the whole text (minus any VCALENDAR envelope) is treated
    as one synthetic block so later stages always have something to work on.
    """
    blocks = [
        EventBlock(index=index, text=match.group(0))
        for index, match in enumerate(_VEVENT_RE.finditer(text))
    ]
    if blocks:
        logger.debug("ics_blocks_extracted count=%s", len(blocks))
        return blocks

    logger.debug("ics_blocks_fallback reason=no_vevent length=%s", len(text))
    return [EventBlock(index=0, text=strip_calendar_envelope(text), synthetic=True)]
