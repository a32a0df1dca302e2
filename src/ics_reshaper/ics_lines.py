from __future__ import annotations

import re

from ics_reshaper.models import FieldValue

CRLF = "\r\n"

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_ENVELOPE_PROPERTIES: frozenset[str] = frozenset({"VERSION", "PRODID", "CALSCALE", "METHOD"})


def normalize_line_endings(text: str) -> str:
    """Rewrite every line terminator (CRLF, CR or LF) as CRLF. Idempotent."""
    return _LINE_BREAK_RE.sub(CRLF, text)


def split_lines(text: str) -> list[str]:
    return _LINE_BREAK_RE.split(text)


def property_name(line: str) -> str | None:
    """Upper-cased property name of a content line, or None if the line has no name part."""
    match = re.match(r"([A-Za-z0-9-]+)[:;]", line)
    if match is None:
        return None
    return match.group(1).upper()


def parse_field_line(line: str) -> FieldValue | None:
    name = property_name(line)
    if name is None:
        return None

    # The first colon outside a quoted parameter value separates name/params from value.
    in_quotes = False
    separator = -1
    for position, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif char == ":" and not in_quotes:
            separator = position
            break
    if separator < 0:
        return None

    head, value = line[:separator], line[separator + 1 :]
    params: dict[str, str] = {}
    for item in head.split(";")[1:]:
        if "=" not in item:
            continue
        key, param_value = item.split("=", maxsplit=1)
        params[key.upper()] = param_value.strip('"')
    return FieldValue(name=name, params=params, value=value)


def format_field_line(name: str, value: str, params: dict[str, str] | None = None) -> str:
    head = name.upper()
    for key, param_value in (params or {}).items():
        if any(char in param_value for char in ':;,'):
            param_value = f'"{param_value}"'
        head += f";{key}={param_value}"
    return f"{head}:{value}"


def get_field(block_text: str, name: str) -> FieldValue | None:
    wanted = name.upper()
    for line in split_lines(block_text):
        if property_name(line) == wanted:
            return parse_field_line(line)
    return None


def replace_field(block_text: str, name: str, new_line: str) -> str:
    """Replace the whole first ``name`` line; text without such a line is returned as is."""
    wanted = name.upper()
    lines = split_lines(block_text)
    for position, line in enumerate(lines):
        if property_name(line) == wanted:
            lines[position] = new_line
            return CRLF.join(lines)
    return block_text


def remove_fields(block_text: str, name: str) -> str:
    wanted = name.upper()
    lines = [line for line in split_lines(block_text) if property_name(line) != wanted]
    return CRLF.join(lines)


def insert_before_end(block_text: str, line: str, component: str = "VEVENT") -> str:
    end_marker = f"END:{component.upper()}"
    lines = split_lines(block_text)
    for position in range(len(lines) - 1, -1, -1):
        if lines[position].strip().upper() == end_marker:
            lines.insert(position, line)
            return CRLF.join(lines)

    if not block_text:
        return line
    if block_text.endswith(CRLF):
        return f"{block_text}{line}"
    return f"{block_text}{CRLF}{line}"


def strip_calendar_envelope(text: str) -> str:
    """Drop VCALENDAR wrapper lines and VTIMEZONE components, keeping everything else."""
    kept: list[str] = []
    in_timezone = False
    for line in split_lines(text):
        upper = line.strip().upper()
        if upper == "BEGIN:VTIMEZONE":
            in_timezone = True
            continue
        if upper == "END:VTIMEZONE":
            in_timezone = False
            continue
        if in_timezone:
            continue
        if upper in {"BEGIN:VCALENDAR", "END:VCALENDAR"}:
            continue
        if property_name(line) in _ENVELOPE_PROPERTIES:
            continue
        kept.append(line)
    return CRLF.join(kept).strip(CRLF)


def decode_text_value(raw: str) -> str:
    value = raw.replace("\\n", "\n").replace("\\N", "\n")
    value = value.replace("\\,", ",").replace("\\;", ";")
    value = value.replace("\\\\", "\\")
    return value
