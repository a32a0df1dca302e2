from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from ics_reshaper.generator import (
    PLACEHOLDER_SUMMARY,
    EmptyInputError,
    build_filename,
    describe,
    extract_summary,
    generate_ics,
    slugify,
    wrap_calendar,
)
from ics_reshaper.models import Diagnostic, ProcessOptions

GENERATED_AT = datetime(2024, 5, 1, 12, 0, 0)
STANDUP = "BEGIN:VEVENT\nDTSTART:20240101T090000\nDTEND:20240101T100000\nSUMMARY:Standup\nEND:VEVENT"


def field_values(content: str, name: str) -> list[str]:
    return re.findall(rf"^{name}[:;](.*)$", content, flags=re.MULTILINE)


def test_weekly_series_scenario() -> None:
    result = generate_ics(
        STANDUP,
        ProcessOptions(is_weekly=True, weekly_count=3),
        generated_at=GENERATED_AT,
    )

    content = result.ics_content
    assert content.count("BEGIN:VEVENT") == 3
    assert [value.strip() for value in field_values(content, "DTSTART")] == [
        "20240101T090000",
        "20240108T090000",
        "20240115T090000",
    ]
    uids = field_values(content, "UID")
    assert len(uids) == 3
    assert len(set(uids)) == 3
    assert "RRULE" not in content
    assert result.summary == "Standup (weekly x3)"
    assert result.filename == "standup_x3.ics"
    assert result.occurrence_count == 3


def test_anchor_scenario_preserves_duration() -> None:
    result = generate_ics(STANDUP, ProcessOptions(start_date=datetime(2024, 6, 1, 8, 0)))

    content = result.ics_content
    assert content.count("BEGIN:VEVENT") == 1
    assert "\r\nDTSTART:20240601T080000\r\n" in content
    assert "\r\nDTEND:20240601T090000\r\n" in content
    assert result.summary == "Standup"
    assert result.filename == "standup.ics"


def test_anchor_keeps_relative_spacing_between_events() -> None:
    text = "\n".join(
        [
            "BEGIN:VEVENT",
            "DTSTART:20240103T143000",
            "SUMMARY:Later",
            "END:VEVENT",
            "BEGIN:VEVENT",
            "DTSTART:20240101T090000",
            "SUMMARY:Earlier",
            "END:VEVENT",
        ]
    )

    result = generate_ics(text, ProcessOptions(start_date=datetime(2024, 2, 1, 10, 0)))

    assert field_values(result.ics_content, "DTSTART") == ["20240203T153000\r", "20240201T100000\r"]
    assert result.summary == "Later"


def test_empty_input_raises() -> None:
    with pytest.raises(EmptyInputError, match="Input text cannot be empty."):
        generate_ics("")
    with pytest.raises(ValueError):
        generate_ics("  \r\n\t ")


def test_unwrapped_input_gets_exactly_one_envelope() -> None:
    result = generate_ics(STANDUP)

    content = result.ics_content
    assert content.startswith("BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:")
    assert content.endswith("\r\nEND:VCALENDAR")
    assert content.count("BEGIN:VCALENDAR") == 1
    assert content.count("END:VCALENDAR") == 1
    assert "CALSCALE:GREGORIAN" in content


def test_existing_envelope_is_not_duplicated() -> None:
    text = "BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//Other//EN\n" + STANDUP + "\nEND:VCALENDAR\n"

    result = generate_ics(text)

    assert result.ics_content.count("BEGIN:VCALENDAR") == 1
    assert "PRODID:-//Other//EN" not in result.ics_content


def test_fallback_block_without_vevent_still_produces_calendar() -> None:
    result = generate_ics("BEGIN:VCALENDAR\nSUMMARY:Loose\nDTSTART;VALUE=DATE:20240101\nEND:VCALENDAR")

    content = result.ics_content
    assert content.count("BEGIN:VCALENDAR") == 1
    assert "\r\nSUMMARY:Loose\r\nDTSTART:20240101T000000\r\n" in content
    assert result.block_count == 1


def test_placeholder_summary_and_filename() -> None:
    result = generate_ics("BEGIN:VEVENT\nDTSTART:20240101T090000\nEND:VEVENT")

    assert result.summary == PLACEHOLDER_SUMMARY
    assert result.filename == "processed_calendar_event.ics"


def test_output_uses_crlf_only() -> None:
    result = generate_ics("BEGIN:VEVENT\rSUMMARY:x\nEND:VEVENT\r\n")

    assert "\n" not in result.ics_content.replace("\r\n", "")
    assert "\r" not in result.ics_content.replace("\r\n", "")


def test_block_count_times_occurrences() -> None:
    text = "BEGIN:VEVENT\nSUMMARY:A\nEND:VEVENT\nBEGIN:VEVENT\nSUMMARY:B\nEND:VEVENT"

    weekly = generate_ics(text, ProcessOptions(is_weekly=True, weekly_count=4), generated_at=GENERATED_AT)
    single = generate_ics(text, ProcessOptions(is_weekly=False, weekly_count=4))

    assert weekly.ics_content.count("BEGIN:VEVENT") == 8
    assert len(set(field_values(weekly.ics_content, "UID"))) == 8
    assert single.ics_content.count("BEGIN:VEVENT") == 2
    assert single.occurrence_count == 1


def test_diagnostics_report_each_skipped_field_once() -> None:
    text = "BEGIN:VEVENT\nDTSTART:whenever\nSUMMARY:A\nEND:VEVENT"

    result = generate_ics(text, ProcessOptions(start_date=datetime(2024, 1, 1, 9, 0)))

    assert "DTSTART:whenever" in result.ics_content
    assert result.diagnostics == (
        Diagnostic(block_index=0, field="DTSTART", raw_value="whenever", reason="unparseable"),
    )


def test_custom_prodid_is_written() -> None:
    result = generate_ics(STANDUP, prodid="-//Acme//Planner//EN")

    assert "\r\nPRODID:-//Acme//Planner//EN\r\n" in result.ics_content


def test_to_dict_uses_camel_case_keys() -> None:
    result = generate_ics(STANDUP)

    assert result.to_dict() == {
        "icsContent": result.ics_content,
        "filename": "standup.ics",
        "summary": "Standup",
    }


def test_wrap_calendar_skips_empty_blocks() -> None:
    assert wrap_calendar(["", "SUMMARY:x"], prodid="p") == (
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:p\r\nCALSCALE:GREGORIAN\r\nSUMMARY:x\r\nEND:VCALENDAR"
    )


def test_extract_summary_unescapes_and_skips_blank_values() -> None:
    blocks = ["BEGIN:VEVENT\r\nSUMMARY:   \r\nEND:VEVENT", "BEGIN:VEVENT\r\nSUMMARY:Team\\, sync\r\nEND:VEVENT"]

    assert extract_summary(blocks) == "Team, sync"
    assert extract_summary(["BEGIN:VEVENT\r\nEND:VEVENT"]) == PLACEHOLDER_SUMMARY


def test_slugify_and_filename() -> None:
    assert slugify("Team, sync!") == "team__sync_"
    assert slugify("A" * 50) == "a" * 30
    assert slugify("Quarterly Planning", max_length=9) == "quarterly"
    assert build_filename("Team sync", 1) == "team_sync.ics"
    assert build_filename("Team sync", 5) == "team_sync_x5.ics"
    assert build_filename("", 1) == "processed_calendar_event.ics"


def test_describe_annotates_series() -> None:
    assert describe("Standup") == "Standup"
    assert describe("Standup", 6) == "Standup (weekly x6)"


def test_options_from_mapping_reads_form_record() -> None:
    options = ProcessOptions.from_mapping({"startDate": "2024-06-01T08:00", "isWeekly": True, "weeklyCount": 3})

    assert options == ProcessOptions(start_date=datetime(2024, 6, 1, 8, 0), is_weekly=True, weekly_count=3)
    assert ProcessOptions.from_mapping({}) == ProcessOptions()


def test_options_from_mapping_rejects_non_integer_count() -> None:
    with pytest.raises(ValueError, match="weeklyCount"):
        ProcessOptions.from_mapping({"isWeekly": True, "weeklyCount": "many"})


def test_occurrence_count_rules() -> None:
    assert ProcessOptions(is_weekly=False, weekly_count=4).occurrence_count == 1
    assert ProcessOptions(is_weekly=True, weekly_count=None).occurrence_count == 1
    assert ProcessOptions(is_weekly=True, weekly_count=0).occurrence_count == 1
    assert ProcessOptions(is_weekly=True, weekly_count=-2).occurrence_count == 1
    assert ProcessOptions(is_weekly=True, weekly_count=4).occurrence_count == 4


def test_options_from_mapping_parses_string_flags() -> None:
    assert ProcessOptions.from_mapping({"isWeekly": "false", "weeklyCount": 3}).occurrence_count == 1
    assert ProcessOptions.from_mapping({"isWeekly": "true", "weeklyCount": "3"}).occurrence_count == 3
    assert ProcessOptions.from_mapping({"isWeekly": 0}).is_weekly is False
    with pytest.raises(ValueError, match="isWeekly"):
        ProcessOptions.from_mapping({"isWeekly": "sometimes"})


def test_timezone_aware_anchor_is_treated_as_floating() -> None:
    anchor = datetime(2024, 6, 1, 8, 0, tzinfo=timezone(timedelta(hours=2)))

    result = generate_ics(STANDUP, ProcessOptions(start_date=anchor))

    assert "\r\nDTSTART:20240601T080000\r\n" in result.ics_content
    assert "\r\nDTEND:20240601T090000\r\n" in result.ics_content
