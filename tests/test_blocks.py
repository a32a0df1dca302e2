from ics_reshaper.blocks import extract_event_blocks
from ics_reshaper.models import EventBlock


def test_extract_event_blocks_returns_blocks_in_document_order() -> None:
    text = "\r\n".join(
        [
            "BEGIN:VCALENDAR",
            "BEGIN:VEVENT",
            "SUMMARY:A",
            "END:VEVENT",
            "BEGIN:VEVENT",
            "SUMMARY:B",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )

    blocks = extract_event_blocks(text)

    assert blocks == [
        EventBlock(index=0, text="BEGIN:VEVENT\r\nSUMMARY:A\r\nEND:VEVENT"),
        EventBlock(index=1, text="BEGIN:VEVENT\r\nSUMMARY:B\r\nEND:VEVENT"),
    ]


def test_extract_event_blocks_is_non_greedy_and_case_insensitive() -> None:
    text = "begin:vevent\r\nSUMMARY:A\r\nend:vevent\r\nBEGIN:VEVENT\r\nSUMMARY:B\r\nEND:VEVENT"

    blocks = extract_event_blocks(text)

    assert [block.index for block in blocks] == [0, 1]
    assert "SUMMARY:B" not in blocks[0].text


def test_extract_event_blocks_falls_back_to_synthetic_block() -> None:
    text = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nSUMMARY:Loose\r\nDTSTART:20240101T090000\r\nEND:VCALENDAR"

    blocks = extract_event_blocks(text)

    assert blocks == [
        EventBlock(index=0, text="SUMMARY:Loose\r\nDTSTART:20240101T090000", synthetic=True)
    ]


def test_extract_event_blocks_ignores_unterminated_event() -> None:
    text = "BEGIN:VEVENT\r\nSUMMARY:A\r\nEND:VEVENT\r\nBEGIN:VEVENT\r\nSUMMARY:dangling"

    blocks = extract_event_blocks(text)

    assert len(blocks) == 1
    assert blocks[0].synthetic is False
