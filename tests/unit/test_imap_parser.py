"""Tests for IMAP FETCH response parsing."""

from datetime import datetime, timedelta, timezone

from mail_dispatcher.transport.imap_parser import (
    iter_fetch_records,
    parse_internal_date,
    parse_response,
)

RAW = b"Subject: Hello\r\nFrom: a@example.org\r\n\r\nBody\r\n"

ENVELOPE = (
    b'ENVELOPE ("Wed, 01 Oct 2026 09:30:00 +0000" "=?UTF-8?B?5oql5ZGKIC0g6LSi5Yqh6YOo?=" '
    b'(("Alice" NIL "alice" "example.org")) (("Alice" NIL "alice" "example.org")) '
    b'(("Alice" NIL "alice" "example.org")) ((NIL NIL "inbox" "example.com")) '
    b'NIL NIL NIL "<id-1@example.org>")'
)


def fetch_lines(seq: int, uid: int) -> list[bytes]:
    """Build response elements the way aioimaplib returns them."""
    head = (
        f"{seq} FETCH (UID {uid} INTERNALDATE \"01-Oct-2026 09:30:00 +0200\" ".encode()
        + ENVELOPE
        + f" BODY[] {{{len(RAW)}}}".encode()
    )
    return [head, RAW, b")"]


class TestParseResponse:
    """Test the generic tokenizer."""

    def test_nested_lists_and_nil(self) -> None:
        assert parse_response([b'(A "b c" NIL (1 2))']) == [["A", b"b c", None, ["1", "2"]]]

    def test_quoted_escapes(self) -> None:
        assert parse_response([b'"say \\"hi\\""']) == [b'say "hi"']

    def test_literal_consumes_next_element(self) -> None:
        assert parse_response([b"(X {5}", b"ab)cd", b")"]) == [["X", b"ab)cd"]]


class TestParseInternalDate:
    def test_valid(self) -> None:
        value = parse_internal_date(b"01-Oct-2026 09:30:00 +0200")

        assert value == datetime(2026, 10, 1, 9, 30, tzinfo=timezone(timedelta(hours=2)))

    def test_invalid(self) -> None:
        assert parse_internal_date(b"yesterday") is None


class TestIterFetchRecords:
    """Test iter_fetch_records()."""

    def test_single_record(self) -> None:
        records = list(iter_fetch_records(fetch_lines(1, 42) + [b"FETCH completed"]))

        assert len(records) == 1
        record = records[0]
        assert record.sequence == 1
        assert record.uid == 42
        assert record.body == RAW
        assert record.internal_date is not None
        assert record.envelope is not None
        assert record.envelope.subject == "报告 - 财务部"
        assert record.envelope.from_addr == "alice@example.org"
        assert record.envelope.to_addr == "inbox@example.com"
        assert record.envelope.message_id == "<id-1@example.org>"

    def test_multiple_records(self) -> None:
        lines = fetch_lines(1, 42) + fetch_lines(2, 43)

        assert [r.uid for r in iter_fetch_records(lines)] == [42, 43]

    def test_untagged_prefix_is_accepted(self) -> None:
        lines = fetch_lines(3, 7)
        lines[0] = b"* " + lines[0]

        assert [r.uid for r in iter_fetch_records(lines)] == [7]

    def test_unparseable_line_is_skipped(self) -> None:
        lines = [b"1 FETCH (UID notanumber)"] + fetch_lines(2, 43)

        assert [r.uid for r in iter_fetch_records(lines)] == [43]

    def test_non_fetch_lines_ignored(self) -> None:
        assert list(iter_fetch_records([b"OK Done", b"5 EXISTS"])) == []
