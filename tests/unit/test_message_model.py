"""Tests for message and record models."""

from datetime import datetime, timezone

from mail_dispatcher.models import (
    DispatchOutcome,
    NormalizedMessage,
    OutcomeStatus,
    decode_mime_header,
    header_address,
)


class TestHeaderHelpers:
    """Test header decoding helpers."""

    def test_decode_encoded_word(self) -> None:
        assert decode_mime_header("=?UTF-8?B?5oql5ZGKIC0g6LSi5Yqh6YOo?=") == "报告 - 财务部"

    def test_decode_bytes(self) -> None:
        assert decode_mime_header(b"Plain subject") == "Plain subject"

    def test_decode_none(self) -> None:
        assert decode_mime_header(None) == ""

    def test_folded_header_collapses(self) -> None:
        assert decode_mime_header("Weekly\r\n report") == "Weekly report"

    def test_header_address_with_display_name(self) -> None:
        assert header_address("Alice <alice@example.org>") == "alice@example.org"

    def test_header_address_bare(self) -> None:
        assert header_address("bob@example.org") == "bob@example.org"


class TestNormalizedMessageBuild:
    """Test NormalizedMessage.build()."""

    def test_envelope_fields_win(self, sample_email_bytes: bytes) -> None:
        message = NormalizedMessage.build(
            "1-42",
            subject="From envelope",
            from_addr="env@example.org",
            to_addr="inbox@example.com",
            raw=sample_email_bytes,
        )

        assert message.subject == "From envelope"
        assert message.from_addr == "env@example.org"

    def test_empty_fields_fall_back_to_headers(self, sample_email_bytes: bytes) -> None:
        message = NormalizedMessage.build("1-42", raw=sample_email_bytes)

        assert message.subject == "报告 - 财务部"
        assert message.from_addr == "alice@example.org"
        assert message.to_addr == "inbox@example.com"
        assert message.body.strip() == "Quarterly numbers attached."
        assert message.raw == sample_email_bytes

    def test_received_at_defaults_to_now(self) -> None:
        before = datetime.now(timezone.utc)
        message = NormalizedMessage.build("1-1", subject="x")

        assert message.received_at >= before
        assert message.body == ""

    def test_received_at_kept(self, received_at: datetime) -> None:
        message = NormalizedMessage.build("1-1", subject="x", received_at=received_at)

        assert message.received_at == received_at

    def test_multipart_uses_text_part(self) -> None:
        raw = (
            b"Subject: Multi\r\n"
            b"MIME-Version: 1.0\r\n"
            b'Content-Type: multipart/alternative; boundary="b1"\r\n'
            b"\r\n"
            b"--b1\r\n"
            b"Content-Type: text/html\r\n\r\n<p>html</p>\r\n"
            b"--b1\r\n"
            b"Content-Type: text/plain\r\n\r\nplain text\r\n"
            b"--b1--\r\n"
        )

        message = NormalizedMessage.build("1-2", raw=raw)

        assert message.body.strip() == "plain text"


class TestDispatchOutcome:
    """Test DispatchOutcome."""

    def test_to_dict(self, received_at: datetime) -> None:
        outcome = DispatchOutcome(
            account_id=1,
            message_id="1-42",
            subject="报告 - 财务部",
            from_addr="alice@example.org",
            to_addr="inbox@example.com",
            received_at=received_at,
            status=OutcomeStatus.FORWARDED,
            forward_to="finance@example.com",
            forwarded_at=received_at,
        )

        data = outcome.to_dict()

        assert outcome.is_forwarded
        assert data["status"] == "forwarded"
        assert data["received_at"] == "2026-10-01T09:30:00+00:00"
        assert data["error"] is None
