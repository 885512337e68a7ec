"""Parsing of IMAP FETCH responses as returned by aioimaplib.

aioimaplib hands back the untagged response lines with literals split
out: a text line ending in ``{n}`` is followed by an element holding
exactly the literal bytes, then the rest of the logical line. This module
turns those lines into one ``FetchRecord`` per message.
"""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from mail_dispatcher.models import decode_mime_header

logger = structlog.get_logger(__name__)

_TOKEN = re.compile(
    rb"""
    \s*(?:
        (?P<open>\()
      | (?P<close>\))
      | "(?P<quoted>(?:[^"\\]|\\.)*)"
      | \{(?P<literal>\d+)\}\s*$
      | (?P<atom>[^\s()"\[\]{]+(?:\[[^\]]*\](?:<[^>]*>)?)?)
    )
    """,
    re.VERBOSE,
)
_QUOTED_ESCAPE = re.compile(rb"\\(.)")
_LITERAL_MARKER = re.compile(rb"\{\d+\}\s*$")
_FETCH_LINE = re.compile(rb"^(?:\*\s+)?\d+\s+FETCH\b", re.IGNORECASE)

# ENVELOPE field positions (RFC 3501 section 7.4.2)
_ENV_SUBJECT = 1
_ENV_FROM = 2
_ENV_TO = 5
_ENV_MESSAGE_ID = 9


@dataclass(frozen=True)
class Envelope:
    subject: str = ""
    from_addr: str = ""
    to_addr: str = ""
    message_id: str = ""


@dataclass(frozen=True)
class FetchRecord:
    """Data items returned for one message by a UID FETCH."""

    sequence: int
    uid: int | None = None
    internal_date: datetime | None = None
    envelope: Envelope | None = None
    body: bytes | None = None


def _tokenize(lines: Iterable[bytes | bytearray]) -> list[tuple[str, bytes]]:
    tokens: list[tuple[str, bytes]] = []
    chunks = iter(lines)
    for chunk in chunks:
        data = bytes(chunk)
        pos = 0
        while pos < len(data):
            match = _TOKEN.match(data, pos)
            if match is None:
                if data[pos:].strip():
                    raise ValueError(f"Unexpected IMAP data: {data[pos:pos + 40]!r}")
                break
            pos = match.end()
            kind = match.lastgroup
            if kind == "literal":
                literal = next(chunks, None)
                if literal is None:
                    raise ValueError("IMAP literal announced but not received")
                tokens.append(("string", bytes(literal)))
            elif kind == "quoted":
                tokens.append(("string", _QUOTED_ESCAPE.sub(rb"\1", match.group("quoted"))))
            elif kind is not None:
                tokens.append((kind, match.group(kind)))
    return tokens


def parse_response(lines: Iterable[bytes | bytearray]) -> list[Any]:
    """Parse response lines into nested lists.

    Atoms become str (``NIL`` becomes None), quoted strings and literals
    become bytes and parenthesized lists become lists.
    """
    stack: list[list[Any]] = [[]]
    for kind, value in _tokenize(lines):
        if kind == "open":
            stack.append([])
        elif kind == "close":
            if len(stack) == 1:
                raise ValueError("Unbalanced ')' in IMAP response")
            closed = stack.pop()
            stack[-1].append(closed)
        elif kind == "atom":
            atom = value.decode("ascii", errors="replace")
            stack[-1].append(None if atom.upper() == "NIL" else atom)
        else:
            stack[-1].append(value)
    if len(stack) != 1:
        raise ValueError("Unbalanced '(' in IMAP response")
    return stack[0]


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _first_address(addresses: Any) -> str:
    """Return ``mailbox@host`` for the first entry of an address list."""
    if not isinstance(addresses, list) or not addresses:
        return ""
    first = addresses[0]
    if not isinstance(first, list) or len(first) < 4:
        return ""
    mailbox, host = _text(first[2]), _text(first[3])
    if mailbox and host:
        return f"{mailbox}@{host}"
    return mailbox


def parse_envelope(values: Any) -> Envelope | None:
    if not isinstance(values, list) or len(values) <= _ENV_MESSAGE_ID:
        return None
    return Envelope(
        subject=decode_mime_header(values[_ENV_SUBJECT]),
        from_addr=_first_address(values[_ENV_FROM]),
        to_addr=_first_address(values[_ENV_TO]),
        message_id=_text(values[_ENV_MESSAGE_ID]),
    )


def parse_internal_date(value: Any) -> datetime | None:
    """Parse an INTERNALDATE such as ``17-Jul-1996 02:44:25 -0700``."""
    text = _text(value).strip()
    if not text:
        return None
    try:
        return datetime.strptime(text, "%d-%b-%Y %H:%M:%S %z")
    except ValueError:
        return None


def _record_from_items(sequence: int, items: list[Any]) -> FetchRecord:
    uid: int | None = None
    internal_date: datetime | None = None
    envelope: Envelope | None = None
    body: bytes | None = None

    for key, value in zip(items[::2], items[1::2]):
        if not isinstance(key, str):
            continue
        name = key.upper()
        if name == "UID":
            uid = int(value)
        elif name == "INTERNALDATE":
            internal_date = parse_internal_date(value)
        elif name == "ENVELOPE":
            envelope = parse_envelope(value)
        elif name in ("BODY[]", "RFC822") and isinstance(value, bytes):
            body = value

    return FetchRecord(
        sequence=sequence,
        uid=uid,
        internal_date=internal_date,
        envelope=envelope,
        body=body,
    )


def _logical_lines(lines: Iterable[bytes | bytearray]) -> Iterator[list[bytes]]:
    """Group response elements into logical lines, keeping literals attached."""
    current: list[bytes] = []
    literal_pending = False
    after_literal = False
    for chunk in lines:
        data = bytes(chunk)
        if literal_pending:
            current.append(data)
            literal_pending = False
            after_literal = True
            continue
        if current and not after_literal:
            yield current
            current = []
        current.append(data)
        after_literal = False
        literal_pending = bool(_LITERAL_MARKER.search(data))
    if current:
        yield current


def iter_fetch_records(lines: Iterable[bytes | bytearray]) -> Iterator[FetchRecord]:
    """Yield one FetchRecord per ``<seq> FETCH (...)`` line in the response.

    Completion text such as ``FETCH completed`` is ignored. A FETCH line
    that cannot be parsed is logged and skipped.
    """
    for line in _logical_lines(lines):
        if not _FETCH_LINE.match(line[0]):
            continue
        try:
            items = parse_response(line)
            if items and items[0] == "*":
                items = items[1:]
            if len(items) < 3 or not isinstance(items[2], list):
                raise ValueError("FETCH line without data items")
            record = _record_from_items(int(items[0]), items[2])
        except (ValueError, TypeError) as e:
            logger.warning("fetch_line_unparseable", error=str(e), line=line[0][:60])
            continue
        yield record
