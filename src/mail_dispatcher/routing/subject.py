"""Subject routing rule: ``<keyword> - <targetName>``."""

from dataclasses import dataclass

from mail_dispatcher.exceptions import SubjectFormatError

SEPARATOR = " - "


@dataclass(frozen=True)
class SubjectRoute:
    keyword: str
    target: str


def parse_subject(subject: str) -> SubjectRoute:
    """Split a subject into keyword and target name.

    Only the first separator counts, so the target name may itself
    contain ``" - "``. Both halves are trimmed.

    Raises:
        SubjectFormatError: If the separator is missing or either half
            is empty after trimming.
    """
    keyword, sep, target = subject.partition(SEPARATOR)
    if not sep:
        raise SubjectFormatError(f"missing {SEPARATOR!r} separator in {subject!r}")
    keyword, target = keyword.strip(), target.strip()
    if not keyword:
        raise SubjectFormatError(f"empty keyword in {subject!r}")
    if not target:
        raise SubjectFormatError(f"empty target name in {subject!r}")
    return SubjectRoute(keyword=keyword, target=target)
