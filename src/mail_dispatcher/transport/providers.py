"""Mapping from an IMAP endpoint to the matching SMTP submission endpoint.

Accounts only configure their IMAP server. The SMTP host and port are
looked up by domain suffix in PROVIDER_ENDPOINTS; unknown domains swap the
``imap.`` host prefix for ``smtp.`` and use the submission port.
"""

from dataclasses import dataclass

IMAPS_PORT = 993
STARTTLS_PORT = 587
IMPLICIT_TLS_PORT = 465
PLAIN_PORT = 25


@dataclass(frozen=True)
class SubmissionEndpoint:
    host: str
    port: int


# Domain suffix -> submission endpoint. First match wins.
PROVIDER_ENDPOINTS: tuple[tuple[str, SubmissionEndpoint], ...] = (
    ("qq.com", SubmissionEndpoint("smtp.qq.com", STARTTLS_PORT)),
    ("gmail.com", SubmissionEndpoint("smtp.gmail.com", STARTTLS_PORT)),
    ("163.com", SubmissionEndpoint("smtp.163.com", PLAIN_PORT)),
    ("126.com", SubmissionEndpoint("smtp.126.com", PLAIN_PORT)),
)


def split_server(server: str, default_port: int = IMAPS_PORT) -> tuple[str, int]:
    """Split ``host[:port]`` into host and port, applying the default port.

    Raises:
        ValueError: If the port part is not a number.
    """
    server = server.strip()
    host, sep, port = server.rpartition(":")
    if not sep:
        return server, default_port
    if not port.isdigit():
        raise ValueError(f"Invalid port in server address: {server!r}")
    return host, int(port)


def _matches_suffix(host: str, suffix: str) -> bool:
    return host == suffix or host.endswith("." + suffix)


def resolve_submission_endpoint(server: str) -> SubmissionEndpoint:
    """Return the SMTP endpoint to use for an account's IMAP server."""
    host, _ = split_server(server)
    host = host.lower()

    for suffix, endpoint in PROVIDER_ENDPOINTS:
        if _matches_suffix(host, suffix):
            return endpoint

    if host.startswith("imap."):
        host = "smtp." + host[len("imap."):]
    return SubmissionEndpoint(host, STARTTLS_PORT)
