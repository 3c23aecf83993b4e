"""Parser for ``host:port@username:password`` credential lists."""

import logging
import re
from pathlib import Path
from typing import Iterable

from hostwatch.exceptions import CredentialFileError, CredentialParseError
from hostwatch.models import Credential

logger = logging.getLogger(__name__)

LINE_FORMAT = "host:port@username:password"

# greedy host, strict trailing port: "2001:db8::1:22" -> ("2001:db8::1", "22")
_HOST_PORT_RE = re.compile(r"^(.+):(\d+)$", re.ASCII)

ALLOWED_SUFFIXES = (".txt",)


def parse_line(line: str, line_number: int) -> Credential:
    """Parse a single non-empty line. ``line_number`` is 1-based."""
    line = line.strip()

    if "@" not in line or ":" not in line:
        raise CredentialParseError(
            line_number,
            f"Invalid format on line {line_number}. Expected format: {LINE_FORMAT}",
        )

    host_port, _, credentials = line.partition("@")
    if not host_port or not credentials:
        raise CredentialParseError(
            line_number,
            f"Invalid format on line {line_number}. Expected format: {LINE_FORMAT}",
        )

    match = _HOST_PORT_RE.match(host_port)
    if match is None:
        raise CredentialParseError(
            line_number,
            f"Invalid host:port format on line {line_number}. Expected: host:port",
        )
    host, port_token = match.groups()

    port = int(port_token, 10)
    if not 1 <= port <= 65535:
        raise CredentialParseError(
            line_number,
            f"Invalid port number on line {line_number}: {port_token} "
            f"(expected 1-65535 in {LINE_FORMAT})",
        )

    username, sep, password = credentials.partition(":")
    if not sep:
        raise CredentialParseError(
            line_number,
            f"Invalid credentials format on line {line_number}. Expected: username:password",
        )

    username = username.strip()
    password = password.strip()
    if not username or not password:
        raise CredentialParseError(
            line_number,
            f"Username or password cannot be empty on line {line_number}. "
            f"Expected format: {LINE_FORMAT}",
        )

    if not host.strip():
        raise CredentialParseError(
            line_number,
            f"Host cannot be empty on line {line_number}. Expected format: {LINE_FORMAT}",
        )

    return Credential(host=host, port=port, username=username, password=password)


def parse_credentials(text: str) -> list[Credential]:
    """
    Parse a credential list, one ``host:port@username:password`` per line.

    Blank lines are skipped but still counted, so the line number in a
    CredentialParseError always points into the original text. Parsing
    stops at the first bad line and nothing is returned in that case.

    :raises CredentialParseError: on the first malformed line
    """
    credentials = []
    for line_number, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        credentials.append(parse_line(line, line_number))

    logger.debug(f"Parsed {len(credentials)} credentials")
    return credentials


def format_credentials(credentials: Iterable[Credential]) -> str:
    return "\n".join(credential.format() for credential in credentials)


def load_credentials_file(path: str | Path) -> list[Credential]:
    """Read and parse a UTF-8 ``.txt`` credential file."""
    path = Path(path)
    if path.suffix.lower() not in ALLOWED_SUFFIXES:
        raise CredentialFileError(
            f"Invalid file type '{path.name}'. Please upload a .txt file"
        )

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialFileError(f"Cannot read credential file {path}: {e}") from e

    logger.info(f"Loading credentials from {path}")
    return parse_credentials(text)
