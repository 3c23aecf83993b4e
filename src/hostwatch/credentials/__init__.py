"""Credential list parsing."""

from hostwatch.credentials.parser import (
    LINE_FORMAT,
    format_credentials,
    load_credentials_file,
    parse_credentials,
    parse_line,
)

__all__ = [
    "LINE_FORMAT",
    "format_credentials",
    "load_credentials_file",
    "parse_credentials",
    "parse_line",
]
