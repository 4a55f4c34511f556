"""Format registry and the single parsing entry point."""

from ..core import ParsedSession
from ..detect import detect_format
from .base import InvalidFormatError, LogParser
from .chatreplay import ChatReplayParser
from .json_export import JsonExportParser
from .text import TextLogParser

__all__ = [
    "InvalidFormatError",
    "LogParser",
    "available_formats",
    "get_parser",
    "parse_log",
]

_PARSERS: dict[str, type[LogParser]] = {
    ParserClass.format: ParserClass
    for ParserClass in [TextLogParser, JsonExportParser, ChatReplayParser]
}


def available_formats() -> list[str]:
    """Return the names of all supported log formats."""
    return list(_PARSERS)


def get_parser(log_format: str) -> LogParser | None:
    """Return a fresh parser for a format name, or None if unknown."""
    ParserClass = _PARSERS.get(log_format)
    if ParserClass is None:
        return None
    return ParserClass()


def parse_log(content: str, log_format: str | None = None) -> ParsedSession:
    """Parse a log, detecting its format unless one is given.

    Raises ``InvalidFormatError`` if a JSON-based parser rejects the
    content, and ``ValueError`` for an unknown ``log_format``.
    """
    log_format = log_format or detect_format(content)
    parser = get_parser(log_format)
    if parser is None:
        raise ValueError(f"Unknown log format: {log_format}")
    return parser.parse(content)
