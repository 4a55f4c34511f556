"""Abstract base class for chat log parsers."""

from abc import ABC, abstractmethod

from ..core import ParsedSession


class InvalidFormatError(ValueError):
    """Raised when content does not match the structure a parser expects."""

    def __init__(self, format: str, message: str):
        super().__init__(message)
        self.format = format


class LogParser(ABC):
    """Base class for log format parsers.

    Each parser (text transcript, JSON export, chat replay) turns raw
    content into the same ``ParsedSession`` model. Parsers hold no state
    between calls: everything a parse needs lives inside ``parse``.
    """

    format: str  # "text", "json", "chatreplay"

    @abstractmethod
    def parse(self, content: str) -> ParsedSession:
        """Parse raw log content into a session."""
        ...
