"""Environment-driven settings for the parsers and the web server."""

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "digitarald"
DEFAULT_ASSISTANT_PREFIX = "GitHub Copilot:"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def get_user_name() -> str:
    """Return the identifier that opens a user turn in text transcripts."""
    env = os.environ.get("CHATLOG_USER_NAME")
    if env:
        return env
    return DEFAULT_USER_NAME


def get_assistant_prefix() -> str:
    """Return the line prefix that opens an assistant turn in text transcripts."""
    env = os.environ.get("CHATLOG_ASSISTANT_PREFIX")
    if env:
        return env
    return DEFAULT_ASSISTANT_PREFIX


def get_max_upload_bytes() -> int:
    """Return the largest request body the server will parse."""
    env = os.environ.get("CHATLOG_MAX_UPLOAD_BYTES")
    if not env:
        return DEFAULT_MAX_UPLOAD_BYTES
    try:
        value = int(env)
    except ValueError:
        logger.warning("Ignoring non-integer CHATLOG_MAX_UPLOAD_BYTES=%r", env)
        return DEFAULT_MAX_UPLOAD_BYTES
    if value <= 0:
        logger.warning("Ignoring non-positive CHATLOG_MAX_UPLOAD_BYTES=%r", env)
        return DEFAULT_MAX_UPLOAD_BYTES
    return value
