"""Cheap structural checks that decide which parser handles a log."""

import json
import logging

logger = logging.getLogger(__name__)

TEXT = "text"
JSON = "json"
CHATREPLAY = "chatreplay"


def detect_format(content: str) -> str:
    """Classify raw log content as ``text``, ``json`` or ``chatreplay``.

    Never raises: anything that is not a recognizable JSON export,
    including malformed JSON, is treated as a text transcript.
    """
    if not content.strip().startswith("{"):
        return TEXT

    try:
        data = json.loads(content)
    except ValueError as e:
        logger.debug("Content looks like JSON but does not decode: %s", e)
        return TEXT

    if not isinstance(data, dict):
        return TEXT

    if isinstance(data.get("prompts"), list) and _is_scalar(data.get("exportedAt")):
        return CHATREPLAY
    if isinstance(data.get("requests"), list):
        return JSON
    return TEXT


def _is_scalar(value) -> bool:
    return value is not None and not isinstance(value, (dict, list))
