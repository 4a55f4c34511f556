"""FastAPI web server for chatlog-viewer."""

import logging

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import Response

from .config import get_max_upload_bytes
from .core import ParsedSession
from .detect import detect_format
from .export import session_to_dict, session_to_json, session_to_markdown
from .parsers import InvalidFormatError, available_formats, parse_log

logger = logging.getLogger(__name__)

app = FastAPI(title="chatlog-viewer", version="0.1.0")


async def _read_log(request: Request) -> str:
    """Read the raw request body as a UTF-8 log, enforcing the upload cap."""
    body = await request.body()
    limit = get_max_upload_bytes()
    if len(body) > limit:
        logger.warning("Rejected upload of %d bytes (limit %d)", len(body), limit)
        raise HTTPException(status_code=413, detail=f"Log exceeds {limit} bytes")
    if not body.strip():
        raise HTTPException(status_code=400, detail="Empty log")
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Log is not valid UTF-8")


def _parse(content: str, log_format: str | None) -> tuple[str, ParsedSession]:
    """Resolve the format and parse, mapping parser errors to HTTP 422."""
    if log_format and log_format not in available_formats():
        raise HTTPException(status_code=422, detail=f"Unknown format: {log_format}")
    log_format = log_format or detect_format(content)

    try:
        session = parse_log(content, log_format)
    except InvalidFormatError as e:
        logger.warning("Rejected %s log: %s", e.format, e)
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(
        "Parsed %s log: %d messages, %d tool calls",
        log_format, session.metadata.total_messages, session.metadata.tool_call_count,
    )
    return log_format, session


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/formats")
async def get_formats():
    """Return the list of supported log formats."""
    return available_formats()


@app.post("/api/detect")
async def detect(request: Request):
    """Detect the format of an uploaded log."""
    content = await _read_log(request)
    return {"format": detect_format(content)}


@app.post("/api/parse")
async def parse(
    request: Request,
    format: str | None = Query(None, description="Force a format instead of detecting it"),
):
    """Parse an uploaded log into a session."""
    content = await _read_log(request)
    log_format, session = _parse(content, format)
    return {"format": log_format, "session": session_to_dict(session)}


@app.post("/api/export")
async def export(
    request: Request,
    format: str = Query("md", description="Export format: md or json"),
    log_format: str | None = Query(None, description="Force the input format"),
    title: str = Query("Chat Log", description="Title used for the document and filename"),
):
    """Parse an uploaded log and return it as a Markdown or JSON download."""
    content = await _read_log(request)
    log_format, session = _parse(content, log_format)

    safe_title = "".join(c if c.isalnum() or c in "-_ " else "" for c in title)[:50] or "chat-log"

    if format == "json":
        return Response(
            content=session_to_json(session),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{safe_title}.json"'},
        )
    else:
        return Response(
            content=session_to_markdown(session, title=title, log_format=log_format),
            media_type="text/markdown",
            headers={"Content-Disposition": f'attachment; filename="{safe_title}.md"'},
        )
