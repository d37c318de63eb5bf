"""
Static asset serving for the browser client build.

Any GET that does not match a file under static_dir gets the application
shell (index.html) so client-side routing works. This is unrelated to the
relay protocol; it only has to stay out of the way of /health and /ws.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response

from observability.logger import log_event


def register_static(app: FastAPI, static_dir: str) -> None:
    """Register the catch-all GET route. Must be called after all other routes."""
    root = Path(static_dir).resolve()

    log_event({
        "event_type": "STATIC_DIR_CONFIGURED",
        "static_dir": str(root),
    })
    if not root.is_dir():
        log_event({
            "event_type": "STATIC_DIR_MISSING",
            "static_dir": str(root),
            "hint": "build the web client into this directory",
        })

    @app.get("/{path:path}", include_in_schema=False)
    async def static_or_shell(path: str) -> Response: # pyright: ignore[reportUnusedFunction]
        candidate = (root / path).resolve()
        if path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)

        index_path = root / "index.html"
        try:
            return HTMLResponse(index_path.read_text(encoding="utf-8"))
        except OSError as e:
            log_event({
                "event_type": "INDEX_READ_ERROR",
                "path": str(index_path),
                "error": str(e),
            })
            return PlainTextResponse("Error loading application.", status_code=500)
