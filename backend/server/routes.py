"""
Route registration for the relay.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire each WebSocket to a TransportSession and the shared RelayHub
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio

from fastapi import WebSocket, WebSocketDisconnect, FastAPI

from observability.logger import log_event
from relay.hub import RelayHub
from session.transport import TransportSession
from spec import WS_PATH


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket(WS_PATH)
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        hub: RelayHub = app.state.hub

        session = TransportSession(
            ws,
            session_id=hub.new_session_id(),
            max_audio_frames=app.state.config.audio_out_queue_max_frames,
        )
        sender = asyncio.create_task(session.run_sender())
        reason = "client_disconnect"

        try:
            hub.on_connect(session)

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    break

                if msg.get("bytes") is not None:
                    hub.on_stream(session, msg["bytes"])

                elif msg.get("text") is not None:
                    hub.on_text(session, msg["text"])

        except WebSocketDisconnect:
            pass

        except Exception as exc:  # pylint: disable=broad-exception-caught
            reason = "server_error"
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": session.session_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        finally:
            hub.on_disconnect(session, reason=reason)
            session.close()
            await sender
