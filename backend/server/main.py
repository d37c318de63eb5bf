"""
Relay server process entry point.

Responsibilities:
- Load .env and AppConfig
- Bind the listening socket (the only fatal failure the relay has)
- Hand the socket to uvicorn
"""

from __future__ import annotations

import socket

import uvicorn
from dotenv import load_dotenv

from config import AppConfig
from observability.logger import log_event
from server.app import create_app


def bind_listener(host: str, port: int) -> socket.socket:
    """
    Bind the listening socket before uvicorn starts.

    Raises:
        SystemExit with a readable diagnostic if the address is unusable.
    """
    try:
        return socket.create_server((host, port))
    except OSError as exc:
        log_event({
            "event_type": "SERVER_BIND_FAILED",
            "host": host,
            "port": port,
            "exception": type(exc).__name__,
            "message": str(exc),
        })
        raise SystemExit(
            f"Cannot listen on {host}:{port}: {exc.strerror or exc}"
        ) from exc


def main() -> None:
    load_dotenv()
    config = AppConfig.load_from_env()

    sock = bind_listener(config.host, config.port)

    log_event({
        "event_type": "SERVER_LISTENING",
        "url": f"http://{config.host}:{config.port}",
    })

    server = uvicorn.Server(
        uvicorn.Config(create_app(config), log_level="info")
    )
    server.run(sockets=[sock])


if __name__ == "__main__":
    main()
