"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide typed, immutable config objects for the relay server and client

Non-responsibilities:
- No relay logic
- No protocol constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from spec import (
    AUDIO_OUT_QUEUE_MAX_FRAMES,
    RECONNECT_MAX_ATTEMPTS,
    WS_PATH,
)


def parse_device(value: str | None) -> int | str | None:
    """Device selector: empty -> system default, digits -> index, else name."""
    if not value:
        return None
    return int(value) if value.isdigit() else value


def _optional_device(name: str) -> int | str | None:
    return parse_device(os.environ.get(name))


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable relay server configuration.

    Constructed once at process startup and stored on app.state.
    """

    # ------------------------------------------------------------------
    # Listener
    # ------------------------------------------------------------------

    host: str
    port: int

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    static_dir: str
    cors_origins: tuple[str, ...]

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------

    audio_out_queue_max_frames: int

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if PORT or AUDIO_OUT_QUEUE_MAX_FRAMES is not an integer.
        """
        origins = os.environ.get("CORS_ORIGINS", "*")
        return AppConfig(
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3000")),
            static_dir=os.environ.get("STATIC_DIR", "dist"),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            audio_out_queue_max_frames=int(
                os.environ.get(
                    "AUDIO_OUT_QUEUE_MAX_FRAMES", str(AUDIO_OUT_QUEUE_MAX_FRAMES)
                )
            ),
        )


@dataclass(frozen=True)
class ClientConfig:
    """Immutable terminal client configuration."""

    relay_url: str
    reconnect_attempts: int
    input_device: int | str | None
    output_device: int | str | None
    local_name: str | None

    @staticmethod
    def load_from_env() -> ClientConfig:
        """Load client configuration from environment variables."""
        return ClientConfig(
            relay_url=os.environ.get("RELAY_URL", f"ws://localhost:3000{WS_PATH}"),
            reconnect_attempts=int(
                os.environ.get("RECONNECT_ATTEMPTS", str(RECONNECT_MAX_ATTEMPTS))
            ),
            input_device=_optional_device("INPUT_DEVICE"),
            output_device=_optional_device("OUTPUT_DEVICE"),
            local_name=os.environ.get("PTT_NAME") or None,
        )
