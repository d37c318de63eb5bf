"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (the process-wide RelayHub)
- Register routes
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from relay.hub import RelayHub

from server.routes import register_routes
from server.static import register_static


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Passing a config lets tests run against a throwaway hub and
    static directory without touching the environment.
    """
    if config is None:
        config = AppConfig.load_from_env()

    app = FastAPI(title="Push-to-Talk Relay")

    app.state.config = config

    # One hub per process: it owns the participant registry
    app.state.hub = RelayHub()

    # LAN clients connect from arbitrary origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Routes (static catch-all must be registered last)
    register_routes(app)
    register_static(app, config.static_dir)

    return app
