"""FastAPI application factory for steptrail."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from steptrail.api.routes import outcomes
from steptrail.config.loader import load_config
from steptrail.config.models import StepTrailConfig
from steptrail.events.log import EventLog
from steptrail.runs.history_sqlite import SqliteHistory


def create_app(config: StepTrailConfig | None = None) -> FastAPI:
    if config is None:
        try:
            config = load_config()
        except (FileNotFoundError, ValueError):
            # Fallback for environments without a config file (e.g. testing)
            config = StepTrailConfig()

    app = FastAPI(
        title=config.project.name,
        version=config.project.version,
        description="Step-level test outcome history",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.history = SqliteHistory(config.history_db_path, config.history_max_records)

    # Runs write events into the same database; the API only reads them
    app.state.event_log = EventLog(config.history_db_path, config.event_log_size)

    @app.get("/health", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(outcomes.router, prefix="/api")
    return app
