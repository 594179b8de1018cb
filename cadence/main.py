# cadence/main.py
from fastapi import FastAPI

from cadence.api.routes import health, internal, series
from cadence.core.config import get_settings
from cadence.core.logging_config import configure_logging
from cadence.db.session import init_db_for_startup


def create_app() -> FastAPI:
    """
    Application factory for the study-group meeting scheduler.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Schedules single and recurring study-group meetings, keeps each series'\n"
            "current occurrence moving forward as meetings pass, and renders every\n"
            "meeting time in the viewer's own timezone."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(series.router)
    app.include_router(internal.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db_for_startup()

    return app


app = create_app()
