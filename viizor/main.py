"""
viizor entry point.

Serves the ingestion API and, when enabled, the converted artifacts under
the public prefix so the viewer pages can load them.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from viizor.config import settings, setup_opentelemetry
from viizor.api.v1.router import api_router, public_router
from viizor.celery_app import get_celery_app
from logging import getLogger, Filter
import logging

logger = getLogger(__name__)
logger.setLevel(logging.INFO)


class HealthCheckFilter(Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.getMessage().find("/health") == -1


logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())


app = FastAPI(title=settings.app_name, debug=settings.debug, redirect_slashes=False)


@app.on_event("startup")
async def startup_event():
    try:
        logger.info("--- Starting viizor startup ---")

        setup_opentelemetry()
        settings.artifact_root.mkdir(parents=True, exist_ok=True)
        settings.staging_root.mkdir(parents=True, exist_ok=True)

        app.state.celery_app = get_celery_app()

        logger.info(
            f"--- viizor startup completed (artifacts: {settings.artifact_root}, "
            f"converter: {settings.converter_path}) ---"
        )
    except Exception as e:
        logger.error(f"Warning: Failed to setup resources: {e}", exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    try:
        logger.info("--- Server shutting down! ---")

        from viizor.db.session import dispose_engine

        await dispose_engine()
        logger.info("--- Database connections closed. ---")
    except Exception as e:
        logger.error(f"Warning: Error during shutdown: {e}")


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")
app.include_router(public_router, prefix="/api/v1")

if settings.serve_artifacts:
    app.mount(
        settings.public_prefix,
        StaticFiles(directory=settings.artifact_root, check_dir=False),
        name="artifacts",
    )


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": settings.app_name}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3000)
