from fastapi import FastAPI

from linetrace.apps.api import router
from linetrace.config.settings import get_settings
from linetrace.logging import configure_logging

settings = get_settings()
configure_logging(level=settings.LOG_LEVEL)

app = FastAPI(
    title="Line Attribution API",
    version="0.1.0",
    description="Exact per-author and per-file line attribution over a git history",
)

app.include_router(router.router, prefix="/api")


@app.get("/health")
async def health_check():
    """
    Simple health check endpoint to confirm the API is running.
    """
    return {"status": "ok"}
