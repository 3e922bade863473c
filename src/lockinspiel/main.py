# src/lockinspiel/main.py
"""Time reference server for Lockinspiel clients."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from lockinspiel.api.time_sync import ReceivedAtMiddleware
from lockinspiel.api.time_sync import router as time_sync_router
from lockinspiel.core.settings import settings

# Initialize FastAPI app
app = FastAPI(
    title="Lockinspiel",
    description="Time reference endpoint for clock synchronization",
    version=settings.app_version,
)

# Must stay the outermost user middleware so the receive time is taken first.
app.add_middleware(ReceivedAtMiddleware)

app.include_router(time_sync_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the server."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "The server is up",
    }


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.server_host, port=settings.server_port)


if __name__ == "__main__":
    run()
