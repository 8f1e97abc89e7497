"""Main entry point for the FootballVision backend."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from footballvision import __version__
from footballvision.api.routes import close_view_model, get_view_model, router
from footballvision.core.config import settings
from footballvision.detection.weights import ensure_models_downloaded, models_ready


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("FootballVision backend starting up...")
    logger.info(f"Models directory: {settings.models_dir}")
    logger.info(f"Camera source: {settings.camera_source}")
    logger.info(f"Ball labels: {settings.ball_labels} (confidence > {settings.ball_confidence_threshold})")

    # Pre-download YOLO models (don't block startup if it fails)
    if await ensure_models_downloaded():
        logger.info("YOLO models are ready")
    else:
        logger.warning("YOLO models not available - will attempt download on first use")

    yield

    # Shutdown
    logger.info("FootballVision backend shutting down...")
    close_view_model()
    logger.info("Shutdown complete")


app = FastAPI(
    title="FootballVision",
    description="Player pose and ball detection from a live camera",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    view_model = get_view_model()
    return {
        "status": "healthy",
        "version": __version__,
        "session_running": view_model.session.is_running,
        "permission_granted": view_model.is_permission_granted.value,
        "models_ready": models_ready(),
    }


def main():
    """Run the FastAPI server."""
    logger.info(f"Starting FootballVision server on {settings.host}:{settings.port}")
    uvicorn.run(
        "footballvision.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
