"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pixelrank import __version__
from pixelrank.api.middleware import register_error_handlers
from pixelrank.api.routes import router
from pixelrank.config import get_settings
from pixelrank.errors import ModelLoadError
from pixelrank.ml.classifier import build_context
from pixelrank.ml.decoder import ImageDecoder
from pixelrank.ml.inference import InferencePool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the model once on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting PixelRank (device=%s, max_concurrent=%s, model=%s, labels=%s)",
        settings.device,
        settings.max_concurrent,
        settings.model_path or settings.model_repo_id,
        settings.labels_path,
    )

    try:
        app.state.classifier = build_context(settings)
    except ModelLoadError:
        logger.exception("Failed to load model; PixelRank cannot start")
        raise

    app.state.decoder = ImageDecoder(settings)
    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    logger.info("PixelRank ready")
    yield

    logger.info("Shutting down PixelRank")
    inference_pool.shutdown()
    logger.info("PixelRank shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="PixelRank",
        description="Top-5 image classification with an ONNX model",
        version=__version__,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(application)
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run("pixelrank.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
