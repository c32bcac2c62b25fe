"""API route definitions."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, UploadFile, status

from pixelrank.api.middleware import verify_api_key
from pixelrank.api.schemas import (
    ClassifyResponse,
    ClassifyUrlRequest,
    ErrorResponse,
    HealthResponse,
    ModelInfoResponse,
    Prediction,
)
from pixelrank.errors import ImageTooLargeError, ModelLoadError
from pixelrank.ml.preprocessing import INPUT_SHAPE

if TYPE_CHECKING:
    from pixelrank.config import Settings
    from pixelrank.ml.classifier import ClassifierContext
    from pixelrank.ml.decoder import DecodedImage, ImageDecoder
    from pixelrank.ml.inference import InferencePool

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    code.value: {"model": ErrorResponse}
    for code in (
        HTTPStatus.BAD_REQUEST,
        HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
        HTTPStatus.UNPROCESSABLE_ENTITY,
        HTTPStatus.INTERNAL_SERVER_ERROR,
        HTTPStatus.SERVICE_UNAVAILABLE,
    )
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_decoder(request: Request) -> ImageDecoder:
    decoder: ImageDecoder = request.app.state.decoder
    return decoder


def _get_classifier(request: Request) -> ClassifierContext:
    classifier: ClassifierContext | None = getattr(request.app.state, "classifier", None)
    if classifier is None:
        raise ModelLoadError("Model is not loaded")
    return classifier


async def _classify(request: Request, image: DecodedImage) -> ClassifyResponse:
    classifier = _get_classifier(request)
    pool = _get_inference_pool(request)
    result = await pool.run(classifier.classify, image)
    return ClassifyResponse(
        predictions=[Prediction.from_score(score) for score in result],
        width=image.width,
        height=image.height,
    )


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    responses=_ERROR_RESPONSES,
    summary="Classify an uploaded image",
)
async def classify_upload(request: Request, file: UploadFile) -> ClassifyResponse:
    """Classify an uploaded image and return the top-ranked classes."""
    _get_classifier(request)
    limit = _get_settings(request).max_file_size
    if file.size is not None and file.size > limit:
        raise ImageTooLargeError(f"Image is {file.size} bytes, limit is {limit}")
    data = await file.read()
    image = await _get_decoder(request).load_bytes(data)
    return await _classify(request, image)


@router.post(
    "/classify-url",
    response_model=ClassifyResponse,
    responses=_ERROR_RESPONSES,
    summary="Classify an image fetched from a URL",
)
async def classify_url(request: Request, body: ClassifyUrlRequest) -> ClassifyResponse:
    """Fetch an image over http(s), classify it, and return the top-ranked classes."""
    _get_classifier(request)
    image = await _get_decoder(request).load_url(body.url.strip())
    return await _classify(request, image)


@router.post(
    "/classify-sample",
    response_model=ClassifyResponse,
    responses=_ERROR_RESPONSES,
    summary="Classify the bundled sample image",
)
async def classify_sample(request: Request) -> ClassifyResponse:
    """Classify the sample image shipped with the service."""
    _get_classifier(request)
    settings = _get_settings(request)
    image = await _get_decoder(request).load_file(settings.sample_image_path)
    return await _classify(request, image)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    return HealthResponse(
        status="ok",
        device=settings.device,
        model_loaded=getattr(request.app.state, "classifier", None) is not None,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelInfoResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
    summary="Describe the loaded model",
)
async def model_info(request: Request) -> ModelInfoResponse:
    """Return the model's input/output names and label table size."""
    classifier = _get_classifier(request)
    return ModelInfoResponse(
        input_name=classifier.engine.input_name,
        output_name=classifier.engine.output_name,
        input_shape=list(INPUT_SHAPE),
        num_labels=len(classifier.labels),
        top_k=classifier.top_k,
    )
