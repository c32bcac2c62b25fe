"""Pydantic request/response schemas for the PixelRank API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from pixelrank.ml.ranking import ClassScore


class Prediction(BaseModel):
    """A single ranked class prediction."""

    index: int = Field(ge=0, description="Class index in the model output")
    label: str
    probability: float = Field(description="Raw model score for the class")
    percentage: str = Field(description="Probability as a percentage with two decimals, e.g. '70.00%'")

    @classmethod
    def from_score(cls, score: ClassScore) -> Prediction:
        return cls(
            index=score.index,
            label=score.label,
            probability=score.probability,
            percentage=score.percentage,
        )


class ClassifyResponse(BaseModel):
    """Response for the classification endpoints."""

    predictions: list[Prediction] = Field(description="Top predictions, highest probability first")
    width: int = Field(description="Decoded image width in pixels")
    height: int = Field(description="Decoded image height in pixels")


class ClassifyUrlRequest(BaseModel):
    """Request body for classifying a remote image."""

    url: str = Field(min_length=1, description="http(s) URL of the image")


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = "ok"
    device: str
    model_loaded: bool
    concurrent_requests: int
    queue_depth: int


class ModelInfoResponse(BaseModel):
    """Information about the loaded model."""

    input_name: str
    output_name: str
    input_shape: list[int]
    num_labels: int
    top_k: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
