"""Environment-based configuration for PixelRank."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from PIXELRANK_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PIXELRANK_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model artifact: a local file, or a HuggingFace Hub repo to download it from
    model_path: str | None = "model/mobilenetv2.onnx"
    model_repo_id: str | None = None
    model_filename: str = "mobilenetv2.onnx"
    models_dir: str = "model"

    # Label table and bundled sample
    labels_path: str | None = "imagenet_classes.json"
    sample_image_path: str = "assets/test_image.jpg"

    # Ranking
    top_k: int = Field(default=5, ge=1)
    apply_softmax: bool = False

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)
    url_timeout: float = Field(default=10.0, gt=0)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
