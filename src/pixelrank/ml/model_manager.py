"""Model manager: locate, download, and load the ONNX classification model.

Resolves the model file from a local path or the HuggingFace Hub, builds the
execution providers for the configured device, and creates the inference
engine. Loading happens once at startup; failures surface as ModelLoadError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from pixelrank.errors import ModelLoadError
from pixelrank.ml.engine import OnnxInferenceEngine

if TYPE_CHECKING:
    from pixelrank.config import Settings

logger = logging.getLogger(__name__)


class OnnxModelManager:
    """Resolves the model artifact and creates its onnxruntime engine."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)
        self._model_path: Path | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    def ensure_available(self) -> Path:
        """Return the local model path, downloading it from the Hub if needed."""
        if self._model_path is not None and self._model_path.exists():
            return self._model_path

        settings = self._settings
        if settings.model_path is not None:
            local = Path(settings.model_path)
            if local.exists():
                self._model_path = local
                return local
            if settings.model_repo_id is None:
                raise ModelLoadError(f"Model file not found: {local}")

        if settings.model_repo_id is None:
            raise ModelLoadError("No model configured: set PIXELRANK_MODEL_PATH or PIXELRANK_MODEL_REPO_ID")

        self._models_dir.mkdir(parents=True, exist_ok=True)
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=settings.model_repo_id,
                    filename=settings.model_filename,
                    local_dir=str(self._models_dir),
                )
            )
        except Exception as exc:
            raise ModelLoadError(
                f"Failed to download {settings.model_filename} from {settings.model_repo_id}: {exc}"
            ) from exc

        self._model_path = downloaded
        logger.info("Downloaded %s to %s", settings.model_filename, downloaded)
        return downloaded

    def load_engine(self) -> OnnxInferenceEngine:
        """Create an inference session for the model and wrap it in an engine."""
        model_path = self.ensure_available()
        try:
            session = InferenceSession(
                str(model_path),
                sess_options=self._session_options,
                providers=self._providers,
            )
            engine = OnnxInferenceEngine(session)
        except Exception as exc:
            raise ModelLoadError(f"Failed to load model {model_path}: {exc}") from exc

        logger.info(
            "Loaded model %s (input=%s, output=%s, providers=%s)",
            model_path,
            engine.input_name,
            engine.output_name,
            session.get_providers(),
        )
        return engine

    # -- Internal -----------------------------------------------------------

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
