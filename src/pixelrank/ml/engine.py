"""Inference engine abstraction and its onnxruntime implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from pixelrank.errors import InferenceError

if TYPE_CHECKING:
    from collections.abc import Mapping

    import numpy as np
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

logger = logging.getLogger(__name__)


class InferenceEngine(Protocol):
    """Opaque model runner: named input tensors in, named output tensors out."""

    @property
    def input_name(self) -> str:
        """Name of the model's input slot."""
        ...

    @property
    def output_name(self) -> str:
        """Name of the model's output slot."""
        ...

    def run(self, inputs: Mapping[str, NDArray[np.generic]]) -> dict[str, NDArray[np.generic]]:
        """Run the model and return its outputs keyed by name.

        Raises:
            InferenceError: If the underlying runtime fails.
        """
        ...


class OnnxInferenceEngine:
    """Runs a single-input, single-output ONNX model."""

    def __init__(self, session: InferenceSession) -> None:
        self._session = session
        self._input_name: str = session.get_inputs()[0].name
        self._output_name: str = session.get_outputs()[0].name

    @property
    def input_name(self) -> str:
        return self._input_name

    @property
    def output_name(self) -> str:
        return self._output_name

    def run(self, inputs: Mapping[str, NDArray[np.generic]]) -> dict[str, NDArray[np.generic]]:
        """Run the session, requesting only the configured output."""
        try:
            outputs = self._session.run([self._output_name], dict(inputs))
        except Exception as exc:
            raise InferenceError(f"Model inference failed: {exc}") from exc
        return {self._output_name: outputs[0]}
