"""Classification pipeline: preprocess -> inference -> ranking.

The model engine and label table are loaded once into a
:class:`ClassifierContext`, which is then shared read-only by every request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from pixelrank.errors import EmptyScoresError, InferenceError
from pixelrank.ml.labels import load_label_table
from pixelrank.ml.model_manager import OnnxModelManager
from pixelrank.ml.preprocessing import preprocess
from pixelrank.ml.ranking import DEFAULT_TOP_K, PredictionResult, rank, softmax

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numpy.typing import NDArray

    from pixelrank.config import Settings
    from pixelrank.ml.decoder import DecodedImage
    from pixelrank.ml.engine import InferenceEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierContext:
    """Everything a classification needs, built once at startup."""

    engine: InferenceEngine
    labels: Mapping[int, str] = field(default_factory=dict)
    top_k: int = DEFAULT_TOP_K
    apply_softmax: bool = False

    def predict_scores(self, image: DecodedImage) -> NDArray[np.float64]:
        """Preprocess ``image``, run the model, and return its flat score vector.

        Raises:
            EmptyScoresError: If the model returns no scores.
            InferenceError: If the engine fails or returns NaN or infinite scores.
        """
        tensor = preprocess(image)
        outputs = self.engine.run({self.engine.input_name: tensor.data})
        scores = np.asarray(outputs[self.engine.output_name], dtype=np.float64).reshape(-1)
        if scores.size == 0:
            raise EmptyScoresError("Model returned an empty score vector")
        if not np.isfinite(scores).all():
            raise InferenceError("Model returned non-finite scores")
        if self.apply_softmax:
            scores = softmax(scores)
        return scores

    def classify(self, image: DecodedImage) -> PredictionResult:
        """Return the top-K ranked predictions for a decoded image."""
        scores = self.predict_scores(image)
        result = rank(scores, self.labels, self.top_k)
        if result:
            top = result[0]
            logger.debug("Top prediction for %dx%d image: %s (%.4f)", image.width, image.height, top.label, top.probability)
        return result


def build_context(settings: Settings) -> ClassifierContext:
    """Load the model and label table described by ``settings``.

    Raises:
        ModelLoadError: If either artifact cannot be loaded.
    """
    engine = OnnxModelManager(settings).load_engine()
    labels = load_label_table(settings.labels_path)
    return ClassifierContext(
        engine=engine,
        labels=labels,
        top_k=settings.top_k,
        apply_softmax=settings.apply_softmax,
    )
