"""Tests for the classification pipeline and the ONNX engine wrapper."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from PIL import Image

from pixelrank.config import Settings
from pixelrank.errors import EmptyScoresError, InferenceError
from pixelrank.ml.classifier import ClassifierContext, build_context
from pixelrank.ml.decoder import DecodedImage
from pixelrank.ml.engine import OnnxInferenceEngine

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from numpy.typing import NDArray


def _make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "device": "cpu",
        "model_path": None,
        "labels_path": None,
        "models_dir": "/tmp/pixelrank_test_models",
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


class _FakeEngine:
    """Inference engine stand-in that returns a fixed score vector."""

    def __init__(
        self,
        scores: Sequence[float],
        *,
        input_name: str = "input_1",
        output_name: str = "predictions",
        error: Exception | None = None,
    ) -> None:
        self._scores = np.asarray(scores, dtype=np.float32).reshape(1, -1)
        self._input_name = input_name
        self._output_name = output_name
        self._error = error
        self.calls: list[dict[str, NDArray[np.generic]]] = []

    @property
    def input_name(self) -> str:
        return self._input_name

    @property
    def output_name(self) -> str:
        return self._output_name

    def run(self, inputs: Mapping[str, NDArray[np.generic]]) -> dict[str, NDArray[np.generic]]:
        self.calls.append(dict(inputs))
        if self._error is not None:
            raise self._error
        return {self._output_name: self._scores}


def _image(width: int = 40, height: int = 30) -> DecodedImage:
    return DecodedImage.from_pil(Image.new("RGB", (width, height), (255, 255, 255)))


class TestClassifierContext:
    def test_feeds_nhwc_tensor_under_input_name(self) -> None:
        engine = _FakeEngine([0.1, 0.9], input_name="input_1")
        ClassifierContext(engine=engine).classify(_image())

        (inputs,) = engine.calls
        assert list(inputs) == ["input_1"]
        fed = inputs["input_1"]
        assert fed.shape == (1, 224, 224, 3)
        assert fed.dtype == np.float32
        assert np.all(fed == 1.0)

    def test_returns_top_five_with_labels(self) -> None:
        scores = [0.01, 0.3, 0.05, 0.2, 0.02, 0.15, 0.12, 0.15]
        context = ClassifierContext(engine=_FakeEngine(scores), labels={1: "tabby cat", 3: "tiger cat"})

        result = context.classify(_image())

        assert [s.index for s in result] == [1, 3, 5, 7, 6]
        assert [s.label for s in result[:3]] == ["tabby cat", "tiger cat", "Class 5"]
        assert result[0].probability == pytest.approx(0.3)

    def test_respects_top_k(self) -> None:
        context = ClassifierContext(engine=_FakeEngine([0.1, 0.2, 0.3, 0.4]), top_k=2)
        assert [s.index for s in context.classify(_image())] == [3, 2]

    def test_fewer_classes_than_top_k(self) -> None:
        result = ClassifierContext(engine=_FakeEngine([0.4, 0.6])).classify(_image())
        assert [s.index for s in result] == [1, 0]

    def test_empty_model_output_raises(self) -> None:
        context = ClassifierContext(engine=_FakeEngine([]))
        with pytest.raises(EmptyScoresError):
            context.classify(_image())

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_model_output_raises(self, bad: float) -> None:
        context = ClassifierContext(engine=_FakeEngine([0.2, bad, 0.9]))
        with pytest.raises(InferenceError, match="non-finite"):
            context.classify(_image())

    def test_non_finite_checked_before_softmax(self) -> None:
        context = ClassifierContext(engine=_FakeEngine([1.0, float("inf")]), apply_softmax=True)
        with pytest.raises(InferenceError, match="non-finite"):
            context.classify(_image())

    def test_engine_failure_propagates(self) -> None:
        context = ClassifierContext(engine=_FakeEngine([0.5], error=InferenceError("boom")))
        with pytest.raises(InferenceError, match="boom"):
            context.classify(_image())

    def test_softmax_applied_when_enabled(self) -> None:
        context = ClassifierContext(engine=_FakeEngine([2.0, 1.0, 0.0]), apply_softmax=True)
        result = context.classify(_image())
        assert sum(s.probability for s in result) == pytest.approx(1.0)
        assert result[0].index == 0

    def test_raw_scores_kept_by_default(self) -> None:
        result = ClassifierContext(engine=_FakeEngine([2.0, 1.0])).classify(_image())
        assert result[0].probability == pytest.approx(2.0)


class TestBuildContext:
    @patch("pixelrank.ml.classifier.OnnxModelManager")
    def test_loads_engine_and_labels(self, mock_manager_cls: MagicMock) -> None:
        engine = _FakeEngine([0.5])
        mock_manager_cls.return_value.load_engine.return_value = engine
        settings = _make_settings(top_k=3, apply_softmax=True)

        context = build_context(settings)

        mock_manager_cls.assert_called_once_with(settings)
        assert context.engine is engine
        assert context.labels == {}
        assert context.top_k == 3
        assert context.apply_softmax is True


def _mock_session(input_name: str = "input", output_name: str = "output") -> MagicMock:
    session = MagicMock()
    session.get_inputs.return_value = [MagicMock()]
    session.get_inputs.return_value[0].name = input_name
    session.get_outputs.return_value = [MagicMock()]
    session.get_outputs.return_value[0].name = output_name
    return session


class TestOnnxInferenceEngine:
    def test_names_come_from_session(self) -> None:
        engine = OnnxInferenceEngine(_mock_session("images", "probs"))
        assert engine.input_name == "images"
        assert engine.output_name == "probs"

    def test_run_requests_single_output(self) -> None:
        session = _mock_session("images", "probs")
        session.run.return_value = [np.array([[0.2, 0.8]], dtype=np.float32)]
        engine = OnnxInferenceEngine(session)
        batch = np.zeros((1, 224, 224, 3), dtype=np.float32)

        outputs = engine.run({"images": batch})

        session.run.assert_called_once_with(["probs"], {"images": batch})
        assert list(outputs) == ["probs"]
        assert outputs["probs"].tolist() == [[pytest.approx(0.2), pytest.approx(0.8)]]

    def test_runtime_failure_becomes_inference_error(self) -> None:
        session = _mock_session()
        session.run.side_effect = RuntimeError("invalid input shape")
        engine = OnnxInferenceEngine(session)

        with pytest.raises(InferenceError, match="invalid input shape"):
            engine.run({"input": np.zeros(3, dtype=np.float32)})
