"""Tests for ranking and formatting of class scores."""

from __future__ import annotations

import math

import numpy as np
import pytest

from pixelrank.ml.ranking import ClassScore, fallback_label, format_percentage, rank, softmax


class TestRank:
    def test_three_scores_without_labels(self) -> None:
        result = rank([0.1, 0.7, 0.2])
        assert result == (
            ClassScore(index=1, probability=0.7, label="Class 1"),
            ClassScore(index=2, probability=0.2, label="Class 2"),
            ClassScore(index=0, probability=0.1, label="Class 0"),
        )

    def test_truncates_to_five(self) -> None:
        scores = [0.01 * i for i in range(20)]
        result = rank(scores)
        assert len(result) == 5
        assert [s.index for s in result] == [19, 18, 17, 16, 15]

    @pytest.mark.parametrize("n", [1, 2, 5])
    def test_short_input_returns_everything_sorted(self, n: int) -> None:
        scores = [0.3, 0.9, 0.1, 0.6, 0.2][:n]
        result = rank(scores)
        assert len(result) == n
        probs = [s.probability for s in result]
        assert probs == sorted(probs, reverse=True)
        assert sorted(s.index for s in result) == list(range(n))

    def test_empty_scores_return_empty_result(self) -> None:
        assert rank([]) == ()

    def test_label_lookup_with_fallback(self) -> None:
        labels = {0: "tench", 2: "great white shark"}
        result = rank([0.3, 0.5, 0.2], labels)
        assert [s.label for s in result] == ["Class 1", "tench", "great white shark"]

    def test_ties_broken_by_index(self) -> None:
        result = rank([0.25, 0.5, 0.25, 0.5, 0.25, 0.25])
        assert [s.index for s in result] == [1, 3, 0, 2, 4]

    def test_no_duplicates(self) -> None:
        result = rank([0.2] * 10)
        assert len({s.index for s in result}) == len(result) == 5

    def test_accepts_numpy_array(self) -> None:
        result = rank(np.array([0.1, 0.9], dtype=np.float32))
        assert result[0].index == 1
        assert isinstance(result[0].probability, float)

    def test_custom_top_k(self) -> None:
        assert len(rank([0.1, 0.2, 0.3], top_k=2)) == 2

    def test_nan_scores_sort_last(self) -> None:
        result = rank([0.2, float("nan"), 0.9, 0.5, 0.1, 0.7])
        assert [s.index for s in result] == [2, 5, 3, 0, 4]
        assert [s.probability for s in result] == [0.9, 0.7, 0.5, 0.2, 0.1]

    def test_nan_kept_when_fewer_than_top_k(self) -> None:
        result = rank([float("nan"), 0.3, float("nan"), 0.6])
        assert [s.index for s in result] == [3, 1, 0, 2]
        assert all(math.isnan(s.probability) for s in result[2:])

    def test_infinities_ordered_with_numbers(self) -> None:
        result = rank([0.5, float("-inf"), float("inf")])
        assert [s.index for s in result] == [2, 0, 1]

    def test_invalid_top_k_rejected(self) -> None:
        with pytest.raises(ValueError, match="top_k"):
            rank([0.1], top_k=0)


class TestFormatting:
    @pytest.mark.parametrize(
        ("probability", "expected"),
        [
            (0.7, "70.00%"),
            (1.0, "100.00%"),
            (0.0, "0.00%"),
            (0.123456, "12.35%"),
            (0.00004, "0.00%"),
        ],
    )
    def test_format_percentage(self, probability: float, expected: str) -> None:
        assert format_percentage(probability) == expected

    def test_class_score_percentage(self) -> None:
        assert ClassScore(index=3, probability=0.25, label="x").percentage == "25.00%"

    def test_fallback_label(self) -> None:
        assert fallback_label(42) == "Class 42"


class TestSoftmax:
    def test_sums_to_one_and_preserves_order(self) -> None:
        probs = softmax([1.0, 3.0, 2.0])
        assert probs.sum() == pytest.approx(1.0)
        assert list(np.argsort(probs)) == [0, 2, 1]

    def test_large_logits_are_stable(self) -> None:
        probs = softmax([1000.0, 1000.0])
        assert probs.tolist() == pytest.approx([0.5, 0.5])

    def test_empty(self) -> None:
        assert softmax([]).size == 0
