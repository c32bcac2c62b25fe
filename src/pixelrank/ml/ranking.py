"""Turn a raw class-score vector into a ranked, labelled top-K list."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from numpy.typing import ArrayLike, NDArray

DEFAULT_TOP_K: int = 5


def fallback_label(index: int) -> str:
    """Synthetic label used when the label table has no entry."""
    return f"Class {index}"


def format_percentage(probability: float) -> str:
    """Format a probability as a percentage with two decimals, e.g. ``"70.00%"``."""
    return f"{round(probability * 100, 2):.2f}%"


@dataclass(frozen=True)
class ClassScore:
    """A single ranked prediction."""

    index: int
    probability: float
    label: str

    @property
    def percentage(self) -> str:
        return format_percentage(self.probability)


PredictionResult = tuple[ClassScore, ...]


def rank(
    scores: Sequence[float] | NDArray[np.floating],
    label_lookup: Mapping[int, str] | None = None,
    top_k: int = DEFAULT_TOP_K,
) -> PredictionResult:
    """Rank class scores and return the ``top_k`` best.

    Entries are sorted by score descending, with equal scores ordered by
    ascending class index. NaN scores sort after every number. An empty
    ``scores`` yields an empty result.

    Args:
        scores: One score per class, indexed by class id.
        label_lookup: Class index to display name. Missing indices fall back
            to ``"Class <index>"``.
        top_k: Maximum number of entries to return.

    Returns:
        Tuple of ``min(top_k, len(scores))`` :class:`ClassScore` entries.
    """
    if top_k < 1:
        raise ValueError(f"top_k must be at least 1, got {top_k}")
    labels = label_lookup or {}
    values = [float(s) for s in scores]
    order = sorted(range(len(values)), key=lambda i: _sort_key(values[i], i))
    return tuple(
        ClassScore(index=i, probability=values[i], label=labels.get(i, fallback_label(i))) for i in order[:top_k]
    )


def _sort_key(value: float, index: int) -> tuple[bool, float, int]:
    if math.isnan(value):
        return (True, 0.0, index)
    return (False, -value, index)


def softmax(scores: ArrayLike) -> NDArray[np.float64]:
    """Numerically stable softmax over a 1-D score vector."""
    values = np.asarray(scores, dtype=np.float64).reshape(-1)
    if values.size == 0:
        return values
    exp = np.exp(values - values.max())
    result: NDArray[np.float64] = exp / exp.sum()
    return result
