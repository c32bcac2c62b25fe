"""Typed tensor container handed to the inference engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class Tensor:
    """A numeric buffer with an explicit element type and shape.

    The buffer length must equal the product of the shape. The stored array
    is cast to ``dtype`` and reshaped to ``shape`` so it can be passed to
    onnxruntime as-is.
    """

    dtype: np.dtype[np.generic]
    shape: tuple[int, ...]
    data: NDArray[np.generic] = field(repr=False)

    def __post_init__(self) -> None:
        dims = tuple(int(d) for d in self.shape)
        if any(d < 0 for d in dims):
            raise ValueError(f"Tensor shape must be non-negative, got {dims}")
        expected = math.prod(dims)
        if self.data.size != expected:
            raise ValueError(f"Tensor buffer has {self.data.size} elements but shape {dims} needs {expected}")
        resolved = np.dtype(self.dtype)
        # Frozen dataclass: normalize fields through object.__setattr__.
        object.__setattr__(self, "dtype", resolved)
        object.__setattr__(self, "shape", dims)
        object.__setattr__(self, "data", np.asarray(self.data, dtype=resolved).reshape(dims))

    @classmethod
    def create(cls, dtype: str | np.dtype[np.generic], data: ArrayLike, shape: Sequence[int]) -> Tensor:
        """Build a tensor from any array-like buffer."""
        return cls(dtype=np.dtype(dtype), shape=tuple(shape), data=np.asarray(data).reshape(-1))

    @property
    def size(self) -> int:
        """Total number of elements."""
        return int(self.data.size)
