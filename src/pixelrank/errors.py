"""Error taxonomy for the classification pipeline.

Every error carries a user-facing message. The API layer maps each class to
an HTTP status code; nothing is retried automatically.
"""

from __future__ import annotations


class PixelRankError(Exception):
    """Base class for all pipeline errors."""


class ModelLoadError(PixelRankError):
    """The model artifact or the label table could not be loaded."""


class InvalidImageError(PixelRankError):
    """The image is empty, undecodable, or could not be fetched."""


class ImageTooLargeError(InvalidImageError):
    """The image exceeds the configured byte or pixel limits."""


class InferenceError(PixelRankError):
    """The inference engine failed while running the model."""


class EmptyScoresError(PixelRankError):
    """The model produced an empty score vector."""


class InferenceBusyError(PixelRankError):
    """No inference slot became free before the queue timeout."""
