"""Image preprocessing: decoded bitmap -> NHWC float32 model input.

The pipeline mirrors drawing onto a 224x224 canvas:

1. Fill the frame with opaque gray (128, 128, 128).
2. Scale the image so its shorter side fills the frame, keeping the aspect
   ratio, and center it. The longer side overflows and is clipped
   symmetrically.
3. Composite the scaled image over the gray frame.
4. Drop alpha and scale every channel from 0-255 to 0-1.

No mean/std normalization is applied; the model expects plain [0, 1] input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

from pixelrank.ml.tensor import Tensor

if TYPE_CHECKING:
    from pixelrank.ml.decoder import DecodedImage

INPUT_SIZE: int = 224
INPUT_CHANNELS: int = 3
INPUT_SHAPE: tuple[int, int, int, int] = (1, INPUT_SIZE, INPUT_SIZE, INPUT_CHANNELS)
BACKGROUND_RGBA: tuple[int, int, int, int] = (128, 128, 128, 255)


@dataclass(frozen=True)
class FrameLayout:
    """Where the scaled image lands on the square frame, in frame pixels.

    Offsets are negative when the image overflows the frame on that axis.
    """

    draw_width: float
    draw_height: float
    offset_x: float
    offset_y: float


def compute_layout(width: int, height: int, size: int = INPUT_SIZE) -> FrameLayout:
    """Fit-and-center an image of ``width`` x ``height`` onto a ``size`` square."""
    aspect = width / height
    if aspect > 1:
        draw_width = size * aspect
        draw_height = float(size)
        return FrameLayout(draw_width, draw_height, (size - draw_width) / 2, 0.0)
    draw_width = float(size)
    draw_height = size / aspect
    return FrameLayout(draw_width, draw_height, 0.0, (size - draw_height) / 2)


def render_frame(image: DecodedImage, size: int = INPUT_SIZE) -> Image.Image:
    """Draw ``image`` onto a gray ``size`` x ``size`` RGBA frame."""
    layout = compute_layout(image.width, image.height, size)
    frame = Image.new("RGBA", (size, size), BACKGROUND_RGBA)

    # Destination rectangle clipped to the frame, in whole pixels.
    left = max(0, math.floor(layout.offset_x))
    top = max(0, math.floor(layout.offset_y))
    right = min(size, math.ceil(layout.offset_x + layout.draw_width))
    bottom = min(size, math.ceil(layout.offset_y + layout.draw_height))
    if right <= left or bottom <= top:
        return frame

    # Map the destination rectangle back into source coordinates.
    scale_x = image.width / layout.draw_width
    scale_y = image.height / layout.draw_height
    box = (
        max(0.0, (left - layout.offset_x) * scale_x),
        max(0.0, (top - layout.offset_y) * scale_y),
        min(float(image.width), (right - layout.offset_x) * scale_x),
        min(float(image.height), (bottom - layout.offset_y) * scale_y),
    )

    scaled = image.to_pil().resize((right - left, bottom - top), Image.Resampling.BILINEAR, box=box)
    frame.alpha_composite(scaled, dest=(left, top))
    return frame


def preprocess(image: DecodedImage) -> Tensor:
    """Convert a decoded image into a ``[1, 224, 224, 3]`` float32 tensor.

    Each value is ``channel / 255.0``; alpha is discarded. The layout is
    NHWC, so element ``(0, h, w, c)`` sits at flat offset ``(h*224 + w)*3 + c``.
    """
    frame = render_frame(image)
    rgba = np.asarray(frame, dtype=np.uint8)
    # Divide in float64 and narrow once so 0 -> 0.0 and 255 -> 1.0 exactly.
    rgb = (rgba[:, :, :INPUT_CHANNELS].astype(np.float64) / 255.0).astype(np.float32)
    return Tensor(dtype=np.dtype(np.float32), shape=INPUT_SHAPE, data=rgb)
