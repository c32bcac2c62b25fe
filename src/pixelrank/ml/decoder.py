"""Image decoding: turn uploads, files, and URLs into RGBA pixel buffers.

Every source goes through an awaitable decode that either returns a fully
decoded :class:`DecodedImage` or raises :class:`InvalidImageError`, so pixel
data is never read before decoding has finished.
"""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from pixelrank.errors import ImageTooLargeError, InvalidImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from pixelrank.config import Settings

logger = logging.getLogger(__name__)

_USER_AGENT = "PixelRank/0.1 (+image classification service)"


@dataclass(frozen=True)
class DecodedImage:
    """A decoded bitmap: row-major RGBA bytes, 4 bytes per pixel."""

    width: int
    height: int
    pixels: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidImageError(f"Image has zero dimension ({self.width}x{self.height})")
        expected = self.width * self.height * 4
        if len(self.pixels) != expected:
            raise InvalidImageError(
                f"Pixel buffer has {len(self.pixels)} bytes, expected {expected} for {self.width}x{self.height} RGBA"
            )

    @classmethod
    def from_pil(cls, image: Image.Image) -> DecodedImage:
        """Build from a Pillow image, converting to RGBA if needed."""
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        return cls(width=rgba.width, height=rgba.height, pixels=rgba.tobytes())

    def to_pil(self) -> Image.Image:
        """Return an RGBA Pillow image view of the pixel buffer."""
        return Image.frombytes("RGBA", (self.width, self.height), self.pixels)

    def to_array(self) -> NDArray[np.uint8]:
        """Return the pixels as a read-only HxWx4 uint8 array."""
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width, 4)


class ImageDecoder:
    """Decodes images from raw bytes, local files, or remote URLs."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._max_pixels = settings.max_image_pixels
        self._max_bytes = settings.max_file_size
        self._timeout = settings.url_timeout
        self._transport = transport

    # -- Synchronous decode ---------------------------------------------------

    def decode_bytes(self, data: bytes) -> DecodedImage:
        """Decode raw image bytes into an RGBA :class:`DecodedImage`.

        EXIF orientation is applied so the bitmap matches what a browser
        would draw.

        Raises:
            InvalidImageError: If the data is empty or cannot be decoded.
            ImageTooLargeError: If the data exceeds the byte or pixel limits.
        """
        if not data:
            raise InvalidImageError("Image data is empty")
        if len(data) > self._max_bytes:
            raise ImageTooLargeError(f"Image is {len(data)} bytes, limit is {self._max_bytes}")

        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                if width * height > self._max_pixels:
                    raise ImageTooLargeError(
                        f"Image is {width}x{height} pixels, limit is {self._max_pixels} pixels"
                    )
                img.load()
                oriented = ImageOps.exif_transpose(img)
                return DecodedImage.from_pil(oriented)
        except Image.DecompressionBombError as exc:
            raise ImageTooLargeError(f"Image exceeds decompression limits: {exc}") from exc
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
            raise InvalidImageError(f"Failed to decode image: {exc}") from exc

    # -- Awaitable sources ----------------------------------------------------

    async def load_bytes(self, data: bytes) -> DecodedImage:
        """Decode bytes off the event loop."""
        return await asyncio.to_thread(self.decode_bytes, data)

    async def load_file(self, path: str | Path) -> DecodedImage:
        """Read and decode a local image file (e.g. the bundled sample)."""
        file_path = Path(path)
        try:
            data = await asyncio.to_thread(file_path.read_bytes)
        except OSError as exc:
            raise InvalidImageError(f"Failed to load image file {file_path}: {exc}") from exc
        logger.debug("Read %d bytes from %s", len(data), file_path)
        return await self.load_bytes(data)

    async def load_url(self, url: str) -> DecodedImage:
        """Fetch an image over http(s) and decode it."""
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise InvalidImageError(f"Failed to load image from URL: {exc}") from exc
        if parsed.scheme not in ("http", "https"):
            raise InvalidImageError(f"Failed to load image from URL: unsupported scheme '{parsed.scheme}'")

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
            ) as client:
                data = await self._fetch(client, parsed)
        except httpx.HTTPError as exc:
            raise InvalidImageError(f"Failed to load image from URL: {exc}") from exc

        logger.debug("Fetched %d bytes from %s", len(data), parsed)
        return await self.load_bytes(data)

    async def _fetch(self, client: httpx.AsyncClient, url: httpx.URL) -> bytes:
        async with client.stream("GET", url) as response:
            if response.status_code >= 400:  # noqa: PLR2004
                raise InvalidImageError(f"Failed to load image from URL: HTTP {response.status_code}")
            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > self._max_bytes:
                    raise ImageTooLargeError(f"Remote image exceeds {self._max_bytes} bytes")
                chunks.append(chunk)
        return b"".join(chunks)
