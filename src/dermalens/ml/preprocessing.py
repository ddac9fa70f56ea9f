"""Image preprocessing: raw upload bytes to a batched model input tensor.

Decode to RGB, bilinear resize to 224x224, scale to [0, 1], add a batch axis.
Every intermediate image is closed as soon as the next step has consumed it.
"""

from __future__ import annotations

import io

import numpy as np
from numpy.typing import NDArray
from PIL import Image, UnidentifiedImageError

from dermalens.errors import PreprocessError
from dermalens.ml.labels import INPUT_SHAPE


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale a 16-bit grayscale image (modes ``I;16*`` and ``I``) down to mode ``L``.

    Pillow's own ``convert("RGB")`` clips these to 255 instead of scaling.
    """
    wide = np.clip(np.asarray(img, dtype=np.int64), 0, 0xFFFF)
    return Image.fromarray((wide >> 8).astype(np.uint8))


class ImagePreprocessor:
    """Turns encoded JPEG/PNG bytes into a float32 tensor of shape (1, 224, 224, 3)."""

    def __init__(self, max_image_pixels: int, input_shape: tuple[int, int, int] = INPUT_SHAPE) -> None:
        self._max_image_pixels = max_image_pixels
        self._height, self._width, _channels = input_shape

    def preprocess(self, image_bytes: bytes) -> NDArray[np.float32]:
        """Decode, resize and normalize an image.

        Raises:
            PreprocessError: If the bytes are not a decodable raster image or
                the image exceeds the configured pixel limit.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                pixels = img.width * img.height
                if pixels > self._max_image_pixels:
                    raise PreprocessError(f"Image has {pixels} pixels, limit is {self._max_image_pixels}")
                if img.mode.startswith("I"):
                    with _to_8bit(img) as gray:
                        rgb = gray.convert("RGB")
                else:
                    rgb = img.convert("RGB")
                with rgb, rgb.resize(
                    (self._width, self._height), Image.Resampling.BILINEAR
                ) as resized:
                    normalized = np.asarray(resized, dtype=np.float32) / 255.0
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
            raise PreprocessError(f"Image preprocessing failed: {exc}") from exc

        return np.expand_dims(normalized, axis=0)
