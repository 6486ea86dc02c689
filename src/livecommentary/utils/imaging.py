"""Image processing utilities for livecommentary.

Shared frame conversion, downsampling and encoding used by the capture
sources before a frame is handed to the AI provider.
"""

from __future__ import annotations

import base64
import logging

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1024
JPEG_QUALITY = 60


def numpy_to_base64_jpeg(image: np.ndarray, quality: int = JPEG_QUALITY) -> str:
    """Convert a numpy image array (BGR, OpenCV format) to base64 JPEG."""
    success, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not success:
        raise ValueError("Failed to encode image to JPEG")
    return base64.b64encode(buffer.tobytes()).decode("utf-8")


def pil_to_numpy(image: Image.Image) -> np.ndarray:
    """Convert a PIL Image (RGB) to a numpy array (BGR)."""
    rgb_array = np.array(image.convert("RGB"))
    return cv2.cvtColor(rgb_array, cv2.COLOR_RGB2BGR)


def bgra_to_bgr(image: np.ndarray) -> np.ndarray:
    """Drop the alpha channel from a BGRA screen grab."""
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def fit_dimensions(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> tuple[int, int]:
    """Target size with the larger side clamped to max_dimension.

    Aspect ratio is preserved and images are never upscaled.
    """
    if width > height:
        if width > max_dimension:
            return max_dimension, max(1, round(height * max_dimension / width))
    elif height > max_dimension:
        return max(1, round(width * max_dimension / height)), max_dimension
    return width, height


def downscale_for_commentary(
    image: np.ndarray,
    max_dimension: int = MAX_DIMENSION,
) -> np.ndarray:
    """Downscale an image so neither side exceeds max_dimension."""
    h, w = image.shape[:2]
    new_w, new_h = fit_dimensions(w, h, max_dimension)
    if (new_w, new_h) == (w, h):
        return image
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def encode_frame(
    image: np.ndarray,
    max_dimension: int = MAX_DIMENSION,
    quality: int = JPEG_QUALITY,
) -> str:
    """Downscale and encode a BGR(A) frame to a bare base64 JPEG payload.

    Quality favors speed and request size over fidelity.
    """
    return numpy_to_base64_jpeg(downscale_for_commentary(bgra_to_bgr(image), max_dimension), quality)


def strip_data_uri(payload: str) -> str:
    """Return the bare payload of a ``scheme,payload`` data URI."""
    if "," in payload:
        return payload.split(",", 1)[1]
    return payload
