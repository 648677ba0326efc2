from __future__ import annotations

from io import BytesIO
from typing import Sequence, Tuple, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, InvalidInput
from .models import MetricRecord


PixelBuffer = np.ndarray
PixelsLike = Union[np.ndarray, Sequence[int]]

HISTOGRAM_BINS = 256
# Formats the processed copy can be written back in without changing mode.
_GRAYSCALE_FORMATS = {"JPEG", "PNG", "WEBP", "BMP", "TIFF"}
# Multi-picture JPEGs from phone cameras are written back as plain JPEG.
_FORMAT_ALIASES = {"MPO": "JPEG"}
_DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError)


def as_pixel_buffer(pixels: PixelsLike, source_id: str = "") -> PixelBuffer:
    """Flatten *pixels* into a uint8 buffer, rejecting values outside 0-255."""
    arr = np.asarray(pixels)
    if arr.size == 0:
        raise InvalidInput("pixel buffer is empty", source_id)
    if arr.dtype == np.uint8:
        return arr.ravel()
    if arr.dtype.kind not in "iuf":
        raise InvalidInput(f"pixel values must be numeric, got dtype {arr.dtype}", source_id)
    if arr.dtype.kind == "f" and not np.all(np.isfinite(arr) & (arr == np.floor(arr))):
        raise InvalidInput("pixel values must be whole numbers", source_id)
    if arr.min() < 0 or arr.max() > 255:
        raise InvalidInput("pixel values must lie in 0-255", source_id)
    return arr.astype(np.uint8).ravel()


def extract(pixels: PixelsLike, source_id: str = "") -> MetricRecord:
    """Compute sharpness, brightness and contrast for one grayscale image.

    Brightness is the population mean and sharpness the population variance,
    computed in two passes over a float64 copy. Contrast counts the occupied
    bins of a 256-bin intensity histogram.
    """
    buf = as_pixel_buffer(pixels, source_id)

    values = buf.astype(np.float64)
    brightness = float(np.mean(values))
    deviation = values - brightness
    sharpness = float(np.mean(deviation * deviation))

    histogram = np.bincount(buf, minlength=HISTOGRAM_BINS)
    contrast = int(np.count_nonzero(histogram))

    return MetricRecord(
        sharpness=sharpness,
        brightness=brightness,
        contrast=contrast,
        source_id=source_id,
    )


def _open(raw: bytes, source_id: str) -> Tuple[Image.Image, str]:
    """Decode *raw* and return the upright image with its source format."""
    try:
        image = Image.open(BytesIO(raw))
        image.load()
        fmt = image.format or ""
        return ImageOps.exif_transpose(image), fmt
    except _DECODE_ERRORS as exc:
        raise DecodeError(f"could not decode image: {exc}", source_id) from exc


def output_format(fmt: str) -> str:
    """Return the format a grayscale copy of a *fmt* image is saved in."""
    fmt = _FORMAT_ALIASES.get(fmt, fmt)
    return fmt if fmt in _GRAYSCALE_FORMATS else "PNG"


def to_grayscale(raw: bytes, source_id: str = "") -> PixelBuffer:
    # Mode "L" uses the ITU-R BT.601 luma weights.
    image, _ = _open(raw, source_id)
    return np.asarray(image.convert("L"), dtype=np.uint8).ravel()


def process_upload(raw: bytes, width: int = 500, source_id: str = "") -> bytes:
    """Resize an upload to *width* pixels wide and re-encode it as grayscale."""
    image, fmt = _open(raw, source_id)
    fmt = output_format(fmt)

    src_width, src_height = image.size
    height = max(1, round(src_height * width / max(src_width, 1)))
    gray = image.convert("L").resize((width, height), Image.Resampling.LANCZOS)

    buf = BytesIO()
    gray.save(buf, format=fmt)
    return buf.getvalue()
