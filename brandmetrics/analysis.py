from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .aggregate import aggregate
from .errors import MetricsError
from .models import GroupSummary, ImageRecord, MetricRecord
from .quality import PixelBuffer, extract, to_grayscale
from .storage import ImageStorage

log = logging.getLogger(__name__)

Decoder = Callable[[bytes], PixelBuffer]


@dataclass
class BatchResult:
    summaries: List[GroupSummary] = field(default_factory=list)
    analyzed: int = 0
    skipped: List[str] = field(default_factory=list)


def analyze_image(name: str, storage: ImageStorage, decode: Decoder = to_grayscale) -> MetricRecord:
    """Fetch, decode and measure one stored image.

    Raises NotFound, DecodeError or InvalidInput; nothing is caught here.
    """
    raw = storage.fetch_image_bytes(name)
    try:
        pixels = decode(raw)
    except MetricsError as exc:
        if not exc.identifier:
            exc.identifier = name
        raise
    record = extract(pixels, source_id=name)
    log.info("Analysis complete for %s", name)
    return record


def _analyze_one(
    image: ImageRecord, storage: ImageStorage, decode: Decoder
) -> Tuple[ImageRecord, Optional[MetricRecord]]:
    try:
        return image, analyze_image(image.filename, storage, decode)
    except MetricsError as exc:
        log.warning("Skipping %s: %s", image.filename, exc)
        return image, None


def analyze_all(
    images: Sequence[ImageRecord],
    storage: ImageStorage,
    decode: Decoder = to_grayscale,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """Analyse every image in parallel and aggregate the successes by brand.

    Per-image failures are logged and reported in ``skipped``; a brand whose
    images all failed does not appear in the summaries.
    """
    if not images:
        return BatchResult()

    workers = max_workers or min(4, os.cpu_count() or 2)
    log.info("Analysing %d images with %d workers", len(images), workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        # map() yields in submission order, after every image has finished.
        results = list(executor.map(lambda img: _analyze_one(img, storage, decode), images))

    pairs = [(image.brand, record) for image, record in results if record is not None]
    skipped = [image.filename for image, record in results if record is None]
    summaries = aggregate(pairs)
    log.info("Aggregated %d brands from %d images (%d skipped)", len(summaries), len(pairs), len(skipped))
    return BatchResult(summaries=summaries, analyzed=len(pairs), skipped=skipped)
