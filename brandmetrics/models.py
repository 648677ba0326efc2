from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field

from .errors import InvalidInput


SUMMARY_FIELDS = ("groupKey", "averageSharpness", "averageBrightness", "averageContrast")


@dataclass(frozen=True)
class MetricRecord:
    sharpness: float
    brightness: float
    contrast: int
    source_id: str = ""

    def __post_init__(self) -> None:
        self.validate()
        # numpy scalars pass validation; store plain Python numbers.
        object.__setattr__(self, "sharpness", float(self.sharpness))
        object.__setattr__(self, "brightness", float(self.brightness))

    def validate(self) -> None:
        for name in ("sharpness", "brightness"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidInput(f"{name} must be a finite real, got {value!r}", self.source_id)
        if isinstance(self.contrast, bool) or not isinstance(self.contrast, int):
            raise InvalidInput(f"contrast must be an integer, got {self.contrast!r}", self.source_id)
        if self.sharpness < 0:
            raise InvalidInput(f"sharpness out of range: {self.sharpness}", self.source_id)
        if not 0 <= self.brightness <= 255:
            raise InvalidInput(f"brightness out of range: {self.brightness}", self.source_id)
        if not 0 <= self.contrast <= 256:
            raise InvalidInput(f"contrast out of range: {self.contrast}", self.source_id)


@dataclass(frozen=True)
class GroupSummary:
    group_key: str
    average_sharpness: float
    average_brightness: float
    average_contrast: float

    def as_row(self) -> Dict[str, object]:
        """Return the summary keyed by the field names reports bind to."""
        values = (self.group_key, self.average_sharpness, self.average_brightness, self.average_contrast)
        return dict(zip(SUMMARY_FIELDS, values))


class ImageRecord(BaseModel):
    id: str
    filename: str
    originalFilename: str
    brand: str
    processedAt: datetime


class ImageMetrics(BaseModel):
    filename: str
    variance: float
    mean: float
    contrastEstimate: int


class AnalyzeResponse(BaseModel):
    image: str
    type: str
    metrics: ImageMetrics


class BrandSummary(BaseModel):
    groupKey: str
    averageSharpness: float
    averageBrightness: float
    averageContrast: float


class CompareResponse(BaseModel):
    summaries: List[BrandSummary] = Field(default_factory=list)
    analyzed: int
    skipped: List[str] = Field(default_factory=list)


class UploadResponse(BaseModel):
    message: str
    image: ImageRecord
