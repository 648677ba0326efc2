"""CSV rendering of brand summaries."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Sequence

from .models import SUMMARY_FIELDS, GroupSummary


def summaries_to_csv(summaries: Sequence[GroupSummary]) -> str:
    """Return *summaries* as CSV text with a header row, preserving order."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=SUMMARY_FIELDS, lineterminator="\n")
    writer.writeheader()
    for summary in summaries:
        writer.writerow(summary.as_row())
    return buf.getvalue()


def write_csv(path: Path, summaries: Sequence[GroupSummary]) -> Path:
    """Write *summaries* as CSV to *path* and return the path."""
    path.write_text(summaries_to_csv(summaries), encoding="utf-8")
    return path
