from __future__ import annotations

import json
import threading
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol

from .errors import NotFound
from .models import ImageRecord
from .quality import process_upload


METADATA_FILENAME = "images.json"


class ImageStorage(Protocol):
    def fetch_image_bytes(self, name: str) -> bytes:
        ...

    def save(self, name: str, data: bytes) -> None:
        ...


class LocalImageStorage:
    """Image bytes kept as flat files under a single upload directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise NotFound(f"invalid image name: {name!r}", name)
        return self.root / name

    def fetch_image_bytes(self, name: str) -> bytes:
        path = self._path(name)
        if not path.is_file():
            raise NotFound(f"image not found: {name}", name)
        return path.read_bytes()

    def save(self, name: str, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._path(name).write_bytes(data)


class MetadataStore:
    """Image metadata persisted as a JSON list beside the uploads."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> List[ImageRecord]:
        if not self.path.is_file():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        return [ImageRecord.model_validate(item) for item in raw]

    def add(self, record: ImageRecord) -> ImageRecord:
        with self._lock:
            records = self._load()
            records.append(record)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = [r.model_dump(mode="json") for r in records]
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return record

    def list(self, brand: Optional[str] = None) -> List[ImageRecord]:
        with self._lock:
            records = self._load()
        if brand is not None:
            records = [r for r in records if r.brand == brand]
        return sorted(records, key=lambda r: r.processedAt, reverse=True)


def store_upload(
    storage: ImageStorage,
    metadata: MetadataStore,
    raw: bytes,
    original_name: str,
    brand: str,
    width: int = 500,
) -> ImageRecord:
    """Save an upload and its grayscale copy, then record the metadata."""
    safe_name = Path(original_name or "upload").name
    # Decode before writing anything so a corrupt upload leaves no files behind.
    processed = process_upload(raw, width=width, source_id=safe_name)

    # The random token keeps same-name uploads within one millisecond apart.
    stamp = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
    original_filename = f"original-{stamp}-{safe_name}"
    processed_filename = f"processed-{stamp}-{safe_name}"
    storage.save(original_filename, raw)
    storage.save(processed_filename, processed)

    record = ImageRecord(
        id=uuid.uuid4().hex,
        filename=processed_filename,
        originalFilename=original_filename,
        brand=brand,
        processedAt=datetime.now(timezone.utc),
    )
    return metadata.add(record)
