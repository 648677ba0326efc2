from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from brandmetrics.errors import DecodeError, NotFound
from brandmetrics.models import ImageRecord
from brandmetrics.storage import LocalImageStorage, MetadataStore, store_upload


def _jpeg_bytes(width: int, height: int) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color=(10, 120, 240)).save(buf, format="JPEG")
    return buf.getvalue()


def test_local_storage_round_trip(tmp_path: Path) -> None:
    storage = LocalImageStorage(tmp_path / "uploads")
    storage.save("a.png", b"abc")

    assert storage.fetch_image_bytes("a.png") == b"abc"


@pytest.mark.parametrize("name", ["missing.png", "../secret.png", "nested/a.png", ""])
def test_local_storage_reports_missing_or_unsafe_names(tmp_path: Path, name: str) -> None:
    storage = LocalImageStorage(tmp_path)

    with pytest.raises(NotFound):
        storage.fetch_image_bytes(name)


def test_metadata_store_lists_newest_first_and_filters(tmp_path: Path) -> None:
    store = MetadataStore(tmp_path / "images.json")
    for i, brand in enumerate(["iPhone", "Pixel", "iPhone"]):
        store.add(
            ImageRecord(
                id=str(i),
                filename=f"processed-{i}.jpg",
                originalFilename=f"original-{i}.jpg",
                brand=brand,
                processedAt=datetime(2024, 5, 1, 12, i, tzinfo=timezone.utc),
            )
        )

    assert [r.id for r in store.list()] == ["2", "1", "0"]
    assert [r.id for r in store.list(brand="iPhone")] == ["2", "0"]
    # A fresh store reads what the first one persisted.
    assert len(MetadataStore(tmp_path / "images.json").list()) == 3


def test_store_upload_writes_both_files_and_metadata(tmp_path: Path) -> None:
    storage = LocalImageStorage(tmp_path)
    metadata = MetadataStore(tmp_path / "images.json")

    record = store_upload(storage, metadata, _jpeg_bytes(800, 600), "shot.jpg", "Samsung", width=400)

    assert record.filename.startswith("processed-") and record.filename.endswith("-shot.jpg")
    assert record.originalFilename.startswith("original-")
    assert record.brand == "Samsung"

    processed = Image.open(BytesIO(storage.fetch_image_bytes(record.filename)))
    assert processed.size == (400, 300)
    assert processed.mode == "L"
    assert metadata.list() == [record]


def test_store_upload_rejects_corrupt_bytes_without_writing(tmp_path: Path) -> None:
    storage = LocalImageStorage(tmp_path / "uploads")
    metadata = MetadataStore(tmp_path / "uploads" / "images.json")

    with pytest.raises(DecodeError):
        store_upload(storage, metadata, b"nope", "bad.jpg", "Pixel")

    assert not (tmp_path / "uploads").exists()
    assert metadata.list() == []


def test_same_name_uploads_in_one_millisecond_keep_separate_files(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("brandmetrics.storage.time.time", lambda: 1_700_000_000.0)
    storage = LocalImageStorage(tmp_path)
    metadata = MetadataStore(tmp_path / "images.json")

    first = store_upload(storage, metadata, _jpeg_bytes(40, 30), "shot.jpg", "Pixel", width=40)
    second = store_upload(storage, metadata, _jpeg_bytes(80, 60), "shot.jpg", "Pixel", width=80)

    assert first.filename != second.filename
    assert first.originalFilename != second.originalFilename
    assert Image.open(BytesIO(storage.fetch_image_bytes(first.filename))).size == (40, 30)
    assert Image.open(BytesIO(storage.fetch_image_bytes(second.filename))).size == (80, 60)
    assert len(metadata.list()) == 2
