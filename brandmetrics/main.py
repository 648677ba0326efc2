from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from .analysis import BatchResult, analyze_all, analyze_image
from .errors import DecodeError, InvalidInput, MetricsError, NotFound
from .export import summaries_to_csv
from .logging_config import configure_logging
from .models import (
    AnalyzeResponse,
    BrandSummary,
    CompareResponse,
    ImageMetrics,
    ImageRecord,
    UploadResponse,
)
from .storage import METADATA_FILENAME, LocalImageStorage, MetadataStore, store_upload

log = logging.getLogger(__name__)

SERVICE_NAME = "brandmetrics"
SERVICE_VERSION = "0.1.0"
IMAGE_TYPES = ("original", "processed")


@dataclass
class Settings:
    upload_dir: Path = Path(os.getenv("BRANDMETRICS_UPLOAD_DIR", "public/uploads"))
    # Width of the grayscale copy stored next to each original upload.
    processed_width: int = int(os.getenv("BRANDMETRICS_PROCESSED_WIDTH", "500"))
    # 0 lets the batch analysis pick a worker count from the CPU count.
    analyze_workers: int = int(os.getenv("BRANDMETRICS_ANALYZE_WORKERS", "0"))
    log_level: str = os.getenv("BRANDMETRICS_LOG_LEVEL", "INFO")


_STATUS_BY_ERROR = {
    InvalidInput: 400,
    NotFound: 404,
    DecodeError: 422,
}


async def _metrics_error_handler(request: Request, exc: MetricsError) -> JSONResponse:
    status = _STATUS_BY_ERROR.get(type(exc), 500)
    log.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc), "identifier": exc.identifier},
    )


def _run_batch(app: FastAPI) -> BatchResult:
    settings: Settings = app.state.settings
    return analyze_all(
        app.state.metadata.list(),
        app.state.storage,
        max_workers=settings.analyze_workers or None,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION)
    app.state.settings = settings
    app.state.storage = LocalImageStorage(settings.upload_dir)
    app.state.metadata = MetadataStore(settings.upload_dir / METADATA_FILENAME)
    app.add_exception_handler(MetricsError, _metrics_error_handler)

    @app.get("/healthz")
    def healthz() -> dict:
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
        }

    @app.post("/upload", response_model=UploadResponse)
    async def upload(image: UploadFile = File(...), brand: str = Form("")) -> UploadResponse:
        if not brand.strip():
            raise HTTPException(status_code=400, detail="brand is required")
        raw = await image.read()
        record = await run_in_threadpool(
            store_upload,
            app.state.storage,
            app.state.metadata,
            raw,
            image.filename or "upload",
            brand.strip(),
            width=settings.processed_width,
        )
        log.info("Stored %s for brand %s", record.filename, record.brand)
        return UploadResponse(message="Image uploaded & processed", image=record)

    @app.get("/images", response_model=List[ImageRecord])
    def images(brand: Optional[str] = None) -> List[ImageRecord]:
        return app.state.metadata.list(brand=brand)

    @app.get("/analyze/{image_type}/{filename}", response_model=AnalyzeResponse)
    def analyze(image_type: str, filename: str) -> AnalyzeResponse:
        if image_type not in IMAGE_TYPES:
            raise HTTPException(status_code=400, detail="Type must be original or processed")
        full_name = f"{image_type}-{filename}"
        record = analyze_image(full_name, app.state.storage)
        return AnalyzeResponse(
            image=full_name,
            type=image_type,
            metrics=ImageMetrics(
                filename=full_name,
                variance=record.sharpness,
                mean=record.brightness,
                contrastEstimate=record.contrast,
            ),
        )

    @app.get("/compare", response_model=CompareResponse)
    def compare() -> CompareResponse:
        result = _run_batch(app)
        return CompareResponse(
            summaries=[BrandSummary(**s.as_row()) for s in result.summaries],
            analyzed=result.analyzed,
            skipped=result.skipped,
        )

    @app.get("/compare.csv")
    def compare_csv() -> Response:
        result = _run_batch(app)
        return Response(
            content=summaries_to_csv(result.summaries),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="sharpness-report.csv"'},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("brandmetrics.main:app", host="127.0.0.1", port=5000)
