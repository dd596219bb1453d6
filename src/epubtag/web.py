from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from .core import analyze_epub_bytes
from .errors import EpubAnalysisError
from .keywords import GENRE_KEYWORDS, TAG_KEYWORDS
from .logging_utils import debug_log
from .scoring import ScanTable, parse_keyword_list

DEFAULT_MAX_UPLOAD_MB = 100.0
_UPLOAD_CHUNK = 1024 * 1024


@dataclass(slots=True)
class WebConfig:
    genres: ScanTable = field(default_factory=lambda: GENRE_KEYWORDS)
    tags: ScanTable = field(default_factory=lambda: TAG_KEYWORDS)
    max_upload_bytes: int | None = int(DEFAULT_MAX_UPLOAD_MB * 1024 * 1024)


async def _read_upload(file: UploadFile, limit: int | None) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK)
        if not chunk:
            break
        total += len(chunk)
        if limit is not None and total > limit:
            raise HTTPException(
                status_code=413,
                detail=f"Upload exceeds the {limit} byte limit.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def create_app(config: WebConfig) -> FastAPI:
    app = FastAPI(title="epubtag")
    app.state.config = config

    @app.get("/api/keywords")
    def api_keywords() -> JSONResponse:
        return JSONResponse(
            {
                "genres": {name: list(words) for name, words in config.genres.items()},
                "tags": {name: list(words) for name, words in config.tags.items()},
            }
        )

    @app.post("/api/analyze")
    async def api_analyze(
        file: UploadFile = File(...),
        keywords: str | None = Form(
            None, description="Extra comma-separated keywords, e.g. 'magic, wom*n'."
        ),
    ) -> JSONResponse:
        filename = file.filename or "upload.epub"
        if Path(filename).suffix.lower() != ".epub":
            raise HTTPException(
                status_code=400, detail="Only .epub files are supported."
            )
        try:
            data = await _read_upload(file, config.max_upload_bytes)
        finally:
            await file.close()
        debug_log(f"Received {filename} ({len(data)} bytes)")
        try:
            result = await asyncio.to_thread(
                analyze_epub_bytes,
                data,
                config.genres,
                config.tags,
                custom_keywords=parse_keyword_list(keywords),
                max_bytes=config.max_upload_bytes,
            )
        except EpubAnalysisError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        payload = result.to_dict()
        payload["filename"] = filename
        return JSONResponse(payload)

    return app
