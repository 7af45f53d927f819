#!/usr/bin/env python3
import json
import logging
import os

import anyio
import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.delivery import build_download_response
from config.settings import (
    APP_NAME,
    DEFAULT_AUDIO_BITRATE_KBPS,
    DEFAULT_VIDEO_HEIGHT,
    HOST,
    PORT,
    build_runtime_config,
)
from download.worker import ConversionWorker
from engine.errors import ConversionError
from engine.json_utils import safe_json
from engine.paths import build_engine_paths, ensure_dir
from engine.quality import MODE_AUDIO, MODE_VIDEO
from engine.runtime import get_runtime_info

LOG_FILENAME = "converter.log"


class SafeJSONResponse(JSONResponse):
    def render(self, content):
        return json.dumps(
            safe_json(content),
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        ).encode("utf-8")


class MediaInfoResponse(BaseModel):
    title: str
    thumbnail: str | None = None
    duration: int | None = None
    author: str | None = None


class ErrorResponse(BaseModel):
    error: str


_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing input"},
    500: {"model": ErrorResponse, "description": "Conversion failure"},
}


def _setup_logging(log_dir):
    ensure_dir(log_dir)
    root = logging.getLogger("")
    log_path = os.path.join(log_dir, LOG_FILENAME)
    root.setLevel(logging.INFO)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    has_file = False
    has_stream = False
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            if os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path):
                has_file = True
        elif isinstance(handler, logging.StreamHandler):
            has_stream = True
    if not has_file:
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.INFO)
        root.addHandler(file_handler)
    if not has_stream:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)


app = FastAPI(
    title=APP_NAME,
    description="Convert remote videos into MP3 audio or MP4 video downloads.",
    default_response_class=SafeJSONResponse,
)


@app.on_event("startup")
async def startup():
    app.state.paths = build_engine_paths()
    _setup_logging(app.state.paths.log_dir)
    app.state.worker = ConversionWorker(app.state.paths, config=build_runtime_config())
    logging.info(
        "%s ready downloads_dir=%s log_dir=%s",
        APP_NAME,
        app.state.paths.downloads_dir,
        app.state.paths.log_dir,
    )


@app.exception_handler(ConversionError)
async def conversion_error_handler(request: Request, exc: ConversionError):
    return SafeJSONResponse({"error": exc.public_message()}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logging.exception("Unhandled error on %s %s", request.method, request.url.path)
    return SafeJSONResponse({"error": "Internal server error"}, status_code=500)


def _worker(request: Request) -> ConversionWorker:
    return request.app.state.worker


@app.get("/api/info", response_model=MediaInfoResponse, responses=_ERROR_RESPONSES)
async def api_info(request: Request, url: str | None = Query(default=None)):
    worker = _worker(request)
    meta = await anyio.to_thread.run_sync(worker.probe, url)
    return meta.to_dict()


@app.get("/api/convert/mp3", responses=_ERROR_RESPONSES)
async def api_convert_mp3(
    request: Request,
    url: str | None = Query(default=None),
    quality: str = Query(default=str(DEFAULT_AUDIO_BITRATE_KBPS)),
):
    worker = _worker(request)
    logging.info("Starting MP3 conversion for URL: %s quality=%s", url, quality)
    artifact = await anyio.to_thread.run_sync(worker.convert, url, MODE_AUDIO, quality)
    return build_download_response(artifact)


@app.get("/api/convert/mp4", responses=_ERROR_RESPONSES)
async def api_convert_mp4(
    request: Request,
    url: str | None = Query(default=None),
    quality: str = Query(default=str(DEFAULT_VIDEO_HEIGHT)),
):
    worker = _worker(request)
    logging.info("Starting MP4 conversion for URL: %s quality=%s", url, quality)
    artifact = await anyio.to_thread.run_sync(worker.convert, url, MODE_VIDEO, quality)
    return build_download_response(artifact)


@app.get("/api/version")
async def api_version():
    return get_runtime_info()


def run():
    uvicorn.run("api.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
