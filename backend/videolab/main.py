"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from videolab.api.routes import router
from videolab.config import Settings, logger as config_logger
from videolab.conversion.scratch import prepare_scratch_dir
from videolab.conversion.service import Transcoder
from videolab.errors import UploadTooLarge, VideoLabError

logging.getLogger("uvicorn").setLevel(logging.INFO)

UPLOAD_PATHS = ("/api/convert", "/api/clip")
# Allowance for multipart boundaries and the small form fields next to the file
MULTIPART_OVERHEAD = 64 * 1024


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        prepare_scratch_dir(settings.scratch_dir)
        app.state.transcoder = Transcoder.detect(settings.ffmpeg_binary, timeout=settings.ffmpeg_timeout)
        features = "conversion, clipping, subtitles" if app.state.transcoder.available else "subtitles only"
        config_logger.info("VideoLab API started (scratch=%s, features: %s)", settings.scratch_dir, features)
        yield
        config_logger.info("VideoLab API shutting down")

    app = FastAPI(
        title="VideoLab API",
        description="Convert and clip media files with FFmpeg, convert subtitles to WebVTT.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins if settings.cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def upload_size_middleware(request: Request, call_next):
        """Refuse oversized uploads from Content-Length before the body is read."""
        if request.method == "POST" and request.url.path in UPLOAD_PATHS:
            length = request.headers.get("content-length", "")
            if length.isdigit() and int(length) > settings.max_upload_bytes + MULTIPART_OVERHEAD:
                error = UploadTooLarge(settings.max_upload_bytes)
                return JSONResponse(error.to_dict(), status_code=error.status_code)
        return await call_next(request)

    app.middleware("http")(upload_size_middleware)

    @app.exception_handler(VideoLabError)
    async def videolab_error_handler(request: Request, exc: VideoLabError):
        if exc.status_code >= 500:
            config_logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid request", "details": str(exc.errors())}, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        config_logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    app.include_router(router)

    if settings.static_dir is not None:
        if settings.static_dir.is_dir():
            app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="client")
        else:
            config_logger.warning("STATIC_DIR %s is not a directory; client not served", settings.static_dir)

    return app


app = create_app()


if __name__ == "__main__":
    from videolab.cli import main
    main()
