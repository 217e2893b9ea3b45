"""API routes for conversion, clipping and subtitles."""
import logging
import math
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response

from videolab.api.responses import ScratchFileResponse
from videolab.config import MAX_SUBTITLE_SIZE_BYTES, Settings
from videolab.conversion.formats import DEFAULT_CLIP_FORMAT, format_ids, lookup
from videolab.conversion.models import (
    ClipRange,
    ConversionFailure,
    ConversionRequest,
    FormatSpec,
    RequestState,
)
from videolab.conversion.scratch import ScratchFiles, safe_name
from videolab.conversion.service import Transcoder, format_seconds
from videolab.errors import ConversionFailed, InvalidRequest, VideoLabError
from videolab.subtitles import SUBTITLE_EXTENSIONS, UnsupportedSubtitleFormat, to_vtt

logger = logging.getLogger("videolab.api")
router = APIRouter(prefix="/api", tags=["videolab"])


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_transcoder(request: Request) -> Transcoder:
    return request.app.state.transcoder


def _require_video(video: Optional[UploadFile]) -> UploadFile:
    if video is None or not video.filename:
        raise InvalidRequest("No video file provided")
    return video


def _require_format(format_id: Optional[str]) -> FormatSpec:
    spec = lookup(format_id)
    if spec is None:
        raise InvalidRequest("Invalid format")
    return spec


def _parse_seconds(value: Optional[str], default: Optional[float]) -> Optional[float]:
    """Float from a form field; blank gives `default`, garbage gives None."""
    if value is None or not value.strip():
        return default
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if math.isfinite(seconds) else None


def parse_clip_range(start_time: Optional[str], end_time: Optional[str]) -> ClipRange:
    start = _parse_seconds(start_time, 0.0)
    end = _parse_seconds(end_time, None)
    if start is None or end is None or start < 0 or end <= start:
        raise InvalidRequest("Invalid time range")
    # FFmpeg gets the duration at microsecond precision; shorter is a zero-length clip
    if format_seconds(end - start) == "0":
        raise InvalidRequest("Invalid time range")
    return ClipRange(start=start, end=end)


def _reject(job: ConversionRequest) -> None:
    job.advance(RequestState.REJECTED)
    job.advance(RequestState.CLEANED_UP)


async def _transcode(
    settings: Settings,
    transcoder: Transcoder,
    job: ConversionRequest,
    video: UploadFile,
) -> ScratchFileResponse:
    """Store the upload, run the transcoder and hand the output to the response.

    The upload is always removed here. The output is removed here on failure
    and by ScratchFileResponse otherwise.
    """
    scratch = ScratchFiles(settings.scratch_dir)
    try:
        job.upload = await scratch.store_upload(video, settings.max_upload_bytes)
        if job.clip is None:
            output_path = scratch.path_for("out", job.download_name)
            result = await transcoder.convert(job, output_path)
        else:
            output_path = scratch.path_for("clip", job.download_name)
            result = await transcoder.clip(job, output_path)
    except BaseException as e:
        scratch.discard_all()
        if job.state == RequestState.VALIDATING and isinstance(e, VideoLabError):
            _reject(job)
        else:
            if job.state != RequestState.FAILED:
                job.advance(RequestState.FAILED)
            job.advance(RequestState.CLEANED_UP)
        raise
    scratch.discard(job.upload.path)

    if isinstance(result, ConversionFailure):
        scratch.discard_all()
        job.advance(RequestState.CLEANED_UP)
        raise ConversionFailed(result.message, details=result.details)

    return ScratchFileResponse(result.path, filename=result.download_name, job=job)


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/ffmpeg-status")
def ffmpeg_status(transcoder: Transcoder = Depends(get_transcoder)):
    return {"available": transcoder.available}


@router.get("/formats")
def get_formats():
    return format_ids()


@router.get("/limits")
def get_limits(settings: Settings = Depends(get_settings)):
    """Return upload limits for the client."""
    return {
        "max_upload_size_mb": settings.max_upload_bytes // (1024 * 1024),
        "max_upload_size_bytes": settings.max_upload_bytes,
    }


@router.post("/convert")
async def convert_video(
    video: Optional[UploadFile] = File(None),
    target_format: Optional[str] = Form(None, alias="format"),
    settings: Settings = Depends(get_settings),
    transcoder: Transcoder = Depends(get_transcoder),
):
    """Convert the uploaded file to `format` and return it as a download."""
    job = ConversionRequest()
    job.advance(RequestState.VALIDATING)
    try:
        transcoder.ensure_available()
        video = _require_video(video)
        job.format = _require_format(target_format)
    except VideoLabError:
        _reject(job)
        raise
    return await _transcode(settings, transcoder, job, video)


@router.post("/clip")
async def clip_video(
    video: Optional[UploadFile] = File(None),
    target_format: Optional[str] = Form(None, alias="format"),
    start_time: Optional[str] = Form(None, alias="startTime"),
    end_time: Optional[str] = Form(None, alias="endTime"),
    settings: Settings = Depends(get_settings),
    transcoder: Transcoder = Depends(get_transcoder),
):
    """Cut [startTime, endTime) seconds out of the upload. Format defaults to mp4."""
    job = ConversionRequest()
    job.advance(RequestState.VALIDATING)
    try:
        transcoder.ensure_available()
        video = _require_video(video)
        job.format = _require_format(target_format or DEFAULT_CLIP_FORMAT)
        job.clip = parse_clip_range(start_time, end_time)
    except VideoLabError:
        _reject(job)
        raise
    return await _transcode(settings, transcoder, job, video)


@router.post("/subtitles")
async def convert_subtitles(subtitle: Optional[UploadFile] = File(None)):
    """Convert an .srt/.ass/.ssa/.vtt upload to WebVTT. Nothing touches the disk."""
    if subtitle is None or not subtitle.filename:
        raise InvalidRequest("No subtitle file provided")
    name = safe_name(subtitle.filename)
    ext = Path(name).suffix.lower().lstrip(".")
    if ext not in SUBTITLE_EXTENSIONS:
        raise InvalidRequest("Unsupported subtitle format", details=f"Use one of: {', '.join(SUBTITLE_EXTENSIONS)}")
    raw = await subtitle.read(MAX_SUBTITLE_SIZE_BYTES + 1)
    if len(raw) > MAX_SUBTITLE_SIZE_BYTES:
        raise InvalidRequest("Subtitle file too large", status_code=413)
    try:
        vtt = to_vtt(raw.decode("utf-8-sig", errors="replace"), ext)
    except UnsupportedSubtitleFormat:
        raise InvalidRequest("Unsupported subtitle format")
    filename = quote(f"{Path(name).stem}.vtt")
    return Response(
        content=vtt,
        media_type="text/vtt",
        headers={"Content-Disposition": f"inline; filename*=utf-8''{filename}"},
    )
