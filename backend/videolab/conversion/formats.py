"""Supported output formats and the FFmpeg arguments that produce them."""
from typing import Optional

from videolab.conversion.models import FormatSpec

_X264 = ("-c:v", "libx264", "-c:a", "aac", "-preset", "fast")

FORMATS: dict[str, FormatSpec] = {
    spec.id: spec
    for spec in (
        FormatSpec("mp4", "mp4", _X264),
        FormatSpec("webm", "webm", ("-c:v", "libvpx-vp9", "-c:a", "libopus", "-b:v", "1M")),
        FormatSpec("mkv", "mkv", _X264),
        FormatSpec("mov", "mov", _X264),
        FormatSpec("mp3", "mp3", ("-vn", "-c:a", "libmp3lame", "-q:a", "2")),
        FormatSpec("wav", "wav", ("-vn", "-c:a", "pcm_s16le")),
    )
}

DEFAULT_CLIP_FORMAT = "mp4"


def lookup(format_id: Optional[str]) -> Optional[FormatSpec]:
    if not format_id:
        return None
    return FORMATS.get(format_id)


def format_ids() -> list[str]:
    return list(FORMATS)
