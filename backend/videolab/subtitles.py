"""Subtitle conversion to WebVTT, the only text track format browsers play."""
import logging
import re

logger = logging.getLogger("videolab.subtitles")

SUBTITLE_EXTENSIONS = ("srt", "vtt", "ass", "ssa")

_SRT_TIMING = re.compile(r"^\d{2}:\d{2}:\d{2},\d{3}\s*-->\s*\d{2}:\d{2}:\d{2},\d{3}$")
_ASS_OVERRIDE = re.compile(r"\{[^}]*\}")


class UnsupportedSubtitleFormat(ValueError):
    pass


def srt_to_vtt(content: str) -> str:
    lines = []
    for line in content.strip().splitlines():
        if _SRT_TIMING.match(line):
            line = line.replace(",", ".")
        lines.append(line)
    return "WEBVTT\n\n" + "\n".join(lines)


def ass_time_to_vtt(value: str) -> str:
    """H:MM:SS.cc -> HH:MM:SS.mmm. Anything else is returned unchanged."""
    parts = value.split(":")
    if len(parts) != 3:
        return value
    hours, minutes, rest = parts
    seconds, _, fraction = rest.partition(".")
    millis = (fraction or "0").ljust(3, "0")[:3]
    return f"{hours.zfill(2)}:{minutes.zfill(2)}:{seconds.zfill(2)}.{millis}"


def ass_to_vtt(content: str) -> str:
    """Convert the Dialogue events of an ASS/SSA script. Styling is dropped."""
    cues = []
    for line in content.splitlines():
        if not line.startswith("Dialogue:"):
            continue
        fields = line.split(",")
        # Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
        if len(fields) < 10:
            continue
        text = _ASS_OVERRIDE.sub("", ",".join(fields[9:]))
        text = text.replace("\\N", "\n").replace("\\n", "\n").strip()
        start = ass_time_to_vtt(fields[1].strip())
        end = ass_time_to_vtt(fields[2].strip())
        cues.append(f"{len(cues) + 1}\n{start} --> {end}\n{text}\n\n")
    logger.debug("Converted %s ASS dialogue lines", len(cues))
    return "WEBVTT\n\n" + "".join(cues)


def to_vtt(content: str, ext: str) -> str:
    ext = ext.lower().lstrip(".")
    if ext == "srt":
        return srt_to_vtt(content)
    if ext == "vtt":
        return content
    if ext in ("ass", "ssa"):
        return ass_to_vtt(content)
    raise UnsupportedSubtitleFormat(ext)
