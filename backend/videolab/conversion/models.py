"""Conversion request/result models."""
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("videolab.requests")

_request_ids = itertools.count(1)


class RequestState(str, Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    REJECTED = "rejected"
    INVOKING = "invoking"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RESPONDED = "responded"
    CLEANED_UP = "cleaned_up"


@dataclass(frozen=True)
class FormatSpec:
    id: str
    ext: str
    args: tuple[str, ...]

    @property
    def audio_only(self) -> bool:
        return "-vn" in self.args


@dataclass(frozen=True)
class ClipRange:
    """Start/end offsets in seconds. end is strictly greater than start."""

    start: float
    end: float

    def __post_init__(self):
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"invalid clip range {self.start}-{self.end}")

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class UploadedFile:
    path: Path
    original_name: str
    size: int

    @property
    def stem(self) -> str:
        return Path(self.original_name).stem


@dataclass
class ConversionRequest:
    """One convert or clip call. Lives only as long as the HTTP request.

    Created as soon as the request arrives; upload, format and clip are
    filled in as validation and storage succeed. State changes go through
    advance() so each one is logged.
    """

    upload: Optional[UploadedFile] = None
    format: Optional[FormatSpec] = None
    clip: Optional[ClipRange] = None
    state: RequestState = RequestState.RECEIVED
    id: int = field(default_factory=lambda: next(_request_ids))

    def __post_init__(self):
        logger.debug("request %s: %s", self.id, self.state.value)

    def advance(self, state: RequestState) -> None:
        self.state = state
        logger.debug("request %s: %s", self.id, state.value)

    @property
    def download_name(self) -> str:
        if self.clip is None:
            return f"videoLab_{self.upload.stem}.{self.format.ext}"
        return f"clip_{self.upload.stem}_{self.clip.start:.1f}s-{self.clip.end:.1f}s.{self.format.ext}"


@dataclass(frozen=True)
class ConversionOutput:
    path: Path
    download_name: str


@dataclass(frozen=True)
class ConversionFailure:
    message: str
    details: Optional[str] = None


ConversionResult = Union[ConversionOutput, ConversionFailure]
