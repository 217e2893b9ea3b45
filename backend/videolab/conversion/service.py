"""FFmpeg invocation: availability probe, argument building and async execution."""
import asyncio
import codecs
import logging
import subprocess
from pathlib import Path
from typing import Optional

from videolab.conversion.models import (
    ClipRange,
    ConversionFailure,
    ConversionOutput,
    ConversionRequest,
    ConversionResult,
    FormatSpec,
    RequestState,
)
from videolab.errors import FFmpegUnavailable

logger = logging.getLogger("videolab.service")

# Characters of stderr kept while the process runs / returned to the client
STDERR_KEEP = 500
STDERR_DETAILS = 300
PROBE_TIMEOUT = 10


def probe_ffmpeg(binary: str) -> bool:
    """Return True when `<binary> -version` runs and exits cleanly."""
    try:
        result = subprocess.run(
            [binary, "-version"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=PROBE_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("FFmpeg probe failed: %s", e)
        return False
    return result.returncode == 0


def format_seconds(value: float) -> str:
    """Seconds as an FFmpeg time argument: microsecond precision, no trailing zeros."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"


def conversion_args(input_path: Path, spec: FormatSpec, output_path: Path) -> list[str]:
    return ["-i", str(input_path), "-y", *spec.args, str(output_path)]


def clip_args(input_path: Path, spec: FormatSpec, clip: ClipRange, output_path: Path) -> list[str]:
    # -ss before -i seeks to the nearest keyframe: fast, not frame exact
    return [
        "-ss", format_seconds(clip.start),
        "-i", str(input_path),
        "-t", format_seconds(clip.duration),
        "-y",
        *spec.args,
        "-avoid_negative_ts", "make_zero",
        str(output_path),
    ]


async def _read_stderr_tail(stream: asyncio.StreamReader) -> str:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    tail = ""
    while chunk := await stream.read(4096):
        tail = (tail + decoder.decode(chunk))[-STDERR_KEEP:]
    return (tail + decoder.decode(b"", final=True))[-STDERR_KEEP:]


def _remove_output(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove partial output %s: %s", path, e)


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass


class Transcoder:
    """Runs the external transcoder, one child process per call.

    `available` is decided once (see detect()) and never re-probed; when it is
    False convert() and clip() refuse without spawning anything.
    """

    def __init__(self, binary: str = "ffmpeg", available: bool = False, timeout: Optional[float] = None):
        self.binary = binary
        self.available = available
        self.timeout = timeout

    @classmethod
    def detect(cls, binary: str = "ffmpeg", timeout: Optional[float] = None) -> "Transcoder":
        available = probe_ffmpeg(binary)
        if available:
            logger.info("FFmpeg detected (%s)", binary)
        else:
            logger.warning("FFmpeg not found. Video conversion will not be available.")
        return cls(binary=binary, available=available, timeout=timeout)

    def ensure_available(self) -> None:
        if not self.available:
            raise FFmpegUnavailable()

    async def convert(self, request: ConversionRequest, output_path: Path) -> ConversionResult:
        self.ensure_available()
        logger.info(
            "Converting: %s -> %s%s",
            request.upload.original_name, request.download_name,
            " (audio only)" if request.format.audio_only else "",
        )
        args = conversion_args(request.upload.path, request.format, output_path)
        return await self._invoke(
            request, args, output_path,
            failure_message="Conversion failed",
            spawn_message="Failed to start conversion",
        )

    async def clip(self, request: ConversionRequest, output_path: Path) -> ConversionResult:
        self.ensure_available()
        if request.clip is None:
            raise ValueError("clip() needs a request with a clip range")
        logger.info(
            "Clipping: %s [%ss - %ss] -> %s",
            request.upload.original_name, request.clip.start, request.clip.end, request.download_name,
        )
        args = clip_args(request.upload.path, request.format, request.clip, output_path)
        return await self._invoke(
            request, args, output_path,
            failure_message="Clip creation failed",
            spawn_message="Failed to start clip creation",
        )

    async def _invoke(
        self,
        request: ConversionRequest,
        args: list[str],
        output_path: Path,
        failure_message: str,
        spawn_message: str,
    ) -> ConversionResult:
        request.advance(RequestState.INVOKING)
        failure = await self.run(args, output_path, failure_message, spawn_message)
        if failure is not None:
            request.advance(RequestState.FAILED)
            return failure
        request.advance(RequestState.SUCCEEDED)
        return ConversionOutput(path=output_path, download_name=request.download_name)

    async def run(
        self,
        args: list[str],
        output_path: Path,
        failure_message: str = "Conversion failed",
        spawn_message: str = "Failed to start conversion",
    ) -> Optional[ConversionFailure]:
        """Run the transcoder with `args` and wait for it to exit.

        Returns None on exit code 0, otherwise a ConversionFailure. On every
        failure the (possibly partial) file at output_path is removed. If the
        awaiting task is cancelled the child is killed first.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("FFmpeg spawn error: %s", e)
            _remove_output(output_path)
            return ConversionFailure(spawn_message)

        async def wait() -> str:
            tail = await _read_stderr_tail(process.stderr)
            await process.wait()
            return tail

        try:
            stderr = await asyncio.wait_for(wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            _kill(process)
            await process.wait()
            logger.error("FFmpeg timed out after %ss, killed pid %s", self.timeout, process.pid)
            _remove_output(output_path)
            return ConversionFailure(
                failure_message,
                details=f"FFmpeg did not finish within {format_seconds(self.timeout)} seconds",
            )
        except asyncio.CancelledError:
            _kill(process)
            try:
                await asyncio.shield(process.wait())
            finally:
                _remove_output(output_path)
            raise

        if process.returncode != 0:
            logger.error("FFmpeg exited with %s: %s", process.returncode, stderr[-STDERR_KEEP:])
            _remove_output(output_path)
            return ConversionFailure(failure_message, details=stderr[-STDERR_DETAILS:])
        return None
