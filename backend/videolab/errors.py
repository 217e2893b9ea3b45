"""Errors that end a request. Rendered as {"error": ..., "details": ...} by the app."""
from typing import Optional


class VideoLabError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class FFmpegUnavailable(VideoLabError):
    status_code = 500

    def __init__(self):
        super().__init__("FFmpeg is not installed on the server")


class InvalidRequest(VideoLabError):
    status_code = 400


class UploadTooLarge(VideoLabError):
    status_code = 413

    def __init__(self, max_bytes: int):
        super().__init__(f"File too large (max {max_bytes // (1024 * 1024)} MB)")
        self.max_bytes = max_bytes


class ConversionFailed(VideoLabError):
    status_code = 500
