"""Application configuration. Loads from environment and .env file."""
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


# Scratch storage for uploads and transcoder output; purged on every startup
SCRATCH_DIR = Path(os.getenv("SCRATCH_DIR", str(Path(tempfile.gettempdir()) / "videolab")))

# Uploads: one file per request, max size (MB). 5 GB by default.
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", str(5 * 1024)))
MAX_UPLOAD_SIZE_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024
# Subtitles are converted in memory
MAX_SUBTITLE_SIZE_MB = int(os.getenv("MAX_SUBTITLE_SIZE_MB", "10"))
MAX_SUBTITLE_SIZE_BYTES = MAX_SUBTITLE_SIZE_MB * 1024 * 1024

# External transcoder
FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
# Seconds; unset means a conversion may run as long as it needs
FFMPEG_TIMEOUT = _optional_float("FFMPEG_TIMEOUT")

# Server (for uvicorn). PORT is only the fallback; the command line wins.
HOST = os.getenv("HOST", "0.0.0.0")
DEFAULT_PORT = 3000
# CORS: comma-separated origins; empty allows any origin
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
# Directory holding the browser client, mounted at / when set
STATIC_DIR = Path(os.getenv("STATIC_DIR")) if os.getenv("STATIC_DIR") else None

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("videolab")


@dataclass(frozen=True)
class Settings:
    """Values the application factory needs. Defaults come from the environment."""

    scratch_dir: Path = SCRATCH_DIR
    max_upload_bytes: int = MAX_UPLOAD_SIZE_BYTES
    ffmpeg_binary: str = FFMPEG_BINARY
    ffmpeg_timeout: Optional[float] = FFMPEG_TIMEOUT
    cors_origins: list[str] = field(default_factory=lambda: list(CORS_ORIGINS))
    static_dir: Optional[Path] = STATIC_DIR
