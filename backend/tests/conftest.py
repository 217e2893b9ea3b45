import os
import stat
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from videolab.config import Settings
from videolab.main import create_app

# Stands in for ffmpeg: answers -version, writes its last argument as the
# output file. FAKE_FFMPEG_* variables switch it into failure modes.
FAKE_FFMPEG = """#!{python}
import os
import sys
import time

args = sys.argv[1:]
log = os.environ.get("FAKE_FFMPEG_LOG")
if log:
    with open(log, "a") as f:
        f.write("\\t".join(args) + "\\n")
if args == ["-version"]:
    print("ffmpeg version 6.1-fake")
    sys.exit(0)
if os.environ.get("FAKE_FFMPEG_SLEEP"):
    time.sleep(float(os.environ["FAKE_FFMPEG_SLEEP"]))
output = args[-1]
if os.environ.get("FAKE_FFMPEG_FAIL"):
    with open(output, "wb") as f:
        f.write(b"partial")
    sys.stderr.write("frame=1 " * 200 + "\\nInvalid data found when processing input\\n")
    sys.exit(1)
if os.environ.get("FAKE_FFMPEG_NO_OUTPUT"):
    sys.exit(0)
with open(args[args.index("-i") + 1], "rb") as f:
    data = f.read()
with open(output, "wb") as f:
    f.write(b"converted:" + data)
sys.exit(0)
"""


@pytest.fixture
def ffmpeg_log(tmp_path, monkeypatch) -> Path:
    log = tmp_path / "ffmpeg.log"
    monkeypatch.setenv("FAKE_FFMPEG_LOG", str(log))
    return log


@pytest.fixture
def fake_ffmpeg(tmp_path, ffmpeg_log) -> Path:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    path = bin_dir / "ffmpeg"
    path.write_text(FAKE_FFMPEG.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def scratch_dir(tmp_path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def make_client(scratch_dir):
    def _make(binary, **overrides) -> TestClient:
        settings = Settings(
            scratch_dir=scratch_dir,
            ffmpeg_binary=str(binary),
            cors_origins=[],
            static_dir=overrides.pop("static_dir", None),
            **overrides,
        )
        return TestClient(create_app(settings))

    return _make


@pytest.fixture
def client(make_client, fake_ffmpeg):
    with make_client(fake_ffmpeg) as c:
        yield c


@pytest.fixture
def offline_client(make_client, tmp_path):
    with make_client(tmp_path / "no-such-ffmpeg") as c:
        yield c


def invocations(log: Path) -> list[list[str]]:
    """Transcoding calls recorded by the fake binary, probe excluded."""
    if not log.exists():
        return []
    calls = [line.split("\t") for line in log.read_text().splitlines()]
    return [c for c in calls if c != ["-version"]]


def scratch_files(scratch_dir: Path) -> list[str]:
    return sorted(os.listdir(scratch_dir))


def video_upload(name: str = "sample.avi", data: bytes = b"RIFF fake video bytes"):
    return {"video": (name, data, "video/x-msvideo")}
