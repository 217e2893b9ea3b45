"""VideoLab: upload-triggered FFmpeg conversion and clipping over HTTP."""

__version__ = "1.0.0"
