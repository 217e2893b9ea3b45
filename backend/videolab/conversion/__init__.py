from .formats import DEFAULT_CLIP_FORMAT, FORMATS, format_ids, lookup
from .models import ClipRange, ConversionFailure, ConversionOutput, ConversionRequest, FormatSpec, RequestState
from .scratch import ScratchFiles, prepare_scratch_dir
from .service import Transcoder

__all__ = [
    "DEFAULT_CLIP_FORMAT",
    "FORMATS",
    "ClipRange",
    "ConversionFailure",
    "ConversionOutput",
    "ConversionRequest",
    "FormatSpec",
    "RequestState",
    "ScratchFiles",
    "Transcoder",
    "format_ids",
    "lookup",
    "prepare_scratch_dir",
]
