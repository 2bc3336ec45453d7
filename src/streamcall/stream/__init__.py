"""Wire-level streaming: frames, deltas, fragment merging and transports."""

from streamcall.stream.deltas import Delta, TurnAccumulator
from streamcall.stream.frames import FrameParser, encode_frame, iter_frames
from streamcall.stream.merger import merge_fragments, normalize_arguments
from streamcall.stream.transport import (
    HttpxStreamHandle,
    HttpxTransport,
    StreamHandle,
    Transport,
)

__all__ = [
    "Delta",
    "FrameParser",
    "HttpxStreamHandle",
    "HttpxTransport",
    "StreamHandle",
    "Transport",
    "TurnAccumulator",
    "encode_frame",
    "iter_frames",
    "merge_fragments",
    "normalize_arguments",
]
