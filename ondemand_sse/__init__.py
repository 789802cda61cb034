"""
Incremental parsing of the On-Demand chat query stream.
Splits SSE text into frames, decodes frames into events and folds events
into the answer shown to the user.
"""

from .sse_parser import SSEParser
from .event_decoder import (
    DONE,
    StreamSentinel,
    decode_frame,
    extract_payload,
)
from .accumulator import (
    AccumulationState,
    Directive,
    DirectiveKind,
    Terminal,
    accumulate,
    describe_status,
)
from .models import StreamEvent, StatusLog, PublicMetrics

__all__ = [
    # Framing
    "SSEParser",

    # Decoding
    "DONE",
    "StreamSentinel",
    "decode_frame",
    "extract_payload",

    # Accumulation
    "AccumulationState",
    "Directive",
    "DirectiveKind",
    "Terminal",
    "accumulate",
    "describe_status",

    # Event models
    "StreamEvent",
    "StatusLog",
    "PublicMetrics",
]
