"""
Decoding of raw SSE frames into typed stream events.
"""
import enum
import logging
from typing import Optional, Union

from pydantic import ValidationError

from .models import StreamEvent, EVENT_ERROR

logger = logging.getLogger(__name__)

DONE_TOKEN = "[DONE]"
DATA_FIELD = "data:"

# Some server payloads arrive wrapped like "[ERROR]:{...}"
TAG_PREFIXES = ("[ERROR]:", "[error]:", "[INFO]:", "[info]:")


class StreamSentinel(enum.Enum):
    """Markers that are not events with a body"""
    DONE = DONE_TOKEN


DONE = StreamSentinel.DONE

DecodedFrame = Union[StreamSentinel, StreamEvent, None]


def _find_data_line(frame: str) -> Optional[str]:
    for line in frame.split("\n"):
        if line.startswith(DATA_FIELD):
            return line
    return None


def extract_payload(frame: str) -> Optional[str]:
    """Return the payload text of the frame's data line, tag prefix removed

    Args:
        frame: One raw frame as produced by the splitter

    Returns:
        Payload text, or None when the frame has no data line
    """
    data_line = _find_data_line(frame)
    if data_line is None:
        return None

    payload = data_line[len(DATA_FIELD):].strip()
    for prefix in TAG_PREFIXES:
        if payload.startswith(prefix):
            payload = payload[len(prefix):].strip()
            break
    return payload


def synthesize_error_event(raw: str) -> StreamEvent:
    """Build the error event standing in for a payload that did not decode"""
    return StreamEvent(
        event_type=EVENT_ERROR,
        status="failed",
        session_id="",
        message_id="",
        event_index=-1,
        raw=raw,
    )


def decode_frame(frame: str) -> DecodedFrame:
    """Decode one raw frame

    Never raises: a payload that is not a valid event object comes back as a
    synthetic ``error`` event carrying the payload in ``raw``.

    Args:
        frame: One raw frame as produced by the splitter

    Returns:
        ``DONE`` when the frame carries the termination token, the decoded
        StreamEvent, or None when the frame has no data line
    """
    if DONE_TOKEN in frame:
        return DONE

    payload = extract_payload(frame)
    if payload is None:
        return None

    try:
        return StreamEvent.model_validate_json(payload)
    except (ValidationError, ValueError) as e:
        logger.warning(f"Failed to decode SSE payload ({e.__class__.__name__}): {payload[:200]}")
        return synthesize_error_event(payload)
