"""
Frame splitter for the On-Demand text/event-stream transport.
"""
from typing import List

FRAME_SEPARATOR = "\n\n"


class SSEParser:
    """Incremental splitter turning arbitrary text chunks into raw frames.

    A frame is everything between two blank-line separators. Text after the
    last separator is carried over and prepended to the next chunk, so the
    same transcript yields the same frames however it was fragmented.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Carry-over text not yet terminated by a separator."""
        return self._buffer

    def feed(self, chunk: str) -> List[str]:
        """Consume raw chunk text and return completed, non-blank frames."""
        frames: List[str] = []
        if not chunk:
            return frames

        # Normalize after joining so a CR/LF pair split across chunks still folds
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")

        *complete, self._buffer = self._buffer.split(FRAME_SEPARATOR)
        for frame in complete:
            if frame.strip():
                frames.append(frame)
        return frames

    def flush(self) -> List[str]:
        """Release the carry-over as a final frame (used at stream end)."""
        remainder, self._buffer = self._buffer, ""
        if remainder.strip():
            return [remainder]
        return []
