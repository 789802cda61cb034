"""Faults raised while creating sessions and streaming answers"""

from typing import Optional


class ChatFault(Exception):
    """Base class for failures surfaced to the user."""

    pass


class SessionFault(ChatFault):
    """Session creation failed."""

    pass


class TransportFault(ChatFault):
    """Query request was rejected or the stream broke."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CancellationFault(ChatFault):
    """The user stopped generation; never shown as an error."""

    pass
