"""Data models for the conversation shown to the user"""

import datetime
import enum
import uuid
from dataclasses import dataclass, field


class Role(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    PENDING = "pending"


def _new_message_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class Message:
    """One conversational turn

    Attributes:
        role: user, assistant, or pending (answer still streaming)
        content: Visible text; rewritten in place while pending
        id: Stable identifier, never reused
        created_at: Creation timestamp (UTC)
    """
    role: Role
    content: str
    id: str = field(default_factory=_new_message_id)
    created_at: datetime.datetime = field(default_factory=_now)
