"""Conversation state for the On-Demand chat client"""

from .models import Message, Role
from .errors import ChatFault, SessionFault, TransportFault, CancellationFault
from .cancellation import CancellationToken
from .conversation import Conversation, ConversationState, QueryContext

__all__ = [
    "Message",
    "Role",
    "ChatFault",
    "SessionFault",
    "TransportFault",
    "CancellationFault",
    "CancellationToken",
    "Conversation",
    "ConversationState",
    "QueryContext",
]
