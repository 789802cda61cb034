"""
Folding of decoded stream events into per-query answer state.

``accumulate`` is a pure step function: it takes the current state and one
decoded frame and returns the next state together with the directive the
caller should apply to its in-flight message.
"""
import enum
from dataclasses import dataclass, replace
from typing import Any, Optional, Tuple

from .event_decoder import DONE, DecodedFrame
from .models import (
    StatusLog,
    EVENT_ERROR,
    EVENT_FULFILLMENT,
    EVENT_STATUS_LOG,
)

DEFAULT_STATUS_TEXT = "Interacting with AI to get your answer..."
AGENT_STATUS_TEMPLATE = "Interacting with {name} to get your answer..."
UNKNOWN_SERVER_ERROR = "Unknown server error"


class Terminal(enum.Enum):
    NONE = "none"
    COMPLETED = "completed"
    FAILED = "failed"


class DirectiveKind(enum.Enum):
    UPDATE_CONTENT = "update_content"
    FINALIZE = "finalize"
    DISCARD = "discard"


@dataclass(frozen=True)
class Directive:
    """Side effect the state machine applies to the in-flight message

    Attributes:
        kind: What to do with the placeholder message
        content: New visible content (UPDATE_CONTENT, FINALIZE)
        error: User-facing error text (DISCARD)
    """
    kind: DirectiveKind
    content: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class AccumulationState:
    """Answer state for one in-flight query"""
    answer_so_far: str = ""
    latest_status_text: str = DEFAULT_STATUS_TEXT
    terminal: Terminal = Terminal.NONE

    @property
    def finished(self) -> bool:
        return self.terminal is not Terminal.NONE


def agent_name(agent: Any) -> str:
    """Display name of one status-log agent entry, "agent" when it has none"""
    name = agent.get("name") if isinstance(agent, dict) else None
    return name if isinstance(name, str) and name else "agent"


def describe_status(status_log: Optional[StatusLog]) -> str:
    """Pick the loading text for a status log

    Executed agents win over retrieved agents, which win over the log's own
    message; otherwise the generic text is used.
    """
    if status_log is None:
        return DEFAULT_STATUS_TEXT

    if status_log.executed_agents:
        return AGENT_STATUS_TEMPLATE.format(name=agent_name(status_log.executed_agents[0]))
    if status_log.retrieved_agents:
        return AGENT_STATUS_TEMPLATE.format(name=agent_name(status_log.retrieved_agents[0]))
    if status_log.status_message:
        return status_log.status_message
    return DEFAULT_STATUS_TEXT


def server_error_text(status: Optional[str], raw: Optional[str]) -> str:
    detail = status or raw
    if detail:
        return f"Server error: {detail}"
    return UNKNOWN_SERVER_ERROR


def accumulate(
    state: AccumulationState,
    decoded: DecodedFrame,
) -> Tuple[AccumulationState, Optional[Directive]]:
    """Apply one decoded frame to the accumulation state

    Args:
        state: Current state; returned unchanged once terminal
        decoded: Output of ``decode_frame`` for one frame

    Returns:
        Tuple of (next state, directive or None)
    """
    if state.finished or decoded is None:
        return state, None

    if decoded is DONE:
        return (
            replace(state, terminal=Terminal.COMPLETED),
            Directive(DirectiveKind.FINALIZE, content=state.answer_so_far),
        )

    event_type = decoded.event_type

    if event_type == EVENT_ERROR:
        return (
            replace(state, terminal=Terminal.FAILED),
            Directive(DirectiveKind.DISCARD, error=server_error_text(decoded.status, decoded.raw)),
        )

    if event_type == EVENT_STATUS_LOG and decoded.current_status_log is not None:
        status_text = describe_status(decoded.current_status_log)
        return (
            replace(state, latest_status_text=status_text),
            Directive(DirectiveKind.UPDATE_CONTENT, content=status_text),
        )

    if event_type == EVENT_FULFILLMENT and decoded.answer:
        answer = state.answer_so_far + decoded.answer
        return (
            replace(state, answer_so_far=answer),
            Directive(DirectiveKind.UPDATE_CONTENT, content=answer),
        )

    # metricsLog and unrecognized event types
    return state, None
