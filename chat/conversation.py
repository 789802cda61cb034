"""
Conversation state machine.

Owns the message list, the session id and the single in-flight query. A
query moves Idle -> AwaitingSession -> Streaming -> Completed / Failed /
Cancelled -> Idle; every frame of the answer stream is split, decoded and
folded in arrival order and its directive applied before the next chunk is
read.
"""
import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable, List, Optional

from settings import STREAM_TRACE_ENABLED, STREAM_TRACE_DIR, STREAM_TRACE_MAX_BYTES
from stream_debug import StreamTracer, maybe_create_stream_tracer
from ondemand_sse import (
    DONE,
    AccumulationState,
    Directive,
    DirectiveKind,
    SSEParser,
    accumulate,
    decode_frame,
)
from ondemand_sse.accumulator import DEFAULT_STATUS_TEXT
from ondemand_sse.event_decoder import DecodedFrame
from providers.base_provider import BaseProvider
from providers.models import ModelConfig
from .cancellation import CancellationToken
from .errors import CancellationFault, ChatFault, TransportFault
from .models import Message, Role

logger = logging.getLogger(__name__)

# Failures mentioning these are treated as a dead session
SESSION_INVALIDATION_MARKERS = ("session", "401", "403")


class ConversationState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_SESSION = "awaiting_session"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TRANSITIONS = {
    ConversationState.IDLE: {ConversationState.AWAITING_SESSION, ConversationState.STREAMING},
    ConversationState.AWAITING_SESSION: {
        ConversationState.STREAMING,
        ConversationState.FAILED,
        ConversationState.CANCELLED,
    },
    ConversationState.STREAMING: {
        ConversationState.COMPLETED,
        ConversationState.FAILED,
        ConversationState.CANCELLED,
    },
    ConversationState.COMPLETED: {ConversationState.IDLE},
    ConversationState.FAILED: {ConversationState.IDLE},
    ConversationState.CANCELLED: {ConversationState.IDLE},
}

TERMINAL_STATES = frozenset({
    ConversationState.COMPLETED,
    ConversationState.FAILED,
    ConversationState.CANCELLED,
})

BUSY_STATES = frozenset({ConversationState.AWAITING_SESSION, ConversationState.STREAMING})

Listener = Callable[[List[Message], Optional[str]], Any]


def is_session_invalidating(error_text: str) -> bool:
    lowered = error_text.lower()
    return any(marker in lowered for marker in SESSION_INVALIDATION_MARKERS)


@dataclass
class QueryContext:
    """Everything scoped to one in-flight query"""
    request_id: str
    query: str
    token: CancellationToken = field(default_factory=CancellationToken)
    parser: SSEParser = field(default_factory=SSEParser)
    accumulation: AccumulationState = field(default_factory=AccumulationState)
    placeholder_id: Optional[str] = None
    tracer: Optional[StreamTracer] = None


async def _next_chunk(stream: AsyncIterator[str]) -> Optional[str]:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


def _frame_kind(decoded: DecodedFrame) -> str:
    if decoded is DONE:
        return "DONE"
    if decoded is None:
        return "ignored"
    return decoded.event_type or "untyped"


class Conversation:
    """Session conversation driven by ``submit_query`` and ``stop_generation``"""

    def __init__(
        self,
        provider: BaseProvider,
        model_config: Optional[ModelConfig] = None,
        stream_trace_enabled: bool = STREAM_TRACE_ENABLED,
    ):
        """Initialize an empty conversation

        Args:
            provider: Backend used for session creation and query streams
            model_config: Options sent with every query (defaults from settings)
            stream_trace_enabled: Write per-query stream traces to disk
        """
        self.provider = provider
        self.model_config = model_config or ModelConfig()
        self.stream_trace_enabled = stream_trace_enabled

        self.session_id: Optional[str] = None
        self.error: Optional[str] = None
        self.last_outcome: Optional[ConversationState] = None

        self._messages: List[Message] = []
        self._state = ConversationState.IDLE
        self._context: Optional[QueryContext] = None
        self._listeners: List[Listener] = []

    # ----------------------------------------------------------------- views

    @property
    def messages(self) -> List[Message]:
        """Snapshot of the message list in display order"""
        return [replace(message) for message in self._messages]

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state in BUSY_STATES

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback receiving (messages, error) after every change

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_error(self) -> None:
        """Dismiss the error slot"""
        if self.error is not None:
            self.error = None
            self._notify()

    # ------------------------------------------------------------ operations

    def stop_generation(self) -> bool:
        """Cancel the in-flight query, if any

        Returns:
            True if a query was signalled
        """
        context = self._context
        if context is None or not self.is_loading:
            return False
        logger.info(f"[{context.request_id}] Stopping generation")
        if context.tracer:
            context.tracer.log_note("cancellation requested")
        context.token.cancel()
        return True

    async def submit_query(self, text: str) -> Optional[ConversationState]:
        """Send a user query and stream its answer into the message list

        Args:
            text: Raw query text; surrounding whitespace is dropped

        Returns:
            The terminal state reached, or None if the query was rejected
            because it was blank or another query is still running
        """
        query = text.strip()
        if not query:
            logger.debug("Ignoring blank query")
            return None
        if self.is_loading:
            logger.debug("Ignoring query while another is in flight")
            return None

        request_id = uuid.uuid4().hex[:8]
        context = QueryContext(request_id=request_id, query=query)
        context.tracer = maybe_create_stream_tracer(
            self.stream_trace_enabled,
            request_id=request_id,
            route="query",
            base_dir=STREAM_TRACE_DIR,
            max_bytes=STREAM_TRACE_MAX_BYTES,
        )
        self._context = context
        self.error = None
        self._messages.append(Message(role=Role.USER, content=query))
        self._notify()

        try:
            await self._run(context)
        except asyncio.CancelledError:
            # Task-level cancellation is handled like stop_generation
            self._cancel(context)
            raise
        finally:
            outcome = self._settle(context)
            if context.tracer:
                context.tracer.close()

        return outcome

    # ------------------------------------------------------------- internals

    async def _run(self, context: QueryContext) -> None:
        try:
            if self.session_id is None:
                self._transition(context, ConversationState.AWAITING_SESSION)
                self.session_id = await context.token.guard(
                    self.provider.create_session(context.request_id)
                )

            self._start_streaming(context)
            await self._consume_stream(context)

        except CancellationFault:
            self._cancel(context)

        except ChatFault as e:
            logger.warning(f"[{context.request_id}] Query failed: {e}")
            self._fail(context, f"Failed to send message: {e}")

        except Exception as e:
            logger.error(f"[{context.request_id}] Unexpected error during query: {e}", exc_info=True)
            self._fail(context, f"Failed to send message: {e}")

    def _start_streaming(self, context: QueryContext) -> None:
        placeholder = Message(role=Role.PENDING, content=DEFAULT_STATUS_TEXT)
        context.placeholder_id = placeholder.id
        context.accumulation = AccumulationState()
        self._messages.append(placeholder)
        self._transition(context, ConversationState.STREAMING)

    async def _consume_stream(self, context: QueryContext) -> None:
        stream = self.provider.open_stream(
            self.session_id,
            context.query,
            self.model_config,
            context.request_id,
            tracer=context.tracer,
        )
        try:
            while True:
                chunk = await context.token.guard(_next_chunk(stream))
                if chunk is None:
                    break
                for frame in context.parser.feed(chunk):
                    if self._process_frame(context, frame):
                        return

            for frame in context.parser.flush():
                if self._process_frame(context, frame):
                    return

            logger.warning(f"[{context.request_id}] Stream ended without [DONE]")
            if context.accumulation.answer_so_far:
                self._complete(context, context.accumulation.answer_so_far)
                return
            raise TransportFault("Stream ended before completion")
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _process_frame(self, context: QueryContext, frame: str) -> bool:
        """Decode and fold one frame; returns True once the query is terminal"""
        decoded = decode_frame(frame)
        if context.tracer:
            context.tracer.log_frame(frame, _frame_kind(decoded))

        context.accumulation, directive = accumulate(context.accumulation, decoded)
        if directive is not None:
            self._apply(context, directive)
        return context.accumulation.finished

    def _apply(self, context: QueryContext, directive: Directive) -> None:
        if directive.kind is DirectiveKind.UPDATE_CONTENT:
            placeholder = self._find(context.placeholder_id)
            if placeholder is not None:
                placeholder.content = directive.content
                self._notify()
        elif directive.kind is DirectiveKind.FINALIZE:
            self._complete(context, directive.content)
        elif directive.kind is DirectiveKind.DISCARD:
            logger.warning(f"[{context.request_id}] Server reported an error: {directive.error}")
            self._fail(context, directive.error)

    def _complete(self, context: QueryContext, answer: str) -> None:
        placeholder = self._find(context.placeholder_id)
        if placeholder is not None:
            placeholder.role = Role.ASSISTANT
            placeholder.content = answer
        logger.debug(f"[{context.request_id}] Answer complete ({len(answer)} chars)")
        self._transition(context, ConversationState.COMPLETED)

    def _fail(self, context: QueryContext, error_text: str) -> None:
        self._discard_placeholder(context)
        self.error = error_text
        if self.session_id is not None and is_session_invalidating(error_text):
            logger.info(f"[{context.request_id}] Dropping session {self.session_id}")
            self.session_id = None
        if context.tracer:
            context.tracer.log_error(error_text)
        self._transition(context, ConversationState.FAILED)

    def _cancel(self, context: QueryContext) -> None:
        if self._state in TERMINAL_STATES:
            return
        self._discard_placeholder(context)
        self._transition(context, ConversationState.CANCELLED)

    def _settle(self, context: QueryContext) -> ConversationState:
        if self._state not in TERMINAL_STATES:
            # Reached only when a BaseException other than cancellation escaped
            logger.error(f"[{context.request_id}] Query aborted in state {self._state.value}")
            self._discard_placeholder(context)
            self._state = ConversationState.FAILED

        outcome = self._state
        self.last_outcome = outcome
        self._context = None
        self._transition(context, ConversationState.IDLE)
        return outcome

    def _discard_placeholder(self, context: QueryContext) -> None:
        if context.placeholder_id is None:
            return
        self._messages = [m for m in self._messages if m.id != context.placeholder_id]
        context.placeholder_id = None

    def _find(self, message_id: Optional[str]) -> Optional[Message]:
        if message_id is None:
            return None
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def _transition(self, context: QueryContext, new_state: ConversationState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal transition {self._state.value} -> {new_state.value}")
        logger.debug(f"[{context.request_id}] {self._state.value} -> {new_state.value}")
        self._state = new_state
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.messages
        for listener in list(self._listeners):
            listener(snapshot, self.error)
