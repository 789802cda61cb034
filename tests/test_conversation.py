"""
Tests for the conversation state machine
"""
import asyncio

import pytest

from chat import ConversationState, Role, SessionFault, TransportFault
from ondemand_sse.accumulator import DEFAULT_STATUS_TEXT
from sse_helpers import DONE_FRAME, fulfillment, sse, status_log, wait_until


def pending(conversation):
    return [m for m in conversation.messages if m.role is Role.PENDING]


class TestSubmitQuery:
    """Happy path and rejection rules"""

    @pytest.mark.asyncio
    async def test_completed_answer(self, make_conversation):
        conversation = make_conversation(chunks=[
            status_log(executedAgents=[{"name": "Researcher"}], retrievedAgents=[]),
            fulfillment("Hel"), fulfillment("lo, "), fulfillment("world"), DONE_FRAME,
        ])

        outcome = await conversation.submit_query("  hi there  ")

        assert outcome is ConversationState.COMPLETED
        assert conversation.state is ConversationState.IDLE
        assert conversation.last_outcome is ConversationState.COMPLETED
        messages = conversation.messages
        assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT]
        assert messages[0].content == "hi there"
        assert messages[1].content == "Hello, world"
        assert conversation.error is None
        assert conversation.session_id == "sess-1"

    @pytest.mark.asyncio
    async def test_fragmented_transport(self, make_conversation):
        transcript = fulfillment("Hel") + fulfillment("lo, ") + fulfillment("world") + DONE_FRAME
        chunks = [transcript[i:i + 5] for i in range(0, len(transcript), 5)]
        conversation = make_conversation(chunks=chunks)

        await conversation.submit_query("q")

        assert conversation.messages[-1].content == "Hello, world"
        assert conversation.messages[-1].role is Role.ASSISTANT

    @pytest.mark.asyncio
    async def test_session_created_once(self, make_conversation):
        conversation = make_conversation(chunks=[fulfillment("ok"), DONE_FRAME])

        await conversation.submit_query("one")
        await conversation.submit_query("two")

        assert conversation.provider.session_calls == 1
        assert conversation.provider.stream_calls == [("sess-1", "one"), ("sess-1", "two")]
        assert [m.role for m in conversation.messages] == [
            Role.USER, Role.ASSISTANT, Role.USER, Role.ASSISTANT,
        ]

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self, make_conversation):
        conversation = make_conversation()

        assert await conversation.submit_query("   \n") is None
        assert conversation.messages == []
        assert conversation.provider.session_calls == 0

    @pytest.mark.asyncio
    async def test_second_query_rejected_while_streaming(self, make_conversation):
        conversation = make_conversation(chunks=[fulfillment("partial")], hold_stream=True)
        task = asyncio.ensure_future(conversation.submit_query("first"))
        await wait_until(lambda: conversation.state is ConversationState.STREAMING)

        assert await conversation.submit_query("second") is None
        assert [m.content for m in conversation.messages if m.role is Role.USER] == ["first"]

        conversation.stop_generation()
        await task

    @pytest.mark.asyncio
    async def test_placeholder_tracks_status_and_answer(self, make_conversation):
        conversation = make_conversation(chunks=[
            status_log(statusMessage="Planning"),
            fulfillment("Hel"),
            DONE_FRAME,
        ])
        seen = []
        conversation.subscribe(
            lambda messages, error: seen.extend(m.content for m in messages if m.role is Role.PENDING)
        )

        await conversation.submit_query("q")

        assert seen[0] == DEFAULT_STATUS_TEXT
        assert "Planning" in seen
        assert "Hel" in seen

    @pytest.mark.asyncio
    async def test_at_most_one_pending_message(self, make_conversation):
        conversation = make_conversation(chunks=[fulfillment("a"), fulfillment("b"), DONE_FRAME])
        counts = []
        conversation.subscribe(
            lambda messages, error: counts.append(sum(m.role is Role.PENDING for m in messages))
        )

        await conversation.submit_query("q")

        assert max(counts) == 1
        assert pending(conversation) == []

    @pytest.mark.asyncio
    async def test_done_without_answer(self, make_conversation):
        conversation = make_conversation(chunks=[DONE_FRAME])

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.COMPLETED
        assert conversation.messages[-1].role is Role.ASSISTANT
        assert conversation.messages[-1].content == ""

    @pytest.mark.asyncio
    async def test_metrics_are_silent(self, make_conversation):
        conversation = make_conversation(chunks=[
            fulfillment("x"),
            sse({"eventType": "metricsLog", "publicMetrics": {"totalTokens": 3}}),
            DONE_FRAME,
        ])

        assert await conversation.submit_query("q") is ConversationState.COMPLETED
        assert conversation.error is None

    @pytest.mark.asyncio
    async def test_loosely_shaped_events_do_not_fail_the_answer(self, make_conversation):
        conversation = make_conversation(chunks=[
            status_log(statusMessage="Planning", time=1712345678, retrievedAgents=["agent-1"]),
            fulfillment("Hello"),
            sse({"eventType": "metricsLog", "publicMetrics": {"totalTimeSec": "1.2s"}}),
            DONE_FRAME,
        ])

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.COMPLETED
        assert conversation.error is None
        assert conversation.messages[-1].content == "Hello"

    @pytest.mark.asyncio
    async def test_unsubscribe(self, make_conversation):
        conversation = make_conversation(chunks=[DONE_FRAME])
        calls = []
        unsubscribe = conversation.subscribe(lambda messages, error: calls.append(1))
        unsubscribe()

        await conversation.submit_query("q")

        assert calls == []


class TestFailures:
    """Server, transport and session faults"""

    @pytest.mark.asyncio
    async def test_server_error_event(self, make_conversation):
        conversation = make_conversation(chunks=[
            fulfillment("partial"),
            "data: [ERROR]:" + '{"eventType":"error","status":"rate_limited"}' + "\n\n",
            fulfillment("ignored"),
        ])

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.FAILED
        assert pending(conversation) == []
        assert [m.role for m in conversation.messages] == [Role.USER]
        assert conversation.error == "Server error: rate_limited"
        assert conversation.session_id == "sess-1"
        assert conversation.provider.stream_closed

    @pytest.mark.asyncio
    async def test_malformed_payload(self, make_conversation):
        conversation = make_conversation(chunks=["data: not-json\n\n"])

        await conversation.submit_query("q")

        assert conversation.error == "Server error: failed"
        assert pending(conversation) == []

    @pytest.mark.asyncio
    async def test_session_failure(self, make_conversation):
        conversation = make_conversation(
            session_error=SessionFault("Session creation failed: Failed to create session: 500"),
        )

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.FAILED
        assert [m.role for m in conversation.messages] == [Role.USER]
        assert conversation.error.startswith("Failed to send message: Session creation failed")
        assert conversation.session_id is None
        assert conversation.provider.stream_calls == []

    @pytest.mark.asyncio
    async def test_transport_failure(self, make_conversation):
        conversation = make_conversation(
            chunks=[fulfillment("par")],
            stream_error=TransportFault("Connection closed: peer reset"),
        )

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.FAILED
        assert pending(conversation) == []
        assert conversation.error == "Failed to send message: Connection closed: peer reset"
        assert conversation.session_id == "sess-1"

    @pytest.mark.parametrize("error", [OSError("socket reset"), ValueError("bad chunk")])
    @pytest.mark.asyncio
    async def test_unexpected_provider_error(self, make_conversation, error):
        conversation = make_conversation(chunks=[fulfillment("a")], stream_error=error)

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.FAILED
        assert conversation.last_outcome is ConversationState.FAILED
        assert conversation.error == f"Failed to send message: {error}"
        assert pending(conversation) == []
        assert not conversation.is_loading

    @pytest.mark.asyncio
    async def test_unexpected_session_error(self, make_conversation):
        conversation = make_conversation(session_error=RuntimeError("loop closed"))

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.FAILED
        assert conversation.error == "Failed to send message: loop closed"
        assert conversation.session_id is None

    @pytest.mark.parametrize("message", [
        "Query failed: 401 Unauthorized",
        "Query failed: 403 Forbidden",
        "Query failed: 404 Not Found\nSession not found",
    ])
    @pytest.mark.asyncio
    async def test_session_invalidated(self, make_conversation, message):
        conversation = make_conversation(stream_error=TransportFault(message))

        await conversation.submit_query("q")

        assert conversation.session_id is None

    @pytest.mark.asyncio
    async def test_server_error_invalidating_session(self, make_conversation):
        conversation = make_conversation(chunks=[sse({"eventType": "error", "status": "session_expired"})])

        await conversation.submit_query("q")

        assert conversation.session_id is None

    @pytest.mark.asyncio
    async def test_session_recreated_after_invalidation(self, make_conversation):
        conversation = make_conversation(stream_error=TransportFault("Query failed: 401 Unauthorized"))
        await conversation.submit_query("first")

        conversation.provider.stream_error = None
        conversation.provider.chunks = [fulfillment("ok"), DONE_FRAME]
        outcome = await conversation.submit_query("second")

        assert outcome is ConversationState.COMPLETED
        assert conversation.provider.session_calls == 2
        assert conversation.error is None

    @pytest.mark.asyncio
    async def test_stream_ending_without_done(self, make_conversation):
        conversation = make_conversation(chunks=[])

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.FAILED
        assert conversation.error == "Failed to send message: Stream ended before completion"

    @pytest.mark.asyncio
    async def test_stream_ending_without_done_keeps_answer(self, make_conversation):
        conversation = make_conversation(chunks=[fulfillment("Hello"), "data: [DONE]"])

        outcome = await conversation.submit_query("q")

        assert outcome is ConversationState.COMPLETED
        assert conversation.messages[-1].content == "Hello"

    @pytest.mark.asyncio
    async def test_error_persists_until_cleared(self, make_conversation):
        conversation = make_conversation(chunks=["data: not-json\n\n"])
        await conversation.submit_query("q")

        assert conversation.error is not None
        conversation.clear_error()
        assert conversation.error is None

    @pytest.mark.asyncio
    async def test_new_query_clears_error(self, make_conversation):
        conversation = make_conversation(chunks=["data: not-json\n\n"])
        await conversation.submit_query("q")

        conversation.provider.chunks = [DONE_FRAME]
        await conversation.submit_query("again")

        assert conversation.error is None


class TestCancellation:
    """stop_generation"""

    @pytest.mark.asyncio
    async def test_cancel_mid_stream(self, make_conversation):
        conversation = make_conversation(chunks=[fulfillment("partial")], hold_stream=True)
        task = asyncio.ensure_future(conversation.submit_query("q"))
        await wait_until(lambda: any(m.content == "partial" for m in pending(conversation)))

        assert conversation.stop_generation() is True
        outcome = await asyncio.wait_for(task, timeout=1)

        assert outcome is ConversationState.CANCELLED
        assert conversation.state is ConversationState.IDLE
        assert pending(conversation) == []
        assert [m.role for m in conversation.messages] == [Role.USER]
        assert conversation.error is None
        assert conversation.provider.stream_closed

    @pytest.mark.asyncio
    async def test_cancel_while_awaiting_session(self, make_conversation):
        conversation = make_conversation(hold_session=True)
        task = asyncio.ensure_future(conversation.submit_query("q"))
        await wait_until(lambda: conversation.state is ConversationState.AWAITING_SESSION)

        conversation.stop_generation()
        outcome = await asyncio.wait_for(task, timeout=1)

        assert outcome is ConversationState.CANCELLED
        assert conversation.session_id is None
        assert conversation.error is None
        assert conversation.provider.stream_calls == []

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, make_conversation):
        conversation = make_conversation()

        assert conversation.stop_generation() is False

    @pytest.mark.asyncio
    async def test_task_cancellation_cleans_up(self, make_conversation):
        conversation = make_conversation(chunks=[fulfillment("partial")], hold_stream=True)
        task = asyncio.ensure_future(conversation.submit_query("q"))
        await wait_until(lambda: conversation.state is ConversationState.STREAMING)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pending(conversation) == []
        assert conversation.state is ConversationState.IDLE
        assert conversation.last_outcome is ConversationState.CANCELLED

    @pytest.mark.asyncio
    async def test_usable_after_cancel(self, make_conversation):
        conversation = make_conversation(chunks=[fulfillment("partial")], hold_stream=True)
        task = asyncio.ensure_future(conversation.submit_query("q"))
        await wait_until(lambda: conversation.state is ConversationState.STREAMING)
        conversation.stop_generation()
        await task

        conversation.provider.hold_stream = False
        conversation.provider.chunks = [fulfillment("done"), DONE_FRAME]
        outcome = await conversation.submit_query("again")

        assert outcome is ConversationState.COMPLETED
        assert conversation.messages[-1].content == "done"
