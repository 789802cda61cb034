"""
Tests for the terminal chat front end
"""
import asyncio
import io
import signal

import pytest
from rich.console import Console

from chat import ConversationState
from cli.chat_app import ChatCLI
from sse_helpers import DONE_FRAME, FakeProvider, fulfillment


@pytest.fixture
def make_cli():
    clis = []

    def factory(**provider_kwargs):
        output = io.StringIO()
        cli = ChatCLI(
            provider=FakeProvider(**provider_kwargs),
            console=Console(file=output, force_terminal=False, width=80),
        )
        clis.append(cli)
        return cli, output

    yield factory
    for cli in clis:
        cli.loop.close()
    asyncio.set_event_loop(None)


class TestChatCLI:
    """Rendering of query outcomes"""

    def test_answer_is_printed(self, make_cli):
        cli, output = make_cli(chunks=[fulfillment("Hello from the agent"), DONE_FRAME])

        assert cli.run_query("hi") is ConversationState.COMPLETED
        assert "Hello from the agent" in output.getvalue()

    def test_error_is_printed(self, make_cli):
        cli, output = make_cli(chunks=['data: {"eventType": "error", "status": "rate_limited"}\n\n'])

        assert cli.run_query("hi") is ConversationState.FAILED
        assert "Server error: rate_limited" in output.getvalue()

    def test_blank_query_is_ignored(self, make_cli):
        cli, output = make_cli()

        assert cli.run_query("   ") is None
        assert "Assistant" not in output.getvalue()

    def test_ctrl_c_stops_the_answer(self, make_cli):
        cli, output = make_cli(chunks=[fulfillment("partial")], hold_stream=True)
        handler_during_query = []

        async def interrupt_when_streaming():
            while cli.conversation.state is not ConversationState.STREAMING:
                await asyncio.sleep(0)
            handler_during_query.append(signal.getsignal(signal.SIGINT))
            signal.raise_signal(signal.SIGINT)

        cli.loop.create_task(interrupt_when_streaming())

        assert cli.run_query("hi") is ConversationState.CANCELLED
        assert handler_during_query[0] is not signal.default_int_handler
        assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
        assert cli.conversation.provider.stream_closed
        assert "Generation stopped" in output.getvalue()
