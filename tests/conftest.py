"""
Shared fixtures
"""
import pytest

from chat import Conversation
from sse_helpers import FakeProvider


@pytest.fixture
def make_conversation():
    def factory(**provider_kwargs) -> Conversation:
        return Conversation(FakeProvider(**provider_kwargs), stream_trace_enabled=False)
    return factory
