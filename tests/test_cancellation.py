"""
Tests for the cooperative cancellation token
"""
import asyncio

import pytest

from chat import CancellationFault, CancellationToken


class TestCancellationToken:
    """Guarded suspension points"""

    @pytest.mark.asyncio
    async def test_guard_returns_result(self):
        token = CancellationToken()

        async def work():
            await asyncio.sleep(0)
            return 42

        assert await token.guard(work()) == 42
        assert not token.cancelled

    @pytest.mark.asyncio
    async def test_guard_propagates_errors(self):
        token = CancellationToken()

        async def broken():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await token.guard(broken())

    @pytest.mark.asyncio
    async def test_cancel_interrupts_pending_await(self):
        token = CancellationToken()
        started = asyncio.Event()
        interrupted = []

        async def forever():
            started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                interrupted.append(True)
                raise

        guarded = asyncio.ensure_future(token.guard(forever()))
        await started.wait()
        token.cancel()

        with pytest.raises(CancellationFault):
            await asyncio.wait_for(guarded, timeout=1)
        assert interrupted == [True]

    @pytest.mark.asyncio
    async def test_already_cancelled(self):
        token = CancellationToken()
        token.cancel()
        calls = []

        async def work():
            calls.append(1)

        with pytest.raises(CancellationFault):
            await token.guard(work())
        assert calls == []
        assert token.cancelled

