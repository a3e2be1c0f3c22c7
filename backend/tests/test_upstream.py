"""Tests for the upstream call helpers (timeouts and error mapping)."""
import asyncio

import pytest

from chatbridge.errors import (
    ChatUnavailableError,
    NotReadyError,
    UpstreamFailureError,
    UpstreamTimeoutError,
)
from chatbridge.upstream import call_upstream, with_timeout


class TestWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result_in_time(self):
        async def quick():
            return 42

        assert await with_timeout(quick(), 1) == 42

    @pytest.mark.asyncio
    async def test_timeout_raises_with_message(self):
        with pytest.raises(UpstreamTimeoutError, match="Timeout getting chat"):
            await with_timeout(asyncio.sleep(1), 0.01, "Timeout getting chat")

    @pytest.mark.asyncio
    async def test_abandoned_call_keeps_running(self):
        finished = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.05)
            finished.set()
            return "late"

        with pytest.raises(UpstreamTimeoutError):
            await with_timeout(slow(), 0.01)

        # the underlying call was not cancelled
        await asyncio.wait_for(finished.wait(), 1)

    @pytest.mark.asyncio
    async def test_abandoned_failure_is_consumed(self):
        async def slow_failure():
            await asyncio.sleep(0.02)
            raise RuntimeError("boom")

        with pytest.raises(UpstreamTimeoutError):
            await with_timeout(slow_failure(), 0.01)
        await asyncio.sleep(0.05)

    @pytest.mark.asyncio
    async def test_none_waits_forever(self):
        async def quick():
            return "ok"

        assert await with_timeout(quick(), None) == "ok"


class TestCallUpstream:
    @pytest.mark.asyncio
    async def test_wraps_arbitrary_exception(self):
        async def failing():
            raise LookupError("Unknown chat 1@c.us")

        with pytest.raises(UpstreamFailureError, match="Unknown chat 1@c.us"):
            await call_upstream(failing())

    @pytest.mark.asyncio
    async def test_prefix_applied_to_failures_and_timeouts(self):
        async def failing():
            raise RuntimeError("nope")

        with pytest.raises(UpstreamFailureError, match="^Failed to fetch messages: nope$"):
            await call_upstream(failing(), error_prefix="Failed to fetch messages: ")

        with pytest.raises(UpstreamTimeoutError, match="^Failed to fetch messages: Timeout$"):
            await call_upstream(asyncio.sleep(1), seconds=0.01, error_prefix="Failed to fetch messages: ")

    @pytest.mark.asyncio
    async def test_bridge_errors_keep_their_type(self):
        async def not_ready():
            raise NotReadyError()

        with pytest.raises(NotReadyError) as exc_info:
            await call_upstream(not_ready())
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_empty_exception_message_uses_class_name(self):
        async def failing():
            raise KeyError()

        with pytest.raises(UpstreamFailureError, match="KeyError"):
            await call_upstream(failing())

    def test_error_status_codes(self):
        assert UpstreamTimeoutError("x").status_code == 500
        assert ChatUnavailableError("x").status_code == 500
        assert isinstance(ChatUnavailableError("x"), UpstreamFailureError)
