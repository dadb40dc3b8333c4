"""
Behavioral tests for ByteChannel, the reader-to-emitter hand-off.

Tests focus on ordering, back-pressure, terminal items and close semantics
with both task and thread producers.
"""

import asyncio

import pytest

from ollama_stream.domain.exceptions import ChannelClosedError, StreamConnectionError
from ollama_stream.streaming.channel import ByteChannel


@pytest.mark.asyncio
class TestTaskProducer:
    async def test_chunks_arrive_in_order_then_eof(self):
        channel = ByteChannel(4)
        for chunk in (b"a", b"b", b"c"):
            assert await channel.send(chunk) is True
        await channel.finish()

        received = [await channel.receive() for _ in range(3)]
        assert received == [b"a", b"b", b"c"]
        assert await channel.receive() == b""
        assert await channel.receive() == b""

    async def test_producer_error_is_raised_to_consumer(self):
        channel = ByteChannel(4)
        await channel.send(b"a")
        await channel.finish(StreamConnectionError("reset by peer"))

        assert await channel.receive() == b"a"
        with pytest.raises(StreamConnectionError, match="reset by peer"):
            await channel.receive()
        with pytest.raises(ChannelClosedError):
            await channel.receive()

    async def test_task_producer_suspends_while_full(self):
        channel = ByteChannel(1)
        await channel.send(b"a")
        blocked = asyncio.create_task(channel.send(b"b"))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        assert await channel.receive() == b"a"
        assert await blocked is True
        assert await channel.receive() == b"b"

    async def test_empty_chunks_are_not_mistaken_for_eof(self):
        channel = ByteChannel(2)
        await channel.send(b"")
        await channel.send(b"x")
        assert await channel.receive() == b"x"

    async def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ByteChannel(0)


@pytest.mark.asyncio
class TestThreadProducer:
    async def test_thread_producer_blocks_while_full(self):
        channel = ByteChannel(1, poll_interval=0.01)
        results = []

        def produce():
            for chunk in (b"a", b"b", b"c"):
                results.append(channel.send_threadsafe(chunk))
            channel.finish_threadsafe()

        producer = asyncio.create_task(asyncio.to_thread(produce))
        await asyncio.sleep(0.1)
        assert channel.buffered == 1
        assert results == [True]

        received = []
        while chunk := await channel.receive():
            received.append(chunk)
        await producer

        assert received == [b"a", b"b", b"c"]
        assert results == [True, True, True]

    async def test_close_releases_blocked_thread(self):
        channel = ByteChannel(1, poll_interval=0.01)
        results = []

        def produce():
            results.append(channel.send_threadsafe(b"a"))
            results.append(channel.send_threadsafe(b"b"))

        producer = asyncio.create_task(asyncio.to_thread(produce))
        await asyncio.sleep(0.05)
        channel.close()
        await asyncio.wait_for(producer, timeout=2)

        assert results == [True, False]
        assert channel.send_threadsafe(b"c") is False

    async def test_thread_error_reaches_consumer(self):
        channel = ByteChannel(2, poll_interval=0.01)

        def produce():
            channel.send_threadsafe(b"partial")
            channel.finish_threadsafe(StreamConnectionError("boom"))

        await asyncio.to_thread(produce)
        assert await channel.receive() == b"partial"
        with pytest.raises(StreamConnectionError):
            await channel.receive()


@pytest.mark.asyncio
class TestClose:
    async def test_close_wakes_blocked_consumer(self):
        channel = ByteChannel(2)
        waiting = asyncio.create_task(channel.receive())
        await asyncio.sleep(0.01)

        channel.close()
        with pytest.raises(ChannelClosedError):
            await asyncio.wait_for(waiting, timeout=1)

    async def test_close_is_idempotent_and_drops_buffered_chunks(self):
        channel = ByteChannel(4)
        await channel.send(b"a")
        await channel.send(b"b")
        channel.close()
        channel.close()

        assert channel.closed is True
        assert await channel.send(b"c") is False
        with pytest.raises(ChannelClosedError):
            await channel.receive()

    async def test_finish_after_close_is_ignored(self):
        channel = ByteChannel(1)
        channel.close()
        await channel.finish()
        channel.finish_threadsafe()
        assert channel.finished is False
