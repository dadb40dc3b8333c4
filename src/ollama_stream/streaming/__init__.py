"""Streaming building blocks: line framing, reader hand-off and delta decoding.

ChatStream lives in ``ollama_stream.streaming.chat_stream`` and is not
re-exported here, since it depends on the transport package, which in turn
depends on ByteChannel.
"""

from ollama_stream.streaming.channel import ByteChannel
from ollama_stream.streaming.decoder import decode_delta
from ollama_stream.streaming.framer import LineFramer, is_chunk_size_marker

__all__ = ["ByteChannel", "LineFramer", "decode_delta", "is_chunk_size_marker"]
