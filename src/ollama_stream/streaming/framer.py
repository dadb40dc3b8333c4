"""Incremental NDJSON line framing.

LineFramer turns an unbounded byte stream, delivered in arbitrary pieces, into
complete text lines. Splitting the same bytes differently across ``feed``
calls always yields the same lines.

Filtering rules (applied to each trimmed line):
    - Empty lines are skipped
    - Lines made only of ASCII hex digits are skipped. These are
      chunked-transfer-encoding size markers that leak through the raw socket
      path. An all-hex JSON payload line is not expected on this protocol.

Known limitation:
    There is no line-length cap. A peer that never sends a newline grows the
    buffer without bound.
"""

from __future__ import annotations

import codecs
import string

_HEX_DIGITS = frozenset(string.hexdigits)


def is_chunk_size_marker(line: str) -> bool:
    """Return True if *line* looks like a chunked-encoding size line ("1a3f")."""
    return bool(line) and all(char in _HEX_DIGITS for char in line)


class LineFramer:
    """Stateful splitter from bytes to newline-terminated records."""

    __slots__ = ("_buffer", "_decoder")

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Append *data* and return every complete, non-filtered line."""
        self._buffer += self._decoder.decode(data)
        lines: list[str] = []
        while (newline_pos := self._buffer.find("\n")) != -1:
            line = self._buffer[:newline_pos].strip()
            self._buffer = self._buffer[newline_pos + 1 :]
            if self._accept(line):
                lines.append(line)
        return lines

    def flush(self) -> list[str]:
        """Return the trailing unterminated record at end of stream, if any."""
        self._buffer += self._decoder.decode(b"", final=True)
        line = self._buffer.strip()
        self._buffer = ""
        return [line] if self._accept(line) else []

    @staticmethod
    def _accept(line: str) -> bool:
        return bool(line) and not is_chunk_size_marker(line)


__all__ = ["LineFramer", "is_chunk_size_marker"]
