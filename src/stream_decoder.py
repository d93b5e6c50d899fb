"""Chunked JSON stream decoder.

This module turns a stream of arbitrarily split chunks (as delivered by a
chunked HTTP transfer of newline delimited JSON) back into the sequence of
JSON values it carries. Values are handed to a callback as soon as the line
holding them is complete, without waiting for the end of the stream.

Incomplete data is buffered silently while malformed data fails loudly. The
retained data is bounded by ``MAX_BUFFER_SIZE`` so a stream that never
terminates a value cannot grow the buffer without limit.
"""

import codecs
import json
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Union

from config import logger

# 2 MiB of unresolved data, measured in UTF-8 bytes
MAX_BUFFER_SIZE = 2 * 1024 * 1024

Chunk = Union[bytes, bytearray, str]


class StreamDecoderError(ValueError):
    """Base class for errors raised while decoding a chunked JSON stream.

    Note:
        Inherits from ValueError so callers that already handle standard
        JSON decode errors keep working.
    """

    pass


class MalformedChunk(StreamDecoderError):
    """A complete-looking line failed to parse as JSON.

    The decoder stays usable after this error, the caller decides whether
    the stream should be abandoned.

    Attributes:
        line (str): The offending line, stripped of surrounding whitespace.
        error (json.JSONDecodeError): The underlying parse failure.
    """

    def __init__(self, line: str, error: json.JSONDecodeError) -> None:
        super().__init__(f"JSON parse error for chunk: {error}")
        self.line = line
        self.error = error


class BufferOverflow(StreamDecoderError):
    """Unresolved data grew past the buffer limit.

    Attributes:
        limit (int): The limit that was exceeded, in bytes.
    """

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Incomplete JSON buffer exceeded maximum size of {limit} bytes"
        )
        self.limit = limit


class DecoderState(Enum):
    """Lifecycle of a StreamDecoder.

    Attributes:
        ACTIVE: Accepting input. Initial state.
        FAILED: The buffer limit was exceeded. Terminal.
    """

    ACTIVE = "active"
    FAILED = "failed"


def looks_incomplete(text: str) -> bool:
    """Tell whether text that failed to parse may still be growing.

    The check is purely syntactic: a trailing separator, a trailing opening
    brace or bracket, or unbalanced brace/bracket counts mean more data is
    expected. Braces inside string literals are counted too.

    Args:
        text: Text that failed to parse as a complete JSON value.

    Returns:
        bool: True to keep buffering, False if the text is malformed.
    """
    stripped = text.strip()
    if stripped.endswith((",", ":")):
        return True
    if stripped.endswith(("{", "[")):
        return True
    if stripped.count("{") != stripped.count("}"):
        return True
    return stripped.count("[") != stripped.count("]")


def parse_line(text: str) -> Any:
    """Parse one line as a strict JSON value.

    ``NaN``, ``Infinity`` and ``-Infinity`` are rejected, and nesting too
    deep for the interpreter is reported as a parse error.

    Raises:
        json.JSONDecodeError: If the text is not a single valid JSON value.
    """

    def reject_constant(name: str) -> Any:
        raise json.JSONDecodeError(f"Invalid constant {name}", text, text.find(name))

    try:
        return json.loads(text, parse_constant=reject_constant)
    except RecursionError as e:
        raise json.JSONDecodeError("Nesting too deep", text, 0) from e


class StreamDecoder:
    """Line oriented decoder for JSON values arriving in arbitrary chunks.

    One instance serves one logical stream (e.g. one HTTP response). It is
    not thread safe and the callback must not feed the same decoder again.

    Attributes:
        callback (Callable[[Any], None]): Receives each decoded value, in order.
        max_buffer_size (int): Limit for retained unresolved data, in bytes.

    Examples:
        >>> values = []
        >>> decoder = StreamDecoder(values.append)
        >>> decoder.feed(b'{"response": "Hel')
        >>> decoder.feed(b'lo", "done": true}')
        >>> values
        [{'response': 'Hello', 'done': True}]
    """

    looks_incomplete = staticmethod(looks_incomplete)

    def __init__(
        self,
        callback: Callable[[Any], None],
        max_buffer_size: int = MAX_BUFFER_SIZE,
    ) -> None:
        self.callback = callback
        self.max_buffer_size = max_buffer_size
        self._buffer: str = ""
        self._state: DecoderState = DecoderState.ACTIVE
        # holds the leading bytes of a multi-byte character split across chunks
        self._utf8 = codecs.getincrementaldecoder("utf-8")("replace")

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def failed(self) -> bool:
        return self._state is DecoderState.FAILED

    @property
    def buffered(self) -> int:
        """Size in bytes of the data retained for the next feed call."""
        return len(self._buffer.encode("utf-8"))

    def feed(self, chunk: Chunk) -> None:
        """Consume the next chunk of the stream.

        Every value completed by this chunk is passed to the callback before
        the call returns, in stream order.

        Args:
            chunk: The raw chunk, exactly as received. Bytes are decoded as
                UTF-8; a character split across chunks is reassembled.

        Raises:
            MalformedChunk: A line that does not look incomplete failed to parse.
            BufferOverflow: Retained data exceeded ``max_buffer_size``, or the
                decoder already failed that way.
        """
        if self._state is DecoderState.FAILED:
            logger.error(
                "Incomplete JSON buffer exceeded maximum size, decoder has failed"
            )
            raise BufferOverflow(self.max_buffer_size)

        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._utf8.decode(bytes(chunk))
        self._buffer += chunk

        lines = self._buffer.split("\n")
        tail = lines.pop()

        for index, line in enumerate(lines):
            text = line.strip()
            if not text:
                continue

            try:
                value = parse_line(text)
            except json.JSONDecodeError as e:
                if looks_incomplete(text):
                    self._retain("\n".join(lines[index:] + [tail]))
                    return
                logger.error(f"JSON parse error for chunk: {text}")
                # lines after the malformed one are kept for the next call
                self._store("\n".join(lines[index + 1 :] + [tail]))
                raise MalformedChunk(text, e) from e

            try:
                self.callback(value)
            except Exception:
                self._buffer = "\n".join(lines[index + 1 :] + [tail])
                raise

        self._resolve_tail(tail)

    def _resolve_tail(self, tail: str) -> None:
        """Emit, retain or reject the unterminated remainder of the buffer."""
        text = tail.strip()
        if not text:
            self._buffer = ""
            return

        try:
            value = parse_line(text)
        except json.JSONDecodeError as e:
            if looks_incomplete(text):
                self._retain(tail)
                return
            self._buffer = ""
            logger.error(f"JSON parse error for chunk: {text}")
            raise MalformedChunk(text, e) from e

        self._buffer = ""
        self.callback(value)

    def _retain(self, pending: str) -> None:
        """Keep an incomplete value for the next feed call."""
        size = self._store(pending)
        logger.debug(
            {"message": "JSON chunk appears incomplete, buffering", "size": size}
        )

    def _store(self, pending: str) -> int:
        """Replace the buffer with ``pending``, enforcing the limit.

        Returns:
            int: The stored size in bytes.

        Raises:
            BufferOverflow: If ``pending`` is larger than ``max_buffer_size``.
        """
        size = len(pending.encode("utf-8"))
        if size > self.max_buffer_size:
            self._state = DecoderState.FAILED
            self._buffer = ""
            self._utf8.reset()
            logger.error(
                {
                    "message": "Incomplete JSON buffer exceeded maximum size",
                    "limit": self.max_buffer_size,
                    "size": size,
                }
            )
            raise BufferOverflow(self.max_buffer_size)

        self._buffer = pending
        return size


def iter_decode(
    chunks: Iterable[Chunk], max_buffer_size: int = MAX_BUFFER_SIZE
) -> Iterator[Any]:
    """Decode a whole chunked stream, yielding values as they complete.

    Values decoded before an error are yielded before the error propagates.

    Args:
        chunks: The chunks of one stream, in arrival order.
        max_buffer_size: Limit for retained unresolved data, in bytes.

    Yields:
        Each decoded JSON value, in stream order.

    Raises:
        StreamDecoderError: Propagated from StreamDecoder.feed.
    """
    decoded: list[Any] = []
    decoder = StreamDecoder(decoded.append, max_buffer_size)

    for chunk in chunks:
        try:
            decoder.feed(chunk)
        except StreamDecoderError:
            yield from decoded
            raise
        yield from decoded
        decoded.clear()
