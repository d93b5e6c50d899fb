"""Main module for the JSON Stream application.

Without arguments this runs a usage example of StreamDecoder, feeding an
NDJSON stream split at awkward positions. With ``-`` it decodes stdin in
chunks and prints each value as a compact JSON line.

Example:
    To run the example usage:
        $ python main.py

    To decode a stream:
        $ curl -sN http://localhost:11434/api/generate -d @req.json | python main.py -
"""

import json
import sys
from typing import BinaryIO, Iterator

from config import logger, settings
from stream_decoder import StreamDecoder, StreamDecoderError, iter_decode


def read_chunks(stream: BinaryIO, size: int) -> Iterator[bytes]:
    """Yield chunks of at most ``size`` bytes until the stream is exhausted."""
    while True:
        chunk = stream.read(size)
        if not chunk:
            return
        yield chunk


def decode_stdin() -> int:
    chunks = read_chunks(sys.stdin.buffer, settings.read_chunk_size)
    try:
        for value in iter_decode(chunks, settings.max_buffer_size):
            print(json.dumps(value, separators=(",", ":")), flush=True)
    except StreamDecoderError as e:
        logger.error({"message": "stream decoding aborted", "error": str(e)})
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


###############################################################################
# Usage Example
###############################################################################

if __name__ == "__main__":
    if sys.argv[1:] == ["-"]:
        sys.exit(decode_stdin())

    decoder = StreamDecoder(print)
    decoder.feed(b'{"response": "Hello"}\n{"partial": "dat')  # => {'response': 'Hello'}
    decoder.feed(b'a", "done": true}')  # => {'partial': 'data', 'done': True}
    decoder.feed('{"response": "Hel')  # nothing yet, buffered
    decoder.feed('lo", "meta')  # still buffered
    decoder.feed('data": {"tokens": 5}}\n')  # => {'response': 'Hello', 'metadata': {'tokens': 5}}
