"""Upstream Server-Sent-Events relay.

Consumes the byte stream of an upstream event-stream response (an LLM
provider streaming a completion), pulls one content delta out of each
``data:`` line and re-emits it as a normalized event::

    data: {"content": "<delta>"}\\n\\n

The relay is line-buffered: network reads may split lines, JSON tokens or
UTF-8 code points anywhere, and only the undelimited tail of the latest read
is kept between reads. One relay instance serves exactly one client
connection.
"""

import asyncio
import codecs
import json
import logging
from collections.abc import AsyncIterator, Callable
from enum import Enum

from ..errors import UpstreamFailure

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class RelayState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


def format_event(payload: dict) -> str:
    """Serialize *payload* as one SSE ``data:`` event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class SSERelay:
    """Line-buffered re-framing of one upstream event stream.

    Parameters
    ----------
    extract_delta:
        Callable receiving one parsed upstream payload and returning the
        content delta it carries (or ``None``).
    sentinel:
        Upstream end-of-stream marker to swallow (``None`` if the provider
        has none).
    timeout:
        Total number of seconds the relay may wait on the upstream stream.
    flush_trailing_line:
        Parse an undelimited trailing line at end of stream instead of
        discarding it.
    """

    def __init__(
        self,
        extract_delta: Callable[[object], str | None],
        *,
        sentinel: str | None = DONE_SENTINEL,
        timeout: float | None = None,
        flush_trailing_line: bool = False,
    ):
        self.extract_delta = extract_delta
        self.sentinel = sentinel
        self.timeout = timeout
        self.flush_trailing_line = flush_trailing_line
        self.state = RelayState.IDLE
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------

    def _parse_line(self, line: str) -> str | None:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):]
        if data.startswith(" "):
            data = data[1:]
        if self.sentinel is not None and data.strip() == self.sentinel:
            return None

        try:
            payload = json.loads(data)
        except ValueError:
            logger.debug("Skipping malformed event data: %.80s", data)
            return None

        try:
            delta = self.extract_delta(payload)
        except (AttributeError, IndexError, KeyError, TypeError):
            logger.debug("Skipping event without a content delta: %.80s", data)
            return None
        if isinstance(delta, str) and delta:
            return delta
        return None

    def _parse_lines(self, lines: list[str]) -> list[str]:
        deltas = []
        for line in lines:
            delta = self._parse_line(line)
            if delta is not None:
                deltas.append(delta)
        return deltas

    def feed(self, chunk: bytes) -> list[str]:
        """Decode *chunk* and return the deltas of every completed line."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._parse_lines(lines)

    def finish(self) -> list[str]:
        """Handle end of stream; returns deltas from a flushed trailing line."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if not self.flush_trailing_line:
            if tail.strip():
                logger.debug("Discarding %d undelimited characters at end of stream", len(tail))
            return []
        return self._parse_lines(tail.split("\n"))

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _next_chunk(self, iterator, deadline: float | None) -> bytes:
        if deadline is None:
            return await iterator.__anext__()
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise UpstreamFailure("Upstream stream timed out")
        try:
            return await asyncio.wait_for(iterator.__anext__(), remaining)
        except asyncio.TimeoutError as exc:
            raise UpstreamFailure("Upstream stream timed out") from exc

    async def deltas(self, chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
        """Yield content deltas from *chunks* until the upstream ends.

        Raises :class:`UpstreamFailure` on read errors or when the timeout
        budget runs out. The upstream iterator is closed however the relay
        ends, including when the consumer stops early.
        """
        if self.state is not RelayState.IDLE:
            raise RuntimeError(f"relay already {self.state.value}")
        self.state = RelayState.STREAMING

        deadline = None
        if self.timeout is not None:
            deadline = asyncio.get_running_loop().time() + self.timeout

        iterator = chunks.__aiter__()
        try:
            while True:
                try:
                    chunk = await self._next_chunk(iterator, deadline)
                except StopAsyncIteration:
                    break
                for delta in self.feed(chunk):
                    yield delta
            for delta in self.finish():
                yield delta
            self.state = RelayState.COMPLETED
        except UpstreamFailure:
            self.state = RelayState.FAILED
            raise
        except Exception as exc:
            self.state = RelayState.FAILED
            raise UpstreamFailure("Upstream stream failed") from exc
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def events(self, chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
        """Yield normalized SSE events for the caller.

        A failure before the first event becomes a single error event; after
        output has begun it is only logged and the stream ends early.
        """
        emitted = False
        stream = self.deltas(chunks)
        try:
            async for delta in stream:
                emitted = True
                yield format_event({"content": delta})
        except UpstreamFailure as exc:
            if emitted:
                logger.error("Upstream stream failed after output began: %s", exc.detail, exc_info=exc)
                return
            logger.error("Upstream stream failed: %s", exc.detail, exc_info=exc)
            yield format_event({"error": exc.detail})
        finally:
            await stream.aclose()
