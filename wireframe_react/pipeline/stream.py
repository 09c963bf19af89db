"""
Incremental decoder for server-sent-events style chat-completion streams.
"""

import codecs
import json
from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, Iterator, List, Optional, Union

from wireframe_react.utils.llm_logger import get_logger


DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    """
    Re-assembles lines split across transport chunks and yields parsed events.

    The carry buffer holds at most one incomplete trailing line between calls.
    Events are emitted strictly in arrival order.
    """

    def __init__(self, component: str = "stream"):
        self.component = component
        self._carry = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False

    @property
    def carry(self) -> str:
        return self._carry

    def feed(self, fragment: Union[str, bytes, None]) -> List[Dict[str, Any]]:
        """
        Consume one fragment and return the events completed by it.

        Args:
            fragment: Text or bytes exactly as produced by the transport.

        Returns:
            Parsed JSON events, in order.
        """
        if not fragment:
            return []
        if isinstance(fragment, bytes):
            fragment = self._utf8.decode(fragment)

        buffer = self._carry + fragment
        lines = buffer.split("\n")
        self._carry = lines.pop()

        events = []
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[Dict[str, Any]]:
        """Parse whatever is left once the transport has completed."""
        tail = self._carry + self._utf8.decode(b"", final=True)
        self._carry = ""
        event = self._parse_line(tail)
        return [event] if event is not None else []

    def _parse_line(self, line: str) -> Optional[Dict[str, Any]]:
        line = line.strip()
        if not line or not line.startswith(DATA_PREFIX):
            # Blank separators, SSE comments and event/id fields
            return None

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            self.done = True
            return None
        if not data:
            return None

        try:
            event = json.loads(data)
        except json.JSONDecodeError as e:
            get_logger().log_stream_warning(self.component, f"skipping unparseable event ({e.msg})", line)
            return None

        if not isinstance(event, dict):
            get_logger().log_stream_warning(self.component, "skipping non-object event", line)
            return None
        return event

    def iter_decode(self, fragments: Iterable[Union[str, bytes]]) -> Iterator[Dict[str, Any]]:
        """Decode a synchronous sequence of fragments."""
        for fragment in fragments:
            yield from self.feed(fragment)
        yield from self.flush()

    async def decode(self, fragments: AsyncIterable[Union[str, bytes]]) -> AsyncIterator[Dict[str, Any]]:
        """Decode an asynchronous sequence of fragments (e.g. ``response.aiter_text()``)."""
        async for fragment in fragments:
            for event in self.feed(fragment):
                yield event
        for event in self.flush():
            yield event


def decode_stream(fragments: Iterable[Union[str, bytes]]) -> List[Dict[str, Any]]:
    """Decode a complete list of fragments into events."""
    return list(StreamDecoder().iter_decode(fragments))
