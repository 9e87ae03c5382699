#!/usr/bin/env python3
"""Constant-memory streaming JSON parser.

Chunks are pushed into an ijson coroutine as they arrive; the elements of
the array named by the extraction path come back as soon as each one
closes, so only a single element is ever held in memory.

The location of every parse event is tracked as a stack of real object
keys and array positions rather than ijson's dotted prefix, so a key
named ``item`` or a key containing a dot never matches an array marker.
"""
import logging
import re
from typing import Any, Iterable, Iterator, List, Tuple, Union

import ijson
from ijson.common import ObjectBuilder

from json_filter.errors import ConfigurationError, ParseError, StreamClosedError

logger = logging.getLogger(__name__)

ARRAY_MARKER = '[*]'
DEFAULT_CHUNK_SIZE = 64 * 1024

Chunk = Union[bytes, bytearray, memoryview, str]


class _ArrayItem:
    def __repr__(self):
        return 'ITEM'


# location component for "some element of an array"; never equal to a key
ITEM = _ArrayItem()

_SEGMENT_RE = re.compile(r'^([^.\[\]]*)((?:\[\*\])?)$')
_CONTAINER_START = ('start_map', 'start_array')
_CONTAINER_END = ('end_map', 'end_array')


def parse_extract_path(extract_path: str) -> Tuple[Any, ...]:
    """Split an extraction path into object keys and ``ITEM`` markers.

    ``[*]`` -> ``(ITEM,)``, ``response[*]`` -> ``('response', ITEM)``,
    ``data[*].children[*]`` -> ``('data', ITEM, 'children', ITEM)``.
    """
    if not isinstance(extract_path, str) or not extract_path.endswith(ARRAY_MARKER):
        raise ConfigurationError(
            f"extract path must end with [*] to mark the array to stream: {extract_path!r}")
    if extract_path == ARRAY_MARKER:
        return (ITEM,)

    parts = []
    for raw in extract_path.split('.'):
        m = _SEGMENT_RE.match(raw)
        if not m or not (m.group(1) or m.group(2)):
            raise ConfigurationError(
                f"unsupported extract path segment {raw!r} in {extract_path!r}")
        name, marker = m.groups()
        if name:
            parts.append(name)
        if marker:
            parts.append(ITEM)
    return tuple(parts)


class StreamingJSONParser:
    """Push parser that emits the elements found at one extraction path.

    A parser handles exactly one document: feed it chunks in arrival order,
    then call :meth:`close`. Values split across chunk boundaries are
    reassembled transparently.
    """

    def __init__(self, extract_path: str = ARRAY_MARKER, use_float: bool = True):
        self.extract_path = extract_path
        self.path = list(parse_extract_path(extract_path))
        self.bytes_consumed = 0
        self.records_emitted = 0
        self._events = ijson.sendable_list()
        self._coro = ijson.basic_parse_coro(self._events, use_float=use_float)
        self._ready: List[Any] = []
        # one entry per open container: the current key, or ITEM inside arrays
        self._location: List[Any] = []
        self._builder = None
        self._depth = 0
        self._started = False
        self._closed = False
        self._failed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: Chunk) -> List[Any]:
        """Push one chunk; return the elements it completed, in document order."""
        self._check_usable()
        data = chunk.encode('utf-8') if isinstance(chunk, str) else bytes(chunk)
        if not data:
            return []
        if not self._started and data.strip():
            self._started = True

        try:
            self._coro.send(data)
        except (ijson.JSONError, UnicodeDecodeError) as e:
            self._fail(e, self.bytes_consumed + len(data))
        self.bytes_consumed += len(data)
        return self._drain()

    def close(self) -> List[Any]:
        """Signal end of input and return whatever elements are still pending.

        Raises ParseError when the document stopped in the middle of a value.
        """
        if self._closed:
            return []
        self._closed = True
        if self._failed:
            return []

        try:
            self._coro.close()
        except (ijson.JSONError, UnicodeDecodeError) as e:
            if self._started:
                self._fail(e, self.bytes_consumed)
            logger.debug("no JSON content received for %s", self.extract_path)
        return self._drain()

    def iter_records(self, chunks: Iterable[Chunk]) -> Iterator[Any]:
        """Yield elements lazily while pulling chunks from ``chunks``."""
        for chunk in chunks:
            yield from self.feed(chunk)
        yield from self.close()

    def _drain(self) -> List[Any]:
        for event, value in self._events:
            self._on_event(event, value)
        del self._events[:]
        if not self._ready:
            return []
        ready = self._ready
        self._ready = []
        self.records_emitted += len(ready)
        return ready

    def _on_event(self, event: str, value: Any):
        if self._builder is not None:
            self._builder.event(event, value)
            if event in _CONTAINER_START:
                self._depth += 1
            elif event in _CONTAINER_END:
                self._depth -= 1
                if not self._depth:
                    self._ready.append(self._builder.value)
                    self._builder = None
            return

        if event == 'map_key':
            self._location[-1] = value
            return
        if event in _CONTAINER_END:
            self._location.pop()
            return

        # a value starts here
        if self._location == self.path:
            if event in _CONTAINER_START:
                self._builder = ObjectBuilder()
                self._builder.event(event, value)
                self._depth = 1
            else:
                self._ready.append(value)
        elif event == 'start_map':
            self._location.append(None)
        elif event == 'start_array':
            self._location.append(ITEM)

    def _check_usable(self):
        if self._failed:
            raise ParseError(f"parser for {self.extract_path!r} already failed", self.bytes_consumed)
        if self._closed:
            raise StreamClosedError(f"parser for {self.extract_path!r} is closed")

    def _fail(self, error: Exception, offset: int):
        self._failed = True
        self._closed = True
        del self._events[:]
        self._ready = []
        self._builder = None
        raise ParseError(f"malformed JSON before byte {offset}: {error}", offset) from error
