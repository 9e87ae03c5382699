#!/usr/bin/env python3
"""Filter large JSON responses in-flight.

Bytes go through :class:`StreamingJSONParser`, every extracted element goes
through :class:`FieldFilter`, and the filtered elements are collected. The
unfiltered response is never held in memory, which matters for payloads
like 100K records of 10KB each.

Example::

    response_filter = ResponseStreamFilter(fields_to_keep=['id', 'name', 'email'])
    with open('persons.json', 'rb') as f:
        persons = response_filter.process(iter(lambda: f.read(65536), b''))
"""
import logging
import time
from typing import Any, AsyncIterable, Iterable, Iterator, List, Optional, Sequence

from json_filter.errors import ParseError, StreamFilterError, StreamReadError
from json_filter.field_filter import CustomFilter, FieldFilter
from json_filter.streaming_parser import ITEM, Chunk, StreamingJSONParser, parse_extract_path

logger = logging.getLogger(__name__)

DEFAULT_EXTRACT_PATH = 'response[*]'


def build_envelope(extract_path: str, records: List[Any]) -> Any:
    """Put filtered records back where the extraction path found them.

    ``response[*]`` -> ``{"response": records}``, ``[*]`` -> ``records``.
    Intermediate array markers are dropped: ``data[*].items[*]`` gives
    ``{"data": {"items": records}}``.
    """
    names = [part for part in parse_extract_path(extract_path) if part is not ITEM]
    envelope: Any = records
    for name in reversed(names):
        envelope = {name: envelope}
    return envelope


class ResponseStreamFilter:
    """Stream a JSON response through extraction and field filtering.

    With no ``fields_to_keep`` and no ``custom_filter`` the parsed elements
    are returned as they are.
    """

    def __init__(self, fields_to_keep: Optional[Sequence[str]] = None,
                 custom_filter: Optional[CustomFilter] = None,
                 extract_path: str = DEFAULT_EXTRACT_PATH):
        parse_extract_path(extract_path)
        self.extract_path = extract_path
        if fields_to_keep or custom_filter is not None:
            self.field_filter = FieldFilter(fields_to_keep, custom_filter)
        else:
            self.field_filter = None
        self.last_stats = {"records": 0, "bytes": 0, "seconds": 0.0}

    def _new_parser(self) -> StreamingJSONParser:
        return StreamingJSONParser(self.extract_path)

    def _apply(self, record: Any) -> Any:
        if self.field_filter is None:
            return record
        return self.field_filter.apply(record)

    def iter_filtered(self, chunks: Iterable[Chunk]) -> Iterator[Any]:
        """Yield filtered elements one at a time as the chunks complete them."""
        parser = self._new_parser()
        start = time.perf_counter()
        try:
            for chunk in chunks:
                for record in parser.feed(chunk):
                    yield self._apply(record)
            for record in parser.close():
                yield self._apply(record)
        except ParseError as e:
            logger.error(f"stream parse failed: {e}")
            raise
        except OSError as e:
            logger.error(f"stream read failed: {e}")
            raise StreamReadError(f"reading {self.extract_path!r} stream failed: {e}") from e
        finally:
            self._record_stats(parser, start)

    def process(self, chunks: Iterable[Chunk]) -> List[Any]:
        """Return every filtered element, or raise on the first failure.

        Nothing is returned on failure; already filtered elements are dropped.
        """
        results = list(self.iter_filtered(chunks))
        logger.info("Filtered %s records (%s bytes) from %s in %.2fs",
                    len(results), self.last_stats["bytes"], self.extract_path,
                    self.last_stats["seconds"])
        return results

    async def aprocess(self, chunks: AsyncIterable[Chunk]) -> List[Any]:
        """Same contract as :meth:`process` for an async chunk source."""
        parser = self._new_parser()
        start = time.perf_counter()
        results = []
        try:
            async for chunk in chunks:
                results.extend(self._apply(record) for record in parser.feed(chunk))
            results.extend(self._apply(record) for record in parser.close())
        except StreamFilterError as e:
            logger.error(f"stream filter failed: {e}")
            raise
        except OSError as e:
            logger.error(f"stream read failed: {e}")
            raise StreamReadError(f"reading {self.extract_path!r} stream failed: {e}") from e
        finally:
            self._record_stats(parser, start)

        logger.info("Filtered %s records (%s bytes) from %s in %.2fs",
                    len(results), self.last_stats["bytes"], self.extract_path,
                    self.last_stats["seconds"])
        return results

    def process_response(self, chunks: Iterable[Chunk]) -> Any:
        """Filter a whole response body and return it re-wrapped under the extraction path."""
        return build_envelope(self.extract_path, self.process(chunks))

    def _record_stats(self, parser: StreamingJSONParser, start: float):
        self.last_stats = {
            "records": parser.records_emitted,
            "bytes": parser.bytes_consumed,
            "seconds": time.perf_counter() - start,
        }
