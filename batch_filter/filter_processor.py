#!/usr/bin/env python3
"""Filter gigantic JSON files with constant RAM, writing NDJSON records."""

import argparse, itertools, json, logging, pathlib, sys, time
from typing import IO, Iterable, Iterator, Optional, Sequence, Tuple

from json_filter.config import FilterSettings, load_settings
from json_filter.errors import ConfigurationError, StreamFilterError
from json_filter.response_filter import ResponseStreamFilter, build_envelope
from json_filter.streaming_parser import ARRAY_MARKER

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100000


def read_chunks(path: pathlib.Path, chunk_size: int) -> Iterator[bytes]:
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


def peek_structure(chunks: Iterable[bytes]) -> Tuple[str, Iterator[bytes]]:
    """Return 'array', 'object' or 'unknown' plus an iterator that still yields every chunk.

    Only the chunks up to the first significant byte are read ahead.
    """
    chunks = iter(chunks)
    seen = []
    structure = 'unknown'
    for chunk in chunks:
        seen.append(chunk)
        head = chunk.lstrip()
        if head:
            if head[:1] == b'[':
                structure = 'array'
            elif head[:1] == b'{':
                structure = 'object'
            break
    return structure, itertools.chain(seen, chunks)


def choose_extract_path(structure: str, settings: FilterSettings, explicit: Optional[str]) -> str:
    """A top-level array streams its own elements unless a path is given."""
    if explicit:
        return explicit
    if structure == 'array':
        return ARRAY_MARKER
    return settings.extract_path


def process(chunks: Iterable[bytes], response_filter: ResponseStreamFilter,
            out: IO[str], envelope: bool = False) -> int:
    start = time.time()
    recs = 0

    if envelope:
        records = response_filter.process(chunks)
        json.dump(build_envelope(response_filter.extract_path, records), out)
        out.write('\n')
        recs = len(records)
    else:
        for record in response_filter.iter_filtered(chunks):
            out.write(json.dumps(record))
            out.write('\n')
            recs += 1
            if recs % PROGRESS_EVERY == 0:
                logger.info("%s records | %.1f MiB read", recs,
                            response_filter.last_stats["bytes"] / (1024 * 1024))
    logger.info("Done %s records in %.2fs", recs, time.time() - start)
    return recs


def cli(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Stream a JSON file and keep only selected fields")
    ap.add_argument("file", type=pathlib.Path)
    ap.add_argument("--extract-path", help="array to stream, e.g. 'response[*]' or '[*]'")
    ap.add_argument("--field", dest="fields", action="append", default=None,
                    help="field path to keep (repeatable), e.g. 'personBasic.names[*].firstName'")
    ap.add_argument("--config", help="JSON config file with dataSource.fieldsToKeep")
    ap.add_argument("--chunk-size", type=int, help="override chunk size KB")
    ap.add_argument("--envelope", action="store_true",
                    help="write one JSON document wrapped like the source response")
    args = ap.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error("invalid configuration: %s", e)
        return 2
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    chunk_size = (args.chunk_size or settings.chunk_size_kb) * 1024
    fields = args.fields if args.fields is not None else list(settings.fields_to_keep)
    try:
        structure, chunks = peek_structure(read_chunks(args.file, chunk_size))
    except OSError as e:
        logger.error("cannot read %s: %s", args.file, e)
        return 1
    try:
        extract_path = choose_extract_path(structure, settings, args.extract_path)
        response_filter = ResponseStreamFilter(fields_to_keep=fields, extract_path=extract_path)
    except ConfigurationError as e:
        logger.error("invalid configuration: %s", e)
        return 2

    logger.info("Filtering %s at %s keeping %s", args.file, extract_path, fields or "all fields")
    try:
        process(chunks, response_filter, sys.stdout, envelope=args.envelope)
    except StreamFilterError as e:
        logger.error("filtering %s failed: %s", args.file, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(cli())
