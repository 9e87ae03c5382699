#!/usr/bin/env python3
"""Errors raised by the streaming filter pipeline."""
from typing import Optional


class StreamFilterError(Exception):
    """Base class for every pipeline failure."""


class ConfigurationError(StreamFilterError, ValueError):
    """Bad extraction path, field path or settings value."""


class ParseError(StreamFilterError):
    """Malformed or truncated JSON in the input stream."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset


class StreamClosedError(StreamFilterError):
    """Input was pushed into a parser that has already been closed."""


class StreamReadError(StreamFilterError):
    """The chunk source failed while it was being read."""
