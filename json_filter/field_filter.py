#!/usr/bin/env python3
"""Reduce JSON values to a chosen set of hierarchical field paths.

Field paths use dot notation with optional array markers::

    personid
    personBasic.names[*].firstName
    employeeInfo.positions[0].positionInfo.Office[*].workAddress

``[*]`` visits every element of an array, ``[n]`` only element ``n``.
Paths that match nothing are skipped silently.
"""
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from json_filter.errors import ConfigurationError

CustomFilter = Callable[[Any, Any], None]

_SEGMENT_RE = re.compile(r'^([^\[\]]*)((?:\[[^\[\]]*\])*)$')
_BRACKET_RE = re.compile(r'\[([^\[\]]*)\]')


@dataclass(frozen=True)
class Literal:
    name: str


@dataclass(frozen=True)
class Wildcard:
    pass


@dataclass(frozen=True)
class Index:
    position: int


Token = Union[Literal, Wildcard, Index]

WILDCARD = Wildcard()


def parse_field_path(field_path: str) -> Tuple[Token, ...]:
    """Split a field path into Literal / Wildcard / Index tokens.

    >>> parse_field_path('names[0].firstName')
    (Literal(name='names'), Index(position=0), Literal(name='firstName'))
    """
    if not isinstance(field_path, str) or not field_path:
        raise ConfigurationError(f"field path must be a non-empty string: {field_path!r}")

    tokens: List[Token] = []
    for raw in field_path.split('.'):
        m = _SEGMENT_RE.match(raw)
        if not m or not raw:
            raise ConfigurationError(f"unsupported field path segment {raw!r} in {field_path!r}")

        name, brackets = m.groups()
        if name:
            tokens.append(Literal(name))
        for inner in _BRACKET_RE.findall(brackets):
            if inner == '*':
                tokens.append(WILDCARD)
            elif inner.isascii() and inner.isdigit():
                tokens.append(Index(int(inner)))
            else:
                raise ConfigurationError(f"array marker must be [*] or [n], got [{inner}] in {field_path!r}")
    return tuple(tokens)


def prune_empty_structures(node: Any) -> Any:
    """Remove containers that ended up empty, in place. Returns ``node``.

    Dict entries go away when they hold an empty dict, an empty list, or a
    list made only of None / empty dicts. List elements are cleaned but
    never removed, so positions stay stable.
    """
    if isinstance(node, dict):
        for key in list(node):
            value = node[key]
            if isinstance(value, (dict, list)):
                prune_empty_structures(value)
                if _is_vacant(value):
                    del node[key]
    elif isinstance(node, list):
        for item in node:
            if isinstance(item, (dict, list)):
                prune_empty_structures(item)
    return node


def _is_vacant(value) -> bool:
    if isinstance(value, dict):
        return not value
    return all(item is None or item == {} for item in value)


def _copy_json(value: Any) -> Any:
    # containers are copied so that later writes never reach the source
    if isinstance(value, dict):
        return {k: _copy_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_json(v) for v in value]
    return value


def _set_slot(target: list, position: int, value: Any):
    if len(target) <= position:
        target.extend([None] * (position + 1 - len(target)))
    target[position] = value


def _child(target, key, source_child):
    """Return the target container under ``key``, creating one shaped like ``source_child``."""
    if isinstance(target, dict):
        existing = target.get(key)
    else:
        existing = target[key] if key < len(target) else None
    if isinstance(existing, type(source_child)):
        return existing

    created = {} if isinstance(source_child, dict) else []
    if isinstance(target, dict):
        target[key] = created
    else:
        _set_slot(target, key, created)
    return created


class FieldFilter:
    """Keep only the configured field paths of each JSON value.

    All paths write into a single target per value, so paths that share a
    prefix share the rebuilt structure. ``custom_filter(source, target)``
    runs after the built-in selection and before empty containers are
    pruned; it may add, rewrite or delete anything on ``target``.
    """

    def __init__(self, fields_to_keep: Optional[Sequence[str]] = None,
                 custom_filter: Optional[CustomFilter] = None):
        self.fields_to_keep = tuple(fields_to_keep or ())
        self.field_paths = tuple(parse_field_path(p) for p in self.fields_to_keep)
        self.custom_filter = custom_filter

    def apply(self, source: Any) -> Any:
        if not isinstance(source, (dict, list)):
            return source

        target = {} if isinstance(source, dict) else []
        for tokens in self.field_paths:
            self._extract(source, tokens, 0, target)
        if self.custom_filter is not None:
            self.custom_filter(source, target)
        prune_empty_structures(target)
        if isinstance(target, list) and _is_vacant(target):
            return []
        return target

    __call__ = apply

    def _extract(self, source, tokens, index, target):
        token = tokens[index]
        is_last = index == len(tokens) - 1

        if isinstance(token, Literal):
            if not isinstance(source, dict) or token.name not in source:
                return
            value = source[token.name]
            if is_last:
                target[token.name] = _copy_json(value)
            elif isinstance(value, (dict, list)):
                self._extract(value, tokens, index + 1, _child(target, token.name, value))

        elif isinstance(token, Wildcard):
            if not isinstance(source, list):
                return
            for position, item in enumerate(source):
                if is_last:
                    _set_slot(target, position, _copy_json(item))
                elif isinstance(item, (dict, list)):
                    self._extract(item, tokens, index + 1, _child(target, position, item))
                elif len(target) <= position:
                    _set_slot(target, position, None)

        else:
            if not isinstance(source, list) or token.position >= len(source):
                return
            value = source[token.position]
            if is_last:
                _set_slot(target, token.position, _copy_json(value))
            elif isinstance(value, (dict, list)):
                self._extract(value, tokens, index + 1, _child(target, token.position, value))
