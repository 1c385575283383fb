#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Type hints used internally by this package.
"""

from __future__ import annotations

from typing import (
    Dict, List, Optional, Union, Any, Tuple, Set, Iterable, Iterator, Mapping, Sequence,
    Callable, Awaitable, AsyncIterator, AsyncIterable, AsyncContextManager, Type,
  )
from types import TracebackType
from typing_extensions import Self

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A type hint for a value that can be serialized to JSON."""

JsonableDict = Dict[str, Jsonable]
"""A type hint for a JSON object."""

HostAndPort = Tuple[str, int]
"""A network address as returned by socket.getpeername() for AF_INET."""

__all__ = [
    'Dict', 'List', 'Optional', 'Union', 'Any', 'Tuple', 'Set', 'Iterable', 'Iterator', 'Mapping',
    'Sequence', 'Callable', 'Awaitable', 'AsyncIterator', 'AsyncIterable', 'AsyncContextManager',
    'Type', 'TracebackType', 'Self',
    'Jsonable', 'JsonableDict', 'HostAndPort',
  ]
