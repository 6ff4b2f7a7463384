#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints used internally by this package"""

from __future__ import annotations

from typing import (
    Dict, List, Optional, Union, Any, Set, FrozenSet, Tuple, Iterable, Iterator, Mapping, MutableMapping,
    Sequence, Callable, Awaitable, Coroutine, AsyncIterator, AsyncIterable, AsyncContextManager,
    TypeVar, Generic, TYPE_CHECKING, cast,
  )

from typing_extensions import Self, TypeAlias

from types import TracebackType

Jsonable: TypeAlias = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A Type hint for a simple JSON-serializable value; i.e., str, int, float, bool, None, Dict[str, Jsonable], List[Jsonable]"""

JsonableDict: TypeAlias = Dict[str, Jsonable]
"""A type hint for a simple JSON-serializable dict; i.e., Dict[str, Jsonable]"""

HostAndPort: TypeAlias = Tuple[str, int]
"""A type hint for an (ip_address, port) socket address tuple"""
