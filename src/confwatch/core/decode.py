"""Decoding of configuration sub-trees into typed values."""

from __future__ import annotations

import types
from functools import lru_cache
from typing import Any, Callable, Union, get_args, get_origin

from pydantic import TypeAdapter


Decoder = Callable[[Any, Any], Any]

_ZERO_CONSTRUCTIBLE = (str, bytes, bool, int, float, list, dict, tuple, set, frozenset)
_UNION_TYPES = tuple(t for t in (Union, getattr(types, "UnionType", None)) if t is not None)


@lru_cache(maxsize=256)
def _adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def decode(value: Any, target: Any) -> Any:
    """Default decoder: validate ``value`` as ``target`` with pydantic.

    Supports anything pydantic can validate: builtin types, typing
    generics, dataclasses, TypedDicts and BaseModel subclasses.
    """
    try:
        adapter = _adapter(target)
    except TypeError:
        # unhashable typing constructs cannot be cached
        adapter = TypeAdapter(target)
    return adapter.validate_python(value)


def zero_value(target: Any, decoder: Decoder = decode) -> Any:
    """Value a missing path decodes to.

    Builtin scalars and containers get their empty value, optional types
    get None, and structured types are decoded from an empty tree so that
    their field defaults apply. A structure that cannot be built from an
    empty tree, such as one with required fields, has no zero value and
    yields None.
    """
    origin = get_origin(target) or target
    if origin in _UNION_TYPES and type(None) in get_args(target):
        return None
    if origin in _ZERO_CONSTRUCTIBLE:
        return origin()
    try:
        return decoder({}, target)
    except Exception:
        return None
