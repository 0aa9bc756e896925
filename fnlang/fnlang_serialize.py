from __future__ import annotations

import json
from typing import Any
import collections.abc

import yaml

from fnlang.fnlang_datatypes import Boolean, Node, Number, String


# --------------------------
# Helpers
# --------------------------

def to_builtin(value: Any) -> Any:
    """Convert fnlang values (and containers of them) into plain Python data.

    Numbers become floats, strings and booleans map directly, and anything
    else that is a node (functions included) is rendered as source text.
    """
    if isinstance(value, Number):
        return value.value
    if isinstance(value, (String, Boolean)):
        return value.value
    if isinstance(value, Node):
        from fnlang.fnlang_printer import Printer
        return Printer().pformat(value)
    if isinstance(value, collections.abc.Mapping):
        return {str(k): to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_builtin(x) for x in value]
    return value


def from_builtin(obj: Any) -> Node:
    """Convert a plain Python scalar into an fnlang value.

    None reads as false, the same value a missing argument binds to.
    """
    if isinstance(obj, Node):
        return obj
    if obj is None:
        return Boolean(False)
    # bool before int: bool is an int subclass
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, (int, float)):
        return Number(obj)
    if isinstance(obj, str):
        return String(obj)
    raise TypeError(f"Cannot convert {type(obj).__name__} to an fnlang value")


# --------------------------
# Public API
# --------------------------

def serialize(value: Any, *, fmt: str, pretty: bool = True) -> str:
    """
    Convert an fnlang value (or a structure holding them) into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "to_builtin",
    "from_builtin",
    "serialize",
]
