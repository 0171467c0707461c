"""Type Resolver: turns declared types into an element type and array dimension."""

import functools
import inspect
import logging
import types
import typing
from dataclasses import dataclass
from typing import Any

from schemaweaver.errors import TypeDepthExceededError
from schemaweaver.metadata.base import PropKind
from schemaweaver.schemas.types import Array, DocumentArray, Map

logger = logging.getLogger(__name__)

MAX_DEPTH = 100

_ARRAY_TYPES = (list, tuple, Array, DocumentArray)
_MAP_TYPES = (dict, Map)
_UNION_TYPES = (typing.Union, types.UnionType)


@dataclass
class ResolvedType:
    """Result of resolving a declared type."""

    type: Any
    dim: int = 0


def is_deferred(value: Any) -> bool:
    """Return True for zero-argument accessors that produce the real type.

    Classes are never treated as accessors, even though they are callable.
    """
    if inspect.isclass(value):
        return False
    return (
        inspect.isfunction(value)
        or inspect.ismethod(value)
        or isinstance(value, functools.partial)
    )


def _strip(value: Any) -> Any:
    """Look through Annotated and Optional wrappers."""
    while True:
        origin = typing.get_origin(value)
        if origin is typing.Annotated:
            value = typing.get_args(value)[0]
            continue
        if origin in _UNION_TYPES:
            members = [arg for arg in typing.get_args(value) if arg is not type(None)]
            if len(members) == 1:
                value = members[0]
                continue
            logger.debug("Union of %d types resolves to object", len(members))
            return object
        if value is typing.Any:
            return object
        return value


def _is_list_alias(value: Any) -> bool:
    return typing.get_origin(value) is list


def resolve(
    declared: Any,
    stop_at_outer_array: bool = False,
    owner_name: str = "",
    key: str = "",
) -> ResolvedType:
    """Resolve a declared type to its innermost element type.

    A deferred accessor is invoked once. Array literals (``[T]``) and list
    aliases (``list[T]``) are unwrapped, counting one dimension each. An
    outermost ``dict[K, V]`` resolves to ``V``.

    Args:
        declared: The declared type
        stop_at_outer_array: Stop at the innermost array literal whose first
            element is not an array and return that list itself
        owner_name: Owning class name, for error messages
        key: Field key, for error messages

    Returns:
        The resolved type and its array dimension

    Raises:
        TypeDepthExceededError: If more than 100 levels are nested
    """
    value = declared() if is_deferred(declared) else declared
    value = _strip(value)

    if typing.get_origin(value) is dict:
        args = typing.get_args(value)
        value = _strip(args[1]) if len(args) == 2 else object

    dim = 0
    while True:
        if dim > MAX_DEPTH:
            raise TypeDepthExceededError(owner_name, key, MAX_DEPTH)

        if isinstance(value, list):
            dim += 1
            if stop_at_outer_array and not (value and isinstance(value[0], list)):
                break
            value = _strip(value[0]) if value else None
        elif _is_list_alias(value):
            dim += 1
            args = typing.get_args(value)
            value = _strip(args[0]) if args else object
        else:
            break

    logger.debug("Resolved %r to %r with dim %d", declared, value, dim)
    return ResolvedType(type=value, dim=dim)


def detect_kind(declared: Any) -> PropKind:
    """Detect the shape of a declared type.

    Returns:
        ARRAY for list types, array literals and list aliases, MAP for dict
        types and dict aliases, NONE for everything else
    """
    value = _strip(declared)

    if isinstance(value, list) or _is_list_alias(value):
        return PropKind.ARRAY
    if typing.get_origin(value) is dict:
        return PropKind.MAP
    if any(value is array_type for array_type in _ARRAY_TYPES):
        return PropKind.ARRAY
    if any(value is map_type for map_type in _MAP_TYPES):
        return PropKind.MAP
    return PropKind.NONE
