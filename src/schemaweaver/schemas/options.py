"""Option Mapper: splits raw field options into element and container parts."""

import logging
from dataclasses import dataclass, field
from typing import Any

from schemaweaver.errors import DimensionError, InvalidOptionsConstructorError
from schemaweaver.schemas.types import Subdocument, to_schema_type

logger = logging.getLogger(__name__)


@dataclass
class MappedOptions:
    """Options for the element definition (inner) and the container (outer)."""

    inner: dict[str, Any] = field(default_factory=dict)
    outer: dict[str, Any] = field(default_factory=dict)


def _accepted_options(type_: Any) -> frozenset[str] | None:
    from schemaweaver.schemas.assembler import CompiledSchema

    if isinstance(type_, (CompiledSchema, dict)):
        return Subdocument.accepted_options
    schema_type = to_schema_type(type_)
    if schema_type is None:
        return None
    return schema_type.accepted_options


def map_options(
    raw: dict[str, Any],
    type_: Any,
    owner_name: str,
    key: str,
) -> MappedOptions:
    """Split options by the option set of the element type.

    ``inner_options`` and ``outer_options`` force their entries to one side
    and never appear in the result themselves.

    Raises:
        InvalidOptionsConstructorError: If the type has no known option set
    """
    accepted = _accepted_options(type_)
    if accepted is None:
        raise InvalidOptionsConstructorError(owner_name, key, type_)

    options = dict(raw)
    forced_inner = options.pop("inner_options", None)
    forced_outer = options.pop("outer_options", None)

    mapped = MappedOptions()
    for name, value in options.items():
        if name in accepted:
            mapped.inner[name] = value
        else:
            mapped.outer[name] = value

    if isinstance(forced_inner, dict):
        mapped.inner.update(forced_inner)
    if isinstance(forced_outer, dict):
        mapped.outer.update(forced_outer)

    logger.debug('Mapped options of "%s.%s": %s', owner_name, key, mapped)
    return mapped


def create_array_from_dimensions(
    dim: Any,
    element: Any,
    owner_name: str,
    key: str,
) -> list[Any]:
    """Wrap an element definition in ``dim`` levels of arrays.

    Args:
        dim: Number of dimensions (None means 1)
        element: The innermost definition, or a list already wrapping it once

    Raises:
        DimensionError: If dim is less than 1
    """
    dim = dim if isinstance(dim, int) and not isinstance(dim, bool) else 1
    if dim < 1:
        raise DimensionError(owner_name, key, dim)

    result = element if isinstance(element, list) else [element]
    for _ in range(1, dim):
        result = [result]
    return result


def map_array_options(
    raw: dict[str, Any],
    type_: Any,
    owner_name: str,
    key: str,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build an array definition ``{**outer, "type": [{"type": T, **inner}]}``.

    ``dim`` is taken out of the options and decides how often the element
    definition is wrapped.
    """
    options = dict(raw)
    dim = options.pop("dim", None)

    mapped = map_options(options, type_, owner_name, key)
    element = {"type": type_, **mapped.inner, **(extra or {})}

    return {
        **mapped.outer,
        "type": create_array_from_dimensions(dim, [element], owner_name, key),
    }
