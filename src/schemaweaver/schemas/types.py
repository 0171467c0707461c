"""Schema type vocabulary of the persistence engine.

Each ``SchemaType`` lists the options its own option set accepts. When a
field is an array or a map, those options belong to the element definition
("inner") and all others to the container ("outer").
"""

import datetime
import decimal
import inspect
import uuid
from typing import Any

BASE_OPTIONS = frozenset({
    "validate",
    "cast",
    "required",
    "default",
    "ref",
    "ref_path",
    "select",
    "index",
    "unique",
    "sparse",
    "text",
    "immutable",
    "transform",
})


class SchemaType:
    """Base of all engine schema types."""

    accepted_options: frozenset[str] = BASE_OPTIONS


class String(SchemaType):
    accepted_options = frozenset({
        "enum", "match", "lowercase", "trim", "uppercase",
        "min_length", "max_length", "populate",
    })


class Number(SchemaType):
    accepted_options = frozenset({"min", "max", "enum", "populate"})


class Boolean(SchemaType):
    pass


class Date(SchemaType):
    accepted_options = frozenset({"min", "max", "expires"})


class Buffer(SchemaType):
    accepted_options = frozenset({"subtype"})


class ObjectId(SchemaType):
    accepted_options = frozenset({"auto", "populate"})


class Decimal128(SchemaType):
    pass


class UUID(SchemaType):
    accepted_options = frozenset({"populate"})


class Mixed(SchemaType):
    pass


class Array(SchemaType):
    accepted_options = frozenset({"enum", "of", "cast_non_arrays"})


class DocumentArray(SchemaType):
    accepted_options = frozenset({"exclude_indexes", "_id"})


class Map(SchemaType):
    accepted_options = frozenset({"of"})


class Subdocument(SchemaType):
    accepted_options = frozenset({"_id"})


class SchemaTypes:
    """Namespace of the engine schema types."""

    String = String
    Number = Number
    Boolean = Boolean
    Date = Date
    Buffer = Buffer
    ObjectId = ObjectId
    Decimal128 = Decimal128
    UUID = UUID
    Mixed = Mixed
    Array = Array
    DocumentArray = DocumentArray
    Map = Map
    Subdocument = Subdocument


BUILTIN_TYPES: dict[type, type[SchemaType]] = {
    str: String,
    int: Number,
    float: Number,
    bool: Boolean,
    datetime.datetime: Date,
    datetime.date: Date,
    bytes: Buffer,
    decimal.Decimal: Decimal128,
    uuid.UUID: UUID,
    object: Mixed,
    list: Array,
    tuple: Array,
    dict: Map,
}

REF_TYPES = frozenset({
    str, int, float, bytes, uuid.UUID, decimal.Decimal,
    String, Number, Buffer, ObjectId, UUID, Decimal128,
})


def to_schema_type(type_: Any) -> type[SchemaType] | None:
    """Map a Python type or schema type to the engine's schema type."""
    if inspect.isclass(type_) and issubclass(type_, SchemaType):
        return type_
    try:
        return BUILTIN_TYPES.get(type_)
    except TypeError:
        return None


def is_primitive(type_: Any) -> bool:
    """Return True if the engine stores the type natively."""
    return to_schema_type(type_) is not None


def is_ref_type(type_: Any) -> bool:
    """Return True if values of the type can identify a referenced document."""
    try:
        return type_ in REF_TYPES
    except TypeError:
        return False


def is_mixed(type_: Any) -> bool:
    """Return True for the untyped bucket (``object`` or ``Mixed``)."""
    return type_ is object or type_ is Mixed


def is_string(type_: Any) -> bool:
    return type_ is str or type_ is String


def is_number(type_: Any) -> bool:
    return type_ is int or type_ is float or type_ is Number
