"""Exceptions raised while compiling schemas.

Every error carries the display name of the owning class, the field key and
the offending value when they are known, so callers can report them without
parsing the message.
"""

from typing import Any

from schemaweaver.utils.helpers import to_string_no_fail


class SchemaWeaverError(Exception):
    """Base class for all schema compilation errors."""

    def __init__(
        self,
        message: str,
        class_name: str | None = None,
        key: str | None = None,
        value: Any = None,
    ):
        super().__init__(message)
        self.class_name = class_name
        self.key = key
        self.value = value


def _where(class_name: str | None, key: str | None) -> str:
    if class_name and key:
        return f'"{class_name}.{key}"'
    return f'"{class_name or key or "<unknown>"}"'


# Type resolution


class SelfReferenceError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, value: Any = None):
        super().__init__(
            f"A field may not reference its own class ({_where(class_name, key)})",
            class_name, key, value,
        )


class InvalidTypeError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, value: Any):
        super().__init__(
            f"{_where(class_name, key)}'s type is invalid: "
            f"{to_string_no_fail(value)}",
            class_name, key, value,
        )


class NoValidClassError(SchemaWeaverError, TypeError):
    def __init__(self, value: Any):
        super().__init__(
            f"Expected a class, got {to_string_no_fail(value)}", value=value
        )


class TypeDepthExceededError(SchemaWeaverError, ValueError):
    def __init__(self, class_name: str, key: str, depth: int):
        super().__init__(
            f"Type nesting of {_where(class_name, key)} exceeds {depth} levels",
            class_name, key, depth,
        )


class CircularReferenceError(SchemaWeaverError):
    def __init__(self, class_name: str, chain: list[str]):
        super().__init__(
            f'Circular schema reference while compiling "{class_name}": '
            + " -> ".join(chain + [class_name]),
            class_name, value=chain,
        )


class MixedNotAllowedError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str):
        super().__init__(
            f"Falling back to Mixed is not allowed for {_where(class_name, key)}",
            class_name, key,
        )


# Option validation


class InvalidEnumTypeError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, value: Any):
        super().__init__(
            f'Invalid type for enum field {_where(class_name, key)}: expected '
            f'str or a number, got {to_string_no_fail(value)}',
            class_name, key, value,
        )


class NotStringTypeError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, value: Any):
        super().__init__(
            f"Enum of string field {_where(class_name, key)} contains a "
            f"non-string value: {to_string_no_fail(value)}",
            class_name, key, value,
        )


class NotNumberTypeError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, value: Any):
        super().__init__(
            f"Enum of number field {_where(class_name, key)} has no reverse "
            f"mapping for {to_string_no_fail(value)}",
            class_name, key, value,
        )


class InvalidOptionsConstructorError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, value: Any):
        super().__init__(
            f"No option set is known for the type of {_where(class_name, key)}: "
            f"{to_string_no_fail(value)}",
            class_name, key, value,
        )


class ExpectedTypeError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, expected: str, value: Any):
        super().__init__(
            f"Expected {expected} for {_where(class_name, key)}, "
            f"got {to_string_no_fail(value)}",
            class_name, key, value,
        )


class StringLengthExpectedError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, option: str, value: Any):
        super().__init__(
            f'Option "{option}" of {_where(class_name, key)} must be a '
            f"non-empty string, got {to_string_no_fail(value)}",
            class_name, key, value,
        )


class OptionConflictError(SchemaWeaverError, TypeError):
    def __init__(self, class_name: str, key: str, message: str, value: Any = None):
        super().__init__(
            f"{_where(class_name, key)}: {message}", class_name, key, value
        )


class DimensionError(SchemaWeaverError, ValueError):
    def __init__(self, class_name: str, key: str, dim: Any):
        super().__init__(
            f"Array dimension of {_where(class_name, key)} must be at least 1, "
            f"got {to_string_no_fail(dim)}",
            class_name, key, dim,
        )


# Semantic consistency


class IncompleteVirtualPopulateError(SchemaWeaverError):
    def __init__(self, class_name: str, key: str, missing: list[str]):
        super().__init__(
            f"Virtual populate {_where(class_name, key)} is missing: "
            + ", ".join(missing),
            class_name, key, missing,
        )


class RefUndefinedError(SchemaWeaverError):
    def __init__(self, class_name: str, key: str):
        super().__init__(
            f'Option "ref" of {_where(class_name, key)} resolved to None',
            class_name, key,
        )


class UnsupportedKindForOptionError(SchemaWeaverError):
    def __init__(self, class_name: str, key: str, option: str, kind: Any):
        super().__init__(
            f'Option "{option}" is not supported for {kind} fields '
            f"({_where(class_name, key)})",
            class_name, key, kind,
        )


class SymbolKeyUnsupportedError(SchemaWeaverError):
    def __init__(self, class_name: str, key: Any):
        super().__init__(
            f'Field keys must be strings, got {to_string_no_fail(key)} on "{class_name}"',
            class_name, None, key,
        )


class InvalidDiscriminatorError(SchemaWeaverError):
    def __init__(self, class_name: str, key: str, value: Any):
        super().__init__(
            f"Discriminator entry of {_where(class_name, key)} is neither a "
            f'class nor a mapping with "type": {to_string_no_fail(value)}',
            class_name, key, value,
        )


class PathNotInSchemaError(SchemaWeaverError):
    def __init__(self, class_name: str, key: str):
        super().__init__(
            f"Path {_where(class_name, key)} does not exist in the schema",
            class_name, key,
        )


class NoDiscriminatorFunctionError(SchemaWeaverError):
    def __init__(self, class_name: str, key: str):
        super().__init__(
            f"Path {_where(class_name, key)} does not hold a sub-document "
            "and cannot take discriminators",
            class_name, key,
        )


class FunctionCalledMoreThanSupportedError(SchemaWeaverError):
    def __init__(self, function_name: str, times: int, message: str):
        super().__init__(
            f'"{function_name}" may only be called {times} time(s): {message}',
            value=function_name,
        )


# Name resolution


class ResolveNameError(SchemaWeaverError, LookupError):
    def __init__(self, value: Any):
        super().__init__(
            "Expected a display name, an object with a schema_name or a "
            f"compiled schema, got {to_string_no_fail(value)}",
            value=value,
        )


class ModelNotFoundError(SchemaWeaverError, LookupError):
    def __init__(self, name: str):
        super().__init__(f'No model named "{name}" has been cached', class_name=name, value=name)
