"""Core metadata models.

Field metadata is what the registration API records per class attribute; the
remaining models describe the class-level metadata (hooks, indexes, plugins,
discriminators) attached on the final compilation pass.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PropKind(str, Enum):
    """Shape of a field."""

    ARRAY = "array"
    MAP = "map"
    NONE = "none"


class FieldMetadata(BaseModel):
    """Metadata recorded for one field of a class.

    ``declared_type`` is kept as given: a class, an array literal such as
    ``[str]``, a generic alias such as ``list[str]``, a ``Passthrough`` or a
    zero-argument callable that returns one of those when invoked.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    owner: type = Field(..., description="Class the field belongs to")
    key: Any = Field(..., description="Field name")
    declared_type: Any = Field(default=None, description="Declared type of the field")
    options: dict[str, Any] = Field(default_factory=dict, description="Raw field options")
    kind: PropKind | None = Field(default=None, description="Explicit shape, if any")

    @field_validator("options", mode="before")
    @classmethod
    def _copy_options(cls, value: Any) -> dict[str, Any]:
        return dict(value or {})


@dataclass
class Passthrough:
    """A raw schema definition inserted without interpretation.

    With ``direct=True`` the raw value replaces the whole field definition;
    otherwise it is used as the element type and wrapped by the field's kind.
    """

    raw: Any
    direct: bool = False


@dataclass
class HookDefinition:
    """A pre or post hook for one or more engine operations."""

    methods: list[str]
    func: Callable[..., Any]
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not callable(self.func):
            raise TypeError(f"Hook function must be callable, got {self.func!r}")
        if isinstance(self.methods, str):
            self.methods = [self.methods]


@dataclass
class IndexDefinition:
    """A compound index over one or more fields."""

    fields: dict[str, Any]
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class PluginDefinition:
    """A plugin applied to the final schema as ``plugin(schema, options)``."""

    plugin: Callable[..., Any]
    options: dict[str, Any] | None = None


@dataclass
class DiscriminatorDefinition:
    """A child class for a nested discriminator path."""

    type: type
    value: str | None = None
