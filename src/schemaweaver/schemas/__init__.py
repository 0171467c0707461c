"""Schema compilation - from field metadata to schema definitions.

Example usage:
    from schemaweaver.schemas import SchemaAssembler

    assembler = SchemaAssembler(store, registry, build_schema=engine.compile_schema)
    schema = assembler.build(Cat)
"""

from schemaweaver.schemas.types import SchemaType, SchemaTypes
from schemaweaver.schemas.resolver import ResolvedType, detect_kind, resolve
from schemaweaver.schemas.options import MappedOptions, create_array_from_dimensions, map_array_options, map_options
from schemaweaver.schemas.policy import AmbiguityPolicy
from schemaweaver.schemas.fields import FieldCompiler
from schemaweaver.schemas.assembler import CompiledSchema, NestedDiscriminator, SchemaAssembler

__all__ = [
    "AmbiguityPolicy",
    "CompiledSchema",
    "FieldCompiler",
    "MappedOptions",
    "NestedDiscriminator",
    "ResolvedType",
    "SchemaAssembler",
    "SchemaType",
    "SchemaTypes",
    "create_array_from_dimensions",
    "detect_kind",
    "map_array_options",
    "map_options",
    "resolve",
]
