"""Metadata layer - what is recorded about model classes.

Contains:
- Metadata Store: per-class fields and inherited class-level metadata
- Class Registry: display names mapped to classes and compiled models
- Decorators: the registration API used on model classes
"""

from schemaweaver.metadata.base import (
    DiscriminatorDefinition,
    FieldMetadata,
    HookDefinition,
    IndexDefinition,
    Passthrough,
    PluginDefinition,
    PropKind,
)
from schemaweaver.metadata.store import MetadataStore, get_global_store
from schemaweaver.metadata.registry import ClassRegistry, get_global_registry

__all__ = [
    "ClassRegistry",
    "DiscriminatorDefinition",
    "FieldMetadata",
    "HookDefinition",
    "IndexDefinition",
    "MetadataStore",
    "Passthrough",
    "PluginDefinition",
    "PropKind",
    "get_global_registry",
    "get_global_store",
]
