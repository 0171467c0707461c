"""
schemaweaver - compile annotated Python classes into persistence schemas.

Classes declare their fields with ``prop`` and attach class-level metadata
(options, hooks, indexes, plugins) with decorators; the engine turns a class
and its ancestors into a CompiledSchema.
"""

__version__ = "0.1.0"

from schemaweaver.log_settings import set_log_level
from schemaweaver.config import GlobalOptions, ModelOptions, Severity, set_global_options
from schemaweaver.metadata.base import Passthrough, PropKind
from schemaweaver.metadata.decorators import index, model_options, plugin, post, pre, prop, query_method
from schemaweaver.schemas.assembler import CompiledSchema
from schemaweaver.default_classes import TimeStamps
from schemaweaver.engine.schema_engine import (
    SchemaEngine,
    compile_schema,
    get_global_engine,
    get_model_for_class,
    resolve_class_for_artifact,
)

__all__ = [
    "CompiledSchema",
    "GlobalOptions",
    "ModelOptions",
    "Passthrough",
    "PropKind",
    "SchemaEngine",
    "Severity",
    "TimeStamps",
    "compile_schema",
    "get_global_engine",
    "get_model_for_class",
    "index",
    "model_options",
    "plugin",
    "post",
    "pre",
    "prop",
    "query_method",
    "resolve_class_for_artifact",
    "set_global_options",
    "set_log_level",
]
