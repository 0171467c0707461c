"""Engine module - the top-level compile API."""

from schemaweaver.engine.schema_engine import SchemaEngine, get_global_engine

__all__ = [
    "SchemaEngine",
    "get_global_engine",
]
