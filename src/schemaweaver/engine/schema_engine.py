"""Schema Engine - compiles classes into schemas and caches models.

The engine walks the inheritance chain of a class from the root down,
building every ancestor level as a partial schema and the class itself as
the final one.
"""

import inspect
import logging
from typing import Any, Iterable

from schemaweaver.config import ModelOptions
from schemaweaver.errors import CircularReferenceError, ModelNotFoundError, NoValidClassError
from schemaweaver.metadata.registry import ClassRegistry, get_global_registry
from schemaweaver.metadata.store import MetadataStore, get_global_store
from schemaweaver.schemas.assembler import CompiledSchema, SchemaAssembler

logger = logging.getLogger(__name__)

_FOREIGN_MODULES = frozenset({"builtins", "typing", "abc"})


def default_ancestors(cls: type) -> list[type]:
    """Return the ancestors of cls that form schema levels, root first."""
    return [
        klass
        for klass in reversed(cls.__mro__[1:])
        if klass.__module__ not in _FOREIGN_MODULES
    ]


class SchemaEngine:
    """Entry point for compiling classes.

    Args:
        store: Metadata store (default: the global store)
        registry: Class registry (default: the global registry)
    """

    def __init__(
        self,
        store: MetadataStore | None = None,
        registry: ClassRegistry | None = None,
    ):
        self.store = store if store is not None else get_global_store()
        self.registry = registry if registry is not None else get_global_registry()
        self.assembler = SchemaAssembler(self.store, self.registry, self._build_referenced)
        self._in_progress: list[type] = []

    def compile_schema(
        self,
        cls: type,
        options: dict[str, Any] | None = None,
        overwrite_options: ModelOptions | dict[str, Any] | None = None,
        ancestors: Iterable[type] | None = None,
    ) -> CompiledSchema:
        """Compile a class and its ancestors into the final schema.

        Args:
            cls: The class to compile
            options: Schema options merged over each level's own
            overwrite_options: Options taking precedence for the display name
            ancestors: Ancestor chain, root first (default: taken from the MRO)

        Returns:
            The final schema

        Raises:
            NoValidClassError: If cls is not a class
            CircularReferenceError: If cls is already being compiled
        """
        if not inspect.isclass(cls):
            raise NoValidClassError(cls)

        if cls in self._in_progress:
            raise CircularReferenceError(
                cls.__name__, [klass.__name__ for klass in self._in_progress]
            )

        chain = list(ancestors) if ancestors is not None else default_ancestors(cls)
        logger.debug("Compiling %s with ancestors %s", cls.__name__, [c.__name__ for c in chain])

        self._in_progress.append(cls)
        try:
            schema: CompiledSchema | None = None
            for ancestor in chain:
                schema = self.assembler.build(ancestor, schema, options, is_final=False)
            return self.assembler.build(cls, schema, options, True, overwrite_options)
        finally:
            self._in_progress.pop()

    def _build_referenced(self, cls: type) -> CompiledSchema:
        return self.compile_schema(cls)

    def get_model_for_class(
        self,
        cls: type,
        options: ModelOptions | dict[str, Any] | None = None,
    ) -> CompiledSchema:
        """Compile a class once and cache it under its display name.

        Args:
            cls: The class
            options: Model options for this call (schema options and name options)

        Returns:
            The cached schema
        """
        if not inspect.isclass(cls):
            raise NoValidClassError(cls)

        overwrite = options if isinstance(options, ModelOptions) else ModelOptions.model_validate(dict(options or {}))
        name = self.store.get_name(cls, overwrite)

        cached = self.registry.get_model(name)
        if cached is not None:
            return cached

        schema = self.compile_schema(cls, overwrite.schema_options, overwrite)
        self.registry.add_model(name, schema, cls)
        logger.info('Cached model "%s"', name)
        return schema

    def get_model_with_string(self, name: str) -> CompiledSchema | None:
        """Return the cached model with the given display name."""
        return self.registry.get_model(name)

    def add_model(self, schema: CompiledSchema, cls: type) -> CompiledSchema:
        """Cache an already compiled schema for cls.

        Raises:
            FunctionCalledMoreThanSupportedError: If the name is already taken
        """
        if not inspect.isclass(cls):
            raise NoValidClassError(cls)
        self.registry.add_model(schema.name, schema, cls)
        return schema

    def delete_model(self, name: str) -> bool:
        """Remove a cached model and its class from the registry."""
        logger.debug('Deleting model "%s"', name)
        return self.registry.delete(name)

    def delete_model_with_class(self, cls: type) -> bool:
        """Remove the cached model of a class."""
        return self.delete_model(self.store.get_name(cls))

    def get_discriminator_model_for_class(
        self,
        base: CompiledSchema | str,
        cls: type,
        value: str | None = None,
    ) -> CompiledSchema:
        """Compile cls as a discriminator of a cached base model.

        Args:
            base: The base model or its display name
            cls: The discriminator class
            value: Discriminator value (default: the display name of cls)

        Returns:
            The discriminator schema

        Raises:
            ModelNotFoundError: If no base model is cached under the name
        """
        base_schema = self.registry.get_model(base) if isinstance(base, str) else base
        if base_schema is None:
            raise ModelNotFoundError(base)

        name = self.store.get_name(cls)
        cached = self.registry.get_model(name)
        if cached is not None:
            return cached

        schema = self.compile_schema(cls)
        schema.discriminator_value = value if value is not None else name
        base_schema.discriminators[name] = schema
        self.registry.add_model(name, schema, cls)
        return schema

    def resolve_class_for_artifact(self, artifact: Any) -> type | None:
        """Find the class a name or compiled artifact was built from."""
        return self.registry.resolve_class(artifact)

    def reset(self) -> None:
        """Forget all metadata, fragments and cached models."""
        self.store.clear()
        self.registry.clear()


_global_engine: SchemaEngine | None = None


def get_global_engine() -> SchemaEngine:
    """Get the global schema engine singleton."""
    global _global_engine
    if _global_engine is None:
        _global_engine = SchemaEngine()
    return _global_engine


def compile_schema(
    cls: type,
    options: dict[str, Any] | None = None,
    overwrite_options: ModelOptions | dict[str, Any] | None = None,
    ancestors: list[type] | None = None,
) -> CompiledSchema:
    """Compile a class using the global engine."""
    return get_global_engine().compile_schema(cls, options, overwrite_options, ancestors)


def resolve_class_for_artifact(artifact: Any) -> type | None:
    """Resolve a class using the global engine."""
    return get_global_engine().resolve_class_for_artifact(artifact)


def get_model_for_class(cls: type, options: ModelOptions | dict[str, Any] | None = None) -> CompiledSchema:
    """Compile and cache a class using the global engine."""
    return get_global_engine().get_model_for_class(cls, options)


def get_model_with_string(name: str) -> CompiledSchema | None:
    return get_global_engine().get_model_with_string(name)


def add_model(schema: CompiledSchema, cls: type) -> CompiledSchema:
    return get_global_engine().add_model(schema, cls)


def delete_model(name: str) -> bool:
    return get_global_engine().delete_model(name)


def delete_model_with_class(cls: type) -> bool:
    return get_global_engine().delete_model_with_class(cls)


def get_discriminator_model_for_class(
    base: CompiledSchema | str,
    cls: type,
    value: str | None = None,
) -> CompiledSchema:
    """Compile a discriminator model against a base cached by the global engine."""
    return get_global_engine().get_discriminator_model_for_class(base, cls, value)
