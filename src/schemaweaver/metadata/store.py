"""Metadata Store holding everything recorded about model classes."""

import inspect
import logging
from typing import Any, Callable, Iterator, Mapping

from schemaweaver.config import GlobalOptions, ModelOptions, Severity
from schemaweaver.errors import NoValidClassError, StringLengthExpectedError
from schemaweaver.metadata.base import (
    DiscriminatorDefinition,
    FieldMetadata,
    HookDefinition,
    IndexDefinition,
    PluginDefinition,
)

logger = logging.getLogger(__name__)


class MetadataStore:
    """Registry of class metadata.

    Field metadata is kept per class and never inherited: each level of an
    inheritance chain contributes only its own fields. Class-level metadata
    (model options, hooks, indexes, plugins, query methods, virtual populates
    and nested discriminators) is inherited: the first write on a subclass
    starts from a copy of the nearest ancestor's value.
    """

    def __init__(self, global_options: GlobalOptions | None = None):
        self._fields: dict[type, dict[str, FieldMetadata]] = {}
        self._model_options: dict[type, ModelOptions] = {}
        self._pre_hooks: dict[type, list[HookDefinition]] = {}
        self._post_hooks: dict[type, list[HookDefinition]] = {}
        self._indexes: dict[type, list[IndexDefinition]] = {}
        self._plugins: dict[type, list[PluginDefinition]] = {}
        self._query_methods: dict[type, dict[str, Callable[..., Any]]] = {}
        self._virtual_populates: dict[type, dict[str, dict[str, Any]]] = {}
        self._nested_discriminators: dict[type, dict[str, list[DiscriminatorDefinition]]] = {}
        self.schemas: dict[str, dict[str, Any]] = {}
        self.global_options = global_options if global_options is not None else GlobalOptions()

    # Fields

    def add_field(self, meta: FieldMetadata) -> None:
        """Record field metadata, replacing an earlier entry with the same key."""
        self._fields.setdefault(meta.owner, {})[meta.key] = meta
        logger.debug('Registered field "%s.%s"', meta.owner.__name__, meta.key)

    def get_fields(self, cls: type) -> list[FieldMetadata]:
        """Return the fields declared on cls itself, in registration order."""
        return list(self._fields.get(cls, {}).values())

    def get_field(self, cls: type, key: str) -> FieldMetadata | None:
        return self._fields.get(cls, {}).get(key)

    def has_fields(self, cls: type) -> bool:
        """Return True if cls or one of its ancestors declares any field."""
        return any(self._fields.get(klass) for klass in _lineage(cls))

    def classes(self) -> list[type]:
        """Return all classes with registered fields."""
        return [cls for cls, fields in self._fields.items() if fields]

    # Model options

    def get_model_options(self, cls: type) -> ModelOptions | None:
        """Return the model options of cls or its nearest ancestor that has any."""
        return _inherited(self._model_options, cls)

    def set_model_options(self, cls: type, options: ModelOptions | Mapping[str, Any]) -> ModelOptions:
        """Merge options over the (possibly inherited) options of cls."""
        current = self.get_model_options(cls) or ModelOptions()
        merged = current.merged_with(options)
        self._model_options[cls] = merged
        return merged

    def assign_global_options(self, cls: type) -> None:
        """Give cls a copy of the global options if it has none of its own."""
        if self.get_model_options(cls) is None:
            logger.info('Assigning global options to "%s"', cls.__name__)
            self._model_options[cls] = self.global_options.as_model_options()

    def merge_schema_options(self, value: Mapping[str, Any] | None, cls: type) -> dict[str, Any]:
        """Return the schema options of cls with value merged over them."""
        current = self.get_model_options(cls)
        merged = dict(current.schema_options) if current is not None else {}
        merged.update(value or {})
        return merged

    def get_name(self, cls: Any, overwrite_options: ModelOptions | Mapping[str, Any] | None = None) -> str:
        """Return the display name of a class.

        Overwrite options take precedence over the class's own options.

        Args:
            cls: The class
            overwrite_options: Options given at the call site

        Returns:
            The display name

        Raises:
            NoValidClassError: If cls is not a class
            StringLengthExpectedError: If a custom name is empty or not a string
        """
        if not inspect.isclass(cls):
            raise NoValidClassError(cls)

        options = self.get_model_options(cls) or ModelOptions()
        overwrite = _as_model_options(overwrite_options)
        base_name = cls.__name__

        custom_name = _first_set(overwrite, options, "custom_name")

        if callable(custom_name):
            name = custom_name(options)
            if not isinstance(name, str) or not name:
                raise StringLengthExpectedError(base_name, "custom_name", "custom_name", name)
            return name

        if _first_set(overwrite, options, "automatic_name"):
            suffix = custom_name
            if suffix is None and overwrite is not None:
                suffix = overwrite.schema_options.get("collection")
            if suffix is None:
                suffix = options.schema_options.get("collection")
            return f"{base_name}_{suffix}" if suffix is not None else base_name

        if custom_name is None:
            return base_name

        if not isinstance(custom_name, str) or not custom_name:
            raise StringLengthExpectedError(base_name, "custom_name", "custom_name", custom_name)
        return custom_name

    def get_allow_mixed(self, cls: type) -> Severity | None:
        """Return the effective allow_mixed severity for cls."""
        options = self.get_model_options(cls)
        if options is not None and options.options.allow_mixed is not None:
            return options.options.allow_mixed
        return self.global_options.options.allow_mixed

    # Hooks, indexes, plugins, query methods

    def add_pre_hook(self, cls: type, hook: HookDefinition) -> None:
        _append_inherited(self._pre_hooks, cls, hook)

    def add_post_hook(self, cls: type, hook: HookDefinition) -> None:
        _append_inherited(self._post_hooks, cls, hook)

    def get_pre_hooks(self, cls: type) -> list[HookDefinition]:
        return list(_inherited(self._pre_hooks, cls) or [])

    def get_post_hooks(self, cls: type) -> list[HookDefinition]:
        return list(_inherited(self._post_hooks, cls) or [])

    def add_index(self, cls: type, index: IndexDefinition) -> None:
        _append_inherited(self._indexes, cls, index)

    def get_indexes(self, cls: type) -> list[IndexDefinition]:
        return list(_inherited(self._indexes, cls) or [])

    def add_plugin(self, cls: type, plugin: PluginDefinition) -> None:
        _append_inherited(self._plugins, cls, plugin)

    def get_plugins(self, cls: type) -> list[PluginDefinition]:
        return list(_inherited(self._plugins, cls) or [])

    def add_query_method(self, cls: type, func: Callable[..., Any]) -> None:
        _set_inherited(self._query_methods, cls, func.__name__, func)

    def get_query_methods(self, cls: type) -> dict[str, Callable[..., Any]]:
        return dict(_inherited(self._query_methods, cls) or {})

    # Metadata written while compiling fields

    def add_virtual_populate(self, cls: type, key: str, options: dict[str, Any]) -> None:
        _set_inherited(self._virtual_populates, cls, key, dict(options))

    def get_virtual_populates(self, cls: type) -> dict[str, dict[str, Any]]:
        return dict(_inherited(self._virtual_populates, cls) or {})

    def add_nested_discriminators(
        self,
        cls: type,
        key: str,
        discriminators: list[DiscriminatorDefinition],
    ) -> None:
        _set_inherited(self._nested_discriminators, cls, key, list(discriminators))

    def get_nested_discriminators(self, cls: type) -> dict[str, list[DiscriminatorDefinition]]:
        return dict(_inherited(self._nested_discriminators, cls) or {})

    def clear(self) -> None:
        """Forget all recorded metadata and cached fragments."""
        for registry in (
            self._fields,
            self._model_options,
            self._pre_hooks,
            self._post_hooks,
            self._indexes,
            self._plugins,
            self._query_methods,
            self._virtual_populates,
            self._nested_discriminators,
            self.schemas,
        ):
            registry.clear()

    def __contains__(self, cls: type) -> bool:
        """Check if a class has registered fields."""
        return bool(self._fields.get(cls))

    def __iter__(self) -> Iterator[type]:
        return iter(self.classes())


def _lineage(cls: type) -> tuple[type, ...]:
    return getattr(cls, "__mro__", (cls,))


def _inherited(registry: dict[type, Any], cls: type) -> Any:
    for klass in _lineage(cls):
        if klass in registry:
            return registry[klass]
    return None


def _append_inherited(registry: dict[type, list[Any]], cls: type, item: Any) -> None:
    if cls not in registry:
        registry[cls] = list(_inherited(registry, cls) or [])
    registry[cls].append(item)


def _set_inherited(registry: dict[type, dict[str, Any]], cls: type, key: str, value: Any) -> None:
    if cls not in registry:
        registry[cls] = dict(_inherited(registry, cls) or {})
    registry[cls][key] = value


def _as_model_options(value: ModelOptions | Mapping[str, Any] | None) -> ModelOptions | None:
    if value is None or isinstance(value, ModelOptions):
        return value
    return ModelOptions.model_validate(dict(value))


def _first_set(overwrite: ModelOptions | None, options: ModelOptions, name: str) -> Any:
    if overwrite is not None:
        value = getattr(overwrite.options, name)
        if value is not None and name in overwrite.options.model_fields_set:
            return value
    return getattr(options.options, name)


_global_store: MetadataStore | None = None


def get_global_store() -> MetadataStore:
    """Get the global metadata store singleton."""
    global _global_store
    if _global_store is None:
        _global_store = MetadataStore()
    return _global_store
