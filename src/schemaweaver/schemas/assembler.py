"""Schema Assembler: builds the schema of one inheritance level."""

import copy
import inspect
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from schemaweaver.config import ModelOptions
from schemaweaver.errors import (
    NoDiscriminatorFunctionError,
    NoValidClassError,
    PathNotInSchemaError,
)
from schemaweaver.metadata.base import (
    HookDefinition,
    IndexDefinition,
    PluginDefinition,
)
from schemaweaver.metadata.registry import ClassRegistry
from schemaweaver.metadata.store import MetadataStore
from schemaweaver.schemas.fields import FieldCompiler
from schemaweaver.schemas.policy import AmbiguityPolicy

logger = logging.getLogger(__name__)

DEFAULT_DISCRIMINATOR_KEY = "__t"


@dataclass
class CompiledSchema:
    """A compiled schema, ready to hand to the persistence engine."""

    name: str
    fields: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)
    indexes: list[IndexDefinition] = field(default_factory=list)
    pre_hooks: list[HookDefinition] = field(default_factory=list)
    post_hooks: list[HookDefinition] = field(default_factory=list)
    virtual_populates: dict[str, dict[str, Any]] = field(default_factory=dict)
    query_methods: dict[str, Callable[..., Any]] = field(default_factory=dict)
    plugins: list[PluginDefinition] = field(default_factory=list)
    nested_discriminators: dict[str, dict[str, "NestedDiscriminator"]] = field(default_factory=dict)
    methods: dict[str, Callable[..., Any]] = field(default_factory=dict)
    statics: dict[str, Any] = field(default_factory=dict)
    virtuals: dict[str, property] = field(default_factory=dict)
    discriminators: dict[str, "CompiledSchema"] = field(default_factory=dict)
    discriminator_value: str | None = None

    def schema_name(self) -> str:
        return self.name

    @property
    def discriminator_key(self) -> str:
        return self.options.get("discriminator_key", DEFAULT_DISCRIMINATOR_KEY)

    def path(self, key: str) -> Any | None:
        """Return the definition of a top-level field, or None."""
        return self.fields.get(key)

    def clone(self) -> "CompiledSchema":
        """Return a copy whose fields and containers can be changed freely."""
        return replace(
            self,
            fields=copy.deepcopy(self.fields),
            options=copy.deepcopy(self.options),
            indexes=list(self.indexes),
            pre_hooks=list(self.pre_hooks),
            post_hooks=list(self.post_hooks),
            virtual_populates=copy.deepcopy(self.virtual_populates),
            query_methods=dict(self.query_methods),
            plugins=list(self.plugins),
            nested_discriminators={
                path: dict(children) for path, children in self.nested_discriminators.items()
            },
            methods=dict(self.methods),
            statics=dict(self.statics),
            virtuals=dict(self.virtuals),
            discriminators=dict(self.discriminators),
        )

    def __deepcopy__(self, memo: dict[int, Any]) -> "CompiledSchema":
        return self.clone()

    def add(self, fragment: dict[str, Any]) -> None:
        """Add field definitions, replacing fields with the same key."""
        self.fields.update(copy.deepcopy(fragment))

    def load_class(self, cls: type) -> None:
        """Copy the methods, statics and properties defined on cls."""
        from schemaweaver.metadata.decorators import PropDescriptor

        for attr_name, value in vars(cls).items():
            if attr_name.startswith("__") or isinstance(value, PropDescriptor):
                continue
            if isinstance(value, (staticmethod, classmethod)):
                self.statics[attr_name] = value.__func__
            elif isinstance(value, property):
                self.virtuals[attr_name] = value
            elif inspect.isfunction(value):
                self.methods[attr_name] = value

    def add_nested_discriminator(
        self,
        path: str,
        name: str,
        schema: "CompiledSchema",
        value: str | None = None,
    ) -> None:
        """Register a child schema for the sub-document at path.

        Raises:
            PathNotInSchemaError: If the path does not exist
            NoDiscriminatorFunctionError: If the path holds no sub-document
        """
        definition = self.path(path)
        if definition is None:
            raise PathNotInSchemaError(self.name, path)
        if not _holds_subdocument(definition):
            raise NoDiscriminatorFunctionError(self.name, path)

        self.nested_discriminators.setdefault(path, {})[name] = NestedDiscriminator(
            schema=schema, value=value if value is not None else name
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a plain, printable representation."""
        return {
            "name": self.name,
            "fields": {key: _describe(value) for key, value in self.fields.items()},
            "options": _describe(self.options),
            "indexes": [{"fields": i.fields, "options": i.options} for i in self.indexes],
            "pre_hooks": [_describe_hook(h) for h in self.pre_hooks],
            "post_hooks": [_describe_hook(h) for h in self.post_hooks],
            "virtual_populates": _describe(self.virtual_populates),
            "query_methods": sorted(self.query_methods),
            "plugins": [_describe(p.plugin) for p in self.plugins],
            "nested_discriminators": {
                path: {name: child.value for name, child in children.items()}
                for path, children in self.nested_discriminators.items()
            },
            "methods": sorted(self.methods),
            "statics": sorted(self.statics),
            "virtuals": sorted(self.virtuals),
            "discriminators": sorted(self.discriminators),
        }


@dataclass
class NestedDiscriminator:
    schema: CompiledSchema
    value: str


def _holds_subdocument(definition: Any) -> bool:
    if not isinstance(definition, dict):
        return False
    inner = definition.get("type")
    while isinstance(inner, list) and inner:
        inner = inner[0]
        if isinstance(inner, dict):
            inner = inner.get("type")
    return isinstance(inner, CompiledSchema)


def _describe(value: Any) -> Any:
    if isinstance(value, CompiledSchema):
        return f"<schema {value.name}>"
    if isinstance(value, dict):
        return {str(k): _describe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_describe(v) for v in value]
    if inspect.isclass(value):
        return value.__name__
    if callable(value):
        return getattr(value, "__name__", repr(value))
    return value


def _describe_hook(hook: HookDefinition) -> dict[str, Any]:
    return {"methods": hook.methods, "func": _describe(hook.func), "options": hook.options}


class SchemaAssembler:
    """Builds one inheritance level of a class into a CompiledSchema.

    Args:
        store: Store holding the class metadata
        registry: Registry receiving every built class under its name
        build_schema: Callback compiling a whole class (all levels)
    """

    def __init__(
        self,
        store: MetadataStore,
        registry: ClassRegistry,
        build_schema: Callable[[type], CompiledSchema],
    ):
        self.store = store
        self.registry = registry
        self.build_schema = build_schema
        self.policy = AmbiguityPolicy(store)
        self.compiler = FieldCompiler(store, self.policy, build_schema)

    def build(
        self,
        cls: type,
        base: CompiledSchema | None = None,
        schema_options: dict[str, Any] | None = None,
        is_final: bool = True,
        overwrite_options: ModelOptions | dict[str, Any] | None = None,
    ) -> CompiledSchema:
        """Build the schema of one level.

        Args:
            cls: The class of this level
            base: Schema of the parent levels to extend (cloned, not changed)
            schema_options: Schema options merged over the class's own
            is_final: Attach hooks, indexes and the rest (last level only)
            overwrite_options: Options taking precedence for the display name

        Returns:
            The schema of this level
        """
        if not inspect.isclass(cls):
            raise NoValidClassError(cls)

        self.store.assign_global_options(cls)
        options = self.store.merge_schema_options(
            schema_options if isinstance(schema_options, dict) else {}, cls
        )

        class_name = self.store.get_name(cls)
        final_name = self.store.get_name(cls, overwrite_options)
        logger.debug('Building schema for "%s" (final: %s)', final_name, is_final)

        fragment: dict[str, Any] = {}
        self.store.schemas[class_name] = fragment
        for meta in self.store.get_fields(cls):
            definition = self.compiler.compile(meta)
            if definition is not None:
                fragment[meta.key] = definition

        if base is None:
            schema = CompiledSchema(name=final_name, fields=copy.deepcopy(fragment), options=options)
        else:
            schema = base.clone()
            schema.name = final_name
            schema.options.update(options)
            schema.add(fragment)

        schema.load_class(cls)

        if is_final:
            self._finalize(cls, schema, final_name)

        self.registry.register(final_name, cls)
        return schema

    def _finalize(self, cls: type, schema: CompiledSchema, final_name: str) -> None:
        for path, children in self.store.get_nested_discriminators(cls).items():
            logger.debug('Applying nested discriminators for "%s.%s"', final_name, path)
            for child in children:
                child_name = self.store.get_name(child.type)
                child_schema = schema if child_name == final_name else self.build_schema(child.type)
                discriminator_key = child_schema.discriminator_key
                key_definition = child_schema.path(discriminator_key)
                if isinstance(key_definition, dict):
                    key_definition["skip_discriminator_check"] = True
                schema.add_nested_discriminator(path, child_name, child_schema, child.value)

        schema.pre_hooks = self.store.get_pre_hooks(cls)
        schema.post_hooks = self.store.get_post_hooks(cls)
        schema.virtual_populates.update(self.store.get_virtual_populates(cls))
        schema.indexes = self.store.get_indexes(cls)
        schema.query_methods.update(self.store.get_query_methods(cls))

        for plugin in self.store.get_plugins(cls):
            logger.debug("Applying plugin %r to %s", plugin.plugin, final_name)
            schema.plugins.append(plugin)
            plugin.plugin(schema, plugin.options)

        schema.methods["schema_name"] = lambda *_: final_name
