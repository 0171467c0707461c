"""Registration API that records metadata on classes.

Fields are declared with ``prop`` as class attributes; the field type comes
from the attribute's annotation and is looked up only when the class is
compiled, so forward references to classes defined later work::

    @model_options(options={"allow_mixed": Severity.ALLOW})
    @index({"name": 1}, {"unique": True})
    class Cat:
        name: str = prop(required=True)
        owner: "Person" = prop(ref="Person")
        tags: list[str] = prop()
"""

import inspect
import logging
import sys
import typing
from typing import Any, Callable, Mapping, TypeVar

from schemaweaver.config import ModelOptions
from schemaweaver.errors import InvalidTypeError
from schemaweaver.metadata.base import (
    FieldMetadata,
    HookDefinition,
    IndexDefinition,
    PluginDefinition,
    PropKind,
)
from schemaweaver.metadata.store import MetadataStore, get_global_store

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type)


def _annotation_accessor(owner: type, name: str) -> Callable[[], Any]:
    """Return an accessor evaluating the annotation of owner.name on demand."""

    def accessor() -> Any:
        try:
            annotation = inspect.get_annotations(owner).get(name)
        except NameError as e:
            raise InvalidTypeError(owner.__name__, name, None) from e
        if annotation is None:
            return None

        module = sys.modules.get(owner.__module__)
        globalns = dict(vars(module)) if module is not None else {}
        localns = dict(vars(owner))
        localns.setdefault(owner.__name__, owner)

        def holder() -> None:
            pass

        holder.__annotations__ = {name: annotation}
        try:
            return typing.get_type_hints(holder, globalns, localns, include_extras=True)[name]
        except NameError as e:
            raise InvalidTypeError(owner.__name__, name, annotation) from e

    return accessor


class PropDescriptor:
    """Class attribute recording field metadata when its owner is created."""

    def __init__(
        self,
        kind: PropKind | None,
        options: dict[str, Any],
        store: MetadataStore | None,
    ):
        self.kind = kind
        self.options = options
        self.store = store
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        store = self.store if self.store is not None else get_global_store()
        store.add_field(FieldMetadata(
            owner=owner,
            key=name,
            declared_type=_annotation_accessor(owner, name),
            options=self.options,
            kind=self.kind,
        ))

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        if "default" in self.options and not callable(self.options["default"]):
            return self.options["default"]
        raise AttributeError(self.name)


def prop(kind: PropKind | None = None, *, store: MetadataStore | None = None, **options: Any) -> Any:
    """Declare a field.

    Args:
        kind: Force the shape (ARRAY, MAP or NONE) instead of detecting it
        store: Store to record into (default: the global store)
        **options: Field options such as ``required``, ``ref`` or ``type``

    Returns:
        A descriptor to assign to the class attribute
    """
    return PropDescriptor(kind, options, store)


def _store(store: MetadataStore | None) -> MetadataStore:
    return store if store is not None else get_global_store()


def model_options(
    schema_options: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
    *,
    store: MetadataStore | None = None,
) -> Callable[[T], T]:
    """Set model options on a class, merged over the inherited ones."""

    def decorator(cls: T) -> T:
        value: dict[str, Any] = {}
        if schema_options is not None:
            value["schema_options"] = dict(schema_options)
        if options is not None:
            value["options"] = dict(options)
        merged = _store(store).set_model_options(cls, ModelOptions.model_validate(value))
        logger.info('Model options set on "%s": %s', cls.__name__, merged)
        return cls

    return decorator


def _hook(
    kind: str,
    methods: str | list[str],
    func: Callable[..., Any],
    options: Mapping[str, Any] | None,
    store: MetadataStore | None,
) -> Callable[[T], T]:
    hook = HookDefinition(
        methods=[methods] if isinstance(methods, str) else list(methods),
        func=func,
        options=dict(options or {}),
    )

    def decorator(cls: T) -> T:
        target = _store(store)
        if kind == "pre":
            target.add_pre_hook(cls, hook)
        else:
            target.add_post_hook(cls, hook)
        logger.info('Added %s hook for %s on "%s"', kind, hook.methods, cls.__name__)
        return cls

    return decorator


def pre(
    methods: str | list[str],
    func: Callable[..., Any],
    options: Mapping[str, Any] | None = None,
    *,
    store: MetadataStore | None = None,
) -> Callable[[T], T]:
    """Add a hook that runs before the given engine operations."""
    return _hook("pre", methods, func, options, store)


def post(
    methods: str | list[str],
    func: Callable[..., Any],
    options: Mapping[str, Any] | None = None,
    *,
    store: MetadataStore | None = None,
) -> Callable[[T], T]:
    """Add a hook that runs after the given engine operations."""
    return _hook("post", methods, func, options, store)


def index(
    fields: Mapping[str, Any],
    options: Mapping[str, Any] | None = None,
    *,
    store: MetadataStore | None = None,
) -> Callable[[T], T]:
    """Add a (compound) index."""
    definition = IndexDefinition(fields=dict(fields), options=dict(options or {}))

    def decorator(cls: T) -> T:
        _store(store).add_index(cls, definition)
        logger.info('Added index %s on "%s"', definition.fields, cls.__name__)
        return cls

    return decorator


def plugin(
    func: Callable[..., Any],
    options: Mapping[str, Any] | None = None,
    *,
    store: MetadataStore | None = None,
) -> Callable[[T], T]:
    """Add a plugin, called as ``func(schema, options)`` on the final schema."""
    if not callable(func):
        raise TypeError(f"Plugin must be callable, got {func!r}")
    definition = PluginDefinition(plugin=func, options=dict(options) if options is not None else None)

    def decorator(cls: T) -> T:
        _store(store).add_plugin(cls, definition)
        logger.info('Added plugin %r on "%s"', func, cls.__name__)
        return cls

    return decorator


def query_method(
    func: Callable[..., Any],
    *,
    store: MetadataStore | None = None,
) -> Callable[[T], T]:
    """Add a query helper, registered under the function's name."""

    def decorator(cls: T) -> T:
        _store(store).add_query_method(cls, func)
        logger.info('Added query method "%s" on "%s"', func.__name__, cls.__name__)
        return cls

    return decorator
