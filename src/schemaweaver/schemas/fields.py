"""Field Compiler: turns one field's metadata into a schema-field definition.

The pipeline runs in a fixed order and the first terminal branch wins:

1. determine the kind (explicit, else from the declared or ``type`` option)
2. resolve the element type and array dimension
3. reject self references
4. normalize buffer types and nested containers
5. compile referenced classes that have no fragment yet
6. record nested discriminators
7. resolve ``ref``
8. record virtual populates (terminal, nothing is emitted)
9. passthrough definitions
10. ``ref`` / ``ref_path`` definitions
11. validate the type, normalize ``enum`` and cross-check options
12. primitive, unknown-class (Mixed) and sub-document definitions
"""

import enum
import inspect
import logging
import re
import typing
from typing import Any, Callable, Mapping

from schemaweaver.errors import (
    ExpectedTypeError,
    IncompleteVirtualPopulateError,
    InvalidDiscriminatorError,
    InvalidEnumTypeError,
    InvalidTypeError,
    NotNumberTypeError,
    NotStringTypeError,
    OptionConflictError,
    RefUndefinedError,
    SelfReferenceError,
    StringLengthExpectedError,
    SymbolKeyUnsupportedError,
    UnsupportedKindForOptionError,
)
from schemaweaver.metadata.base import DiscriminatorDefinition, FieldMetadata, Passthrough, PropKind
from schemaweaver.metadata.store import MetadataStore
from schemaweaver.schemas.options import map_array_options, map_options
from schemaweaver.schemas.policy import AmbiguityPolicy
from schemaweaver.schemas.resolver import detect_kind, is_deferred, resolve
from schemaweaver.schemas.types import (
    SchemaTypes,
    is_mixed,
    is_number,
    is_primitive,
    is_ref_type,
    is_string,
)

logger = logging.getLogger(__name__)

VIRTUAL_POPULATE_OPTIONS = ("local_field", "foreign_field")
REQUIRED_VIRTUAL_POPULATE_OPTIONS = ("local_field", "foreign_field", "ref")

STRING_VALIDATE_OPTIONS = ("match", "min_length", "max_length")
STRING_TRANSFORM_OPTIONS = ("lowercase", "uppercase", "trim")
NUMBER_VALIDATE_OPTIONS = ("min", "max")
ENUM_OPTIONS = ("enum",)

_BUFFER_ALIASES = (bytearray, memoryview)

_LIST_SOURCE = re.compile(r"^\s*(?:typing\.)?(?:list|List)\[")
_DICT_SOURCE = re.compile(r"^\s*(?:typing\.)?(?:dict|Dict)\[")


def _is_number_value(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _unevaluated_kind(annotation: Any) -> PropKind:
    """Detect the shape of an annotation whose arguments cannot be evaluated."""
    if isinstance(annotation, str):
        if _LIST_SOURCE.match(annotation):
            return PropKind.ARRAY
        if _DICT_SOURCE.match(annotation):
            return PropKind.MAP
        return PropKind.NONE
    return detect_kind(annotation)


def _enum_base_type(owner_name: str, key: str, enum_cls: type[enum.Enum]) -> type:
    values = [member.value for member in enum_cls]
    if values and all(isinstance(value, str) for value in values):
        return str
    if values and all(_is_number_value(value) for value in values):
        return int if all(isinstance(value, int) for value in values) else float
    raise InvalidEnumTypeError(owner_name, key, enum_cls)


class FieldCompiler:
    """Compiles field metadata into schema-field definitions.

    Args:
        store: Store holding the metadata and the fragment cache
        policy: Policy applied when a field falls back to Mixed
        build_schema: Callback compiling a referenced class into a schema
    """

    def __init__(
        self,
        store: MetadataStore,
        policy: AmbiguityPolicy,
        build_schema: Callable[[type], Any],
    ):
        self.store = store
        self.policy = policy
        self.build_schema = build_schema

    def compile(self, meta: FieldMetadata) -> Any | None:
        """Compile one field.

        Args:
            meta: The field metadata

        Returns:
            The schema-field definition, or None if the field became a
            virtual populate

        Raises:
            SchemaWeaverError: On any invalid declaration
        """
        owner = meta.owner
        key = meta.key
        name = self.store.get_name(owner)

        if not isinstance(key, str):
            raise SymbolKeyUnsupportedError(name, key)

        logger.debug('Compiling field "%s.%s"', name, key)

        options = dict(meta.options)
        declared = meta.declared_type

        type_option = options.pop("type", None)
        if is_deferred(type_option):
            type_option = type_option()

        has_ref = "ref" in options or "ref_path" in options
        unresolved = False
        if is_deferred(declared):
            try:
                declared = declared()
            except InvalidTypeError as e:
                if not has_ref:
                    raise
                # the ref names the stored class, only the shape is needed
                logger.debug('Annotation of "%s.%s" is not resolvable, using the ref', name, key)
                unresolved = True
                declared = e.value

        if meta.kind is not None:
            kind = PropKind(meta.kind)
        else:
            kind = _unevaluated_kind(declared) if unresolved else detect_kind(declared)
            if kind is PropKind.NONE and type_option is not None:
                kind = detect_kind(type_option)

        if type_option is not None:
            resolved = resolve(type_option, owner_name=name, key=key)
        elif unresolved or (kind is not PropKind.NONE and has_ref):
            # the element type is taken from the ref instead
            resolved = None
        else:
            resolved = resolve(declared, owner_name=name, key=key)

        type_ = resolved.type if resolved is not None else None
        if (
            has_ref
            and type_option is None
            and not isinstance(type_, Passthrough)
            and not is_ref_type(type_)
        ):
            # an annotation naming the referenced class is not the stored type
            type_ = None
        if resolved is not None and resolved.dim > 0 and kind is not PropKind.NONE:
            if type_option is not None:
                options["dim"] = resolved.dim
            else:
                options.setdefault("dim", resolved.dim)

        if typing.get_origin(type_) is not None:
            type_ = typing.get_origin(type_)

        if inspect.isclass(type_) and issubclass(type_, enum.Enum):
            enum_cls = type_
            type_ = _enum_base_type(name, key, enum_cls)
            options.setdefault("enum", enum_cls)

        if type_ is owner:
            raise SelfReferenceError(name, key, type_)

        if type_ in _BUFFER_ALIASES:
            type_ = SchemaTypes.Buffer

        if kind is PropKind.ARRAY and detect_kind(type_) is PropKind.ARRAY:
            logger.debug('Element type of "%s.%s" is still an array, using Mixed', name, key)
            type_ = SchemaTypes.Mixed
        if kind is PropKind.MAP and detect_kind(type_) is PropKind.MAP:
            logger.debug('Value type of "%s.%s" is still a map, using Mixed', name, key)
            type_ = SchemaTypes.Mixed

        if self._is_undefined_class(type_):
            self.build_schema(type_)

        if "discriminators" in options:
            self._record_discriminators(owner, name, key, options.pop("discriminators"))

        if "ref" in options:
            options["ref"] = self._resolve_ref(name, key, options["ref"])

        if any(option in options for option in VIRTUAL_POPULATE_OPTIONS):
            missing = [option for option in REQUIRED_VIRTUAL_POPULATE_OPTIONS if option not in options]
            if missing:
                raise IncompleteVirtualPopulateError(name, key, missing)
            self.store.add_virtual_populate(owner, key, options)
            logger.debug('Recorded virtual populate "%s.%s"', name, key)
            return None

        if "just_one" in options:
            logger.warning(
                'Option "just_one" is set on "%s.%s" without virtual populate options',
                name,
                key,
            )

        if isinstance(type_, Passthrough):
            return self._passthrough(name, key, kind, type_, options)

        ref_type = type_ if is_ref_type(type_) else SchemaTypes.ObjectId

        if "ref" in options:
            ref = options.pop("ref")
            return self._by_kind(name, key, kind, ref_type, options, "ref", {"ref": ref})

        if "ref_path" in options:
            ref_path = options.pop("ref_path")
            if not isinstance(ref_path, str) or not ref_path:
                raise StringLengthExpectedError(name, key, "ref_path", ref_path)
            if kind is PropKind.MAP:
                raise UnsupportedKindForOptionError(name, key, "ref_path", kind.value)
            return self._by_kind(name, key, kind, ref_type, options, "ref_path", {"ref_path": ref_path})

        if type_ is None or not inspect.isclass(type_):
            raise InvalidTypeError(name, key, type_)

        enum_option = options.get("enum")
        if enum_option is not None and not isinstance(enum_option, list):
            options["enum"] = self._normalize_enum(name, key, type_, enum_option)

        add_null = options.pop("add_null_to_enum", None)
        if add_null is not None:
            current = options.get("enum")
            options["enum"] = [*(current if isinstance(current, list) else []), None]

        self._cross_check(name, key, type_, options)

        if is_primitive(type_):
            if is_mixed(type_):
                self.policy.warn_mixed(owner, key)
                type_ = SchemaTypes.Mixed
            return self._by_kind(name, key, kind, type_, options, "primitive")

        if self.store.get_name(type_) not in self.store.schemas:
            self.policy.warn_mixed(owner, key)
            return self._by_kind(name, key, kind, SchemaTypes.Mixed, options, "mixed")

        sub_schema = self.build_schema(type_)
        return self._by_kind(name, key, kind, sub_schema, options, "sub-document")

    def _is_undefined_class(self, type_: Any) -> bool:
        """True for user classes with fields whose schema was not compiled yet."""
        return (
            inspect.isclass(type_)
            and not is_primitive(type_)
            and self.store.has_fields(type_)
            and self.store.get_name(type_) not in self.store.schemas
        )

    def _record_discriminators(self, owner: type, name: str, key: str, value: Any) -> None:
        resolved = resolve(value, stop_at_outer_array=True, owner_name=name, key=key)
        if resolved.dim != 1:
            raise OptionConflictError(
                name, key, '"discriminators" must be a single list', resolved.dim
            )

        entries: list[DiscriminatorDefinition] = []
        for entry in resolved.type:
            if isinstance(entry, DiscriminatorDefinition):
                entries.append(entry)
            elif inspect.isclass(entry):
                entries.append(DiscriminatorDefinition(type=entry))
            elif isinstance(entry, Mapping) and "type" in entry:
                entries.append(DiscriminatorDefinition(type=entry["type"], value=entry.get("value")))
            else:
                raise InvalidDiscriminatorError(name, key, entry)

        logger.debug('Recorded %d discriminators for "%s.%s"', len(entries), name, key)
        self.store.add_nested_discriminators(owner, key, entries)

    def _resolve_ref(self, name: str, key: str, value: Any) -> Any:
        resolved = resolve(value, owner_name=name, key=key)
        if resolved.dim != 0:
            raise OptionConflictError(name, key, '"ref" may not be a list', resolved.dim)
        ref = resolved.type
        if ref is None:
            raise RefUndefinedError(name, key)
        if inspect.isclass(ref):
            return self.store.get_name(ref)
        return ref

    def _passthrough(
        self,
        name: str,
        key: str,
        kind: PropKind,
        passthrough: Passthrough,
        options: dict[str, Any],
    ) -> Any:
        logger.debug('Passthrough for "%s.%s" (%s, direct: %s)', name, key, kind.value, passthrough.direct)
        if passthrough.direct:
            return passthrough.raw
        return self._by_kind(name, key, kind, passthrough.raw, options, "passthrough")

    def _by_kind(
        self,
        name: str,
        key: str,
        kind: PropKind,
        type_: Any,
        options: dict[str, Any],
        context: str,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if kind is PropKind.ARRAY:
            return map_array_options(options, type_, name, key, extra)
        if kind is PropKind.MAP:
            return self._map_definition(name, key, type_, options, extra)
        if kind is PropKind.NONE:
            return {"type": type_, **(extra or {}), **options}
        raise UnsupportedKindForOptionError(name, key, context, kind)

    def _map_definition(
        self,
        name: str,
        key: str,
        type_: Any,
        options: dict[str, Any],
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if "dim" in options:
            logger.debug('Map of arrays for "%s.%s"', name, key)
            array = map_array_options(options, type_, name, key, extra)
            element = array.pop("type")
            return {**array, "type": dict, "of": element}

        mapped = map_options(options, type_, name, key)
        return {
            **mapped.outer,
            "type": dict,
            "of": {"type": type_, **(extra or {}), **mapped.inner},
        }

    def _normalize_enum(self, name: str, key: str, type_: type, value: Any) -> list[Any]:
        """Turn a mapping or Enum class into the list of allowed values."""
        if isinstance(value, tuple):
            return list(value)

        is_enum_class = inspect.isclass(value) and issubclass(value, enum.Enum)
        if not is_enum_class and not isinstance(value, Mapping):
            raise ExpectedTypeError(name, key, "a list, a mapping or an Enum class", value)

        pairs = (
            [(member.name, member.value) for member in value]
            if is_enum_class
            else list(value.items())
        )

        if is_string(type_):
            for _, item in pairs:
                if not isinstance(item, str):
                    raise NotStringTypeError(name, key, item)
            return [item for _, item in pairs]

        if is_number(type_):
            if is_enum_class:
                for _, item in pairs:
                    if not _is_number_value(item):
                        raise NotNumberTypeError(name, key, item)
                return [item for _, item in pairs]

            # mappings must carry the value -> name entries as well
            keys = {str(pair_key) for pair_key, _ in pairs}
            result = []
            for _, item in pairs:
                if item is None or str(item) not in keys:
                    raise NotNumberTypeError(name, key, item)
                if _is_number_value(item):
                    result.append(item)
            return result

        raise InvalidEnumTypeError(name, key, type_)

    def _cross_check(self, name: str, key: str, type_: type, options: dict[str, Any]) -> None:
        """Warn about options that do not apply to the field's type."""
        checks = []
        if not is_string(type_):
            checks.append(("str", "string-validate", STRING_VALIDATE_OPTIONS))
            checks.append(("str", "string-transform", STRING_TRANSFORM_OPTIONS))
        if not is_number(type_):
            checks.append(("a number", "number-validate", NUMBER_VALIDATE_OPTIONS))
        if not is_string(type_) and not is_number(type_):
            checks.append(("str or a number", "enum", ENUM_OPTIONS))

        for expected, family, names in checks:
            included = [option for option in names if option in options]
            if included:
                logger.warning(
                    'Type of "%s.%s" is not %s, but includes %s options: %s',
                    name,
                    key,
                    expected,
                    family,
                    ", ".join(included),
                )
