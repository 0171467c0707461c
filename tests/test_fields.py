"""Tests for compiling single fields.

Tests cover:
- Primitive, array, map and nested array fields
- References, reference paths and virtual populates
- Enum normalization and option cross-checks
- Passthrough definitions
- The Mixed fallback and its severities
- Invalid declarations
"""

import datetime
import enum
import logging
from typing import Any

import pytest

from schemaweaver.config import GlobalOptions, ClassOptions, Severity
from schemaweaver.engine.schema_engine import SchemaEngine
from schemaweaver.errors import (
    ExpectedTypeError,
    IncompleteVirtualPopulateError,
    InvalidDiscriminatorError,
    InvalidEnumTypeError,
    InvalidTypeError,
    MixedNotAllowedError,
    NotNumberTypeError,
    NotStringTypeError,
    OptionConflictError,
    RefUndefinedError,
    SelfReferenceError,
    StringLengthExpectedError,
    SymbolKeyUnsupportedError,
    UnsupportedKindForOptionError,
)
from schemaweaver.metadata.base import FieldMetadata, Passthrough, PropKind
from schemaweaver.metadata.decorators import model_options, prop
from schemaweaver.metadata.registry import ClassRegistry
from schemaweaver.metadata.store import MetadataStore
from schemaweaver.schemas.assembler import CompiledSchema
from schemaweaver.schemas.types import SchemaTypes


class Color(str, enum.Enum):
    RED = "red"
    GREEN = "green"


class Size(enum.IntEnum):
    SMALL = 1
    LARGE = 2


@pytest.fixture
def store():
    """Create a fresh metadata store."""
    return MetadataStore()


@pytest.fixture
def engine(store):
    """Create an engine on a fresh store and registry."""
    return SchemaEngine(store=store, registry=ClassRegistry())


# =============================================================================
# Primitive and container fields
# =============================================================================

class TestPrimitiveFields:
    """Tests for fields of natively stored types."""

    def test_scalar_fields(self, store, engine):
        """Test scalar fields keep their type and options."""
        class Cat:
            name: str = prop(required=True, store=store)
            age: int = prop(min=0, store=store)
            born: datetime.datetime = prop(store=store)

        schema = engine.compile_schema(Cat)
        assert schema.fields["name"] == {"type": str, "required": True}
        assert schema.fields["age"] == {"type": int, "min": 0}
        assert schema.fields["born"] == {"type": datetime.datetime}

    def test_fields_keep_declaration_order(self, store, engine):
        """Test fields are compiled in registration order."""
        class Cat:
            b: str = prop(store=store)
            a: str = prop(store=store)
            c: int = prop(store=store)

        assert list(engine.compile_schema(Cat).fields) == ["b", "a", "c"]

    def test_optional_annotation(self, store, engine):
        """Test Optional annotations use the wrapped type."""
        class Cat:
            nickname: str | None = prop(store=store)

        assert engine.compile_schema(Cat).fields["nickname"] == {"type": str}

    def test_type_option_overrides_annotation(self, store, engine):
        """Test the type option wins over the annotation."""
        class Cat:
            code: Any = prop(type=SchemaTypes.Decimal128, store=store)

        assert engine.compile_schema(Cat).fields["code"] == {"type": SchemaTypes.Decimal128}

    def test_deferred_type_option(self, store, engine):
        """Test a type option given as an accessor."""
        class Cat:
            tags: Any = prop(type=lambda: [str], store=store)

        assert engine.compile_schema(Cat).fields["tags"] == {"type": [{"type": str}]}

    def test_buffer_aliases(self, store, engine):
        """Test bytearray and memoryview become Buffer."""
        class Blob:
            data: bytearray = prop(store=store)

        assert engine.compile_schema(Blob).fields["data"] == {"type": SchemaTypes.Buffer}


class TestArrayFields:
    """Tests for array fields."""

    def test_list_of_strings(self, store, engine):
        """Test element options move into the element definition."""
        class Cat:
            tags: list[str] = prop(required=True, lowercase=True, store=store)

        assert engine.compile_schema(Cat).fields["tags"] == {
            "required": True,
            "type": [{"type": str, "lowercase": True}],
        }

    def test_nested_arrays(self, store, engine):
        """Test each list level adds one array level."""
        class Grid:
            cells: list[list[int]] = prop(store=store)

        assert engine.compile_schema(Grid).fields["cells"] == {"type": [[{"type": int}]]}

    def test_explicit_dimension_from_type_option(self, store, engine):
        """Test the dimension of the type option replaces a given one."""
        class Grid:
            cells: list = prop(type=[[float]], dim=5, store=store)

        assert engine.compile_schema(Grid).fields["cells"] == {"type": [[{"type": float}]]}

    def test_explicit_kind(self, store, engine):
        """Test an explicit kind wraps a scalar annotation."""
        class Cat:
            tags: str = prop(PropKind.ARRAY, store=store)

        assert engine.compile_schema(Cat).fields["tags"] == {"type": [{"type": str}]}

    def test_array_of_arrays_element_is_mixed(self, store, engine):
        """Test an array kind whose element is still an array becomes Mixed."""
        class Cat:
            blobs: list[list] = prop(store=store)

        definition = engine.compile_schema(Cat).fields["blobs"]
        assert definition["type"] == [{"type": SchemaTypes.Mixed}]

    def test_array_of_subdocuments(self, store, engine):
        """Test arrays of model classes hold the compiled sub-document."""
        class Toy:
            name: str = prop(store=store)

        class Cat:
            toys: list[Toy] = prop(store=store)

        definition = engine.compile_schema(Cat).fields["toys"]
        element = definition["type"][0]["type"]
        assert isinstance(element, CompiledSchema)
        assert element.name == "Toy"
        assert element.fields == {"name": {"type": str}}


class TestMapFields:
    """Tests for map fields."""

    def test_map_of_numbers(self, store, engine):
        """Test map definitions hold the value definition under "of"."""
        class Stats:
            counts: dict[str, int] = prop(required=True, min=0, store=store)

        assert engine.compile_schema(Stats).fields["counts"] == {
            "required": True,
            "type": dict,
            "of": {"type": int, "min": 0},
        }

    def test_map_of_arrays(self, store, engine):
        """Test a map of lists holds the array definition under "of"."""
        class Stats:
            series: dict[str, list[float]] = prop(store=store)

        assert engine.compile_schema(Stats).fields["series"] == {
            "type": dict,
            "of": [{"type": float}],
        }

    def test_map_of_maps_is_mixed(self, store, engine):
        """Test a map kind whose value is still a map becomes Mixed."""
        class Stats:
            nested: dict[str, dict] = prop(store=store)

        assert engine.compile_schema(Stats).fields["nested"]["of"]["type"] is SchemaTypes.Mixed


# =============================================================================
# References
# =============================================================================

class TestReferences:
    """Tests for ref, ref_path and virtual populates."""

    def test_ref_to_class(self, store, engine):
        """Test a class ref is stored by display name with an ObjectId type."""
        class Person:
            name: str = prop(store=store)

        class Cat:
            owner: Person = prop(ref=Person, store=store)

        assert engine.compile_schema(Cat).fields["owner"] == {
            "type": SchemaTypes.ObjectId,
            "ref": "Person",
        }

    def test_ref_keeps_ref_capable_type(self, store, engine):
        """Test string-keyed refs keep their type."""
        class Cat:
            owner: str = prop(ref="Person", store=store)

        assert engine.compile_schema(Cat).fields["owner"] == {"type": str, "ref": "Person"}

    def test_deferred_ref(self, store, engine):
        """Test refs given as accessors are resolved."""
        class Person:
            pass

        class Cat:
            owner: Any = prop(ref=lambda: Person, store=store)

        assert engine.compile_schema(Cat).fields["owner"]["ref"] == "Person"

    def test_array_of_refs(self, store, engine):
        """Test arrays of refs put the ref on the element."""
        class Cat:
            friends: list[str] = prop(ref="Cat", store=store)

        assert engine.compile_schema(Cat).fields["friends"] == {
            "type": [{"type": SchemaTypes.ObjectId, "ref": "Cat"}],
        }

    def test_self_ref_by_name(self, store, engine):
        """Test a field may name its own class as ref."""
        class Node:
            parent: "Node" = prop(ref="Node", store=store)

        assert engine.compile_schema(Node).fields["parent"] == {
            "type": SchemaTypes.ObjectId,
            "ref": "Node",
        }

    def test_ref_with_unresolvable_annotation(self, store, engine):
        """Test a ref field may annotate a class this module cannot import."""
        class Cat:
            owner: "Stranger" = prop(ref="Stranger", store=store)  # noqa: F821

        assert engine.compile_schema(Cat).fields["owner"] == {
            "type": SchemaTypes.ObjectId,
            "ref": "Stranger",
        }

    def test_ref_array_with_unresolvable_element(self, store, engine):
        """Test only the container of an unresolvable ref annotation is used."""
        class Cat:
            owners: list["Stranger"] = prop(ref="Stranger", store=store)  # noqa: F821
            keepers: "list[Stranger]" = prop(ref_path="keeper_kind", store=store)  # noqa: F821

        fields = engine.compile_schema(Cat).fields
        assert fields["owners"] == {"type": [{"type": SchemaTypes.ObjectId, "ref": "Stranger"}]}
        assert fields["keepers"] == {"type": [{"type": SchemaTypes.ObjectId, "ref_path": "keeper_kind"}]}

    def test_ref_map_with_unresolvable_value(self, store, engine):
        """Test maps of refs with an unresolvable value type."""
        class Cat:
            vets: dict[str, "Stranger"] = prop(ref="Stranger", store=store)  # noqa: F821

        assert engine.compile_schema(Cat).fields["vets"] == {
            "type": dict,
            "of": {"type": SchemaTypes.ObjectId, "ref": "Stranger"},
        }

    def test_ref_undefined(self, store, engine):
        """Test a ref resolving to None is rejected."""
        class Cat:
            owner: str = prop(ref=lambda: None, store=store)

        with pytest.raises(RefUndefinedError):
            engine.compile_schema(Cat)

    def test_ref_list_rejected(self, store, engine):
        """Test a ref may not be a list."""
        class Cat:
            owner: str = prop(ref=["Person"], store=store)

        with pytest.raises(OptionConflictError):
            engine.compile_schema(Cat)

    def test_ref_path(self, store, engine):
        """Test dynamic references."""
        class Comment:
            target: str = prop(ref_path="target_kind", store=store)

        assert engine.compile_schema(Comment).fields["target"] == {
            "type": str,
            "ref_path": "target_kind",
        }

    def test_ref_path_must_be_string(self, store, engine):
        """Test empty ref paths are rejected."""
        class Comment:
            target: str = prop(ref_path="", store=store)

        with pytest.raises(StringLengthExpectedError):
            engine.compile_schema(Comment)

    def test_ref_path_on_map(self, store, engine):
        """Test ref paths are not supported on maps."""
        class Comment:
            targets: dict[str, str] = prop(ref_path="kind", store=store)

        with pytest.raises(UnsupportedKindForOptionError):
            engine.compile_schema(Comment)

    def test_virtual_populate(self, store, engine):
        """Test virtual populates are recorded instead of compiled."""
        class Person:
            kittens: list[str] = prop(
                ref="Cat", local_field="_id", foreign_field="owner", store=store,
            )
            name: str = prop(store=store)

        schema = engine.compile_schema(Person)
        assert "kittens" not in schema.fields
        assert schema.virtual_populates["kittens"] == {
            "ref": "Cat",
            "local_field": "_id",
            "foreign_field": "owner",
        }

    def test_incomplete_virtual_populate(self, store, engine):
        """Test virtual populates need all of their options."""
        class Person:
            kittens: list[str] = prop(local_field="_id", store=store)

        with pytest.raises(IncompleteVirtualPopulateError) as exc_info:
            engine.compile_schema(Person)
        assert exc_info.value.value == ["foreign_field", "ref"]

    def test_just_one_without_virtual_populate(self, store, engine, caplog):
        """Test just_one outside a virtual populate is reported."""
        class Person:
            cat: str = prop(just_one=True, store=store)

        with caplog.at_level(logging.WARNING):
            engine.compile_schema(Person)
        assert '"just_one"' in caplog.text


# =============================================================================
# Enums and cross-checks
# =============================================================================

class TestEnums:
    """Tests for enum handling."""

    def test_string_enum_annotation(self, store, engine):
        """Test an Enum annotation stores the base type and its values."""
        class Cat:
            color: Color = prop(store=store)

        assert engine.compile_schema(Cat).fields["color"] == {
            "type": str,
            "enum": ["red", "green"],
        }

    def test_number_enum_annotation(self, store, engine):
        """Test numeric Enum annotations."""
        class Cat:
            size: Size = prop(store=store)

        assert engine.compile_schema(Cat).fields["size"] == {"type": int, "enum": [1, 2]}

    def test_enum_list_kept(self, store, engine):
        """Test list enums are used as given."""
        class Cat:
            mood: str = prop(enum=["calm", "angry"], store=store)

        assert engine.compile_schema(Cat).fields["mood"]["enum"] == ["calm", "angry"]

    def test_enum_tuple(self, store, engine):
        """Test tuple enums become lists."""
        class Cat:
            mood: str = prop(enum=("calm", "angry"), store=store)

        assert engine.compile_schema(Cat).fields["mood"]["enum"] == ["calm", "angry"]

    def test_string_mapping(self, store, engine):
        """Test string mappings keep their values."""
        class Cat:
            mood: str = prop(enum={"CALM": "calm"}, store=store)

        assert engine.compile_schema(Cat).fields["mood"]["enum"] == ["calm"]

    def test_string_mapping_with_number(self, store, engine):
        """Test string fields reject numeric enum values."""
        class Cat:
            mood: str = prop(enum={"CALM": 1}, store=store)

        with pytest.raises(NotStringTypeError):
            engine.compile_schema(Cat)

    def test_number_mapping(self, store, engine):
        """Test number mappings keep only the numeric values."""
        class Cat:
            size: int = prop(enum={"SMALL": 0, "0": "SMALL", "LARGE": 1, "1": "LARGE"}, store=store)

        assert engine.compile_schema(Cat).fields["size"]["enum"] == [0, 1]

    def test_number_mapping_without_reverse_entry(self, store, engine):
        """Test number mappings need the value -> name entries."""
        class Cat:
            size: int = prop(enum={"SMALL": 0}, store=store)

        with pytest.raises(NotNumberTypeError):
            engine.compile_schema(Cat)

    def test_enum_on_other_type(self, store, engine):
        """Test enums on types other than str and numbers are rejected."""
        class Cat:
            flag: bool = prop(enum=Color, store=store)

        with pytest.raises(InvalidEnumTypeError):
            engine.compile_schema(Cat)

    def test_enum_wrong_container(self, store, engine):
        """Test enums must be lists, mappings or Enum classes."""
        class Cat:
            mood: str = prop(enum="calm", store=store)

        with pytest.raises(ExpectedTypeError):
            engine.compile_schema(Cat)

    def test_add_null_to_enum(self, store, engine):
        """Test None is added to the enum values."""
        class Cat:
            color: Color = prop(add_null_to_enum=True, store=store)

        definition = engine.compile_schema(Cat).fields["color"]
        assert definition["enum"] == ["red", "green", None]
        assert "add_null_to_enum" not in definition

    def test_add_null_to_enum_any_value(self, store, engine):
        """Test any value other than None adds None, even False."""
        class Cat:
            color: Color = prop(add_null_to_enum=False, store=store)
            size: str = prop(add_null_to_enum=None, store=store)

        fields = engine.compile_schema(Cat).fields
        assert fields["color"]["enum"] == ["red", "green", None]
        assert "enum" not in fields["size"]
        assert "add_null_to_enum" not in fields["size"]


class TestCrossChecks:
    """Tests for warnings about options that do not fit the type."""

    def test_number_options_on_string(self, store, engine, caplog):
        """Test number options on a string field are reported."""
        class Cat:
            name: str = prop(min=1, store=store)

        with caplog.at_level(logging.WARNING):
            schema = engine.compile_schema(Cat)
        assert 'Type of "Cat.name" is not a number, but includes number-validate options: min' in caplog.text
        assert schema.fields["name"]["min"] == 1

    def test_string_options_on_number(self, store, engine, caplog):
        """Test string options on a number field are reported."""
        class Cat:
            age: int = prop(trim=True, max_length=3, store=store)

        with caplog.at_level(logging.WARNING):
            engine.compile_schema(Cat)
        assert "string-validate options: max_length" in caplog.text
        assert "string-transform options: trim" in caplog.text

    def test_matching_options_are_quiet(self, store, engine, caplog):
        """Test fitting options produce no warning."""
        class Cat:
            name: str = prop(max_length=3, store=store)
            age: int = prop(max=30, store=store)

        with caplog.at_level(logging.WARNING):
            engine.compile_schema(Cat)
        assert "Type of" not in caplog.text


# =============================================================================
# Passthrough
# =============================================================================

class TestPassthrough:
    """Tests for raw definitions."""

    def test_passthrough_is_wrapped(self, store, engine):
        """Test indirect passthroughs are used as the element type."""
        raw = {"street": str, "zip": str}

        class Person:
            address: Any = prop(type=Passthrough(raw), required=True, store=store)

        assert engine.compile_schema(Person).fields["address"] == {"type": raw, "required": True}

    def test_direct_passthrough(self, store, engine):
        """Test direct passthroughs replace the whole definition."""
        raw = {"type": str, "custom": True}

        class Person:
            anything: Any = prop(type=Passthrough(raw, direct=True), required=True, store=store)

        assert engine.compile_schema(Person).fields["anything"] == raw

    def test_passthrough_array(self, store, engine):
        """Test passthroughs follow the field's kind."""
        raw = {"x": int}

        class Person:
            points: list = prop(type=Passthrough(raw), store=store)

        assert engine.compile_schema(Person).fields["points"] == {"type": [{"type": raw}]}


# =============================================================================
# Mixed fallback
# =============================================================================

class TestMixedFallback:
    """Tests for fields that fall back to Mixed."""

    def test_object_warns(self, store, engine, caplog):
        """Test untyped fields warn by default."""
        class Cat:
            data: Any = prop(store=store)

        with caplog.at_level(logging.WARNING):
            schema = engine.compile_schema(Cat)
        assert schema.fields["data"] == {"type": SchemaTypes.Mixed}
        assert 'Setting "Mixed" for field "Cat.data"' in caplog.text

    def test_unknown_class_becomes_mixed(self, store, engine, caplog):
        """Test classes without fields are stored as Mixed."""
        class Plain:
            pass

        class Cat:
            thing: Plain = prop(store=store)

        with caplog.at_level(logging.WARNING):
            schema = engine.compile_schema(Cat)
        assert schema.fields["thing"] == {"type": SchemaTypes.Mixed}
        assert 'field "Cat.thing"' in caplog.text

    def test_allow_is_silent(self, store, engine, caplog):
        """Test ALLOW suppresses the warning."""
        @model_options(options={"allow_mixed": Severity.ALLOW}, store=store)
        class Cat:
            data: Any = prop(store=store)

        with caplog.at_level(logging.WARNING):
            engine.compile_schema(Cat)
        assert "Mixed" not in caplog.text

    def test_error_raises(self, store, engine):
        """Test ERROR rejects the fallback."""
        @model_options(options={"allow_mixed": "ERROR"}, store=store)
        class Cat:
            data: object = prop(store=store)

        with pytest.raises(MixedNotAllowedError) as exc_info:
            engine.compile_schema(Cat)
        assert exc_info.value.key == "data"

    def test_global_severity(self):
        """Test the global severity applies to classes without their own."""
        store = MetadataStore(GlobalOptions(options=ClassOptions(allow_mixed=Severity.ERROR)))
        strict = SchemaEngine(store=store, registry=ClassRegistry())

        class Cat:
            data: Any = prop(store=store)

        with pytest.raises(MixedNotAllowedError):
            strict.compile_schema(Cat)

    def test_class_severity_overrides_global(self):
        """Test a class's own severity wins over the global one."""
        store = MetadataStore(GlobalOptions(options=ClassOptions(allow_mixed=Severity.ERROR)))
        strict = SchemaEngine(store=store, registry=ClassRegistry())

        @model_options(options={"allow_mixed": Severity.ALLOW}, store=store)
        class Cat:
            data: Any = prop(store=store)

        assert strict.compile_schema(Cat).fields["data"] == {"type": SchemaTypes.Mixed}


# =============================================================================
# Invalid declarations
# =============================================================================

class TestInvalidFields:
    """Tests for declarations that are rejected."""

    def test_self_reference(self, store, engine):
        """Test a field may not embed its own class."""
        class Node:
            children: list["Node"] = prop(store=store)

        with pytest.raises(SelfReferenceError) as exc_info:
            engine.compile_schema(Node)
        assert exc_info.value.class_name == "Node"
        assert exc_info.value.key == "children"

    def test_missing_type(self, store, engine):
        """Test fields without a type are rejected."""
        class Cat:
            name = prop(store=store)

        with pytest.raises(InvalidTypeError):
            engine.compile_schema(Cat)

    def test_unresolvable_annotation(self, store, engine):
        """Test annotations naming unknown classes are rejected."""
        class Cat:
            owner: "DoesNotExist" = prop(store=store)  # noqa: F821

        with pytest.raises(InvalidTypeError):
            engine.compile_schema(Cat)

    def test_non_string_key(self, store, engine):
        """Test field keys must be strings."""
        class Cat:
            pass

        store.add_field(FieldMetadata(owner=Cat, key=1, declared_type=str))

        with pytest.raises(SymbolKeyUnsupportedError):
            engine.compile_schema(Cat)

    def test_invalid_discriminator_entry(self, store, engine):
        """Test discriminator entries must be classes or mappings."""
        class Shape:
            kind: str = prop(store=store)

        class Drawing:
            shapes: list[Shape] = prop(discriminators=lambda: ["circle"], store=store)

        with pytest.raises(InvalidDiscriminatorError):
            engine.compile_schema(Drawing)

    def test_discriminators_must_be_single_list(self, store, engine):
        """Test nested discriminator lists are rejected."""
        class Shape:
            kind: str = prop(store=store)

        class Drawing:
            shapes: list[Shape] = prop(discriminators=lambda: [[Shape]], store=store)

        with pytest.raises(OptionConflictError):
            engine.compile_schema(Drawing)
