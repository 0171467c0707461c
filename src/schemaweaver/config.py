"""Configuration models and global option handling.

Options come from three places, weakest first: the process-wide
``GlobalOptions`` (optionally seeded from a YAML file or the environment),
``model_options`` on a class or one of its ancestors, and overwrite options
passed at the compile call site.
"""

import logging
import os
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemaweaver.utils.helpers import merge_dicts

if TYPE_CHECKING:
    from schemaweaver.metadata.store import MetadataStore

logger = logging.getLogger(__name__)

ENV_ALLOW_MIXED = "SCHEMAWEAVER_ALLOW_MIXED"


class Severity(IntEnum):
    """How strictly a fallback to the untyped Mixed type is treated."""

    ALLOW = 0
    WARN = 1
    ERROR = 2


def map_value_to_severity(value: Any) -> Severity:
    """Map a severity name or number to a Severity.

    Accepts ``Severity`` members, their names in any case ("warn"), and their
    numeric values as ``int`` or ``str`` ("1").

    Raises:
        ValueError: If the value names no severity
    """
    if isinstance(value, Severity):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid severity: {value!r}")
    if isinstance(value, int):
        return Severity(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return Severity(int(text))
        try:
            return Severity[text.upper()]
        except KeyError:
            pass
    raise ValueError(f"Invalid severity: {value!r}")


class ClassOptions(BaseModel):
    """Per-class options that steer naming and the ambiguity policy."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    custom_name: str | Callable[..., str] | None = Field(
        default=None,
        description="Display name, or a callable receiving the merged options",
    )
    automatic_name: bool = Field(
        default=False,
        description="Derive the display name as <ClassName>_<suffix>",
    )
    allow_mixed: Severity | None = Field(
        default=None,
        description="Severity of falling back to Mixed (inherits when unset)",
    )

    @field_validator("allow_mixed", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> Severity | None:
        if value is None:
            return None
        return map_value_to_severity(value)


class ModelOptions(BaseModel):
    """Options attached to a class with ``model_options``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    schema_options: dict[str, Any] = Field(default_factory=dict)
    options: ClassOptions = Field(default_factory=ClassOptions)

    def merged_with(self, other: "ModelOptions | Mapping[str, Any]") -> "ModelOptions":
        """Return a copy with other's values deep-merged over this one's."""
        if isinstance(other, ModelOptions):
            override = other.model_dump(exclude_unset=True)
            override["options"] = other.options.model_dump(exclude_unset=True)
        else:
            override = dict(other)
        base = self.model_dump()
        return ModelOptions.model_validate(merge_dicts(base, override))


class GlobalOptions(BaseModel):
    """Process-wide defaults."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    schema_options: dict[str, Any] = Field(default_factory=dict)
    options: ClassOptions = Field(
        default_factory=lambda: ClassOptions(allow_mixed=Severity.WARN)
    )

    def as_model_options(self) -> ModelOptions:
        return ModelOptions(
            schema_options=dict(self.schema_options),
            options=self.options.model_copy(),
        )


def _resolve_store(store: "MetadataStore | None") -> "MetadataStore":
    from schemaweaver.metadata.store import get_global_store

    return store if store is not None else get_global_store()


def set_global_options(
    options: GlobalOptions | Mapping[str, Any],
    store: "MetadataStore | None" = None,
) -> GlobalOptions:
    """Merge new values into the global options.

    Each section (``options``, ``schema_options``) is merged key by key, so
    setting one option leaves the others in place.

    Args:
        options: New values as a GlobalOptions or a plain mapping
        store: Store to update (default: the global store)

    Returns:
        The resulting global options
    """
    store = _resolve_store(store)

    if isinstance(options, GlobalOptions):
        override = options.model_dump(exclude_unset=True)
        if "options" in override:
            override["options"] = options.options.model_dump(exclude_unset=True)
    else:
        override = dict(options)

    current = store.global_options.model_dump()
    merged = dict(current)
    for section, values in override.items():
        if isinstance(values, Mapping) and isinstance(current.get(section), dict):
            merged[section] = {**current[section], **values}
        else:
            merged[section] = values

    store.global_options = GlobalOptions.model_validate(merged)
    logger.debug("Global options set to %s", store.global_options)
    return store.global_options


def parse_env(
    environ: Mapping[str, str] | None = None,
    store: "MetadataStore | None" = None,
) -> GlobalOptions:
    """Apply global options found in the environment.

    Reads ``SCHEMAWEAVER_ALLOW_MIXED`` (a severity name or number).
    """
    environ = os.environ if environ is None else environ
    store = _resolve_store(store)

    value = environ.get(ENV_ALLOW_MIXED)
    if not value:
        return store.global_options

    try:
        severity = map_value_to_severity(value)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", ENV_ALLOW_MIXED, value)
        return store.global_options

    logger.info("Using allow_mixed=%s from %s", severity.name, ENV_ALLOW_MIXED)
    return set_global_options({"options": {"allow_mixed": severity}}, store)


def load_global_options(
    path: Path | str,
    store: "MetadataStore | None" = None,
) -> GlobalOptions:
    """Load global options from a YAML file and apply them.

    The file holds the same sections as GlobalOptions::

        options:
          allow_mixed: ERROR
        schema_options:
          timestamps: true

    Args:
        path: Path to the YAML file
        store: Store to update (default: the global store)

    Returns:
        The resulting global options
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Options file must contain a mapping: {path}")

    unknown = set(data) - {"options", "schema_options"}
    if unknown:
        raise ValueError(f"Unknown sections in {path}: {', '.join(sorted(unknown))}")

    return set_global_options(data, store)
