"""Class Registry mapping display names to classes and compiled models."""

from typing import TYPE_CHECKING, Any, Iterator

from schemaweaver.errors import FunctionCalledMoreThanSupportedError, ResolveNameError

if TYPE_CHECKING:
    from schemaweaver.schemas.assembler import CompiledSchema


class ClassRegistry:
    """Central registry of compiled classes.

    The registry keeps two maps:
    - display name -> class, filled for every compiled inheritance level
    - display name -> compiled model, filled when a model is cached
    """

    def __init__(self):
        self._constructors: dict[str, type] = {}
        self._models: dict[str, "CompiledSchema"] = {}

    def register(self, name: str, cls: type) -> None:
        """Record the class compiled under a display name (last write wins)."""
        self._constructors[name] = cls

    def get_class(self, name: str) -> type | None:
        return self._constructors.get(name)

    def add_model(self, name: str, schema: "CompiledSchema", cls: type) -> None:
        """Cache a compiled model under its display name.

        Raises:
            FunctionCalledMoreThanSupportedError: If the name is already taken
        """
        if name in self._models:
            raise FunctionCalledMoreThanSupportedError(
                "add_model", 1, f'a model named "{name}" already exists'
            )
        self._models[name] = schema
        self._constructors[name] = cls

    def get_model(self, name: str) -> "CompiledSchema | None":
        return self._models.get(name)

    def resolve_class(self, artifact: Any) -> type | None:
        """Find the class behind a name or a compiled artifact.

        Args:
            artifact: A display name, an object with a ``schema_name``
                attribute (a string or a callable returning one), or a
                CompiledSchema

        Returns:
            The class, or None if nothing is registered under the name

        Raises:
            ResolveNameError: If no name can be derived from the artifact
        """
        if isinstance(artifact, str):
            return self._constructors.get(artifact)

        schema_name = getattr(artifact, "schema_name", None)
        if isinstance(schema_name, str):
            return self._constructors.get(schema_name)
        if callable(schema_name):
            return self._constructors.get(schema_name())

        raise ResolveNameError(artifact)

    def delete(self, name: str) -> bool:
        """Remove a model and its class.

        Returns:
            True if something was removed, False otherwise
        """
        removed = self._models.pop(name, None) is not None
        removed = self._constructors.pop(name, None) is not None or removed
        return removed

    def list_models(self) -> list[str]:
        """List the names of all cached models."""
        return list(self._models.keys())

    def clear(self) -> None:
        """Clear all classes and models from the registry."""
        self._constructors.clear()
        self._models.clear()

    def __len__(self) -> int:
        """Return the number of cached models."""
        return len(self._models)

    def __iter__(self) -> Iterator["CompiledSchema"]:
        """Iterate over cached models."""
        return iter(list(self._models.values()))

    def __contains__(self, name: str) -> bool:
        """Check if a model name exists in the registry."""
        return name in self._models


_global_registry: ClassRegistry | None = None


def get_global_registry() -> ClassRegistry:
    """Get the global class registry singleton."""
    global _global_registry
    if _global_registry is None:
        _global_registry = ClassRegistry()
    return _global_registry
