"""Main CLI entry point for schemaweaver.

Compiles model classes from importable modules and prints the result.
"""

from typing import Any
import importlib
import inspect
import json
import logging
import sys

import click
import yaml
from rich.console import Console
from rich.table import Table
from rich.markup import escape
from rich.panel import Panel

from schemaweaver import __version__
from schemaweaver.config import load_global_options, map_value_to_severity, parse_env, set_global_options
from schemaweaver.engine.schema_engine import SchemaEngine, get_global_engine
from schemaweaver.log_settings import enable_console_logging, logger as package_logger
from schemaweaver.schemas.assembler import CompiledSchema
from schemaweaver.utils.helpers import flatten_dict, to_string_no_fail

console = Console()


class _WarningCollector(logging.Handler):
    """Keeps the warnings logged while a command runs."""

    def __init__(self):
        super().__init__(level=logging.WARNING)
        self.messages: list[str] = []
        self.console_handler: logging.Handler | None = None

    def emit(self, record: logging.LogRecord) -> None:
        self.messages.append(record.getMessage())


@click.group()
@click.version_option(version=__version__, prog_name="schemaweaver")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """schemaweaver - Compile annotated classes into persistence schemas.

    Fields declared with ``prop`` and class metadata attached with the
    decorators are turned into schema definitions, one inheritance level
    at a time.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command("compile")
@click.argument("target")
@click.option("--format", "-f", type=click.Choice(["table", "json", "yaml"]), default="table", help="Output format")
@click.option("--allow-mixed", type=click.Choice(["ALLOW", "WARN", "ERROR"], case_sensitive=False), help="Severity for fields falling back to Mixed")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="YAML file with global options")
@click.pass_context
def compile_command(
    ctx: click.Context,
    target: str,
    format: str,
    allow_mixed: str | None,
    config_path: str | None,
) -> None:
    """Compile one class and print its schema.

    TARGET is the class to compile, as ``package.module:ClassName``.
    """
    verbose = ctx.obj.get("verbose", False)
    collector = _attach_collector(verbose)

    try:
        engine = get_global_engine()
        _apply_options(engine, allow_mixed, config_path)

        cls = _load_target(target)
        schema = engine.compile_schema(cls)

        if format == "json":
            click.echo(json.dumps(_plain(schema.to_dict()), indent=2))
        elif format == "yaml":
            click.echo(yaml.safe_dump(_plain(schema.to_dict()), sort_keys=False))
        else:
            _print_schema(schema)

        _print_warnings(collector)

    except Exception as e:
        _print_warnings(collector)
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        sys.exit(1)
    finally:
        _detach(collector)


@cli.command()
@click.argument("module")
@click.option("--allow-mixed", type=click.Choice(["ALLOW", "WARN", "ERROR"], case_sensitive=False), help="Severity for fields falling back to Mixed")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="YAML file with global options")
@click.pass_context
def check(ctx: click.Context, module: str, allow_mixed: str | None, config_path: str | None) -> None:
    """Compile every model class defined in a module.

    MODULE is the dotted name of an importable module.
    """
    verbose = ctx.obj.get("verbose", False)
    collector = _attach_collector(verbose)

    try:
        engine = get_global_engine()
        _apply_options(engine, allow_mixed, config_path)

        imported = importlib.import_module(module)
        classes = [
            cls for cls in engine.store.classes()
            if cls.__module__ == imported.__name__
        ]
    except Exception as e:
        _detach(collector)
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    if not classes:
        _detach(collector)
        console.print(f"[yellow]No model classes found in {module}[/yellow]")
        return

    table = Table(title=f"Model classes in {module}")
    table.add_column("Class", style="cyan")
    table.add_column("Name")
    table.add_column("Fields", justify="right")
    table.add_column("Status")

    failures = 0
    for cls in classes:
        try:
            schema = engine.compile_schema(cls)
        except Exception as e:
            failures += 1
            table.add_row(cls.__name__, "-", "-", f"[red]{type(e).__name__}: {escape(str(e))}[/red]")
            if verbose:
                import traceback
                console.print(traceback.format_exc())
            continue
        table.add_row(cls.__name__, schema.name, str(len(schema.fields)), "[green]ok[/green]")

    console.print(table)
    _print_warnings(collector)
    _detach(collector)

    if failures:
        console.print(f"[red]{failures} of {len(classes)} classes failed to compile[/red]")
        sys.exit(1)

    console.print(f"[green]All {len(classes)} classes compiled[/green]")


def _attach_collector(verbose: bool) -> _WarningCollector:
    collector = _WarningCollector()
    package_logger.addHandler(collector)
    if verbose:
        collector.console_handler = enable_console_logging(logging.DEBUG)
    return collector


def _detach(collector: _WarningCollector) -> None:
    package_logger.removeHandler(collector)
    if collector.console_handler is not None:
        package_logger.removeHandler(collector.console_handler)


def _apply_options(engine: SchemaEngine, allow_mixed: str | None, config_path: str | None) -> None:
    """Apply global options: environment first, then the file, then the flag."""
    parse_env(store=engine.store)
    if config_path:
        load_global_options(config_path, store=engine.store)
    if allow_mixed:
        set_global_options(
            {"options": {"allow_mixed": map_value_to_severity(allow_mixed)}},
            store=engine.store,
        )


def _load_target(target: str) -> type:
    """Import ``package.module:ClassName`` and return the class."""
    module_name, sep, class_name = target.partition(":")
    if not sep or not module_name or not class_name:
        raise ValueError(f"Target must look like package.module:ClassName, got {target!r}")

    module = importlib.import_module(module_name)
    cls = getattr(module, class_name, None)
    if not inspect.isclass(cls):
        raise ValueError(f"{class_name!r} in {module_name} is not a class")
    return cls


def _plain(value: Any) -> Any:
    """Make a described schema safe for JSON and YAML output."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return to_string_no_fail(value)


def _print_schema(schema: CompiledSchema) -> None:
    """Print a compiled schema as tables."""
    data = schema.to_dict()

    table = Table(title=f"Schema: {schema.name}")
    table.add_column("Field", style="cyan")
    table.add_column("Definition")

    for key, definition in data["fields"].items():
        if isinstance(definition, dict):
            flat = flatten_dict(definition)
            rendered = ", ".join(f"{k}={_render(v)}" for k, v in flat.items())
        else:
            rendered = _render(definition)
        table.add_row(key, escape(rendered))

    console.print(table)

    extras = [
        f"{label}: {len(data[label])}"
        for label in ("indexes", "pre_hooks", "post_hooks", "virtual_populates", "plugins")
        if data[label]
    ]
    if data["options"]:
        extras.insert(0, "options: " + ", ".join(f"{k}={v}" for k, v in data["options"].items()))

    console.print(Panel.fit(
        escape("\n".join(extras)) if extras else "No schema options or class metadata",
        title=schema.name,
    ))


def _render(value: Any) -> str:
    return value if isinstance(value, str) else to_string_no_fail(value)


def _print_warnings(collector: _WarningCollector) -> None:
    for message in collector.messages:
        console.print(f"[yellow]Warning: {escape(message)}[/yellow]")
    collector.messages.clear()


if __name__ == "__main__":
    cli()
