"""CLI entrypoint.

Commands:
- anysource set NAME... [--what-if]
- anysource providers

CONTRACT
- Inputs: Command line arguments (parsed by Typer)
- Outputs (required):
  - Exit code 0 when every named source was set, 1 when any was not (no
    provider set it, its confirmation was declined, or resolution failed)
  - --what-if prints the providers each name would be offered to and exits 0
  - Pass-through records printed to stdout; provider errors printed to stderr
- Invariants:
  - Asks for confirmation before dispatching unless --yes is given
  - Dispatches exactly once per confirmed name; never dispatches under --what-if
- Failure:
  - Invalid arguments raise Typer BadParameter
  - Declining every name raises typer.Abort
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .commands import set_package_sources, what_if_package_source
from .config import build_registry, load_config
from .dispatcher import DispatchResult, SourceDispatcher
from .errors import CancellationSignal, ProviderNotFoundError
from .providers.base import Capability, format_capabilities, parse_capability
from .registry import ProviderRegistry
from .schemas import PackageSourceInfo, error_record
from .util.events import EventLog

app = typer.Typer(add_completion=False, help="Set package sources through pluggable providers.")

console = Console()
err_console = Console(stderr=True, soft_wrap=True)


def _version_callback(value: bool):
    if value:
        from . import __version__

        console.print(f"anysource version: {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show provider calls."),
):
    _configure_logging(verbose)


_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Providers YAML file (default: $ANYSOURCE_CONFIG or .anysource/providers.yaml).",
)


def _load_registry(config: Path | None) -> ProviderRegistry:
    try:
        return build_registry(load_config(config))
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--config") from e


def _sources_table(records: list[PackageSourceInfo]) -> Table:
    table = Table(title="Package sources")
    table.add_column("Name")
    table.add_column("Location")
    table.add_column("Trusted")
    table.add_column("Provider")
    for r in records:
        table.add_row(r.name, r.location, str(r.trusted), r.provider)
    return table


def _report(name: str, result: DispatchResult, json_output: bool) -> None:
    for err in result.errors:
        rec = error_record(err, name)
        who = f" ({rec.provider})" if rec.provider else ""
        err_console.print(f"[red]{rec.kind}[/red]{escape(who)}: {escape(rec.message)}")

    if result.records:
        if json_output:
            for r in result.records:
                console.print_json(r.model_dump_json())
        else:
            console.print(_sources_table(result.records))


@app.command("set")
def set_source(
    names: list[str] = typer.Argument(..., help="Source names (no wildcards)."),
    location: str | None = typer.Option(None, "--location", help="New source location."),
    trusted: bool | None = typer.Option(
        None, "--trusted/--untrusted", help="Mark the source trusted or untrusted."
    ),
    provider: str | None = typer.Option(
        None, "--provider", help="Provider name or wildcard pattern."
    ),
    pass_through: bool = typer.Option(False, "--passthru", help="Print the updated source."),
    json_output: bool = typer.Option(False, "--json", help="Print records as JSON."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    what_if: bool = typer.Option(
        False, "--what-if", help="Show which providers would be called; change nothing."
    ),
    config: Path | None = _CONFIG_OPTION,
    event_log: Path | None = typer.Option(None, "--event-log", help="Append JSONL dispatch events."),
) -> None:
    """Change the location or trust of registered package sources."""
    registry = _load_registry(config)
    dispatcher = SourceDispatcher(registry, event_log=EventLog(event_log) if event_log else None)

    def _confirm(n: str) -> bool:
        return typer.confirm(f"Set package source '{n}'?")

    succeeded = 0
    skipped = 0
    try:
        if what_if:
            for n in names:
                candidates = what_if_package_source(dispatcher, n, provider=provider)
                via = ", ".join(c.info.name for c in candidates) or "no providers"
                console.print(f"What if: Set package source '{escape(n)}' via {escape(via)}")
            return

        for n, result in set_package_sources(
            dispatcher,
            names,
            location=location,
            trusted=trusted,
            provider=provider,
            pass_through=pass_through,
            confirm=None if yes else _confirm,
        ):
            if result is None:
                skipped += 1
                err_console.print(f"Skipped '{escape(n)}'.")
                continue
            _report(n, result, json_output)
            if result.success:
                succeeded += 1
    except CancellationSignal:
        raise typer.Abort()
    except ProviderNotFoundError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    if skipped == len(names):
        raise typer.Abort()
    if succeeded < len(names):
        raise typer.Exit(code=1)


@app.command("providers")
def list_providers(
    capability: str | None = typer.Option(
        None, "--capability", help="Only providers declaring this capability (e.g. set-source)."
    ),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """List registered providers."""
    registry = _load_registry(config)
    cap = Capability.NONE
    if capability:
        try:
            cap = parse_capability(capability)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--capability") from e

    table = Table(title="Providers")
    table.add_column("Name")
    table.add_column("Module")
    table.add_column("Version")
    table.add_column("Capabilities")
    for inst in registry.find_capable(cap):
        info = inst.info
        table.add_row(info.name, info.module, info.version, format_capabilities(info.capabilities))
    console.print(table)


if __name__ == "__main__":
    app()
