from __future__ import annotations

"""Front-end commands.

CONTRACT
- Inputs: Dispatcher, user-bound parameters, confirmation callback
- Outputs (required):
  - DispatchResult from exactly one dispatch call per confirmed request
  - What-if: the providers a request would be offered to, without dispatching
- Invariants:
  - Name is validated (non-empty, no wildcards) before confirmation
  - Nothing is dispatched when confirmation is declined
  - With several names, every name is validated before the first dispatch and
    each name is confirmed on its own; a declined name does not stop the rest
- Failure:
  - Raises ValueError on invalid input
  - Raises CancellationSignal when the confirmation callback returns False
"""

from typing import Callable, Iterable, Iterator

from loguru import logger

from .dispatcher import DispatchResult, SourceDispatcher
from .errors import CancellationSignal
from .registry import ProviderInstance
from .schemas import PackageSourceInfo
from .util.names import validate_provider_name, validate_source_name

ConfirmFn = Callable[[str], bool]


def set_package_source(
    dispatcher: SourceDispatcher,
    name: str,
    *,
    location: str | None = None,
    trusted: bool | None = None,
    provider: str | None = None,
    pass_through: bool = False,
    confirm: ConfirmFn | None = None,
    sink: Callable[[PackageSourceInfo], None] | None = None,
) -> DispatchResult:
    name = validate_source_name(name)
    if provider is not None:
        provider = validate_provider_name(provider)

    if confirm is not None and not confirm(name):
        raise CancellationSignal(f"Set package source '{name}' declined.")

    logger.info(f"Registering '{name}' source.")
    return dispatcher.dispatch(
        name,
        location=location,
        trusted=trusted,
        pass_through=pass_through,
        provider=provider,
        sink=sink,
    )


def what_if_package_source(
    dispatcher: SourceDispatcher,
    name: str,
    *,
    provider: str | None = None,
) -> list[ProviderInstance]:
    """Resolve the providers `name` would be offered to; no provider is called."""
    name = validate_source_name(name)
    if provider is not None:
        provider = validate_provider_name(provider)

    candidates = dispatcher.resolve(provider)
    via = ", ".join(c.info.name for c in candidates) or "no providers"
    logger.info(f"What if: Set package source '{name}' via {via}.")
    return candidates


def set_package_sources(
    dispatcher: SourceDispatcher,
    names: Iterable[str],
    *,
    location: str | None = None,
    trusted: bool | None = None,
    provider: str | None = None,
    pass_through: bool = False,
    confirm: ConfirmFn | None = None,
    sink: Callable[[PackageSourceInfo], None] | None = None,
) -> Iterator[tuple[str, DispatchResult | None]]:
    """Set several sources, one dispatch per confirmed name.

    Yields (name, result) in input order; result is None for a declined name.
    Raises ValueError before anything is dispatched if any name is invalid.
    """
    names = [validate_source_name(n) for n in names]
    if provider is not None:
        provider = validate_provider_name(provider)

    def _run() -> Iterator[tuple[str, DispatchResult | None]]:
        for name in names:
            if confirm is not None and not confirm(name):
                logger.info(f"Skipped '{name}' source.")
                yield name, None
                continue
            yield name, set_package_source(
                dispatcher,
                name,
                location=location,
                trusted=trusted,
                provider=provider,
                pass_through=pass_through,
                sink=sink,
            )

    return _run()
