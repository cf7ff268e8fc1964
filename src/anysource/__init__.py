"""anysource package.

Simple API:

    import anysource

    # Point an existing source at a new feed
    result = anysource.set_source("pkgs.foo", location="https://example/feed", trusted=True)
    result.success, result.errors

    # Only ask one provider
    anysource.set_source("pkgs.foo", trusted=False, provider="Local")
"""

from pathlib import Path
from typing import Optional

from .commands import set_package_source, set_package_sources, what_if_package_source
from .config import build_registry, load_config
from .dispatcher import DispatchResult, SourceDispatcher
from .errors import (
    AnySourceError,
    CancellationSignal,
    NoProviderSucceededError,
    OutputSinkError,
    ProviderError,
    ProviderNotFoundError,
)
from .providers.base import Capability, ProviderInfo, SourceProvider
from .registry import ProviderRegistry
from .request import Outcome, SourceRequest
from .schemas import PackageSourceInfo

__version__ = "0.1.0"


def set_source(
    name: str,
    *,
    location: Optional[str] = None,
    trusted: Optional[bool] = None,
    provider: Optional[str] = None,
    pass_through: bool = False,
    config: Optional[str | Path] = None,
) -> DispatchResult:
    """Set a package source using the configured providers.

    Args:
        name: Source name (no wildcards)
        location: New location; None leaves it unchanged
        trusted: New trust flag; None leaves it unchanged
        provider: Provider name or wildcard pattern; None asks every capable provider
        pass_through: Collect the updated source records in the result
        config: Optional path to providers.yaml

    Returns:
        DispatchResult with success, errors, records
    """
    registry = build_registry(load_config(Path(config) if config else None))
    return set_package_source(
        SourceDispatcher(registry),
        name,
        location=location,
        trusted=trusted,
        provider=provider,
        pass_through=pass_through,
    )


__all__ = [
    "set_source",
    "set_package_source",
    "set_package_sources",
    "what_if_package_source",
    "AnySourceError",
    "CancellationSignal",
    "Capability",
    "DispatchResult",
    "NoProviderSucceededError",
    "OutputSinkError",
    "Outcome",
    "PackageSourceInfo",
    "ProviderError",
    "ProviderInfo",
    "ProviderNotFoundError",
    "ProviderRegistry",
    "SourceDispatcher",
    "SourceProvider",
    "SourceRequest",
]
