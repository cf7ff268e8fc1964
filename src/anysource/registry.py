from __future__ import annotations

"""Provider registry and resolution.

CONTRACT
- Inputs: ProviderInfo + factory pairs, capability, optional provider filter
- Outputs (required):
  - Ordered list of ProviderInstance (registration order)
- Invariants:
  - Resolution is read-only; identical calls over unchanged state return the
    same ordered sequence
  - Name lookups are case-insensitive
  - Wildcard expansion is a pure function over registered names
  - A wildcard filter matching nothing yields an empty list, not an error
- Failure:
  - Raises ProviderNotFoundError for an unknown concrete name or a provider
    lacking the requested capability
  - Raises ValueError on duplicate registration
"""

import fnmatch
import importlib.metadata
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable

from loguru import logger

from .errors import ProviderNotFoundError
from .providers.base import Capability, ProviderInfo, SourceProvider, format_capabilities
from .request import Outcome, SourceRequest
from .util.names import has_wildcard, validate_provider_name

ENTRY_POINT_GROUP = "anysource.providers"

ProviderFactory = Callable[[], SourceProvider]


def expand_wildcard(pattern: str, names: Iterable[str]) -> list[str]:
    """Return the names matching a glob pattern, case-insensitive, in input order."""
    pat = pattern.lower()
    return [n for n in names if fnmatch.fnmatchcase(n.lower(), pat)]


@dataclass
class ProviderInstance:
    """A registered provider: metadata plus a lazily built implementation."""

    info: ProviderInfo
    factory: ProviderFactory = field(repr=False)
    _provider: SourceProvider | None = field(default=None, init=False, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def provider(self) -> SourceProvider:
        # Built at most once, even when resolved from several threads.
        if self._provider is None:
            with self._lock:
                if self._provider is None:
                    self._provider = self.factory()
        return self._provider

    def set_source(self, request: SourceRequest) -> Outcome:
        return self.provider.set_source(request)


class ProviderRegistry:
    def __init__(self) -> None:
        self._instances: dict[str, ProviderInstance] = {}

    def register(self, info: ProviderInfo, factory: ProviderFactory) -> ProviderInstance:
        key = info.name.lower()
        if key in self._instances:
            raise ValueError(f"Provider already registered: {info.name}")
        inst = ProviderInstance(info=info, factory=factory)
        self._instances[key] = inst
        logger.debug(f"Registered provider '{info.name}' ({format_capabilities(info.capabilities)})")
        return inst

    def names(self) -> list[str]:
        return [inst.info.name for inst in self._instances.values()]

    def all(self) -> list[ProviderInstance]:
        return list(self._instances.values())

    def find_by_name(self, provider: str) -> ProviderInstance:
        inst = self._instances.get(provider.lower())
        if inst is None:
            raise ProviderNotFoundError(provider)
        return inst

    def find_capable(self, capability: Capability, provider: str | None = None) -> list[ProviderInstance]:
        if provider is None:
            return [i for i in self._instances.values() if i.info.supports(capability)]

        provider = validate_provider_name(provider)
        if has_wildcard(provider):
            matched = expand_wildcard(provider, self.names())
            return [
                inst
                for inst in (self.find_by_name(n) for n in matched)
                if inst.info.supports(capability)
            ]

        inst = self.find_by_name(provider)
        if not inst.info.supports(capability):
            raise ProviderNotFoundError(
                inst.info.name, f"does not support {format_capabilities(capability)}"
            )
        return [inst]

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> list[str]:
        """Register providers exposed by installed packages.

        A plugin package declares, in its pyproject.toml:

            [project.entry-points."anysource.providers"]
            my_provider = "my_package.provider:create_provider"

        The entry point is called with no arguments and must return an object
        implementing `set_source` and carrying a ProviderInfo as `info`.
        Broken plugins are logged and skipped.
        """
        loaded: list[str] = []
        for ep in importlib.metadata.entry_points(group=group):
            if ep.name.lower() in self._instances:
                continue
            try:
                plugin = ep.load()()
            except Exception as e:
                logger.warning(f"Failed to load provider entry point '{ep.name}': {e}")
                continue
            info = getattr(plugin, "info", None)
            if not isinstance(info, ProviderInfo) or not isinstance(plugin, SourceProvider):
                logger.warning(f"Entry point '{ep.name}' does not implement the provider protocol")
                continue
            if info.name.lower() in self._instances:
                logger.debug(f"Provider '{info.name}' already registered; skipping entry point")
                continue
            self.register(info, lambda plugin=plugin: plugin)
            loaded.append(info.name)
        return loaded
