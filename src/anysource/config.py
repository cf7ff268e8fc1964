from __future__ import annotations

"""Configuration models.

CONTRACT
- Inputs: YAML file path (providers.yaml) or dictionary data
- Outputs (required):
  - Validated ProvidersFileConfig / ProviderConfig objects
  - ProviderRegistry built from a config
- Invariants:
  - Provider kinds are limited to PROVIDER_KINDS
  - Relative paths in provider options resolve against the config file's directory
  - Default config registers a single `Local` provider (safe: never creates sources)
- Failure:
  - Raises ValueError on invalid schema, unknown kind or unknown capability
"""

import os
from dataclasses import dataclass, field
from dataclasses import fields as dataclass_fields
from pathlib import Path
from typing import Any

import yaml

from .providers.base import Capability, ProviderInfo, parse_capability
from .providers.local import LOCAL_CAPABILITIES, LocalSourceProvider
from .registry import ProviderRegistry

CONFIG_ENV_VAR = "ANYSOURCE_CONFIG"
DEFAULT_CONFIG_DIR = Path(".anysource")
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "providers.yaml"
DEFAULT_SOURCES_FILE = "sources.yaml"

PROVIDER_KINDS: dict[str, type] = {"local": LocalSourceProvider}
_KIND_CAPABILITIES: dict[str, Capability] = {"local": LOCAL_CAPABILITIES}


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    kind: str = "local"
    enabled: bool = True
    capabilities: list[str] | None = None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProvidersFileConfig:
    providers: list[ProviderConfig]
    entry_points: bool = True
    base_dir: Path = Path(".")


PROVIDERS_SCHEMA = {
    "type": "object",
    "properties": {
        "providers": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "pattern": "^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$"},
                    "kind": {"type": "string", "enum": sorted(PROVIDER_KINDS)},
                    "enabled": {"type": "boolean"},
                    "capabilities": {"type": "array", "items": {"type": "string"}},
                    "options": {"type": "object"},
                },
                "required": ["name"],
            },
        },
        "entry_points": {"type": "boolean"},
    },
    "required": ["providers"],
}


def load_providers_file(path: Path) -> ProvidersFileConfig:
    import jsonschema  # lazy import

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}

    try:
        jsonschema.validate(instance=data, schema=PROVIDERS_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ValueError(f"Invalid providers.yaml schema: {e.message}") from e

    providers: list[ProviderConfig] = []
    for p in data.get("providers", []):
        caps = p.get("capabilities")
        providers.append(
            ProviderConfig(
                name=str(p["name"]),
                kind=str(p.get("kind", "local")),
                enabled=bool(p.get("enabled", True)),
                capabilities=[str(c) for c in caps] if caps is not None else None,
                options=dict(p.get("options", {}) or {}),
            )
        )
    return ProvidersFileConfig(
        providers=providers,
        entry_points=bool(data.get("entry_points", True)),
        base_dir=path.parent,
    )


def default_providers_config(base_dir: Path = DEFAULT_CONFIG_DIR) -> ProvidersFileConfig:
    return ProvidersFileConfig(
        providers=[
            ProviderConfig(name="Local", kind="local", options={"path": DEFAULT_SOURCES_FILE})
        ],
        base_dir=base_dir,
    )


def resolve_config_path(explicit: Path | None = None) -> Path | None:
    if explicit is not None:
        return explicit
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env)
    if DEFAULT_CONFIG_FILE.exists():
        return DEFAULT_CONFIG_FILE
    return None


def load_config(explicit: Path | None = None) -> ProvidersFileConfig:
    path = resolve_config_path(explicit)
    if path is None:
        return default_providers_config()
    if not path.exists():
        raise ValueError(f"Config file not found: {path}")
    return load_providers_file(path)


def _filter_provider_kwargs(cls: type, opts: dict[str, Any]) -> dict[str, Any]:
    allowed = {f.name for f in dataclass_fields(cls)}
    return {k: v for k, v in opts.items() if k in allowed}


def _capabilities_for(p: ProviderConfig) -> Capability:
    if p.capabilities is None:
        return _KIND_CAPABILITIES.get(p.kind, Capability.NONE)
    caps = Capability.NONE
    for c in p.capabilities:
        caps |= parse_capability(c)
    return caps


def _provider_for_config(p: ProviderConfig, base_dir: Path) -> LocalSourceProvider:
    if p.kind == "local":
        opts = _filter_provider_kwargs(LocalSourceProvider, p.options)
        path = Path(opts.pop("path", DEFAULT_SOURCES_FILE))
        opts["name"] = p.name
        return LocalSourceProvider(path=path if path.is_absolute() else base_dir / path, **opts)
    raise ValueError(f"Unknown provider kind: {p.kind}")


def build_registry(cfg: ProvidersFileConfig, *, entry_points: bool | None = None) -> ProviderRegistry:
    registry = ProviderRegistry()
    for p in cfg.providers:
        if not p.enabled:
            continue
        if p.kind not in PROVIDER_KINDS:
            raise ValueError(f"Unknown provider kind: {p.kind}")
        info = ProviderInfo(
            name=p.name,
            capabilities=_capabilities_for(p),
            module="anysource",
            description=f"{p.kind} provider",
        )
        registry.register(info, lambda p=p: _provider_for_config(p, cfg.base_dir))
    if (cfg.entry_points if entry_points is None else entry_points):
        registry.load_entry_points()
    return registry


if __name__ == "__main__":
    import argparse
    import sys

    parser = argparse.ArgumentParser(description="Config Loader CLI")
    parser.add_argument("--config", required=True, help="Path to providers.yaml")
    args = parser.parse_args()

    try:
        cfg = load_providers_file(Path(args.config))
        print(f"Loaded {len(cfg.providers)} providers.")
        for p in cfg.providers:
            print(f"- {p.name} ({p.kind}){'' if p.enabled else ' [disabled]'}")
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
