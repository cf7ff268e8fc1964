from __future__ import annotations

import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from ..request import Outcome, SourceRequest
from ..schemas import validate_source_info
from .base import Capability, ProviderInfo

LOCAL_CAPABILITIES = Capability.GET_SOURCE | Capability.SET_SOURCE | Capability.REGISTER_SOURCE


@dataclass
class LocalSourceProvider:
    """File-backed provider.

    CONTRACT
    - Inputs: SourceRequest
    - Outputs:
      - Outcome.succeeded(PackageSourceInfo) after writing the YAML sources file
      - Outcome.declined() for names not in the file (unless create_missing)
    - Invariants:
      - File layout: `sources: {<name>: {location: str, trusted: bool}}`
      - Fields left as None in the request keep their stored value
      - A source never ends up without a location
      - Read-modify-write of the file is serialized per provider; saves are
        atomic (temp file + os.replace)
    - Failure:
      - Raises ValueError on a malformed sources file
      - Raises OSError if the file cannot be written
    """

    path: Path
    name: str = "Local"
    create_missing: bool = False
    default_trusted: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            name=self.name,
            capabilities=LOCAL_CAPABILITIES,
            module="anysource",
            description=f"Sources stored in {self.path}",
        )

    def load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        sources = data.get("sources", {}) if isinstance(data, dict) else None
        if not isinstance(sources, dict):
            raise ValueError(f"Invalid sources file (expected a 'sources' mapping): {self.path}")
        return sources

    def save(self, sources: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump({"sources": sources}, f, sort_keys=False)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def set_source(self, request: SourceRequest) -> Outcome:
        with self._lock:
            return self._set_source(request)

    def _set_source(self, request: SourceRequest) -> Outcome:
        sources = self.load()
        entry = sources.get(request.name)
        if entry is None:
            if not self.create_missing:
                logger.debug(f"{self.name}: '{request.name}' is not a managed source")
                return Outcome.declined()
            entry = {"location": "", "trusted": self.default_trusted}

        entry = dict(entry)
        if request.location is not None:
            entry["location"] = request.location
        if request.trusted is not None:
            entry["trusted"] = request.trusted
        if not entry.get("location"):
            return Outcome.failed(f"Source '{request.name}' has no location.")

        provider = request.provider_info.name if request.provider_info else self.name
        ok, info, err = validate_source_info(
            {
                "name": request.name,
                "location": entry["location"],
                "trusted": entry.get("trusted", False),
                "provider": provider,
            }
        )
        if not ok or info is None:
            return Outcome.failed(err)

        sources[request.name] = {"location": info.location, "trusted": info.trusted}
        self.save(sources)
        return Outcome.succeeded(info)


if __name__ == "__main__":
    import argparse
    import json
    import sys

    parser = argparse.ArgumentParser(description="Local Source Provider CLI")
    parser.add_argument("--path", required=True, help="Path to sources YAML")
    parser.add_argument("--name", required=True, help="Source name")
    parser.add_argument("--location", help="Source location")
    args = parser.parse_args()

    try:
        provider = LocalSourceProvider(Path(args.path), create_missing=True)
        res = provider.set_source(
            SourceRequest(name=args.name, location=args.location, pass_through=True)
        )
        print(json.dumps({
            "status": res.status,
            "reason": res.reason,
            "record": res.record.model_dump() if res.record else None,
        }, indent=2, ensure_ascii=False))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
