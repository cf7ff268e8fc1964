from __future__ import annotations

"""Provider protocol definition.

CONTRACT
- Inputs: SourceRequest (name, location?, trusted?, pass_through, provider_info)
- Outputs (required):
  - Outcome (succeeded(record) | declined() | failed(reason))
- Invariants:
  - A provider never mutates the request; the dispatcher merges the outcome
  - Declining (target not managed by this provider) is not an error
  - Fields left as None in the request keep their stored/default value
- Failure:
  - Returns Outcome.failed(reason) for expected failures
  - May raise on unexpected faults; the dispatcher isolates them
"""

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..request import Outcome, SourceRequest


class Capability(enum.Flag):
    NONE = 0
    FIND_PACKAGE = enum.auto()
    GET_PACKAGE = enum.auto()
    INSTALL_PACKAGE = enum.auto()
    PUBLISH_PACKAGE = enum.auto()
    SAVE_PACKAGE = enum.auto()
    UNINSTALL_PACKAGE = enum.auto()
    UPDATE_PACKAGE = enum.auto()
    GET_SOURCE = enum.auto()
    REGISTER_SOURCE = enum.auto()
    SET_SOURCE = enum.auto()
    UNREGISTER_SOURCE = enum.auto()


def parse_capability(text: str) -> Capability:
    """Parse `set-source` / `SET_SOURCE` / `SetSource` into a Capability."""
    key = text.strip().replace("-", "_").upper()
    if key not in Capability.__members__:
        # SetSource -> SET_SOURCE
        key = "".join(f"_{c}" if c.isupper() and i else c for i, c in enumerate(text.strip())).upper()
    try:
        return Capability[key]
    except KeyError as exc:
        raise ValueError(f"Unknown capability: {text}") from exc


def format_capabilities(caps: Capability) -> str:
    names = [c.name.lower().replace("_", "-") for c in Capability if c and c in caps]
    return ", ".join(names)


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    capabilities: Capability = Capability.NONE
    module: str = ""
    version: str = "0.0.0"
    description: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.module}\\{self.name}" if self.module else self.name

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


@runtime_checkable
class SourceProvider(Protocol):
    def set_source(self, request: SourceRequest) -> Outcome: ...
