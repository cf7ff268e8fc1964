from __future__ import annotations

"""Shared request and per-provider outcome.

CONTRACT
- Inputs: Source name, optional location, optional trusted, pass_through
- Outputs (required):
  - SourceRequest shared by every provider call of one dispatch
  - Outcome returned by each provider call
- Invariants:
  - name/location/trusted/pass_through are fixed once the request is built
  - has_output is monotonic (False -> True, never reset)
  - has_output means "a provider completed the operation"; records are only
    collected when pass_through is set
- Failure:
  - Raises AttributeError on attempts to change fixed fields or reset has_output
  - A sink exception escapes merge with has_output already set and the record
    already collected
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Literal

from .schemas import PackageSourceInfo

if TYPE_CHECKING:
    from .providers.base import ProviderInfo

OutcomeStatus = Literal["succeeded", "declined", "failed"]

_FIXED_FIELDS = frozenset({"name", "location", "trusted", "pass_through"})


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus
    record: PackageSourceInfo | None = None
    reason: str = ""

    @classmethod
    def succeeded(cls, record: PackageSourceInfo | None = None) -> Outcome:
        return cls("succeeded", record=record)

    @classmethod
    def declined(cls) -> Outcome:
        return cls("declined")

    @classmethod
    def failed(cls, reason: str) -> Outcome:
        return cls("failed", reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"


@dataclass
class SourceRequest:
    name: str
    location: str | None = None
    trusted: bool | None = None
    pass_through: bool = False
    provider_info: ProviderInfo | None = None
    has_output: bool = False
    records: list[PackageSourceInfo] = field(default_factory=list)
    sink: Callable[[PackageSourceInfo], None] | None = field(default=None, repr=False)

    def __setattr__(self, key: str, value: Any) -> None:
        if key in _FIXED_FIELDS and key in self.__dict__:
            raise AttributeError(f"SourceRequest.{key} is fixed for the lifetime of a dispatch")
        if key == "has_output" and self.__dict__.get("has_output") and not value:
            raise AttributeError("SourceRequest.has_output cannot be reset")
        super().__setattr__(key, value)

    def merge(self, outcome: Outcome) -> bool:
        """Fold a provider outcome into the request. Returns True on success."""
        if not outcome.ok:
            return False
        self.has_output = True
        if self.pass_through and outcome.record is not None:
            self.records.append(outcome.record)
            if self.sink is not None:
                self.sink(outcome.record)
        return True
