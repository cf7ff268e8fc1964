from __future__ import annotations

"""Set-source dispatcher.

CONTRACT
- Inputs: Source name, optional location/trusted, pass_through, optional provider filter
- Outputs (required):
  - DispatchResult (success, errors, records)
- Invariants:
  - Providers are resolved before the request is built; resolution errors
    abort before any provider is touched
  - Exactly one SourceRequest per dispatch, shared by every provider call
  - Providers are called one at a time in resolution order; iteration stops at
    the first provider whose outcome is `succeeded`
  - A provider fault never prevents the next candidate from being called
  - When nothing succeeded (including no candidates), the last error is
    NoProviderSucceededError naming the target
- Failure:
  - CancellationSignal / KeyboardInterrupt propagate immediately
  - A failing record sink is reported as OutputSinkError; success still stands
  - ProviderNotFoundError propagates from resolution
"""

from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from .errors import (
    AnySourceError,
    CancellationSignal,
    NoProviderSucceededError,
    OutputSinkError,
    ProviderError,
)
from .providers.base import Capability
from .registry import ProviderInstance, ProviderRegistry
from .request import Outcome, SourceRequest
from .schemas import PackageSourceInfo
from .util.events import EventLog
from .util.names import new_dispatch_id


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    errors: list[AnySourceError] = field(default_factory=list)
    records: list[PackageSourceInfo] = field(default_factory=list)
    provider: str | None = None


@dataclass
class SourceDispatcher:
    registry: ProviderRegistry
    event_log: EventLog | None = None
    capability: Capability = Capability.SET_SOURCE

    def resolve(self, provider: str | None = None) -> list[ProviderInstance]:
        return self.registry.find_capable(self.capability, provider)

    def dispatch(
        self,
        name: str,
        location: str | None = None,
        trusted: bool | None = None,
        pass_through: bool = False,
        provider: str | None = None,
        sink: Callable[[PackageSourceInfo], None] | None = None,
    ) -> DispatchResult:
        candidates = self.resolve(provider)
        events = self.event_log.bind(new_dispatch_id()) if self.event_log else None
        if events:
            events.emit(
                "dispatch_start",
                name=name,
                location=location,
                trusted=trusted,
                pass_through=pass_through,
                candidates=[c.info.name for c in candidates],
            )

        request = SourceRequest(
            name=name, location=location, trusted=trusted, pass_through=pass_through, sink=sink
        )
        errors: list[AnySourceError] = []
        winner: str | None = None

        for inst in candidates:
            logger.debug(f"Calling '{inst.info.name}' provider.")
            request.provider_info = inst.info
            if events:
                events.emit("provider_call", provider=inst.info.name)

            try:
                outcome = self._invoke(inst, request)
            except ProviderError as err:
                logger.warning(f"Provider '{err.provider}' failed for '{name}': {err.message}")
                errors.append(err)
                if events:
                    events.emit("provider_error", provider=err.provider, message=err.message)
                continue

            if outcome.status == "failed":
                err = ProviderError(inst.info.name, outcome.reason or "Provider reported failure.")
                logger.warning(f"Provider '{err.provider}' failed for '{name}': {err.message}")
                errors.append(err)
                if events:
                    events.emit("provider_error", provider=err.provider, message=err.message)
            elif outcome.ok:
                self._merge(inst, request, outcome, errors)
                # Only the first provider to complete is authoritative.
                winner = inst.info.name
                break
            else:
                logger.debug(f"Provider '{inst.info.name}' declined '{name}'.")

        if not request.has_output:
            errors.append(NoProviderSucceededError(name))

        if events:
            events.emit(
                "dispatch_end",
                success=request.has_output,
                provider=winner,
                errors=[str(e) for e in errors],
            )
        return DispatchResult(
            success=request.has_output,
            errors=errors,
            records=list(request.records),
            provider=winner,
        )

    def _merge(
        self,
        inst: ProviderInstance,
        request: SourceRequest,
        outcome: Outcome,
        errors: list[AnySourceError],
    ) -> None:
        # The change is already persisted; a failing sink must not hide that.
        try:
            request.merge(outcome)
        except (CancellationSignal, KeyboardInterrupt):
            raise
        except Exception as e:
            logger.warning(f"Output sink failed for '{request.name}': {e}")
            errors.append(OutputSinkError(inst.info.name, str(e) or type(e).__name__, cause=e))

    def _invoke(self, inst: ProviderInstance, request: SourceRequest) -> Outcome:
        try:
            outcome = inst.set_source(request)
        except (CancellationSignal, KeyboardInterrupt):
            raise
        except Exception as e:
            raise ProviderError(inst.info.name, str(e) or type(e).__name__, cause=e) from e
        if not isinstance(outcome, Outcome):
            raise ProviderError(
                inst.info.name, f"Provider returned {type(outcome).__name__}, expected Outcome."
            )
        return outcome
