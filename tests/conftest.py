import pytest
from loguru import logger

from anysource.providers.base import Capability, ProviderInfo
from anysource.registry import ProviderRegistry
from anysource.request import Outcome
from anysource.schemas import PackageSourceInfo


class FakeProvider:
    """Scripted provider. behavior: 'succeed' | 'decline' | 'fail' | an exception instance."""

    def __init__(self, name, behavior, log):
        self.name = name
        self.behavior = behavior
        self.log = log

    def set_source(self, request):
        info_name = request.provider_info.name if request.provider_info else None
        self.log.append((self.name, request, info_name))
        if isinstance(self.behavior, BaseException):
            raise self.behavior
        if self.behavior == "succeed":
            return Outcome.succeeded(
                PackageSourceInfo(
                    name=request.name,
                    location=request.location or "",
                    trusted=bool(request.trusted),
                    provider=self.name,
                )
            )
        if self.behavior == "fail":
            return Outcome.failed(f"{self.name} refused")
        if self.behavior == "decline":
            return Outcome.declined()
        return self.behavior


@pytest.fixture
def call_log():
    return []


@pytest.fixture
def make_registry(call_log):
    def _make(*entries, capability=Capability.SET_SOURCE):
        reg = ProviderRegistry()
        for name, behavior in entries:
            prov = FakeProvider(name, behavior, call_log)
            reg.register(ProviderInfo(name=name, capabilities=capability), lambda prov=prov: prov)
        return reg

    return _make


@pytest.fixture
def called(call_log):
    def _called():
        return [name for name, _, _ in call_log]

    return _called


@pytest.fixture(autouse=True)
def _drop_log_sinks():
    yield
    # CLI tests bind loguru to CliRunner streams that are closed afterwards.
    logger.remove()
