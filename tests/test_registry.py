import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from anysource.errors import ProviderNotFoundError
from anysource.providers.base import Capability, ProviderInfo
from anysource.registry import ProviderRegistry, expand_wildcard
from anysource.request import Outcome


def test_expand_wildcard_is_case_insensitive_and_ordered():
    names = ["NuGet", "PSGet", "npm", "Pip"]
    assert expand_wildcard("n*", names) == ["NuGet", "npm"]
    assert expand_wildcard("P?Get", names) == ["PSGet"]
    assert expand_wildcard("[np]*", names) == ["NuGet", "PSGet", "npm", "Pip"]
    assert expand_wildcard("zzz*", names) == []
    assert names == ["NuGet", "PSGet", "npm", "Pip"]


def test_find_capable_without_filter_uses_registration_order(make_registry):
    reg = make_registry(("C", "succeed"), ("A", "succeed"), ("B", "succeed"))
    assert [i.info.name for i in reg.find_capable(Capability.SET_SOURCE)] == ["C", "A", "B"]


def test_resolution_is_idempotent(make_registry):
    reg = make_registry(("A", "succeed"), ("B", "succeed"))
    first = reg.find_capable(Capability.SET_SOURCE, "*")
    second = reg.find_capable(Capability.SET_SOURCE, "*")
    assert first == second
    assert [a is b for a, b in zip(first, second)] == [True, True]


def test_find_by_name_is_case_insensitive(make_registry):
    reg = make_registry(("Foo", "succeed"))
    assert reg.find_by_name("foo").info.name == "Foo"
    assert [i.info.name for i in reg.find_capable(Capability.SET_SOURCE, "FOO")] == ["Foo"]


def test_unknown_name_raises(make_registry):
    reg = make_registry(("Foo", "succeed"))
    with pytest.raises(ProviderNotFoundError, match="'Unknown' is not registered"):
        reg.find_capable(Capability.SET_SOURCE, "Unknown")


def test_empty_filter_is_rejected(make_registry):
    reg = make_registry(("Foo", "succeed"))
    with pytest.raises(ValueError):
        reg.find_capable(Capability.SET_SOURCE, "  ")


def test_duplicate_registration_raises():
    reg = ProviderRegistry()
    reg.register(ProviderInfo(name="Foo"), lambda: None)
    with pytest.raises(ValueError, match="already registered"):
        reg.register(ProviderInfo(name="foo"), lambda: None)


def test_factory_is_lazy_and_called_once():
    factory = MagicMock()
    factory.return_value.set_source.return_value = Outcome.declined()
    reg = ProviderRegistry()
    inst = reg.register(ProviderInfo(name="Foo", capabilities=Capability.SET_SOURCE), factory)
    factory.assert_not_called()
    inst.set_source(MagicMock())
    inst.set_source(MagicMock())
    factory.assert_called_once_with()


def test_factory_runs_once_under_concurrent_resolution():
    calls = []

    def factory():
        calls.append(1)
        time.sleep(0.05)
        return object()

    inst = ProviderRegistry().register(ProviderInfo(name="Slow"), factory)
    seen = []
    threads = [threading.Thread(target=lambda: seen.append(inst.provider)) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(seen) == 4
    assert all(p is seen[0] for p in seen)


class _Plugin:
    info = ProviderInfo(name="Plug", capabilities=Capability.SET_SOURCE, module="plugpkg")

    def set_source(self, request):
        return Outcome.declined()


def _entry_point(name, loader):
    ep = MagicMock()
    ep.name = name
    ep.load = loader
    return ep


def test_load_entry_points_registers_valid_plugins():
    good = _entry_point("plug", MagicMock(return_value=_Plugin))
    broken = _entry_point("broken", MagicMock(side_effect=ImportError("boom")))
    bogus = _entry_point("bogus", MagicMock(return_value=lambda: object()))
    reg = ProviderRegistry()
    with patch("anysource.registry.importlib.metadata.entry_points", return_value=[broken, good, bogus]):
        loaded = reg.load_entry_points()
    assert loaded == ["Plug"]
    assert reg.names() == ["Plug"]
    assert reg.find_by_name("plug").info.module == "plugpkg"


def test_load_entry_points_skips_already_registered():
    reg = ProviderRegistry()
    reg.register(ProviderInfo(name="Plug"), lambda: None)
    ep = _entry_point("other", MagicMock(return_value=_Plugin))
    with patch("anysource.registry.importlib.metadata.entry_points", return_value=[ep]):
        assert reg.load_entry_points() == []
    assert reg.names() == ["Plug"]
