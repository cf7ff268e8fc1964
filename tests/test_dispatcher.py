import json
from unittest.mock import patch

import pytest

from anysource.dispatcher import SourceDispatcher
from anysource.errors import (
    CancellationSignal,
    NoProviderSucceededError,
    OutputSinkError,
    ProviderError,
    ProviderNotFoundError,
)
from anysource.providers.base import Capability, ProviderInfo
from anysource.util.events import EventLog


def test_single_provider_succeeds(make_registry, called):
    d = SourceDispatcher(make_registry(("Foo", "succeed")))
    res = d.dispatch("pkgs.foo", "https://example/feed", trusted=True, pass_through=False)
    assert res.success is True
    assert res.errors == []
    assert res.records == []
    assert res.provider == "Foo"
    assert called() == ["Foo"]


def test_decline_then_success(make_registry, called):
    d = SourceDispatcher(make_registry(("Foo", "decline"), ("Bar", "succeed")))
    res = d.dispatch("pkgs.foo", "https://example/feed")
    assert (res.success, res.errors) == (True, [])
    assert called() == ["Foo", "Bar"]
    assert res.provider == "Bar"


def test_fault_reports_provider_error_then_no_success(make_registry):
    d = SourceDispatcher(make_registry(("Foo", RuntimeError("disk full"))))
    res = d.dispatch("pkgs.foo", "https://example/feed")
    assert res.success is False
    assert len(res.errors) == 2
    fault, terminal = res.errors
    assert isinstance(fault, ProviderError)
    assert (fault.provider, fault.message) == ("Foo", "disk full")
    assert isinstance(fault.cause, RuntimeError)
    assert isinstance(terminal, NoProviderSucceededError)
    assert terminal.name == "pkgs.foo"


def test_unknown_provider_fails_before_request(make_registry, called):
    d = SourceDispatcher(make_registry(("Foo", "succeed")))
    with patch("anysource.dispatcher.SourceRequest") as req_cls:
        with pytest.raises(ProviderNotFoundError):
            d.dispatch("pkgs.foo", provider="Unknown")
    req_cls.assert_not_called()
    assert called() == []


def test_pass_through_collects_single_record(make_registry):
    sunk = []
    d = SourceDispatcher(make_registry(("Foo", "succeed"), ("Bar", "succeed")))
    res = d.dispatch("pkgs.foo", "https://example/feed", pass_through=True, sink=sunk.append)
    assert res.success is True
    assert len(res.records) == 1
    assert res.records[0].location == "https://example/feed"
    assert res.records[0].provider == "Foo"
    assert sunk == res.records


def test_short_circuit_skips_later_providers(make_registry, called):
    d = SourceDispatcher(make_registry(("A", "decline"), ("B", "succeed"), ("C", "succeed")))
    res = d.dispatch("src")
    assert res.success
    assert called() == ["A", "B"]


def test_all_decline_reports_no_success(make_registry, called):
    d = SourceDispatcher(make_registry(("A", "decline"), ("B", "decline")))
    res = d.dispatch("src")
    assert res.success is False
    assert called() == ["A", "B"]
    assert len(res.errors) == 1
    assert isinstance(res.errors[-1], NoProviderSucceededError)
    assert res.errors[-1].name == "src"


def test_empty_candidate_list_reports_no_success(make_registry):
    d = SourceDispatcher(make_registry())
    res = d.dispatch("src")
    assert res.success is False
    assert [type(e) for e in res.errors] == [NoProviderSucceededError]


def test_fault_does_not_stop_next_provider(make_registry, called):
    d = SourceDispatcher(make_registry(("A", ValueError("bad")), ("B", "succeed")))
    res = d.dispatch("src")
    assert res.success is True
    assert called() == ["A", "B"]
    assert len(res.errors) == 1
    assert res.errors[0].provider == "A"


def test_failed_outcome_becomes_provider_error(make_registry, called):
    d = SourceDispatcher(make_registry(("A", "fail"), ("B", "fail")))
    res = d.dispatch("src")
    assert called() == ["A", "B"]
    assert [e.provider for e in res.errors[:2]] == ["A", "B"]
    assert res.errors[0].message == "A refused"
    assert isinstance(res.errors[-1], NoProviderSucceededError)


def test_errors_preserve_provider_order(make_registry):
    d = SourceDispatcher(
        make_registry(("A", RuntimeError("one")), ("B", "fail"), ("C", RuntimeError("three")))
    )
    res = d.dispatch("src")
    assert [getattr(e, "provider", None) for e in res.errors] == ["A", "B", "C", None]


def test_empty_exception_message_uses_type_name(make_registry):
    d = SourceDispatcher(make_registry(("A", RuntimeError())))
    res = d.dispatch("src")
    assert res.errors[0].message == "RuntimeError"


@pytest.mark.parametrize("signal", [CancellationSignal("stop"), KeyboardInterrupt()])
def test_cancellation_propagates_and_stops(make_registry, called, signal):
    d = SourceDispatcher(make_registry(("A", "decline"), ("B", signal), ("C", "succeed")))
    with pytest.raises(type(signal)):
        d.dispatch("src")
    assert called() == ["A", "B"]


def test_request_is_shared_and_tracks_current_provider(make_registry, call_log):
    d = SourceDispatcher(make_registry(("A", "decline"), ("B", "decline"), ("C", "succeed")))
    d.dispatch("src", location="", trusted=False)
    requests = [req for _, req, _ in call_log]
    assert all(r is requests[0] for r in requests)
    assert [info for _, _, info in call_log] == ["A", "B", "C"]
    req = requests[0]
    assert req.location == ""
    assert req.trusted is False
    assert req.has_output is True


def test_non_outcome_return_is_a_provider_error(make_registry, called):
    d = SourceDispatcher(make_registry(("A", None), ("B", "succeed")))
    res = d.dispatch("src")
    assert res.success is True
    assert called() == ["A", "B"]
    assert "expected Outcome" in res.errors[0].message


def test_wildcard_filter_limits_candidates(make_registry, called):
    d = SourceDispatcher(make_registry(("Alpha", "decline"), ("Beta", "decline"), ("Bolt", "succeed")))
    res = d.dispatch("src", provider="b*")
    assert res.success
    assert called() == ["Beta", "Bolt"]


def test_wildcard_filter_without_matches_is_no_success(make_registry, called):
    d = SourceDispatcher(make_registry(("Alpha", "succeed")))
    res = d.dispatch("src", provider="Z*")
    assert res.success is False
    assert called() == []
    assert isinstance(res.errors[-1], NoProviderSucceededError)


def test_named_provider_without_capability_is_not_found(make_registry):
    d = SourceDispatcher(make_registry(("Foo", "succeed"), capability=Capability.GET_SOURCE))
    with pytest.raises(ProviderNotFoundError, match="does not support set-source"):
        d.dispatch("src", provider="Foo")


def test_providers_without_capability_are_skipped(make_registry):
    reg = make_registry(("A", "succeed"))
    reg.register(ProviderInfo(name="ReadOnly", capabilities=Capability.GET_SOURCE), lambda: None)
    d = SourceDispatcher(reg)
    assert [i.info.name for i in d.resolve()] == ["A"]


def test_event_log_records_dispatch(make_registry, tmp_path):
    log = EventLog(tmp_path / "events.jsonl")
    d = SourceDispatcher(make_registry(("A", RuntimeError("boom")), ("B", "succeed")), event_log=log)
    d.dispatch("src", location="x")
    events = log.read()
    assert [e["event"] for e in events] == [
        "dispatch_start",
        "provider_call",
        "provider_error",
        "provider_call",
        "dispatch_end",
    ]
    assert events[0]["candidates"] == ["A", "B"]
    assert len({e["dispatch_id"] for e in events}) == 1
    assert events[-1]["success"] is True
    assert events[-1]["provider"] == "B"
    json.dumps(events)


def test_failing_sink_keeps_success_and_reports_output_error(make_registry, called):
    def sink(record):
        raise RuntimeError("pipe closed")

    reg = make_registry(("A", "succeed"), ("B", "succeed"))
    res = SourceDispatcher(reg).dispatch("pkgs.foo", location="x", pass_through=True, sink=sink)
    assert res.success
    assert res.provider == "A"
    assert called() == ["A"]
    assert [r.provider for r in res.records] == ["A"]
    assert len(res.errors) == 1
    assert isinstance(res.errors[0], OutputSinkError)
    assert res.errors[0].provider == "A"
    assert res.errors[0].message == "pipe closed"
    assert not any(isinstance(e, NoProviderSucceededError) for e in res.errors)


def test_cancellation_from_sink_propagates(make_registry):
    def sink(record):
        raise CancellationSignal()

    reg = make_registry(("A", "succeed"))
    with pytest.raises(CancellationSignal):
        SourceDispatcher(reg).dispatch("pkgs.foo", location="x", pass_through=True, sink=sink)
