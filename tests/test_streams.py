import pytest

from esarchiver.core.streams import Err, Ok, capture, closing_stream, concat_providers, connect, drain


def _tracked(values, log, name):
    try:
        for value in values:
            yield value
    finally:
        log.append(f"closed {name}")


def test_concat_providers_calls_each_provider_after_previous_is_exhausted():
    events = []

    def provider(name, values):
        def _open():
            events.append(f"open {name}")
            return _tracked(values, events, name)

        return _open

    stream = concat_providers([provider("a", [1, 2]), provider("b", [3])])
    assert events == []
    assert list(stream) == [1, 2, 3]
    assert events == ["open a", "closed a", "open b", "closed b"]


def test_concat_providers_stops_at_first_failure():
    called = []

    def broken():
        raise ValueError("boom")

    def never():
        called.append(True)
        return iter([1])

    with pytest.raises(ValueError):
        list(concat_providers([broken, never]))
    assert called == []


def test_capture_wraps_values_and_terminates_on_error():
    def items():
        yield 1
        raise KeyError("bad")

    results = list(capture(items()))
    assert results[0] == Ok(1)
    assert isinstance(results[1], Err)
    assert isinstance(results[1].error, KeyError)
    assert len(results) == 2


def test_connect_applies_stages_in_order():
    def double(results):
        for item in results:
            yield Ok(item.value * 2) if isinstance(item, Ok) else item

    def plus_one(results):
        for item in results:
            yield Ok(item.value + 1) if isinstance(item, Ok) else item

    out = list(connect(capture([1, 2]), double, plus_one))
    assert out == [Ok(3), Ok(5)]


def test_drain_counts_ok_and_raises_err():
    assert drain(iter([Ok(1), Ok(2)])) == 2
    with pytest.raises(RuntimeError, match="stop"):
        drain(iter([Ok(1), Err(RuntimeError("stop")), Ok(2)]))


def test_drain_closes_upstream_on_error():
    events = []

    def source():
        yield Ok(1)
        yield Err(RuntimeError("stop"))
        yield Ok(2)

    with pytest.raises(RuntimeError):
        drain(_tracked(source(), events, "source"))
    assert events == ["closed source"]


def test_closing_stream_closes_generator_on_early_exit():
    events = []
    with closing_stream(_tracked([1, 2, 3], events, "gen")) as it:
        assert next(it) == 1
    assert events == ["closed gen"]
