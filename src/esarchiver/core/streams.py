# streams.py
# SPDX-License-Identifier: MIT
"""Lazy stream composition used by the archive pipelines.

Stages are plain callables that take an iterable of :data:`Result` items and
return an iterator of results. Failures travel down the chain as a terminal
:class:`Err` instead of being raised from the middle of a generator, and
:func:`drain` turns the first ``Err`` back into an exception once every
generator in the chain has been closed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

__all__ = [
    "Ok",
    "Err",
    "Result",
    "Provider",
    "Stage",
    "concat_providers",
    "capture",
    "connect",
    "drain",
    "closing_stream",
]

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successfully produced element."""

    value: T


@dataclass(frozen=True)
class Err:
    """A failure; always the last element a well-behaved stage emits."""

    error: BaseException


Result = Union[Ok[T], Err]
Provider = Callable[[], Iterable[T]]
Stage = Callable[[Iterable[Result[Any]]], Iterator[Result[Any]]]


def _close(obj: Any) -> None:
    close = getattr(obj, "close", None)
    if callable(close):
        close()


@contextmanager
def closing_stream(items: Iterable[T]):
    """Yield an iterator over ``items`` and close it on exit.

    Closing a generator runs its ``finally`` blocks, so an upstream file
    handle is released even when a downstream stage stops early.
    """
    iterator = iter(items)
    try:
        yield iterator
    finally:
        _close(iterator)


def concat_providers(providers: Iterable[Provider[T]]) -> Iterator[T]:
    """Chain record producers into one ordered stream.

    Each provider is called only after the previous one is exhausted and
    closed, so at most one producer is open at a time. An exception raised
    by a producer propagates immediately and the remaining providers are
    never called.
    """
    for provider in providers:
        with closing_stream(provider()) as stream:
            yield from stream


def capture(items: Iterable[T]) -> Iterator[Result[T]]:
    """Wrap ``items`` as ``Ok`` results, turning the first failure into ``Err``."""
    with closing_stream(items) as iterator:
        while True:
            try:
                item = next(iterator)
            except StopIteration:
                return
            except Exception as exc:
                yield Err(exc)
                return
            yield Ok(item)


def connect(source: Iterable[Result[Any]], *stages: Stage) -> Iterator[Result[Any]]:
    """Compose ``stages`` left to right on top of ``source``."""
    stream: Iterable[Result[Any]] = source
    for stage in stages:
        stream = stage(stream)
    return iter(stream)


def drain(results: Iterable[Result[Any]]) -> int:
    """Consume a result stream, raising the first ``Err`` it carries.

    Returns:
        int: Number of ``Ok`` results consumed.
    """
    count = 0
    with closing_stream(results) as iterator:
        for item in iterator:
            if isinstance(item, Err):
                raise item.error
            count += 1
    return count
