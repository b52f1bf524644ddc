"""Small combinators over `concurrent.futures.Future`.

Chaining uses done-callbacks so a pool thread never blocks waiting on
another future from the same (possibly single-threaded) pool.
"""
from __future__ import annotations
from concurrent.futures import Future
from typing import Any, Callable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def resolved(value: T) -> "Future[T]":
    fut: Future = Future()
    fut.set_result(value)
    return fut


def _settle(target: Future, fn: Callable[[], Any]) -> None:
    try:
        target.set_result(fn())
    except BaseException as exc:  # forwarded through the future
        target.set_exception(exc)


def then(source: "Future[T]", fn: Callable[[T], R]) -> "Future[R]":
    """Return a future resolving to `fn(source.result())`."""
    target: Future = Future()

    def _done(f: Future) -> None:
        _settle(target, lambda: fn(f.result()))

    source.add_done_callback(_done)
    return target


def then_future(source: "Future[T]", fn: Callable[[T], "Future[R]"]) -> "Future[R]":
    """Like `then`, but `fn` returns a future which is flattened."""
    target: Future = Future()

    def _inner_done(inner: Future) -> None:
        _settle(target, inner.result)

    def _done(f: Future) -> None:
        try:
            inner = fn(f.result())
        except BaseException as exc:
            target.set_exception(exc)
            return
        inner.add_done_callback(_inner_done)

    source.add_done_callback(_done)
    return target
