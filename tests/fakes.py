# tests/fakes.py

from __future__ import annotations

from typing import Any

from medtasks.errors import BackendUnavailable, InitializationFailure


class FlakyStorage:
    """
    Wraps a real backend and raises BackendUnavailable from every call while
    `broken` is set, like a relational engine whose database blob went bad.
    """

    def __init__(self, inner: Any, *, broken: bool = False, init_fails: bool = False) -> None:
        self.inner = inner
        self.name = f"flaky-{inner.name}"
        self.broken = broken
        self.init_fails = init_fails
        self.calls: list[str] = []

    def initialize(self) -> None:
        if self.init_fails:
            raise InitializationFailure("engine could not be opened")
        self.inner.initialize()

    def __getattr__(self, attr: str) -> Any:
        target = getattr(self.inner, attr)
        if not callable(target):
            return target

        def call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(attr)
            if self.broken:
                raise BackendUnavailable(f"{attr} failed")
            return target(*args, **kwargs)

        return call
