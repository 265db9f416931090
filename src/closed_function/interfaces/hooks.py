"""
Host Pipeline Hooks

The lifecycle contract between a host build pipeline and its plugins.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Tuple

from closed_function.domain.entities import HostModule
from closed_function.domain.errors import ClosedBlockError
from closed_function.domain.value_objects import BuildMode


class SyncHook:
    """
    Hook whose taps run synchronously, in tap order.

    Args:
        arg_names: Names of the arguments every call passes, for introspection
    """

    def __init__(self, arg_names: Tuple[str, ...] = ()):
        self.arg_names = arg_names
        self.taps: List[Tuple[str, Callable[..., Any]]] = []

    def tap(self, name: str, fn: Callable[..., Any]) -> None:
        self.taps.append((name, fn))

    def call(self, *args: Any) -> None:
        if len(args) != len(self.arg_names):
            raise TypeError(f"hook expects {len(self.arg_names)} arguments, got {len(args)}")
        for _, fn in self.taps:
            fn(*args)


class AsyncSeriesHook(SyncHook):
    """Hook whose taps are awaited one after another."""

    def tap(self, name: str, fn: Callable[..., Awaitable[Any]]) -> None:
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"tap {name!r} of an async hook must be a coroutine function")
        super().tap(name, fn)

    def call(self, *args: Any) -> None:
        raise TypeError("AsyncSeriesHook must be awaited through promise()")

    async def promise(self, *args: Any) -> None:
        if len(args) != len(self.arg_names):
            raise TypeError(f"hook expects {len(self.arg_names)} arguments, got {len(args)}")
        for _, fn in self.taps:
            await fn(*args)


@dataclass
class CompilationHooks:
    """Lifecycle hooks fired by the host, in this order."""

    build_module: SyncHook = field(default_factory=lambda: SyncHook(("module",)))
    finish_modules: AsyncSeriesHook = field(default_factory=lambda: AsyncSeriesHook(("modules",)))
    optimize_dependencies: SyncHook = field(default_factory=lambda: SyncHook(("modules",)))


@dataclass
class CompilationOptions:
    """
    Host build configuration visible to plugins.

    Attributes:
        mode: Build mode
        python_paths: Roots the host resolves imports against
        plugins: Every plugin applied to the build
    """

    mode: BuildMode = BuildMode.NONE
    python_paths: Tuple[str, ...] = ()
    plugins: List[Any] = field(default_factory=list)


@dataclass
class Compilation:
    """One run of the host pipeline; `errors` is its error channel."""

    options: CompilationOptions = field(default_factory=CompilationOptions)
    hooks: CompilationHooks = field(default_factory=CompilationHooks)
    modules: List[HostModule] = field(default_factory=list)
    errors: List[ClosedBlockError] = field(default_factory=list)
