"""Lifecycle collaborators: plugin hook dispatch and the progress reporter.

Both are external to bootcache; this module only defines the interfaces the
orchestrator calls, plus the defaults used when a caller injects nothing.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Protocol

from bootcache.contracts import Program


logger = logging.getLogger("bootcache")


@dataclass(frozen=True)
class LifecycleContext:
    """Typed argument handed to every lifecycle call."""
    phase: str
    program: Program
    state: Any  # StateStore


class PluginLifecycle(Protocol):
    """One method per lifecycle phase the bootstrap signals.

    Exceptions raised by an implementation abort the bootstrap.
    """

    def on_pre_init(self, ctx: LifecycleContext) -> None:
        ...

    def on_pre_bootstrap(self, ctx: LifecycleContext) -> None:
        ...

    def resolvable_extensions(self, ctx: LifecycleContext) -> List[Any]:
        ...


class NullLifecycle:
    """Lifecycle with no plugins listening."""

    def on_pre_init(self, ctx: LifecycleContext) -> None:
        return None

    def on_pre_bootstrap(self, ctx: LifecycleContext) -> None:
        return None

    def resolvable_extensions(self, ctx: LifecycleContext) -> List[Any]:
        return []


class Reporter(Protocol):
    def activity(self, name: str) -> Any:
        ...

    def info(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...

    def error(self, message: str, error: Optional[BaseException] = None) -> None:
        ...


class LoggingReporter:
    """Reporter writing phase timings and messages through ``logging``."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger
        self.timings: List[tuple] = []  # (phase, seconds), in completion order

    @contextmanager
    def activity(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        self.log.debug("%s: started", name)
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            self.timings.append((name, elapsed))
            self.log.info("%s - %.3fs", name, elapsed)

    def info(self, message: str) -> None:
        self.log.info(message)

    def warn(self, message: str) -> None:
        self.log.warning(message)

    def error(self, message: str, error: Optional[BaseException] = None) -> None:
        self.log.error(message, exc_info=error)


def flatten(values: Any) -> List[Any]:
    """Flatten arbitrarily nested lists/tuples into a flat list."""
    if not isinstance(values, (list, tuple)):
        return [values]
    out: List[Any] = []
    for value in values:
        out.extend(flatten(value))
    return out
