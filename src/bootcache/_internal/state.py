"""In-process state store and the structural notifications that mutate it.

State holders subscribe to the store; the orchestrator and the cache
directory manager only ever dispatch typed events to it.
"""

import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol, Union

from pydantic import BaseModel, Field

from bootcache.codes import NotificationType
from bootcache.contracts import Program


logger = logging.getLogger(__name__)


class SetProgram(BaseModel):
    type: Literal[NotificationType.SET_PROGRAM] = NotificationType.SET_PROGRAM
    program: Program


class SetSiteConfig(BaseModel):
    type: Literal[NotificationType.SET_SITE_CONFIG] = NotificationType.SET_SITE_CONFIG
    config: Dict[str, Any] = Field(default_factory=dict)


class DeleteCache(BaseModel):
    """Cache directory was purged; in-memory cached data must be discarded.

    ``cache_is_corrupt`` separates a planned invalidation from a recovery.
    """
    type: Literal[NotificationType.DELETE_CACHE] = NotificationType.DELETE_CACHE
    cache_is_corrupt: bool = False


class UpdateFingerprint(BaseModel):
    type: Literal[NotificationType.UPDATE_FINGERPRINT] = NotificationType.UPDATE_FINGERPRINT
    fingerprint: str


class SetProgramExtensions(BaseModel):
    type: Literal[NotificationType.SET_PROGRAM_EXTENSIONS] = NotificationType.SET_PROGRAM_EXTENSIONS
    extensions: List[str]


Notification = Union[SetProgram, SetSiteConfig, DeleteCache, UpdateFingerprint, SetProgramExtensions]

Listener = Callable[[Notification, "BootstrapState"], None]


class BootstrapState(BaseModel):
    """Snapshot of the state held for downstream collaborators."""
    program: Optional[Program] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    fingerprint: Optional[str] = None
    extensions: List[str] = Field(default_factory=list)
    caches: Dict[str, Any] = Field(default_factory=dict)  # Data loaded from the disk cache
    cache_deletions: int = 0
    last_cache_was_corrupt: bool = False


class NotificationSink(Protocol):
    """Anything that accepts structural notifications."""

    def dispatch(self, event: Notification) -> None:
        ...


class StateStore:
    """State container with explicit dispatch and subscribe operations."""

    def __init__(self, initial: Optional[BootstrapState] = None):
        self._state = initial if initial is not None else BootstrapState()
        self._listeners: List[Listener] = []

    def get_state(self) -> BootstrapState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, event: Notification) -> None:
        self._state = _reduce(self._state, event)
        logger.debug("dispatched %s", event.type.value)
        for listener in list(self._listeners):
            listener(event, self._state)


def _reduce(state: BootstrapState, event: Notification) -> BootstrapState:
    if isinstance(event, SetProgram):
        return state.model_copy(update={"program": event.program})
    if isinstance(event, SetSiteConfig):
        return state.model_copy(update={"config": dict(event.config)})
    if isinstance(event, DeleteCache):
        return state.model_copy(update={
            "caches": {},
            "cache_deletions": state.cache_deletions + 1,
            "last_cache_was_corrupt": event.cache_is_corrupt,
        })
    if isinstance(event, UpdateFingerprint):
        return state.model_copy(update={"fingerprint": event.fingerprint})
    if isinstance(event, SetProgramExtensions):
        return state.model_copy(update={"extensions": list(event.extensions)})
    raise TypeError(f"Unknown notification: {type(event).__name__}")
