"""
Observer registry for cache and download events.

Observers are plain callables registered per event type; observers
registered for EvtType.ANY receive every event. A failing observer is logged
and never affects the code that fired the event or the other observers.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class EvtType(str, Enum):
    ANY = "any"
    CACHE_UPDATING = "cache_updating"
    CACHE_READY = "cache_ready"
    DOWNLOAD_STARTED = "download_started"
    DOWNLOAD_PROGRESS = "download_progress"
    DOWNLOAD_FINISHED = "download_finished"
    DOWNLOAD_FAILED = "download_failed"


@dataclass(frozen=True)
class Evt:
    type: EvtType
    source: Any = None
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class CacheEvt(Evt):
    pkg_count: int = 0


@dataclass(frozen=True)
class DownloadEvt(Evt):
    """Download lifecycle event; `fraction` is only meaningful for progress events."""

    uri: str = ""
    target: str = ""
    file_size: int = 0
    bytes_downloaded: int = 0
    fraction: float = 0.0
    error: str = ""


Observer = Callable[[Evt], Any]


class EventBus:
    """Fan-out of events to the observers registered for their type."""

    def __init__(self) -> None:
        self._observers: Dict[EvtType, List[Observer]] = {}
        self._lock = threading.Lock()

    def set_on_evt(self, evt_type: EvtType, observer: Observer) -> None:
        with self._lock:
            observers = self._observers.setdefault(evt_type, [])
            if observer not in observers:
                observers.append(observer)

    def remove_on_evt(self, evt_type: EvtType, observer: Observer) -> None:
        with self._lock:
            observers = self._observers.get(evt_type)
            if observers and observer in observers:
                observers.remove(observer)

    def remove_all_observers(self) -> None:
        with self._lock:
            for observers in self._observers.values():
                observers.clear()

    def observers_of(self, evt_type: EvtType) -> List[Observer]:
        with self._lock:
            return list(self._observers.get(evt_type, ()))

    def fire_evt(self, evt: Evt) -> None:
        """Notify the observers of evt.type, then the ANY observers."""
        targets = self.observers_of(evt.type)
        if evt.type is not EvtType.ANY:
            targets += self.observers_of(EvtType.ANY)
        for observer in targets:
            try:
                observer(evt)
            except Exception as e:
                logger.error(f"Error in observer for {evt.type.value}: {e}", exc_info=True)
