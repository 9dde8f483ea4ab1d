"""Hazard snapshot with publish/subscribe change notification."""
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.base import BaseGeometry

from models.hazard import Hazard, HazardKind

logger = logging.getLogger(__name__)

Subscriber = Callable[[Tuple[Hazard, ...]], None]

def path_geometry(path: Sequence[Sequence[float]]) -> BaseGeometry:
    """Build a planar shapely geometry from a (lat, lng) path."""
    points = [(lng, lat) for lat, lng in path]
    if len(points) == 1:
        return Point(points[0])
    return LineString(points)

def hazard_geometry(hazard: Hazard) -> BaseGeometry:
    if hazard.kind == HazardKind.FLOOD:
        rings = hazard.coordinates
        return Polygon(rings[0], rings[1:])
    return LineString(hazard.coordinates)

def intersects(path: Sequence[Sequence[float]],
               hazards: Iterable[Hazard]) -> Tuple[bool, Optional[Hazard]]:
    """Test a path against every active blocking hazard; return the first match."""
    if not path:
        return False, None
    line = path_geometry(path)
    for hazard in hazards:
        if not hazard.is_blocking:
            continue
        try:
            geometry = hazard_geometry(hazard)
        except (ValueError, TypeError, IndexError) as e:
            logger.warning(f"Skipping hazard {hazard.hazard_id} with invalid geometry: {e}")
            continue
        if line.intersects(geometry):
            return True, hazard
    return False, None

class HazardModel:
    """Latest active hazard snapshot, replaced wholesale on change."""

    def __init__(self, hazards: Iterable[Hazard] = ()):
        self._hazards: Dict[str, Hazard] = {}
        self._subscribers: List[Subscriber] = []
        self._version = 0
        self._lock = threading.Lock()
        self._store(hazards)

    def _store(self, hazards: Iterable[Hazard]) -> None:
        self._hazards = {h.hazard_id: h for h in hazards if h.active}

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def snapshot(self) -> Tuple[Hazard, ...]:
        """Return the current active hazards as an immutable tuple."""
        with self._lock:
            return tuple(self._hazards.values())

    def intersects(self, path: Sequence[Sequence[float]]) -> Tuple[bool, Optional[Hazard]]:
        return intersects(path, self.snapshot())

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def replace(self, hazards: Iterable[Hazard]) -> None:
        """Replace the whole snapshot and publish the change."""
        with self._lock:
            self._store(hazards)
            self._version += 1
            logger.info(f"Hazard snapshot v{self._version}: {len(self._hazards)} active hazards")
        self._publish()

    def apply_event(self, action: str, hazard: Hazard) -> None:
        """Apply a created/updated/deleted change event and publish it."""
        if action not in ("created", "updated", "deleted"):
            raise ValueError(f"Unknown hazard event action: {action}")
        with self._lock:
            if action == "deleted" or not hazard.active:
                self._hazards.pop(hazard.hazard_id, None)
            else:
                self._hazards[hazard.hazard_id] = hazard
            self._version += 1
            logger.info(f"Hazard {hazard.hazard_id} {action} (snapshot v{self._version})")
        self._publish()

    def _publish(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Hazard subscriber failed: {e}")
