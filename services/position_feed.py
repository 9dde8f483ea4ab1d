"""Latest known agent positions with fallback to registered base locations."""
import threading
from datetime import datetime, timezone
from loguru import logger
from typing import Dict, Optional, Tuple

Coordinate = Tuple[float, float]

class PositionFeed:
    def __init__(self):
        self._positions: Dict[str, Tuple[Coordinate, datetime]] = {}
        self._bases: Dict[str, Coordinate] = {}
        self._lock = threading.Lock()

    def register_base(self, agent_id: str, base: Coordinate) -> None:
        with self._lock:
            self._bases[agent_id] = tuple(base)

    def update(self, agent_id: str, lat: float, lng: float) -> None:
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise ValueError(f"Invalid coordinate ({lat}, {lng})")
        with self._lock:
            self._positions[agent_id] = ((lat, lng), datetime.now(timezone.utc))

    def latest(self, agent_id: str) -> Optional[Coordinate]:
        """Live position if one was reported, else the base location."""
        with self._lock:
            if agent_id in self._positions:
                return self._positions[agent_id][0]
            base = self._bases.get(agent_id)
        if base is None:
            logger.warning(f"No position or base location for agent {agent_id}")
        return base

    def reported_at(self, agent_id: str) -> Optional[datetime]:
        with self._lock:
            entry = self._positions.get(agent_id)
        return entry[1] if entry else None
