"""Data models for geographic hazards (floods and road blocks)."""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from configurations.config import Config

class HazardKind:
    FLOOD = "flood"
    ROADBLOCK = "roadblock"

@dataclass(frozen=True)
class Hazard:
    """A flood polygon or a road block polyline.

    Coordinates follow GeoJSON ordering: ``[lng, lat]``. A flood ring is a list
    of rings (outer ring first) exactly as in a GeoJSON Polygon; a road block
    is a single list of positions as in a GeoJSON LineString.
    """
    hazard_id: str
    kind: str
    coordinates: tuple
    severity: Optional[int] = None
    active: bool = True
    created_at: Optional[datetime] = None
    label: str = ""

    @property
    def is_blocking(self) -> bool:
        if not self.active:
            return False
        if self.kind == HazardKind.FLOOD:
            return (self.severity or 0) > Config.FLOOD_BLOCKING_SEVERITY
        return self.kind == HazardKind.ROADBLOCK

    def describe(self) -> str:
        """Human-readable name used in route warnings."""
        if self.kind == HazardKind.FLOOD:
            return f"flood zone (Severity {self.severity})"
        return "blocked road"

def freeze_coordinates(coords) -> tuple:
    if isinstance(coords, (list, tuple)):
        return tuple(freeze_coordinates(c) for c in coords)
    return coords

def flood(hazard_id: str, ring: List[List[float]], severity: int, **kwargs) -> Hazard:
    """Build a flood hazard from a single outer ring of [lng, lat] points."""
    return Hazard(hazard_id, HazardKind.FLOOD, freeze_coordinates([ring]), severity=severity, **kwargs)

def roadblock(hazard_id: str, line: List[List[float]], **kwargs) -> Hazard:
    return Hazard(hazard_id, HazardKind.ROADBLOCK, freeze_coordinates(line), **kwargs)
