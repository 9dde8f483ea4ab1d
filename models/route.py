"""Data models for computed routes."""
from dataclasses import dataclass
from typing import List, Optional, Tuple

Waypoint = Tuple[float, float]  # (lat, lng)

@dataclass
class OracleRoute:
    path: List[Waypoint]
    distance_m: float
    duration_s: float

@dataclass
class RouteLeg:
    path: List[Waypoint]
    distance_m: float
    duration_s: float
    rerouted: bool = False
    warning: Optional[str] = None
    degraded: bool = False

    @property
    def start(self) -> Waypoint:
        return self.path[0]

    @property
    def end(self) -> Waypoint:
        return self.path[-1]

@dataclass
class MissionRoute:
    leg1: RouteLeg
    leg2: RouteLeg

    @property
    def total_distance_m(self) -> float:
        return self.leg1.distance_m + self.leg2.distance_m

    @property
    def total_duration_s(self) -> float:
        return self.leg1.duration_s + self.leg2.duration_s

    @property
    def warning(self) -> Optional[str]:
        return self.leg1.warning or self.leg2.warning or None

    @property
    def rerouted(self) -> bool:
        return self.leg1.rerouted or self.leg2.rerouted

    @property
    def degraded(self) -> bool:
        return self.leg1.degraded or self.leg2.degraded

    def leg(self, number: int) -> RouteLeg:
        return self.leg1 if number == 1 else self.leg2

    def to_dict(self) -> dict:
        def leg_dict(leg: RouteLeg) -> dict:
            return {
                'coords': [list(p) for p in leg.path],
                'distance_m': leg.distance_m,
                'duration_s': leg.duration_s,
                'rerouted': leg.rerouted,
                'warning': leg.warning,
                'degraded': leg.degraded,
            }
        return {
            'leg1': leg_dict(self.leg1),
            'leg2': leg_dict(self.leg2),
            'total_distance_m': self.total_distance_m,
            'total_duration_s': self.total_duration_s,
            'rerouted': self.rerouted,
            'degraded': self.degraded,
            'warning': self.warning,
        }
