"""Time-based interpolation of an agent along a mission route."""
from dataclasses import dataclass
from typing import Optional, Tuple

from models.route import MissionRoute
from utils.geo import bearing, lerp_point

# Relative pacing per vehicle class
VEHICLE_SPEED_FACTORS = {
    'bike': 0.85,
    'truck': 0.65,
}

MIN_SEGMENT_SECONDS = 0.05
UNTIMED_SEGMENT_SECONDS = 0.8

def vehicle_speed_factor(vehicle_class: Optional[str]) -> float:
    return VEHICLE_SPEED_FACTORS.get((vehicle_class or '').lower(), 1.0)

@dataclass(frozen=True)
class AnimationFrame:
    position: Tuple[float, float]
    heading: float
    leg: int
    point_index: int
    fraction: float
    finished: bool

class PathAnimator:
    """Pure function of (route, elapsed time); keeps no clock of its own."""

    def __init__(self, vehicle_class: Optional[str] = None):
        self.speed_factor = vehicle_speed_factor(vehicle_class)

    def segment_seconds(self, route: MissionRoute, leg: int) -> float:
        """Seconds spent on each segment of the given leg."""
        current = route.leg(leg)
        segments = max(len(current.path) - 1, 1)
        if current.duration_s > 0:
            base = current.duration_s / segments
        else:
            base = UNTIMED_SEGMENT_SECONDS
        return max(base * self.speed_factor, MIN_SEGMENT_SECONDS)

    def frame_at(self, route: MissionRoute, elapsed_s: float, start_leg: int = 1) -> AnimationFrame:
        """Position and heading after elapsed_s seconds, starting from start_leg."""
        remaining = max(elapsed_s, 0.0)
        last_leg = start_leg
        
        for leg in range(start_leg, 3):
            path = route.leg(leg).path
            if len(path) < 2:
                continue
            last_leg = leg
            seg_time = self.segment_seconds(route, leg)
            segments = len(path) - 1
            leg_time = seg_time * segments
            
            if remaining < leg_time:
                index = min(int(remaining // seg_time), segments - 1)
                fraction = min((remaining - index * seg_time) / seg_time, 1.0)
                p1, p2 = path[index], path[index + 1]
                return AnimationFrame(
                    position=lerp_point(p1, p2, fraction),
                    heading=bearing(p1, p2),
                    leg=leg,
                    point_index=index,
                    fraction=fraction,
                    finished=False,
                )
            remaining -= leg_time
        
        # Route complete, park at the final point
        path = route.leg(last_leg).path
        end = tuple(path[-1])
        heading = bearing(path[-2], path[-1]) if len(path) >= 2 else 0.0
        return AnimationFrame(
            position=end,
            heading=heading,
            leg=last_leg,
            point_index=max(len(path) - 2, 0),
            fraction=1.0,
            finished=True,
        )

    def position_at(self, route: MissionRoute, elapsed_s: float, start_leg: int = 1) -> Tuple[float, float]:
        return self.frame_at(route, elapsed_s, start_leg).position
