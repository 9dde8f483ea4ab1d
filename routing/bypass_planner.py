"""Detour search around a blocking hazard's bounding box."""
import threading
from loguru import logger
from typing import List, Optional, Sequence, Tuple

from configurations.config import Config
from core.exceptions import RouteComputationCancelled
from core.hazard_model import hazard_geometry
from models.hazard import Hazard, HazardKind
from models.route import OracleRoute, RouteLeg, Waypoint
from routing.route_validator import validate

def check_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise RouteComputationCancelled("Route computation superseded")

def padded_corners(hazard: Hazard, padding: float = None) -> List[Waypoint]:
    """SW, NW, SE, NE corners of the hazard's padded bounding box as (lat, lng)."""
    pad = Config.BYPASS_PADDING_DEGREES if padding is None else padding
    min_lng, min_lat, max_lng, max_lat = hazard_geometry(hazard).bounds
    return [
        (min_lat - pad, min_lng - pad),  # SW
        (max_lat + pad, min_lng - pad),  # NW
        (min_lat - pad, max_lng + pad),  # SE
        (max_lat + pad, max_lng + pad),  # NE
    ]

def bypass_waypoints(origin: Waypoint, destination: Waypoint,
                     hazard: Hazard) -> List[List[Waypoint]]:
    """Candidate waypoint lists, each inserting one corner between the endpoints."""
    corners = padded_corners(hazard)[:Config.MAX_BYPASS_ATTEMPTS]
    return [[origin, corner, destination] for corner in corners]

class BypassPlanner:
    """Best-effort local search for a hazard-free detour.

    Only bounding-box corners are tried, so a large irregular hazard can defeat
    the search even when a short lateral detour exists.
    """

    def __init__(self, oracle):
        self.oracle = oracle

    def plan(self, origin: Waypoint, destination: Waypoint, direct: OracleRoute,
             blocked_by: Hazard, hazards: Sequence[Hazard],
             vehicle_class: Optional[str] = None,
             cancel: Optional[threading.Event] = None) -> RouteLeg:
        candidates: List[OracleRoute] = []
        
        for waypoints in bypass_waypoints(origin, destination, blocked_by):
            check_cancelled(cancel)
            candidate = self.oracle.route(waypoints, vehicle_class)
            if candidate is None:
                continue
            if validate(candidate.path, hazards):
                candidates.append(candidate)
        
        check_cancelled(cancel)
        
        if candidates:
            # Pick the fastest valid candidate
            best = min(candidates, key=lambda c: c.duration_s)
            kind = 'flood zone' if blocked_by.kind == HazardKind.FLOOD else 'road block'
            logger.info(f"Rerouted around {blocked_by.hazard_id}: {len(candidates)} clean candidates, "
                        f"best {best.duration_s:.0f}s")
            return RouteLeg(
                path=best.path,
                distance_m=best.distance_m,
                duration_s=best.duration_s,
                rerouted=True,
                warning=f"Rerouted to avoid {kind}",
            )
        
        logger.warning(f"No safe bypass around hazard {blocked_by.hazard_id}")
        return RouteLeg(
            path=direct.path,
            distance_m=direct.distance_m,
            duration_s=direct.duration_s,
            rerouted=False,
            warning=f"No safe route found: route passes through {blocked_by.describe()}",
        )
