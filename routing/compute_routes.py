"""Compute validated two-leg mission routes."""
import threading
from concurrent.futures import ThreadPoolExecutor
from loguru import logger
from typing import Optional, Sequence

from configurations.config import Config
from core.exceptions import RouteConfigurationError
from models.hazard import Hazard
from models.route import MissionRoute, RouteLeg, Waypoint
from routing.bypass_planner import BypassPlanner, check_cancelled
from routing.osrm_client import OSRMRouter
from routing.route_validator import validate

DEGRADED_WARNING = "Routing service unavailable: straight-line estimate, not checked for hazards"

class RouteComputer:
    """Oracle -> validator -> bypass planner, once per leg, both legs in parallel."""

    def __init__(self, oracle: OSRMRouter = None, max_workers: int = None):
        self.oracle = oracle or OSRMRouter()
        self.bypass_planner = BypassPlanner(self.oracle)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or Config.ROUTE_WORKERS,
            thread_name_prefix="route-leg",
        )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    def compute_leg(self, origin: Waypoint, destination: Waypoint,
                    vehicle_class: Optional[str], hazards: Sequence[Hazard],
                    cancel: Optional[threading.Event] = None) -> RouteLeg:
        """Compute one hazard-checked leg, falling back to a straight line."""
        check_cancelled(cancel)
        direct = self.oracle.route([origin, destination], vehicle_class)
        check_cancelled(cancel)

        if direct is None:
            logger.warning(f"Oracle failed for leg {origin} -> {destination}, using straight line")
            return RouteLeg(
                path=[tuple(origin), tuple(destination)],
                distance_m=0,
                duration_s=0,
                rerouted=False,
                warning=DEGRADED_WARNING,
                degraded=True,
            )

        result = validate(direct.path, hazards)
        if result.valid:
            return RouteLeg(path=direct.path, distance_m=direct.distance_m, duration_s=direct.duration_s)

        logger.info(f"Direct leg blocked by {result.blocked_by.kind} {result.blocked_by.hazard_id}, "
                    f"searching bypass")
        return self.bypass_planner.plan(
            origin, destination, direct, result.blocked_by, hazards,
            vehicle_class=vehicle_class, cancel=cancel,
        )

    def compute_mission_route(self, agent_pos: Optional[Waypoint], pickup_pos: Optional[Waypoint],
                              dropoff_pos: Optional[Waypoint], vehicle_class: Optional[str],
                              hazards: Sequence[Hazard],
                              cancel: Optional[threading.Event] = None) -> MissionRoute:
        """Compute agent->pickup and pickup->dropoff legs concurrently."""
        missing = [name for name, pos in (('agent', agent_pos), ('pickup', pickup_pos),
                                          ('dropoff', dropoff_pos)) if pos is None]
        if missing:
            raise RouteConfigurationError(f"Cannot compute route, missing {', '.join(missing)} location")

        hazards = tuple(h for h in hazards if h.active)
        leg1_future = self._executor.submit(
            self.compute_leg, agent_pos, pickup_pos, vehicle_class, hazards, cancel)
        leg2_future = self._executor.submit(
            self.compute_leg, pickup_pos, dropoff_pos, vehicle_class, hazards, cancel)

        route = MissionRoute(leg1=leg1_future.result(), leg2=leg2_future.result())

        logger.info(f"Mission route: {route.total_distance_m:.0f}m, {route.total_duration_s/60:.1f} min"
                    f"{' (rerouted)' if route.rerouted else ''}{' (degraded)' if route.degraded else ''}")
        if route.warning:
            logger.warning(f"Route warning: {route.warning}")
        return route
