"""Wires ranking, assignment, routing and live tracking together."""
from loguru import logger
from typing import Dict, List, Optional, Tuple

from configurations.config import Config
from core.exceptions import (AssignmentConflictError, MissionNotFoundError, RouteConfigurationError,
                             TransitionNotAllowedError)
from core.hazard_model import HazardModel
from dispatch.assignment import MissionAssignment
from dispatch.priority_ranking import PriorityRanker
from models.mission import Mission, MissionStatus, RankedMission
from models.route import MissionRoute
from routing.compute_routes import RouteComputer
from routing.osrm_client import OSRMRouter
from services.hazard_feed import HazardFeedClient, parse_hazard
from services.notification_service import NotificationService
from services.position_feed import PositionFeed
from storage.mission_store import InMemoryMissionStore, MissionStore, SQLMissionStore
from tracking.live_tracker import LiveTracker, TrackingTask

class DispatchCoordinator:
    def __init__(self, store: MissionStore = None, hazard_model: HazardModel = None,
                 oracle: OSRMRouter = None, notifier: NotificationService = None,
                 positions: PositionFeed = None, hazard_feed: HazardFeedClient = None):
        self.store = store or InMemoryMissionStore()
        self.hazard_model = hazard_model or HazardModel()
        self.oracle = oracle or OSRMRouter()
        self.route_computer = RouteComputer(self.oracle)
        self.assignment = MissionAssignment(self.store, notifier or NotificationService())
        self.ranker = PriorityRanker()
        self.positions = positions or PositionFeed()
        self.hazard_feed = hazard_feed
        self._tasks: Dict[str, TrackingTask] = {}

        logger.info("🎯 Dispatch coordinator initialized")

    @classmethod
    def from_config(cls) -> "DispatchCoordinator":
        """Coordinator backed by the configured database, OSRM server and hazard feed."""
        hazard_feed = HazardFeedClient() if Config.HAZARD_FEED_URL else None
        if hazard_feed is None:
            logger.warning("HAZARD_FEED_URL not set, hazards arrive only through pushed events")
        return cls(
            store=SQLMissionStore(Config.DATABASE_URL),
            oracle=OSRMRouter(),
            notifier=NotificationService(),
            hazard_feed=hazard_feed,
        )

    def add_mission(self, mission: Mission) -> Mission:
        if self.store.get(mission.mission_id) is not None:
            raise AssignmentConflictError(f"Mission {mission.mission_id} already exists")
        return self.store.add(mission)

    def rank_open_missions(self, agent_base: Optional[Tuple[float, float]] = None) -> List[RankedMission]:
        return self.ranker.rank(self.assignment.open_missions(), agent_base)

    def refresh_hazards(self) -> bool:
        if self.hazard_feed is None:
            return False
        return self.hazard_feed.refresh(self.hazard_model)

    def apply_hazard_event(self, action: str, payload: dict) -> bool:
        """Apply a pushed hazard change; False when the record is malformed."""
        if self.hazard_feed is not None:
            return self.hazard_feed.apply_event(self.hazard_model, action, payload)
        hazard = parse_hazard(payload)
        if hazard is None:
            return False
        self.hazard_model.apply_event(action, hazard)
        return True

    def route_for_mission(self, mission_id: str, agent_pos: Optional[Tuple[float, float]] = None,
                          vehicle_class: Optional[str] = None) -> MissionRoute:
        """Compute the two-leg route for a mission from the agent's position."""
        mission = self.store.get(mission_id)
        if mission is None:
            raise MissionNotFoundError(f"Mission {mission_id} not found")
        if agent_pos is None and mission.agent_id:
            agent_pos = self.positions.latest(mission.agent_id)
        if agent_pos is None:
            raise RouteConfigurationError("Cannot compute route, missing agent location")

        return self.route_computer.compute_mission_route(
            agent_pos, mission.pickup, mission.dropoff,
            vehicle_class or mission.vehicle_class, self.hazard_model.snapshot())

    def tracking_task(self, agent_id: str) -> Optional[TrackingTask]:
        return self._tasks.get(agent_id)

    def start_tracking(self, mission_id: str, agent_id: str,
                       vehicle_class: Optional[str] = None) -> TrackingTask:
        """Start (or restart) the live tracking task for an agent's mission."""
        mission = self.store.get(mission_id)
        if mission is None:
            raise MissionNotFoundError(f"Mission {mission_id} not found")
        if mission.agent_id != agent_id or mission.status not in MissionStatus.IN_PROGRESS:
            raise TransitionNotAllowedError(f"Agent {agent_id} is not delivering mission {mission_id}")
        if mission.pickup is None or mission.dropoff is None:
            raise RouteConfigurationError(f"Mission {mission_id} is missing pickup or dropoff location")

        self.stop_tracking(agent_id)
        # Own leg pool so one agent's slow oracle calls never queue another's replans
        route_computer = RouteComputer(self.oracle, max_workers=Config.TRACKING_ROUTE_WORKERS)
        tracker = LiveTracker(agent_id, mission.pickup, mission.dropoff, route_computer,
                              self.hazard_model, vehicle_class=vehicle_class or mission.vehicle_class,
                              owns_route_computer=True)
        if mission.status == MissionStatus.PICKED_UP:
            tracker.mark_picked_up()
        task = TrackingTask(tracker)
        self._tasks[agent_id] = task
        task.start()

        position = self.positions.latest(agent_id)
        if position is not None:
            task.report_position(position)
        logger.info(f"🚚 Tracking agent {agent_id} on mission {mission_id}")
        return task

    def advance(self, mission_id: str, agent_id: str, new_status: str):
        """Advance mission status and move the agent's tracker onto leg 2 after pickup."""
        mission = self.assignment.advance(mission_id, agent_id, new_status)
        task = self._tasks.get(agent_id)
        if task is not None:
            if new_status == MissionStatus.PICKED_UP:
                task.report_picked_up()
            elif new_status == MissionStatus.DELIVERED:
                self.stop_tracking(agent_id)
        return mission

    def report_position(self, agent_id: str, lat: float, lng: float) -> None:
        self.positions.update(agent_id, lat, lng)
        task = self._tasks.get(agent_id)
        if task is not None:
            task.report_position((lat, lng))

    def stop_tracking(self, agent_id: str) -> None:
        task = self._tasks.pop(agent_id, None)
        if task is not None:
            task.shutdown()

    def shutdown(self) -> None:
        for agent_id in list(self._tasks):
            self.stop_tracking(agent_id)
        self.route_computer.shutdown()
