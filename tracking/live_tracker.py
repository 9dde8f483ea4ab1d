"""Per-agent live tracking and event-triggered route recomputation."""
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from loguru import logger
from typing import Any, Callable, Generic, Optional, Sequence, Tuple, TypeVar

from configurations.config import Config
from core.exceptions import RouteComputationCancelled, RouteConfigurationError
from core.hazard_model import HazardModel
from models.hazard import Hazard
from models.route import MissionRoute, Waypoint
from routing.compute_routes import RouteComputer
from tracking.path_animator import AnimationFrame, PathAnimator
from utils.geo import haversine_m

T = TypeVar("T")

class LatestResultSlot(Generic[T]):
    """Single-slot channel: only the most recently issued generation may land."""

    def __init__(self):
        self._lock = threading.Lock()
        self._issued = 0
        self._item: Optional[Tuple[int, T]] = None

    def issue(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    @property
    def latest_issued(self) -> int:
        with self._lock:
            return self._issued

    def offer(self, generation: int, value: T) -> bool:
        """Store a result; stale generations are discarded."""
        with self._lock:
            if generation != self._issued:
                return False
            self._item = (generation, value)
            return True

    def take(self) -> Optional[Tuple[int, T]]:
        with self._lock:
            item, self._item = self._item, None
            return item

@dataclass
class TrackingState:
    agent_id: str
    last_known_position: Optional[Waypoint] = None
    last_trigger_position: Optional[Waypoint] = None
    route: Optional[MissionRoute] = None
    route_generation: int = 0
    route_started_at: float = 0.0
    start_leg: int = 1
    picked_up: bool = False

class LiveTracker:
    """Tracking state for one agent on one mission.

    Movement and hazard events start a new route computation in the background;
    the newest one cancels the previous and its result is applied by
    ``apply_latest``. Older results never reach the state.
    """

    def __init__(self, agent_id: str, pickup: Optional[Waypoint], dropoff: Optional[Waypoint],
                 route_computer: RouteComputer, hazard_model: HazardModel,
                 vehicle_class: Optional[str] = None,
                 move_threshold_m: float = None,
                 clock: Callable[[], float] = time.monotonic,
                 on_result: Optional[Callable[[], None]] = None,
                 owns_route_computer: bool = False):
        self.state = TrackingState(agent_id=agent_id)
        self.pickup = pickup
        self.dropoff = dropoff
        self.vehicle_class = vehicle_class
        self.route_computer = route_computer
        self.owns_route_computer = owns_route_computer
        self.hazard_model = hazard_model
        self.move_threshold_m = Config.SIGNIFICANT_MOVE_METERS if move_threshold_m is None else move_threshold_m
        self.animator = PathAnimator(vehicle_class)
        self.clock = clock
        self.on_result = on_result
        self._slot: LatestResultSlot[MissionRoute] = LatestResultSlot()
        self._cancel: Optional[threading.Event] = None
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"track-{agent_id}")

    # -- queries --------------------------------------------------------

    @property
    def latest_generation(self) -> int:
        return self._slot.latest_issued

    def current_frame(self) -> Optional[AnimationFrame]:
        if self.state.route is None:
            return None
        elapsed = self.clock() - self.state.route_started_at
        return self.animator.frame_at(self.state.route, elapsed, self.state.start_leg)

    def current_leg(self) -> int:
        if self.state.picked_up:
            return 2
        frame = self.current_frame()
        return frame.leg if frame else 1

    def current_position(self) -> Optional[Waypoint]:
        """Interpolated position along the active route, else the last report."""
        frame = self.current_frame()
        if frame is not None:
            return frame.position
        return self.state.last_known_position

    # -- transitions ----------------------------------------------------

    def on_position(self, position: Waypoint) -> Optional[Future]:
        """Handle a position report; recompute on significant movement during leg 1."""
        position = tuple(position)
        self.state.last_known_position = position

        last = self.state.last_trigger_position
        if last is None:
            self.state.last_trigger_position = position
            return self._trigger(position, self.hazard_model.snapshot())

        moved = haversine_m(last, position)
        if moved > self.move_threshold_m and self.current_leg() == 1:
            logger.info(f"Agent {self.state.agent_id} moved {moved:.0f}m, recomputing route")
            self.state.last_trigger_position = position
            return self._trigger(position, self.hazard_model.snapshot())
        return None

    def on_hazards_changed(self, hazards: Optional[Sequence[Hazard]] = None) -> Optional[Future]:
        """Recompute unconditionally from the interpolated position."""
        origin = self.current_position()
        if origin is None:
            logger.warning(f"Agent {self.state.agent_id} has no position yet, ignoring hazard change")
            return None
        if hazards is None:
            hazards = self.hazard_model.snapshot()
        logger.info(f"Hazards changed, recomputing route for agent {self.state.agent_id}")
        return self._trigger(origin, hazards)

    def mark_picked_up(self) -> None:
        """Pickup done: continue on leg 2 from its start."""
        self.state.picked_up = True
        if self.state.route is not None and self.state.start_leg == 1:
            self.state.start_leg = 2
            self.state.route_started_at = self.clock()

    def apply_latest(self) -> bool:
        """Apply the newest computed route, if one is waiting."""
        item = self._slot.take()
        if item is None:
            return False
        generation, route = item
        if generation != self._slot.latest_issued:
            return False
        leg = self.current_leg()
        self.state.route = route
        self.state.route_generation = generation
        self.state.start_leg = leg
        self.state.route_started_at = self.clock()
        logger.info(f"Agent {self.state.agent_id}: applied route generation {generation} on leg {leg}")
        return True

    def stop(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
        self._executor.shutdown(wait=False)
        if self.owns_route_computer:
            self.route_computer.shutdown()

    # -- computation ----------------------------------------------------

    def _trigger(self, origin: Waypoint, hazards: Sequence[Hazard]) -> Future:
        if self._cancel is not None:
            self._cancel.set()
        cancel = threading.Event()
        self._cancel = cancel
        generation = self._slot.issue()
        return self._executor.submit(self._compute, generation, origin, tuple(hazards), cancel)

    def _compute(self, generation: int, origin: Waypoint, hazards: Tuple[Hazard, ...],
                 cancel: threading.Event) -> Optional[MissionRoute]:
        try:
            route = self.route_computer.compute_mission_route(
                origin, self.pickup, self.dropoff, self.vehicle_class, hazards, cancel=cancel)
        except RouteComputationCancelled:
            logger.debug(f"Route generation {generation} cancelled")
            return None
        except RouteConfigurationError as e:
            logger.error(f"Agent {self.state.agent_id}: {e}")
            return None
        except Exception as e:
            if cancel.is_set():
                logger.debug(f"Route generation {generation} failed after cancellation: {e}")
            else:
                logger.exception(f"Agent {self.state.agent_id}: route generation {generation} failed")
            return None

        if cancel.is_set() or not self._slot.offer(generation, route):
            logger.debug(f"Discarding stale route generation {generation}")
            return None
        if self.on_result is not None:
            self.on_result()
        return route

@dataclass(frozen=True)
class TrackingEvent:
    kind: str  # position | hazards | picked_up | tick | stop
    payload: Any = None

class TrackingTask(threading.Thread):
    """Owns one LiveTracker and is the only thread that mutates its state."""

    def __init__(self, tracker: LiveTracker, poll_interval: float = 0.1):
        super().__init__(name=f"tracking-{tracker.state.agent_id}", daemon=True)
        self.tracker = tracker
        self.events: "queue.Queue[TrackingEvent]" = queue.Queue()
        self.poll_interval = poll_interval
        tracker.on_result = lambda: self.events.put(TrackingEvent("tick"))
        self._unsubscribe = tracker.hazard_model.subscribe(
            lambda snapshot: self.events.put(TrackingEvent("hazards", snapshot)))

    def report_position(self, position: Waypoint) -> None:
        self.events.put(TrackingEvent("position", tuple(position)))

    def report_picked_up(self) -> None:
        self.events.put(TrackingEvent("picked_up"))

    def shutdown(self) -> None:
        self.events.put(TrackingEvent("stop"))

    def run(self) -> None:
        logger.info(f"Tracking task started for agent {self.tracker.state.agent_id}")
        while True:
            try:
                event = self.events.get(timeout=self.poll_interval)
            except queue.Empty:
                event = TrackingEvent("tick")

            if event.kind == "stop":
                break
            if event.kind == "position":
                self.tracker.on_position(event.payload)
            elif event.kind == "hazards":
                self.tracker.on_hazards_changed(event.payload)
            elif event.kind == "picked_up":
                self.tracker.mark_picked_up()
            self.tracker.apply_latest()

        self._unsubscribe()
        self.tracker.stop()
        logger.info(f"Tracking task stopped for agent {self.tracker.state.agent_id}")
