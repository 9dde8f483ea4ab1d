"""Tests for two-leg mission route computation."""
import threading

import pytest

from core.exceptions import RouteConfigurationError
from models.hazard import flood, roadblock
from routing.compute_routes import RouteComputer
from routing.route_validator import validate
from routing_fakes import EAST, FLOOD_RING, WEST, ScriptedOracle, rectilinear, straight

AGENT = (0.005, -0.03)
PICKUP = WEST
DROPOFF = EAST

class TestRouteComputer:
    def teardown_method(self):
        self.computer.shutdown()
    
    def test_clean_route_aggregates_legs(self):
        self.computer = RouteComputer(ScriptedOracle(lambda w: straight(w, duration_s=120, distance_m=900)))
        
        route = self.computer.compute_mission_route(AGENT, PICKUP, DROPOFF, "car", [])
        
        assert route.leg1.path == [AGENT, PICKUP]
        assert route.leg2.path == [PICKUP, DROPOFF]
        assert route.total_distance_m == 1800
        assert route.total_duration_s == 240
        assert route.warning is None
        assert not route.rerouted and not route.degraded
    
    def test_both_legs_fail_gracefully(self):
        """Oracle down: straight-line, zero-metric, flagged legs."""
        self.computer = RouteComputer(ScriptedOracle(lambda w: None))
        
        route = self.computer.compute_mission_route(AGENT, PICKUP, DROPOFF, "bike", [])
        
        assert route.leg1.path == [AGENT, PICKUP]
        assert route.leg2.path == [PICKUP, DROPOFF]
        assert route.total_duration_s == 0
        assert route.total_distance_m == 0
        assert route.leg1.degraded and route.leg2.degraded
        assert route.degraded
        assert route.warning is not None
    
    def test_degraded_leg_is_not_validated(self, severe_flood):
        oracle = ScriptedOracle(lambda w: None)
        self.computer = RouteComputer(oracle)
        
        route = self.computer.compute_mission_route(AGENT, PICKUP, DROPOFF, "car", [severe_flood])
        
        # One call per leg, no bypass attempts
        assert len(oracle.calls) == 2
        assert not route.rerouted
    
    def test_blocked_leg_is_rerouted(self, severe_flood):
        self.computer = RouteComputer(ScriptedOracle(rectilinear))
        
        route = self.computer.compute_mission_route(AGENT, PICKUP, DROPOFF, "car", [severe_flood])
        
        assert not route.leg1.rerouted
        assert route.leg2.rerouted
        assert validate(route.leg2.path, [severe_flood]).valid
        assert route.warning == "Rerouted to avoid flood zone"
    
    def test_leg1_warning_takes_priority(self):
        # Road block crossing both legs; no detour exists
        self.computer = RouteComputer(ScriptedOracle(straight))
        wide_block = roadblock("wall", [[-0.02, -1.0], [-0.02, 1.0]])
        
        route = self.computer.compute_mission_route(
            (0.005, -0.05), (0.005, 0.0), (0.005, -0.04), "car", [wide_block])
        
        assert route.leg1.warning and route.leg2.warning
        assert route.warning == route.leg1.warning
    
    def test_inactive_hazards_are_ignored(self):
        self.computer = RouteComputer(ScriptedOracle(straight))
        dormant = flood("dormant", FLOOD_RING, severity=5, active=False)
        
        route = self.computer.compute_mission_route(AGENT, PICKUP, DROPOFF, "car", [dormant])
        
        assert route.warning is None
    
    def test_missing_dropoff_is_a_configuration_error(self):
        oracle = ScriptedOracle(straight)
        self.computer = RouteComputer(oracle)
        
        with pytest.raises(RouteConfigurationError):
            self.computer.compute_mission_route(AGENT, PICKUP, None, "car", [])
        assert oracle.calls == []
    
    def test_legs_are_computed_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)
        
        def responder(waypoints):
            # Both leg requests must be in flight together to pass
            barrier.wait()
            return straight(waypoints)
        
        self.computer = RouteComputer(ScriptedOracle(responder))
        route = self.computer.compute_mission_route(AGENT, PICKUP, DROPOFF, "car", [])
        
        assert not route.degraded
