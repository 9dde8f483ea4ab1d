"""Tests for the bounding-box bypass search."""
import threading

import pytest

from core.exceptions import RouteComputationCancelled
from routing.bypass_planner import BypassPlanner, bypass_waypoints, padded_corners
from routing.route_validator import validate
from routing_fakes import EAST, WEST, ScriptedOracle, rectilinear, straight

def test_padded_corners(severe_flood):
    sw, nw, se, ne = padded_corners(severe_flood)
    
    assert sw == pytest.approx((-0.003, -0.003))
    assert nw == pytest.approx((0.013, -0.003))
    assert se == pytest.approx((-0.003, 0.013))
    assert ne == pytest.approx((0.013, 0.013))

def test_three_candidates_use_sw_nw_se(severe_flood):
    candidates = bypass_waypoints(WEST, EAST, severe_flood)
    corners = padded_corners(severe_flood)
    
    assert len(candidates) == 3
    assert [c[1] for c in candidates] == corners[:3]
    assert all(c[0] == WEST and c[2] == EAST for c in candidates)

class TestBypassPlanner:
    def setup_method(self):
        self.direct = straight([WEST, EAST], duration_s=60)
    
    def test_picks_fastest_clean_candidate(self, severe_flood):
        """NW detour is the fastest hazard-free candidate."""
        durations = {-0.003: 300.0, 0.013: 200.0}
        
        def responder(waypoints):
            via = waypoints[1]
            return rectilinear(waypoints, duration_s=durations[round(via[0], 3)] + via[1])
        
        oracle = ScriptedOracle(responder)
        leg = BypassPlanner(oracle).plan(WEST, EAST, self.direct, severe_flood, [severe_flood])
        
        assert leg.rerouted
        assert leg.warning == "Rerouted to avoid flood zone"
        assert leg.duration_s == pytest.approx(200.0 - 0.003)
        assert validate(leg.path, [severe_flood]).valid
        assert len(oracle.calls) == 3
    
    def test_no_clean_candidate_returns_direct_with_warning(self, severe_flood):
        # Straight lines through any corner still clip the flood
        oracle = ScriptedOracle(lambda waypoints: straight(waypoints, duration_s=90))
        
        leg = BypassPlanner(oracle).plan(WEST, EAST, self.direct, severe_flood, [severe_flood])
        
        assert not leg.rerouted
        assert leg.path == self.direct.path
        assert leg.duration_s == 60
        assert "Severity 4" in leg.warning
        assert leg.warning.startswith("No safe route found")
    
    def test_roadblock_warning(self, blocked_road):
        oracle = ScriptedOracle(lambda waypoints: None)
        
        leg = BypassPlanner(oracle).plan(WEST, EAST, self.direct, blocked_road, [blocked_road])
        
        assert not leg.rerouted
        assert "blocked road" in leg.warning
    
    def test_oracle_failures_are_skipped(self, severe_flood):
        def responder(waypoints):
            if waypoints[1][0] < 0:
                return None
            return rectilinear(waypoints, duration_s=150)
        
        leg = BypassPlanner(ScriptedOracle(responder)).plan(
            WEST, EAST, self.direct, severe_flood, [severe_flood])
        
        assert leg.rerouted
        assert leg.duration_s == 150
    
    def test_cancelled_search_stops_querying(self, severe_flood):
        cancel = threading.Event()
        cancel.set()
        oracle = ScriptedOracle(rectilinear)
        
        with pytest.raises(RouteComputationCancelled):
            BypassPlanner(oracle).plan(WEST, EAST, self.direct, severe_flood, [severe_flood],
                                       cancel=cancel)
        assert oracle.calls == []
