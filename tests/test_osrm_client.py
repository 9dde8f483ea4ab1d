"""Tests for the OSRM routing oracle client."""
import pytest
import requests

from routing.compute_routes import RouteComputer
from routing.osrm_client import OSRMRouter, vehicle_profile

class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
    
    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")
    
    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

OK_PAYLOAD = {
    'code': 'Ok',
    'routes': [{
        'geometry': {'type': 'LineString', 'coordinates': [[80.27, 13.08], [80.28, 13.09]]},
        'distance': 1523.4,
        'duration': 245.1,
    }],
}

class TestOSRMRouter:
    def setup_method(self):
        self.router = OSRMRouter("http://osrm.test/", timeout=3)
        self.requests_made = []
    
    def _patch(self, monkeypatch, result):
        def fake_get(url, params=None, timeout=None):
            self.requests_made.append((url, params, timeout))
            if isinstance(result, Exception):
                raise result
            return result
        monkeypatch.setattr(requests, "get", fake_get)
    
    def test_route_parses_geometry_as_lat_lng(self, monkeypatch):
        self._patch(monkeypatch, FakeResponse(OK_PAYLOAD))
        
        route = self.router.route([(13.08, 80.27), (13.09, 80.28)], "bike")
        
        assert route.path == [(13.08, 80.27), (13.09, 80.28)]
        assert route.distance_m == pytest.approx(1523.4)
        assert route.duration_s == pytest.approx(245.1)
        url, params, timeout = self.requests_made[0]
        assert url == "http://osrm.test/route/v1/cycling/80.27,13.08;80.28,13.09"
        assert params['geometries'] == 'geojson'
        assert timeout == 3
    
    def test_no_route_returns_none(self, monkeypatch):
        self._patch(monkeypatch, FakeResponse({'code': 'NoRoute', 'message': 'Impossible route'}))
        assert self.router.route([(0, 0), (1, 1)]) is None
    
    def test_empty_routes_returns_none(self, monkeypatch):
        self._patch(monkeypatch, FakeResponse({'code': 'Ok', 'routes': []}))
        assert self.router.route([(0, 0), (1, 1)]) is None
    
    def test_timeout_returns_none(self, monkeypatch):
        self._patch(monkeypatch, requests.Timeout("read timed out"))
        assert self.router.route([(0, 0), (1, 1)]) is None
    
    def test_http_error_returns_none(self, monkeypatch):
        self._patch(monkeypatch, FakeResponse({}, status_code=503))
        assert self.router.route([(0, 0), (1, 1)]) is None
    
    def test_invalid_json_returns_none(self, monkeypatch):
        self._patch(monkeypatch, FakeResponse(ValueError("not json")))
        assert self.router.route([(0, 0), (1, 1)]) is None
    
    @pytest.mark.parametrize("payload", [["not", "an", "object"], "<html>captive portal</html>", None])
    def test_non_object_payload_returns_none(self, monkeypatch, payload):
        self._patch(monkeypatch, FakeResponse(payload))
        assert self.router.route([(0, 0), (1, 1)]) is None
    
    def test_non_object_payload_degrades_mission_route(self, monkeypatch):
        self._patch(monkeypatch, FakeResponse(["not", "an", "object"]))
        computer = RouteComputer(self.router)
        try:
            route = computer.compute_mission_route((13.08, 80.27), (13.09, 80.28), (13.1, 80.29), None, [])
        finally:
            computer.shutdown()
        
        assert route.leg1.degraded and route.leg2.degraded
        assert route.leg1.path == [(13.08, 80.27), (13.09, 80.28)]
    
    def test_malformed_geometry_returns_none(self, monkeypatch):
        self._patch(monkeypatch, FakeResponse({'code': 'Ok', 'routes': [{'distance': 10}]}))
        assert self.router.route([(0, 0), (1, 1)]) is None
    
    def test_requires_two_waypoints(self):
        with pytest.raises(ValueError):
            self.router.route([(0, 0)])

def test_vehicle_profiles():
    assert vehicle_profile('bike') == 'cycling'
    assert vehicle_profile('truck') == 'driving'
    assert vehicle_profile('car') == 'driving'
    assert vehicle_profile(None) == 'driving'
