"""OSRM routing oracle client."""
import requests
from loguru import logger
from typing import List, Optional, Sequence, Tuple

from configurations.config import Config
from models.route import OracleRoute

# Vehicle class -> OSRM profile
VEHICLE_PROFILES = {
    'bike': 'cycling',
    'truck': 'driving',
    'car': 'driving',
}

def vehicle_profile(vehicle_class: Optional[str]) -> str:
    return VEHICLE_PROFILES.get((vehicle_class or '').lower(), 'driving')

class OSRMRouter:
    """Turns ordered (lat, lng) waypoints into a road path.

    Every failure mode (timeout, HTTP error, no route, malformed payload) is
    reported as ``None`` so callers can fall back instead of handling
    exceptions.
    """
    
    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = (base_url or Config.OSRM_BASE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else Config.OSRM_TIMEOUT_SECONDS
        
    def route(self, waypoints: Sequence[Tuple[float, float]],
              vehicle_class: Optional[str] = None) -> Optional[OracleRoute]:
        """Get a route through the waypoints in travel order."""
        if len(waypoints) < 2:
            raise ValueError("At least two waypoints are required")
        
        profile = vehicle_profile(vehicle_class)
        # Format coordinates for OSRM (lng,lat)
        coord_string = ";".join(f"{lng},{lat}" for lat, lng in waypoints)
        url = f"{self.base_url}/route/v1/{profile}/{coord_string}"
        params = {
            'overview': 'full',
            'geometries': 'geojson',
        }
        
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning(f"OSRM request failed: {e}")
            return None
        except ValueError as e:
            logger.warning(f"OSRM returned invalid JSON: {e}")
            return None
        
        if not isinstance(data, dict):
            logger.warning(f"OSRM returned an unexpected payload: {type(data).__name__}")
            return None
        
        if data.get('code') != 'Ok' or not data.get('routes'):
            logger.warning(f"OSRM returned no route: {data.get('message', data.get('code', 'Unknown error'))}")
            return None
        
        return self._process_osrm_response(data)
    
    def _process_osrm_response(self, data: dict) -> Optional[OracleRoute]:
        """Convert the first OSRM route into (lat, lng) path coordinates."""
        try:
            route = data['routes'][0]
            path: List[Tuple[float, float]] = [
                (float(lat), float(lng)) for lng, lat in route['geometry']['coordinates']
            ]
            return OracleRoute(
                path=path,
                distance_m=float(route.get('distance', 0)),
                duration_s=float(route.get('duration', 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed OSRM route: {e}")
            return None
