"""Great-circle helpers shared by ranking, tracking and animation."""
import math
from typing import Sequence, Tuple

import numpy as np

EARTH_RADIUS_M = 6371000  # Earth radius in meters

def haversine_m(coord1: Sequence[float], coord2: Sequence[float]) -> float:
    """Calculate Haversine distance in meters between two (lat, lng) points."""
    lat1, lon1 = np.radians(coord1[0]), np.radians(coord1[1])
    lat2, lon2 = np.radians(coord2[0]), np.radians(coord2[1])
    
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    
    a = np.sin(dlat/2)**2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon/2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1-a))
    
    return float(EARTH_RADIUS_M * c)

def haversine_km(coord1: Sequence[float], coord2: Sequence[float]) -> float:
    return haversine_m(coord1, coord2) / 1000.0

def bearing(start: Sequence[float], end: Sequence[float]) -> float:
    """Initial bearing in degrees [0, 360) from start to end."""
    lat1, lat2 = math.radians(start[0]), math.radians(end[0])
    dlng = math.radians(end[1] - start[1])
    y = math.sin(dlng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlng)
    return (math.degrees(math.atan2(y, x)) + 360) % 360

def lerp_point(p1: Sequence[float], p2: Sequence[float], t: float) -> Tuple[float, float]:
    """Linear interpolation between two (lat, lng) points."""
    return (p1[0] + (p2[0] - p1[0]) * t, p1[1] + (p2[1] - p1[1]) * t)

def fmt_duration(seconds: float) -> str:
    """Format seconds as 'Xm Ys'."""
    minutes = int(seconds // 60)
    secs = int(round(seconds % 60))
    if minutes == 0:
        return f"{secs}s"
    return f"{minutes}m {secs}s"

def fmt_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"
