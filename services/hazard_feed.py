"""Hazard feed client: fetch active hazards and apply change events."""
import requests
from datetime import datetime
from loguru import logger
from typing import Dict, List, Optional

from configurations.config import Config
from core.hazard_model import HazardModel
from models.hazard import Hazard, HazardKind, freeze_coordinates

GEOMETRY_TYPES = {
    HazardKind.FLOOD: 'Polygon',
    HazardKind.ROADBLOCK: 'LineString',
}

def parse_hazard(record: Dict) -> Optional[Hazard]:
    """Convert one feed record into a Hazard; None if malformed."""
    try:
        kind = record['type']
        geometry = record['geometry']
        if kind not in GEOMETRY_TYPES or geometry.get('type') != GEOMETRY_TYPES[kind]:
            logger.warning(f"Skipping hazard with unsupported type/geometry: {kind}/{geometry.get('type')}")
            return None
        
        created_at = record.get('createdAt')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace('Z', '+00:00'))
        
        severity = record.get('severity')
        return Hazard(
            hazard_id=str(record.get('_id') or record['id']),
            kind=kind,
            coordinates=freeze_coordinates(geometry['coordinates']),
            severity=int(severity) if severity is not None else None,
            active=bool(record.get('isActive', True)),
            created_at=created_at,
            label=record.get('label') or "",
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Skipping malformed hazard record: {e}")
        return None

class HazardFeedClient:
    def __init__(self, feed_url: Optional[str] = None, timeout: float = None):
        self.feed_url = feed_url or Config.HAZARD_FEED_URL
        self.timeout = timeout if timeout is not None else Config.HAZARD_FEED_TIMEOUT_SECONDS
        self._last_signature = None
        
        logger.info(f"HazardFeedClient initialized with feed URL: {self.feed_url}")
    
    def fetch_active(self) -> Optional[List[Hazard]]:
        """Fetch all active hazards; None when the feed is unreachable."""
        if not self.feed_url:
            logger.warning("No hazard feed URL configured")
            return None
        try:
            response = requests.get(self.feed_url, headers={'accept': 'application/json'},
                                    timeout=self.timeout)
            
            if response.status_code != 200:
                logger.error(f"Hazard feed returned status {response.status_code}: {response.text[:200]}")
                return None
            
            records = response.json()
        except requests.RequestException as e:
            logger.error(f"Error fetching hazards: {e}")
            return None
        except ValueError as e:
            logger.error(f"Hazard feed returned invalid JSON: {e}")
            return None
        
        if isinstance(records, dict):
            records = records.get('data', records.get('layers', []))
        
        hazards = [h for h in (parse_hazard(r) for r in records) if h is not None and h.active]
        logger.success(f"Fetched {len(hazards)} active hazards")
        return hazards
    
    def refresh(self, model: HazardModel) -> bool:
        """Poll the feed and replace the model snapshot if it changed."""
        hazards = self.fetch_active()
        if hazards is None:
            return False
        
        signature = frozenset(hazards)
        if signature == self._last_signature:
            return False
        
        self._last_signature = signature
        model.replace(hazards)
        return True
    
    def apply_event(self, model: HazardModel, action: str, payload: Dict) -> bool:
        """Apply a pushed created/updated/deleted event."""
        hazard = parse_hazard(payload)
        if hazard is None:
            return False
        model.apply_event(action, hazard)
        self._last_signature = None
        return True
