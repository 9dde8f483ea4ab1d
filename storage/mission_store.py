"""Mission storage with atomic conditional (compare-and-swap) transitions."""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import (Column, DateTime, Float, Integer, MetaData, String, Table,
                        create_engine, insert, select, update)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from configurations.config import Config
from models.mission import Mission, MissionStatus
from utils.geo import haversine_m

logger = logging.getLogger(__name__)

class MissionStore(ABC):
    """Document store contract used by the assignment state machine."""

    @abstractmethod
    def add(self, mission: Mission) -> Mission:
        ...

    @abstractmethod
    def get(self, mission_id: str) -> Optional[Mission]:
        ...

    @abstractmethod
    def list_by_status(self, statuses: Iterable[str]) -> List[Mission]:
        ...

    @abstractmethod
    def transition_if(self, mission_id: str, expected_status: str, new_status: str,
                      expected: Optional[Dict[str, Any]] = None,
                      updates: Optional[Dict[str, Any]] = None) -> Optional[Mission]:
        """Atomically move a mission from expected_status to new_status.

        ``expected`` holds extra field predicates that must also match. Returns
        the updated mission, or None when any predicate failed.
        """
        ...

    def nearest_available(self, lat: float, lng: float,
                          max_distance_m: float = None, limit: int = None) -> List[Tuple[Mission, float]]:
        """Available missions by pickup distance, nearest first."""
        max_distance_m = Config.DEFAULT_SEARCH_RADIUS_METERS if max_distance_m is None else max_distance_m
        limit = Config.DEFAULT_SEARCH_LIMIT if limit is None else limit
        found = []
        for mission in self.list_by_status([MissionStatus.AVAILABLE]):
            if mission.pickup is None:
                continue
            distance = haversine_m((lat, lng), mission.pickup)
            if distance <= max_distance_m:
                found.append((mission, distance))
        found.sort(key=lambda item: item[1])
        return found[:limit]

class InMemoryMissionStore(MissionStore):
    """Process-local store; a single lock makes each transition atomic."""

    def __init__(self, missions: Iterable[Mission] = ()):
        self._missions: Dict[str, Mission] = {}
        self._lock = threading.Lock()
        for mission in missions:
            self.add(mission)

    def add(self, mission: Mission) -> Mission:
        with self._lock:
            self._missions[mission.mission_id] = mission.copy()
            logger.info(f"Stored mission {mission.mission_id}")
        return mission

    def get(self, mission_id: str) -> Optional[Mission]:
        with self._lock:
            mission = self._missions.get(mission_id)
            return mission.copy() if mission else None

    def list_by_status(self, statuses: Iterable[str]) -> List[Mission]:
        wanted = set(statuses)
        with self._lock:
            return [m.copy() for m in self._missions.values() if m.status in wanted]

    def transition_if(self, mission_id: str, expected_status: str, new_status: str,
                      expected: Optional[Dict[str, Any]] = None,
                      updates: Optional[Dict[str, Any]] = None) -> Optional[Mission]:
        with self._lock:
            mission = self._missions.get(mission_id)
            if mission is None or mission.status != expected_status:
                return None
            for field_name, value in (expected or {}).items():
                if getattr(mission, field_name) != value:
                    return None
            updated = mission.copy(status=new_status, **(updates or {}))
            self._missions[mission_id] = updated
            return updated.copy()

def _to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    # Stored as naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

class SQLMissionStore(MissionStore):
    """SQLAlchemy-backed store; each transition is one conditional UPDATE."""

    COORDINATE_FIELDS = {
        'pickup': ('pickup_lat', 'pickup_lng'),
        'dropoff': ('dropoff_lat', 'dropoff_lng'),
    }

    def __init__(self, database_url: str = None, engine: Engine = None):
        self.engine = engine or create_engine(database_url or Config.DATABASE_URL)
        self.metadata = MetaData()
        self.missions = Table(
            'missions', self.metadata,
            Column('mission_id', String(64), primary_key=True),
            Column('pickup_lat', Float), Column('pickup_lng', Float),
            Column('dropoff_lat', Float), Column('dropoff_lng', Float),
            Column('servings', Integer),
            Column('deadline', DateTime),
            Column('claimed_at', DateTime),
            Column('status', String(32), nullable=False, index=True),
            Column('claimant_id', String(64)),
            Column('agent_id', String(64)),
            Column('donor_id', String(64)),
            Column('food_name', String(255)),
            Column('vehicle_class', String(32)),
        )
        self._create_tables()

    def _create_tables(self):
        """Create necessary tables if they don't exist."""
        self.metadata.create_all(self.engine)
        logger.info("Mission tables ready")

    def _to_columns(self, values: Dict[str, Any]) -> Dict[str, Any]:
        columns = {}
        for field_name, value in values.items():
            if field_name in self.COORDINATE_FIELDS:
                lat_col, lng_col = self.COORDINATE_FIELDS[field_name]
                columns[lat_col] = value[0] if value is not None else None
                columns[lng_col] = value[1] if value is not None else None
            elif isinstance(value, datetime):
                columns[field_name] = _to_db_time(value)
            else:
                columns[field_name] = value
        return columns

    def _to_mission(self, row) -> Mission:
        data = row._mapping
        pickup = (data['pickup_lat'], data['pickup_lng']) if data['pickup_lat'] is not None else None
        dropoff = (data['dropoff_lat'], data['dropoff_lng']) if data['dropoff_lat'] is not None else None
        return Mission(
            mission_id=data['mission_id'],
            pickup=pickup,
            dropoff=dropoff,
            servings=data['servings'],
            deadline=data['deadline'],
            claimed_at=data['claimed_at'],
            status=data['status'],
            claimant_id=data['claimant_id'],
            agent_id=data['agent_id'],
            donor_id=data['donor_id'],
            food_name=data['food_name'] or "",
            vehicle_class=data['vehicle_class'],
        )

    def add(self, mission: Mission) -> Mission:
        values = self._to_columns({
            'mission_id': mission.mission_id,
            'pickup': mission.pickup,
            'dropoff': mission.dropoff,
            'servings': mission.servings,
            'deadline': mission.deadline,
            'claimed_at': mission.claimed_at,
            'status': mission.status,
            'claimant_id': mission.claimant_id,
            'agent_id': mission.agent_id,
            'donor_id': mission.donor_id,
            'food_name': mission.food_name,
            'vehicle_class': mission.vehicle_class,
        })
        with self.engine.begin() as conn:
            conn.execute(insert(self.missions).values(**values))
        logger.info(f"Stored mission {mission.mission_id}")
        return mission

    def get(self, mission_id: str) -> Optional[Mission]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(self.missions).where(self.missions.c.mission_id == mission_id)
            ).first()
        return self._to_mission(row) if row is not None else None

    def list_by_status(self, statuses: Iterable[str]) -> List[Mission]:
        query = (select(self.missions)
                 .where(self.missions.c.status.in_(list(statuses)))
                 .order_by(self.missions.c.claimed_at.desc(), self.missions.c.mission_id))
        with self.engine.connect() as conn:
            return [self._to_mission(row) for row in conn.execute(query)]

    def transition_if(self, mission_id: str, expected_status: str, new_status: str,
                      expected: Optional[Dict[str, Any]] = None,
                      updates: Optional[Dict[str, Any]] = None) -> Optional[Mission]:
        table = self.missions
        conditions = [table.c.mission_id == mission_id, table.c.status == expected_status]
        for column, value in self._to_columns(expected or {}).items():
            conditions.append(table.c[column].is_(None) if value is None else table.c[column] == value)

        values = self._to_columns(updates or {})
        values['status'] = new_status

        try:
            with self.engine.begin() as conn:
                result = conn.execute(update(table).where(*conditions).values(**values))
                if result.rowcount != 1:
                    return None
                row = conn.execute(select(table).where(table.c.mission_id == mission_id)).first()
        except SQLAlchemyError as e:
            logger.error(f"Transition {expected_status} -> {new_status} failed for {mission_id}: {e}")
            raise
        return self._to_mission(row)
