"""Data models for delivery missions."""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Tuple

Coordinate = Tuple[float, float]  # (lat, lng)

class MissionStatus:
    AVAILABLE = "available"
    WAITING_FOR_DELIVERY = "waiting_for_delivery"
    ACCEPTED_BY_DELIVERY = "accepted_by_delivery"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"

    ALL = (AVAILABLE, WAITING_FOR_DELIVERY, ACCEPTED_BY_DELIVERY, PICKED_UP, DELIVERED)
    # Claimed but not yet delivered
    OPEN = (WAITING_FOR_DELIVERY,)
    IN_PROGRESS = (ACCEPTED_BY_DELIVERY, PICKED_UP)

@dataclass
class Mission:
    mission_id: str
    pickup: Optional[Coordinate]
    dropoff: Optional[Coordinate]
    servings: Optional[int]
    deadline: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    status: str = MissionStatus.AVAILABLE
    claimant_id: Optional[str] = None
    agent_id: Optional[str] = None
    donor_id: Optional[str] = None
    food_name: str = ""
    vehicle_class: Optional[str] = None

    def copy(self, **changes) -> "Mission":
        return replace(self, **changes)

@dataclass
class RankedMission:
    """Mission annotated by the priority ranking engine."""
    mission: Mission
    score: float
    rank: int
    impact_per_distance: float
    hours_remaining: float
    claim_wait_hours: float
