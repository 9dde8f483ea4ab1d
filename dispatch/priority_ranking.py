"""Multi-factor priority ranking of open delivery missions."""
from datetime import datetime, timezone
from loguru import logger
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from configurations.config import Config
from models.mission import Mission, RankedMission
from utils.geo import haversine_km

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _hours_between(later: datetime, earlier: datetime) -> float:
    # Naive timestamps are taken as UTC
    if later.tzinfo is None:
        later = later.replace(tzinfo=timezone.utc)
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=timezone.utc)
    return (later - earlier).total_seconds() / 3600.0

def normalize(values: np.ndarray) -> np.ndarray:
    """Min-max normalize within the batch; all-equal batches map to 0."""
    if values.size == 0:
        return values
    low, high = values.min(), values.max()
    span = high - low
    if span == 0:
        return np.zeros_like(values, dtype=float)
    return (values - low) / span

class PriorityRanker:
    """Scores and orders claimed missions for a delivery agent.

    Factors are normalized against the current batch only, so scores are not
    comparable between calls. Nothing is cached: calling ``rank`` twice on the
    same input returns the same result.
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None,
                 default_deadline_hours: float = None, impact_sentinel: float = None):
        self.weights = dict(weights or Config.PRIORITY_WEIGHTS)
        self.default_deadline_hours = (Config.DEFAULT_DEADLINE_HOURS
                                       if default_deadline_hours is None else default_deadline_hours)
        self.impact_sentinel = Config.IMPACT_SENTINEL if impact_sentinel is None else impact_sentinel

    def impact_per_distance(self, mission: Mission, agent_base: Optional[Tuple[float, float]]) -> float:
        """Kilometres travelled per serving delivered, or the sentinel when unknown."""
        if agent_base is None or mission.pickup is None or mission.dropoff is None:
            return self.impact_sentinel
        if not mission.servings or mission.servings <= 0:
            logger.warning(f"Mission {mission.mission_id} has no servings, using worst-case impact")
            return self.impact_sentinel
        distance_km = haversine_km(agent_base, mission.pickup) + haversine_km(mission.pickup, mission.dropoff)
        return distance_km / mission.servings

    def hours_remaining(self, mission: Mission, now: datetime) -> float:
        if mission.deadline is None:
            return self.default_deadline_hours
        return max(0.0, _hours_between(mission.deadline, now))

    def claim_wait_hours(self, mission: Mission, now: datetime) -> float:
        if mission.claimed_at is None:
            return 0.0
        return max(0.0, _hours_between(now, mission.claimed_at))

    def rank(self, missions: Sequence[Mission], agent_base: Optional[Tuple[float, float]] = None,
             now: Optional[datetime] = None) -> List[RankedMission]:
        """Return missions sorted by descending score with 1-based ranks."""
        if not missions:
            return []
        now = now or _now()

        impact = np.array([self.impact_per_distance(m, agent_base) for m in missions], dtype=float)
        remaining = np.array([self.hours_remaining(m, now) for m in missions], dtype=float)
        waiting = np.array([self.claim_wait_hours(m, now) for m in missions], dtype=float)

        # Longer waits are more urgent; less time left is more urgent;
        # more distance per serving is penalized.
        wait_urgency = normalize(waiting)
        perish_urgency = 1.0 - normalize(remaining)
        impact_urgency = 1.0 - normalize(impact)

        scores = (self.weights['wait'] * wait_urgency
                  + self.weights['perish'] * perish_urgency
                  + self.weights['impact'] * impact_urgency)

        # Stable sort keeps input order for ties
        order = np.argsort(-scores, kind='stable')

        ranked = []
        for position, idx in enumerate(order, start=1):
            ranked.append(RankedMission(
                mission=missions[idx],
                score=float(scores[idx]),
                rank=position,
                impact_per_distance=float(impact[idx]),
                hours_remaining=float(remaining[idx]),
                claim_wait_hours=float(waiting[idx]),
            ))

        logger.info(f"Ranked {len(ranked)} open missions")
        return ranked
