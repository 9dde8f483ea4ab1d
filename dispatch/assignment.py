"""Mission assignment state machine over conditional store updates."""
from datetime import datetime, timezone
from loguru import logger
from typing import Optional

from core.exceptions import (AlreadyAcceptedError, AlreadyClaimedError, MissionNotFoundError,
                             TransitionNotAllowedError)
from models.mission import Mission, MissionStatus
from services.notification_service import NotificationService
from storage.mission_store import MissionStore

# Status advances an agent may make, keyed by target status
ADVANCE_FROM = {
    MissionStatus.PICKED_UP: MissionStatus.ACCEPTED_BY_DELIVERY,
    MissionStatus.DELIVERED: MissionStatus.PICKED_UP,
}

class MissionAssignment:
    """Claim, release, accept and advance missions.

    Every transition is a single ``transition_if`` call, so the store decides
    races. After a failed update the mission is read only to choose the error
    to report.
    """

    def __init__(self, store: MissionStore, notifier: Optional[NotificationService] = None):
        self.store = store
        self.notifier = notifier or NotificationService()

    def _require(self, mission_id: str) -> Mission:
        mission = self.store.get(mission_id)
        if mission is None:
            raise MissionNotFoundError(f"Mission {mission_id} not found")
        return mission

    def _notify(self, user_id: Optional[str], kind: str, title: str, message: str,
                mission: Mission) -> None:
        self.notifier.notify(user_id, kind, title, message, mission.mission_id)

    def claim(self, mission_id: str, claimant_id: str) -> Mission:
        """available -> waiting_for_delivery; exactly one concurrent claimant wins."""
        mission = self.store.transition_if(
            mission_id, MissionStatus.AVAILABLE, MissionStatus.WAITING_FOR_DELIVERY,
            updates={'claimant_id': claimant_id, 'claimed_at': datetime.now(timezone.utc)},
        )
        if mission is None:
            self._require(mission_id)
            raise AlreadyClaimedError(mission_id)

        logger.info(f"Mission {mission_id} claimed by {claimant_id}")
        self._notify(mission.donor_id, 'donation_claimed', 'Donation claimed',
                     f'Your donation "{mission.food_name}" was claimed.', mission)
        return mission

    def release(self, mission_id: str, claimant_id: str) -> Mission:
        """waiting_for_delivery -> available, only for the claimant and before acceptance."""
        mission = self.store.transition_if(
            mission_id, MissionStatus.WAITING_FOR_DELIVERY, MissionStatus.AVAILABLE,
            expected={'claimant_id': claimant_id},
            updates={'claimant_id': None, 'claimed_at': None},
        )
        if mission is None:
            self._require(mission_id)
            raise TransitionNotAllowedError(
                f"Cannot release {mission_id}: not your claim or delivery already accepted")

        logger.info(f"Mission {mission_id} released by {claimant_id}")
        self._notify(mission.donor_id, 'claim_released', 'Claim released',
                     f'The claim on "{mission.food_name}" was released. It is available again.', mission)
        return mission

    def accept(self, mission_id: str, agent_id: str) -> Mission:
        """waiting_for_delivery -> accepted_by_delivery; binds exactly one agent."""
        mission = self.store.transition_if(
            mission_id, MissionStatus.WAITING_FOR_DELIVERY, MissionStatus.ACCEPTED_BY_DELIVERY,
            updates={'agent_id': agent_id},
        )
        if mission is None:
            current = self._require(mission_id)
            if current.status == MissionStatus.AVAILABLE:
                raise TransitionNotAllowedError(f"Mission {mission_id} has not been claimed yet")
            raise AlreadyAcceptedError(mission_id)

        logger.info(f"Mission {mission_id} accepted by agent {agent_id}")
        self._notify(mission.donor_id, 'mission_accepted', 'Delivery accepted',
                     f'A delivery partner accepted pickup for "{mission.food_name}".', mission)
        self._notify(mission.claimant_id, 'mission_accepted', 'Delivery accepted',
                     f'A delivery partner is on the way for "{mission.food_name}".', mission)
        return mission

    def advance(self, mission_id: str, agent_id: str, new_status: str) -> Mission:
        """accepted_by_delivery -> picked_up -> delivered, bound agent only."""
        if new_status not in ADVANCE_FROM:
            raise TransitionNotAllowedError(f"Cannot advance a mission to '{new_status}'")

        mission = self.store.transition_if(
            mission_id, ADVANCE_FROM[new_status], new_status,
            expected={'agent_id': agent_id},
        )
        if mission is None:
            current = self._require(mission_id)
            if current.agent_id != agent_id:
                raise TransitionNotAllowedError(f"Agent {agent_id} is not bound to mission {mission_id}")
            raise TransitionNotAllowedError(
                f"Mission {mission_id} is '{current.status}', cannot move to '{new_status}'")

        logger.info(f"Mission {mission_id} is now {new_status}")
        if new_status == MissionStatus.PICKED_UP:
            self._notify(mission.claimant_id, 'picked_up', 'Food picked up',
                         f'"{mission.food_name}" was picked up and is on its way.', mission)
        else:
            self._notify(mission.donor_id, 'delivered', 'Delivery completed',
                         f'"{mission.food_name}" was delivered.', mission)
            self._notify(mission.claimant_id, 'delivered', 'Delivery completed',
                         f'"{mission.food_name}" has been delivered to you.', mission)
        return mission

    def open_missions(self):
        """Claimed missions waiting for a delivery agent."""
        return self.store.list_by_status(MissionStatus.OPEN)

    def active_mission(self, agent_id: str) -> Optional[Mission]:
        for mission in self.store.list_by_status(MissionStatus.IN_PROGRESS):
            if mission.agent_id == agent_id:
                return mission
        return None
