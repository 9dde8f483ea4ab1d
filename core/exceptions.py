"""Exceptions raised by the dispatch and routing core."""

class DispatchError(Exception):
    """Base exception for the dispatch core."""
    pass

class MissionNotFoundError(DispatchError):
    pass

class AssignmentConflictError(DispatchError):
    """The mission's state changed before the conditional update landed."""
    pass

class AlreadyClaimedError(AssignmentConflictError):
    def __init__(self, mission_id: str):
        super().__init__(f"Mission {mission_id} has already been claimed")
        self.mission_id = mission_id

class AlreadyAcceptedError(AssignmentConflictError):
    def __init__(self, mission_id: str):
        super().__init__(f"Mission {mission_id} has already been accepted by another agent")
        self.mission_id = mission_id

class TransitionNotAllowedError(DispatchError):
    """Caller does not own the mission or the mission is in the wrong state."""
    pass

class RouteConfigurationError(DispatchError):
    """A route cannot be computed because a required coordinate is missing."""
    pass

class RouteComputationCancelled(DispatchError):
    """A newer computation superseded this one."""
    pass
