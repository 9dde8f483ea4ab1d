"""Validate candidate paths against the active hazard snapshot."""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from core.hazard_model import intersects
from models.hazard import Hazard

@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    blocked_by: Optional[Hazard] = None

    def __bool__(self) -> bool:
        return self.valid

def validate(path: Sequence[Sequence[float]], hazards: Iterable[Hazard]) -> ValidationResult:
    """Return valid, or blocked by the first crossed blocking hazard."""
    blocked, hazard = intersects(path, hazards)
    if blocked:
        return ValidationResult(valid=False, blocked_by=hazard)
    return ValidationResult(valid=True)
