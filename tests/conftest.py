"""Shared hazard fixtures."""
import pytest

from models.hazard import flood, roadblock
from routing_fakes import FLOOD_RING

@pytest.fixture
def severe_flood():
    return flood("flood-1", FLOOD_RING, severity=4, label="River overflow")

@pytest.fixture
def mild_flood():
    return flood("flood-2", FLOOD_RING, severity=3)

@pytest.fixture
def blocked_road():
    # North-south line crossing the WEST -> EAST corridor at lng 0.015
    return roadblock("block-1", [[0.015, -0.02], [0.015, 0.03]])
