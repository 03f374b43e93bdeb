"""
Shared fixtures for integration tests.

Provides:
- A fixed clock so report windows are deterministic
- Controller fixtures for a populated and an empty controller
"""

import pytest

from tests.integration.fakes import NOW, ControllerFixture, at
from vdi_usage_report.config import clear_settings_cache
from vdi_usage_report.schemas import DeliveryGroup, Machine, SessionInterval


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def office_controller() -> ControllerFixture:
    """
    Group A: three overlapping sessions (peak 3) on two machines.
    Group B: one machine, no sessions.
    """
    return ControllerFixture(
        groups=[
            DeliveryGroup(id="dg-a", name="Group A"),
            DeliveryGroup(id="dg-b", name="Group B"),
        ],
        machines=[
            Machine("m1", "dg-a"),
            Machine("m2", "dg-a"),
            Machine("m3", "dg-b"),
        ],
        sessions=[
            SessionInterval("dg-a", at(8 * 60), at(10 * 60)),
            SessionInterval("dg-a", at(9 * 60), at(11 * 60)),
            SessionInterval("dg-a", at(9 * 60 + 30), None),
        ],
    )


@pytest.fixture
def empty_controller() -> ControllerFixture:
    return ControllerFixture()


@pytest.fixture(autouse=True)
def _clean_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()
