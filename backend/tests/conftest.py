"""
Shared fixtures for the reserve calculation test suite.
"""
from decimal import Decimal

import pytest

from skuloc_reserve.calc.engine import ReserveCalculationEngine
from skuloc_reserve.calc.fields import ReserveField
from skuloc_reserve.calc.reserve_steps import build_reserve_registry
from skuloc_reserve.config import Settings
from skuloc_reserve.services.reserve_calculation_service import ReserveCalculationService
from skuloc_reserve.utils.events import EventBus


@pytest.fixture
def registry():
    return build_reserve_registry()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def engine(registry, event_bus):
    return ReserveCalculationEngine(registry, event_bus=event_bus)


@pytest.fixture
def scenario_inputs():
    """On-hand 100, merchandise reserve 10, lost 5, damaged 2."""
    return {
        ReserveField.ONHAND: Decimal("100"),
        ReserveField.ROHM: Decimal("10"),
        ReserveField.LOST: Decimal("5"),
        ReserveField.DMG: Decimal("2"),
    }


@pytest.fixture
def sample_values():
    return {
        "ONHAND": "626",
        "ROHM": "0",
        "LOST": "0",
        "OOBADJ": "0",
        "SNB": "1",
        "DTCO": "0",
        "ROHP": "0",
        "DOTHRY": "0",
        "DOTHRN": "0",
        "RETHRY": "0",
        "RETHRN": "0",
        "HLDHR": "0",
        "DOTRSV": "255",
        "RETRSV": "84",
        "DOTOUTB": "255",
        "NEED": "84",
    }


@pytest.fixture
def app_settings():
    return Settings(_env_file=None)


@pytest.fixture
def service(app_settings, event_bus):
    return ReserveCalculationService(app_settings, event_bus=event_bus)
