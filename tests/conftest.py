"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import json
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from geoquiz.core.modes import City, Road  # noqa: E402
from geoquiz.delivery.progress_store import ProgressStore  # noqa: E402
from geoquiz.delivery.storage import MemoryStorage  # noqa: E402

FIXED_NOW = 1_700_000_000_000


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = FIXED_NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class ManualTimer:
    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Feedback scheduler that records timers instead of starting threads."""

    def __init__(self):
        self.timers: list[ManualTimer] = []

    def __call__(self, delay: float, callback) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def fire(self, index: int = -1) -> None:
        self.timers[index].callback()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """Fixed clock at a known instant."""
    return FakeClock()


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def store(memory_storage, clock):
    """Initialized progress store over memory storage."""
    return ProgressStore(memory_storage, clock=clock).init()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def sample_cities():
    """Provide a small pool of municipalities."""
    return [
        City(id="GM0363", name="Amsterdam", population=918_000, province="Noord-Holland"),
        City(id="GM0599", name="Rotterdam", population=655_000, province="Zuid-Holland"),
        City(id="GM0518", name="'s-Gravenhage", aliases=["den haag"], population=552_000, province="Zuid-Holland"),
        City(id="GM0344", name="Utrecht", population=361_000, province="Utrecht"),
        City(id="GM1900", name="Súdwest-Fryslân", aliases=["sudwest fryslan"], population=90_000, province="Friesland"),
        City(id="GM0088", name="Schiermonnikoog", population=950, province="Friesland"),
    ]


@pytest.fixture
def sample_roads():
    """Provide a small pool of roads."""
    return [
        Road(id="A1", name="Rijksweg 1", label="A1", type="A", length_km=172),
        Road(id="A2", name="Rijksweg 2", label="A2", type="A", length_km=214),
        Road(id="N7", name="Rijksweg 7", label="N7", type="N", length_km=40),
        Road(id="E19", name="Europese weg 19", label="E19", type="E", length_km=200),
    ]


@pytest.fixture
def data_dir(tmp_path):
    """Data directory with cities.json (GeoJSON) and roads.json (plain list)."""
    directory = tmp_path / "data"
    directory.mkdir()

    cities = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"identificatie": "GM0363", "name": "Amsterdam", "population": 918000, "province": "Noord-Holland"},
                "geometry": None,
            },
            {
                "type": "Feature",
                "properties": {"identificatie": "GM0599", "name": "Rotterdam", "population": 655000, "province": "Zuid-Holland"},
                "geometry": None,
            },
            {
                "type": "Feature",
                "properties": {
                    "identificatie": "GM0518",
                    "name": "'s-Gravenhage",
                    "aliases": ["Den Haag"],
                    "population": 552000,
                    "province": "Zuid-Holland",
                },
                "geometry": None,
            },
        ],
    }
    roads = [
        {"id": "A1", "name": "Rijksweg 1", "label": "A1", "type": "A", "lengthKm": 172},
        {"id": "A2", "name": "Rijksweg 2", "label": "A2", "type": "A", "lengthKm": 214},
    ]

    (directory / "cities.json").write_text(json.dumps(cities), encoding="utf-8")
    (directory / "roads.json").write_text(json.dumps(roads), encoding="utf-8")
    return directory
