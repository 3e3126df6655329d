"""Pytest configuration for gatewaystack tests."""

import sys
from pathlib import Path

import pytest

# Ensure src/gatewaystack is importable
src_path = str(Path(__file__).parent.parent / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: float = 1_700_000_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()
