"""Shared pytest fixtures for all tests.

Time-dependent behavior (cache TTL, progress throttling, retry backoff) is
driven by fake clocks and a recording sleep so tests never wait.
"""

import pytest

from legacylens.config import load_settings
from legacylens.pipeline import ErrorHandler, RetryPolicy
from legacylens.units import GenerationUnit, UnitKind


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_ms(self, milliseconds: float) -> None:
        self.now += milliseconds / 1000


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear the load_settings cache before and after each test."""
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def error_handler(recording_sleep):
    """ErrorHandler with the default policy and no real waiting."""
    return ErrorHandler(policy=RetryPolicy(max_attempts=3, base_delay_ms=1000), sleep=recording_sleep)


SAMPLE_SOURCE = '''"""Invoice helpers."""

import decimal


def total(amounts, tax_rate):
    """Sum amounts and apply tax."""
    if tax_rate < 0:
        raise ValueError("tax_rate must be non-negative")
    return sum(amounts) * (1 + tax_rate)


class Invoice:
    """A customer invoice."""

    def __init__(self, number):
        self.number = number
'''


@pytest.fixture
def sample_unit():
    return GenerationUnit(
        unit_id="billing/invoice.py::invoice",
        name="invoice",
        kind=UnitKind.FILE,
        file_path="billing/invoice.py",
        source=SAMPLE_SOURCE,
    )
