from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Manually advanced clock source."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 9, 23, 18, 0, tzinfo=timezone.utc))
