from __future__ import annotations

import pytest

from tests.fakes import FakeClock, RecordingReporter


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
