from __future__ import annotations

import pytest

from fakes import RecordingProvider


@pytest.fixture
def recording_provider() -> RecordingProvider:
    return RecordingProvider()
