import pytest

from topic_quiz.core.config import get_settings
from tests.helpers import FakeClock, RecordingListener


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
