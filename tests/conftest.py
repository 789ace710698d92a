import pytest
import sys
import os
from unittest.mock import Mock

# Add the parent directory to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from lap_persistence import LapDataStorage
from lap_store import LapStore
from lap_times_config import LapTimesConfig
from lap_times_plugin import LapTimesPlugin
from notifications import LapNotifier, ThrottledChatSender


class ImmediateThread:
    """Stand-in for threading.Thread that runs its target on start()"""

    started = []

    def __init__(self, target=None, args=(), kwargs=None, daemon=None, name=None):
        self.target = target
        self.args = args
        self.kwargs = kwargs or {}
        self.daemon = daemon

    def start(self):
        ImmediateThread.started.append(self)
        self.target(*self.args, **self.kwargs)


class FakeClock:
    """Monotonic clock whose sleep() only moves the reading forward"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self.wakeups = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        self.wakeups.append(self.now)


# Disable logging during tests
@pytest.fixture(autouse=True)
def disable_logging():
    """Disable logging during tests to reduce noise."""
    import logging
    logging.disable(logging.CRITICAL)
    yield
    logging.disable(logging.NOTSET)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def instant_delivery(fake_clock):
    """ThrottledChatSender arguments that deliver synchronously on a fake clock."""
    ImmediateThread.started = []
    return {'thread_factory': ImmediateThread, 'clock': fake_clock, 'sleep': fake_clock.sleep}


@pytest.fixture
def chat_transport():
    """Mock in-session chat transport."""
    transport = Mock()
    transport.broadcast = Mock()
    transport.send_to = Mock()
    return transport


@pytest.fixture
def mock_webhook():
    """Mock Discord webhook that is enabled and never touches the network."""
    webhook = Mock()
    webhook.enabled = True
    webhook.post_in_background = Mock()
    return webhook


@pytest.fixture
def lap_config(tmp_path):
    """Configuration pointing at a temporary data folder."""
    return LapTimesConfig(
        data_folder=str(tmp_path / 'LapData'),
        track='ks_monza',
        max_top_times=5,
    )


@pytest.fixture
def make_plugin(lap_config, chat_transport, mock_webhook, instant_delivery):
    """Build a plugin wired to mocks; keyword arguments override config values."""
    def _make(**overrides):
        values = lap_config.to_dict()
        values.update(overrides)
        config = LapTimesConfig(**values)
        chat = ThrottledChatSender(chat_transport, delay_seconds=1.0, **instant_delivery)
        notifier = LapNotifier(chat, mock_webhook)
        return LapTimesPlugin(
            config,
            chat_transport,
            store=LapStore(),
            storage=LapDataStorage(config.data_folder),
            notifier=notifier,
        )
    return _make


@pytest.fixture
def plugin(make_plugin):
    return make_plugin()
