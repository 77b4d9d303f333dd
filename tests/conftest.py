"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models import Configuration, Suggestion  # noqa: E402
from preset_store import MemoryStorage, PresetStore  # noqa: E402
from remote_client import NetworkError, NoApiKey  # noqa: E402


class ManualScheduler:
    """Virtual clock; timers fire only when advance() passes their due time."""

    def __init__(self):
        self.now = 0
        self._timers = {}
        self._next_handle = 0

    def call_later(self, delay_ms, callback):
        self._next_handle += 1
        self._timers[self._next_handle] = (self.now + delay_ms, self._next_handle, callback)
        return self._next_handle

    def cancel(self, handle):
        self._timers.pop(handle, None)

    @property
    def pending(self):
        return len(self._timers)

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [t for t in self._timers.items() if t[1][0] <= target]
            if not due:
                break
            handle, (when, _, callback) = min(due, key=lambda item: (item[1][0], item[1][1]))
            del self._timers[handle]
            self.now = when
            callback()
        self.now = target


class DeferredRunner:
    """Holds submitted work until the test completes it, in any order."""

    def __init__(self):
        self.jobs = []

    def submit(self, work, on_done, on_error):
        self.jobs.append((work, on_done, on_error))

    def complete(self, index=0):
        work, on_done, on_error = self.jobs.pop(index)
        try:
            result = work()
        except Exception as e:
            on_error(e)
            return
        on_done(result)


class FakeRemote:
    """In-memory stand-in for RemoteSettingsClient."""

    def __init__(self, settings=None, api_key="test-key"):
        self.settings = settings
        self.api_key = api_key
        self.pushed = []
        self.fetches = 0
        self.fail_push = False
        self.fail_fetch = False
        self.suggestion = Suggestion(
            "Deep Sea",
            Configuration((False,) * 4 + (True, True, True) + (False,) * 5, 90, 2, 60),
        )

    @property
    def has_api_key(self):
        return self.api_key is not None

    def _check(self):
        if self.api_key is None:
            raise NoApiKey("no API key configured")

    def fetch_current(self):
        self._check()
        self.fetches += 1
        if self.fail_fetch or self.settings is None:
            raise NetworkError("device unreachable")
        return self.settings

    def push(self, configuration):
        self._check()
        if self.fail_push:
            raise NetworkError("HTTP 500")
        self.pushed.append(configuration)
        self.settings = configuration

    def generate(self):
        self._check()
        return self.suggestion


def make_config(colors=(0,), num_sparkles=150, sparkle_size=3, speed=40):
    active = tuple(i in colors for i in range(12))
    return Configuration(active, num_sparkles, sparkle_size, speed)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def runner():
    return DeferredRunner()


@pytest.fixture
def store():
    clock = iter(range(1_700_000_000, 1_800_000_000))
    return PresetStore(MemoryStorage(), clock=lambda: next(clock))


@pytest.fixture
def remote():
    return FakeRemote(settings=make_config(colors=(3, 5), num_sparkles=80, sparkle_size=2, speed=100))


@pytest.fixture
def device():
    from device_simulator import DeviceServer

    server = DeviceServer(api_key="secret").start()
    yield server
    server.stop()
