import pytest
from PySide6.QtCore import QCoreApplication


@pytest.fixture(scope="session")
def app():
    if not QCoreApplication.instance():
        return QCoreApplication([])
    return QCoreApplication.instance()


class DummyTimer:
    """Stub QTimer used for testing."""

    def __init__(self):
        self.connected = []
        self.timeout = type("T", (), {"connect": lambda _, fn: self.connected.append(fn)})()
        self.active = False
        self.interval = None

    def start(self, interval=None):
        self.active = True
        self.interval = interval

    def stop(self):
        self.active = False

    def fire(self):
        for fn in self.connected:
            fn()


@pytest.fixture
def dummy_timer():
    return DummyTimer()
