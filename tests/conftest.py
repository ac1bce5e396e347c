"""
Common test fixtures and configuration.
"""
import logging
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

# Add src directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kiln.core.configs.settings import KilnSettings  # noqa: E402
from kiln.core.flow import FlowFactory  # noqa: E402
from kiln.stores import MemoryStore, MemoryStoreConfig  # noqa: E402


@pytest.fixture(autouse=True)
def setup_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)
    yield


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def write_tree(temp_dir):
    """Write a {relative path: contents} mapping under temp_dir."""

    def _write(files):
        for relative, contents in files.items():
            path = temp_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(contents, bytes):
                path.write_bytes(contents)
            else:
                path.write_text(contents, encoding="utf-8")
        return temp_dir

    return _write


@pytest.fixture
def settings(temp_dir):
    """Settings rooted at the temporary directory."""
    return KilnSettings(root=temp_dir)


@pytest.fixture
def memory_store():
    return MemoryStore("test_store", MemoryStoreConfig(history=True))


class FakeSubscription:
    def __init__(self, backend):
        self.backend = backend
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeWatchBackend:
    """Watch backend that records subscriptions and lets tests send events."""

    def __init__(self):
        self.subscriptions = []
        self.callback = None
        self.paths = []

    def subscribe(self, paths, callback):
        self.paths = list(paths)
        self.callback = callback
        subscription = FakeSubscription(self)
        self.subscriptions.append(subscription)
        return subscription


@pytest.fixture
def watch_backend():
    return FakeWatchBackend()


@pytest.fixture
def factory(settings, memory_store, watch_backend):
    """FlowFactory rooted at temp_dir, saving to a memory store."""
    return FlowFactory(
        settings=settings, store=memory_store, watch_backend=watch_backend
    )


@pytest.fixture
def cli_runner():
    """Click CLI runner for command tests."""
    from click.testing import CliRunner

    return CliRunner()
