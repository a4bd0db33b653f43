"""Pytest configuration and shared fixtures."""

import sys
import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tasktrack.app import create_app
from tasktrack.backend.local import LocalBackend
from tasktrack.config import Config, ConfigModel


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Execute async tests without external plugins."""
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(testfunction)
            call_kwargs = {name: pyfuncitem.funcargs[name] for name in sig.parameters}
            loop.run_until_complete(testfunction(**call_kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


class FakeClock:
    """Server clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 13, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point the data directory at a temp dir and forget cached config."""
    home = tmp_path / "home"
    monkeypatch.setenv("TASKTRACK_HOME", str(home))
    Config.reset()
    yield home
    Config.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(isolated_home):
    return ConfigModel(data_dir=str(isolated_home))


@pytest.fixture
def backend(tmp_path, clock):
    return LocalBackend(tmp_path / "backend.db", clock=clock, bcrypt_rounds=4)


@pytest.fixture
def app(config, backend):
    application = create_app(config, backend=backend).start()
    yield application
    application.stop()


@pytest.fixture
def signed_in_app(app):
    """App with a registered and signed-in user."""
    async def register():
        await app.backend.sign_up("ada@example.com", "secret123")
        await app.backend.set("users", app.backend.current_identity.uid, {
            "owner_id": app.backend.current_identity.uid,
            "name": "Ada",
            "email": "ada@example.com",
        })

    asyncio.run(register())
    return app
