"""
Pytest configuration and fixtures for casguard tests.

This module provides shared fixtures used across unit and integration tests.
"""

import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Generator

import pytest

from casguard.config import ConfigStore
from casguard.registry import GuardRegistry
from casguard.resolver import ConfigResolver

RBAC_MODEL = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act

[role_definition]
g = _, _

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = g(r.sub, p.sub) && r.obj == p.obj && r.act == p.act
"""

RBAC_POLICY = """p, admin, data1, read
p, admin, data1, write
p, bob, data2, read
g, alice, admin
"""


class FakeEnforcer:
    """Stand-in enforcer recording what it was built from."""

    def __init__(self, name: str, config: Any, adapter: Any) -> None:
        self.name = name
        self.config = config
        self.adapter = adapter

    def enforce(self, *rvals: str) -> bool:
        return rvals == ("alice", "data1", "read")

    def add_policy(self, *params: str, **kwargs: Any) -> tuple:
        return params, kwargs

    def explode(self) -> None:
        raise LookupError("engine failure")


class CountingFactory:
    """EngineFactory double that counts builds and can be slowed down."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.builds: list[str] = []
        self._lock = threading.Lock()

    def build(self, config: Any, adapter: Any = None, name: str = "") -> FakeEnforcer:
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.builds.append(name)
        return FakeEnforcer(name, config, adapter)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def rbac_model_text() -> str:
    """Return a minimal RBAC model definition."""
    return RBAC_MODEL


@pytest.fixture
def rbac_model_file(temp_dir: Path) -> Path:
    """Write the RBAC model to a file."""
    path = temp_dir / "rbac_model.conf"
    path.write_text(RBAC_MODEL)
    return path


@pytest.fixture
def rbac_policy_file(temp_dir: Path) -> Path:
    """Write a small RBAC policy CSV."""
    path = temp_dir / "rbac_policy.csv"
    path.write_text(RBAC_POLICY)
    return path


@pytest.fixture
def store() -> ConfigStore:
    """A store with two guards, 'api' being the default."""
    return ConfigStore({
        "permission": {
            "default": "api",
            "api": {
                "model": {"config_type": "text", "config_text": RBAC_MODEL},
            },
            "admin": {
                "adapter": "file",
                "adapter_options": {"file_path": "policy.csv"},
            },
            "empty": {},
        }
    })


@pytest.fixture
def factory() -> CountingFactory:
    """A counting engine factory."""
    return CountingFactory()


@pytest.fixture
def registry(store: ConfigStore, factory: CountingFactory) -> GuardRegistry:
    """A registry over the shared store using the counting factory."""
    return GuardRegistry(resolver=ConfigResolver(store), factory=factory)


@pytest.fixture
def factory_cls() -> type[CountingFactory]:
    """The counting factory class, for tests needing custom instances."""
    return CountingFactory
