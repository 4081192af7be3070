"""
Guard registry for casguard.

The registry maps guard names to enforcers. Each enforcer is built lazily on
first request and then shared: every caller asking for the same name gets the
same object.

Design:
    - Single global registry (default_registry) bound to the default store
    - Support for multiple registries for testing/isolation
    - At most one build per name: check, build and insert run under a
      per-name lock, so different names still build concurrently. A name's
      lock is dropped as soon as no caller holds or waits on it
    - A failed build leaves nothing in the cache
    - Unknown attributes are forwarded to the default guard's enforcer

Usage:
    from casguard.registry import default_registry

    default_registry.guard("api").enforce("alice", "data1", "read")
    default_registry.enforce("alice", "data1", "read")   # default guard
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from casbin.persist import Adapter

from casguard.engine import EngineFactory
from casguard.errors import ConfigMissingError, UndefinedGuardError
from casguard.resolver import ConfigResolver

logger = logging.getLogger(__name__)


class GuardRegistry:
    """
    Named cache of lazily built enforcers.

    The single-slot enforcer() accessor and the named cache are the same
    cache: enforcer() addresses the default guard's entry.

    Attributes:
        resolver: Reads guard configuration and the default guard name
        factory: Builds enforcers from guard configuration
        _guards: Built enforcers by guard name
        _adapter: Injected adapter used by every future build
    """

    def __init__(
        self,
        resolver: ConfigResolver | None = None,
        factory: EngineFactory | None = None,
    ) -> None:
        self.resolver = resolver if resolver is not None else ConfigResolver()
        self.factory = factory if factory is not None else EngineFactory()
        self._guards: dict[str, Any] = {}
        self._adapter: Adapter | None = None
        self._lock = threading.Lock()
        self._name_locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @contextmanager
    def _locked(self, name: str) -> Iterator[None]:
        """Hold the build lock for a name; the lock is dropped once idle."""
        with self._lock:
            lock = self._name_locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._name_locks[name] = lock
                self._lock_users[name] = 0
            self._lock_users[name] += 1
        try:
            with lock:
                yield
        finally:
            with self._lock:
                self._lock_users[name] -= 1
                if not self._lock_users[name]:
                    del self._lock_users[name]
                    del self._name_locks[name]

    def guard(self, name: str | None = None) -> Any:
        """
        Get the enforcer for a guard, building it on first use.

        Args:
            name: Guard name; empty or None means the default guard

        Returns:
            The guard's enforcer (the same object on every call)

        Raises:
            UndefinedGuardError: If the name has no configuration section
            ConfigInvalidError: If the section fails validation
            ModelParseError: If the guard's model can't be loaded
            AdapterConstructionError: If the adapter descriptor is unusable
        """
        name = name or self.resolver.default_guard_name()

        instance = self._guards.get(name)
        if instance is not None:
            return instance

        with self._locked(name):
            instance = self._guards.get(name)
            if instance is None:
                instance = self.build_instance(name)
                self._guards[name] = instance
            else:
                logger.debug("Guard %r was built by a concurrent caller", name)
        return instance

    def build_instance(self, name: str) -> Any:
        """
        Build a new enforcer for a guard without touching the cache.

        Retargets the process-wide Casbin log bridge when the guard
        configures a logger.

        Raises:
            UndefinedGuardError: If the name has no configuration section
        """
        try:
            config = self.resolver.resolve(name)
        except ConfigMissingError as e:
            raise UndefinedGuardError(guard=name) from e
        return self.factory.build(config, adapter=self._adapter, name=name)

    def enforcer(self, force_new: bool = False) -> Any:
        """
        Get the default guard's enforcer.

        Args:
            force_new: Build a fresh enforcer and replace the cached one

        Returns:
            The default guard's enforcer
        """
        if not force_new:
            return self.guard()

        name = self.resolver.default_guard_name()
        with self._locked(name):
            instance = self.build_instance(name)
            self._guards[name] = instance
        logger.info("Rebuilt enforcer for guard %r", name)
        return instance

    def set_adapter(self, adapter: Adapter) -> None:
        """
        Inject the adapter used by future builds.

        Takes precedence over any configured adapter descriptor. Enforcers
        already built keep their adapter.
        """
        self._adapter = adapter

    def get_adapter(self) -> Adapter | None:
        """The injected adapter, or None."""
        return self._adapter

    def get_default_guard(self) -> str:
        """The default guard name, or "" when unset."""
        return self.resolver.default_guard_name()

    def set_default_guard(self, name: str) -> None:
        """Change the default guard name. Not validated."""
        self.resolver.set_default_guard_name(name)

    def get_model_config_text(self, name: str | None = None) -> str:
        """Inline model text configured for a guard."""
        return self.resolver.get_model_config_text(name)

    def set_model_config_text(self, text: str, name: str | None = None) -> None:
        """Overwrite a guard's inline model text for future builds."""
        self.resolver.set_model_config_text(text, name)

    def guards(self) -> list[str]:
        """
        List built guard names.

        Returns:
            Names with a cached enforcer in sorted order
        """
        return sorted(self._guards)

    def invoke(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        """
        Call an enforcer operation on the default guard by name.

        Errors raised by the enforcer propagate unchanged.
        """
        return getattr(self.guard(), operation)(*args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        """Forward unknown attributes to the default guard's enforcer."""
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self.guard(), name)

    def __len__(self) -> int:
        """Return the number of built guards."""
        return len(self._guards)

    def __iter__(self) -> Iterator[str]:
        """Iterate over built guard names."""
        return iter(self.guards())

    def __contains__(self, name: str) -> bool:
        """Check if a guard is built using 'in' operator."""
        return name in self._guards

    def __repr__(self) -> str:
        """String representation of the registry."""
        guards = ", ".join(self.guards())
        return f"<GuardRegistry: [{guards}]>"


# Global default registry instance
# Reads the process-wide default_store through a default ConfigResolver
default_registry = GuardRegistry()


def guard(name: str | None = None) -> Any:
    """
    Get a guard's enforcer from the default registry.

    Args:
        name: Guard name; None means the default guard

    Returns:
        The guard's enforcer
    """
    return default_registry.guard(name)


def enforcer(force_new: bool = False) -> Any:
    """Get the default guard's enforcer from the default registry."""
    return default_registry.enforcer(force_new)
