"""
Unit tests for the guard registry.

Tests cover:
- Lazy construction and reference sharing per guard name
- Default guard resolution
- Undefined guards and failed builds
- Forced rebuilds through enforcer()
- Adapter injection
- Concurrent first access
- Passthrough to the default guard
"""

import threading
from typing import Any

import pytest

from casguard.config import ConfigStore
from casguard.errors import ConfigInvalidError, UndefinedGuardError
from casguard.registry import GuardRegistry
from casguard.resolver import ConfigResolver


# =============================================================================
# Named Cache Tests
# =============================================================================


class TestGuardCache:
    """Tests for guard() caching."""

    def test_builds_lazily(self, registry: GuardRegistry, factory: Any) -> None:
        """Creating a registry builds nothing."""
        assert factory.builds == []
        assert len(registry) == 0

    def test_same_instance_twice(self, registry: GuardRegistry, factory: Any) -> None:
        """Two requests for a name return the identical enforcer."""
        first = registry.guard("api")
        second = registry.guard("api")
        assert first is second
        assert factory.builds == ["api"]

    def test_names_are_independent(self, registry: GuardRegistry, factory: Any) -> None:
        """Each name gets its own enforcer."""
        api = registry.guard("api")
        admin = registry.guard("admin")
        assert api is not admin
        assert sorted(factory.builds) == ["admin", "api"]
        assert registry.guards() == ["admin", "api"]

    def test_names_are_case_sensitive(self, store: ConfigStore, factory: Any) -> None:
        """'API' is not 'api'."""
        registry = GuardRegistry(resolver=ConfigResolver(store), factory=factory)
        registry.guard("api")
        with pytest.raises(UndefinedGuardError):
            registry.guard("API")

    def test_default_guard_when_omitted(self, registry: GuardRegistry) -> None:
        """No name means the configured default."""
        assert registry.guard() is registry.guard("api")
        assert registry.guard("") is registry.guard("api")

    def test_build_receives_config(self, registry: GuardRegistry) -> None:
        """The factory is given the resolved section."""
        enforcer = registry.guard("admin")
        assert enforcer.config is not None
        assert enforcer.name == "admin"
        assert enforcer.config.adapter == "file"

    def test_empty_section_is_buildable(self, registry: GuardRegistry) -> None:
        """A present but empty section still builds."""
        enforcer = registry.guard("empty")
        assert enforcer.config.model_source.is_empty

    def test_contains_and_repr(self, registry: GuardRegistry) -> None:
        """Built guards are visible through 'in' and repr."""
        registry.guard("api")
        assert "api" in registry
        assert "admin" not in registry
        assert "api" in repr(registry)
        assert list(registry) == ["api"]


# =============================================================================
# Failure Tests
# =============================================================================


class TestGuardFailures:
    """Tests for guards that can't be built."""

    def test_unknown_guard(self, registry: GuardRegistry) -> None:
        """An unconfigured name is an undefined guard."""
        with pytest.raises(UndefinedGuardError) as exc_info:
            registry.guard("missing")
        assert exc_info.value.guard == "missing"
        assert "missing" not in registry

    def test_unknown_names_leave_no_locks(self, registry: GuardRegistry) -> None:
        """Requests for unconfigured names don't accumulate build locks."""
        for i in range(50):
            with pytest.raises(UndefinedGuardError):
                registry.guard(f"missing-{i}")
        assert registry._name_locks == {}
        assert registry._lock_users == {}

    def test_default_key_is_undefined(self, registry: GuardRegistry, factory: Any) -> None:
        """The key naming the default guard is not itself a guard."""
        with pytest.raises(UndefinedGuardError) as exc_info:
            registry.guard("default")
        assert exc_info.value.guard == "default"
        assert factory.builds == []

    def test_no_default_configured(self, factory: Any) -> None:
        """Without a default key, guard() is undefined."""
        store = ConfigStore({"permission": {"api": {}}})
        registry = GuardRegistry(resolver=ConfigResolver(store), factory=factory)
        with pytest.raises(UndefinedGuardError) as exc_info:
            registry.guard()
        assert exc_info.value.guard == ""
        assert factory.builds == []

    def test_invalid_section(self, factory: Any) -> None:
        """A section that fails validation is reported as such."""
        store = ConfigStore({"permission": {"bad": {"model": {"config_type": "yaml"}}}})
        registry = GuardRegistry(resolver=ConfigResolver(store), factory=factory)
        with pytest.raises(ConfigInvalidError):
            registry.guard("bad")

    def test_failed_build_not_cached(self, store: ConfigStore, factory_cls: Any) -> None:
        """A build error leaves the slot empty so a later call retries."""

        class FlakyFactory(factory_cls):
            def build(self, config, adapter=None, name=""):
                if not self.builds:
                    self.builds.append("failed")
                    raise ValueError("first build fails")
                return super().build(config, adapter, name)

        factory = FlakyFactory()
        registry = GuardRegistry(resolver=ConfigResolver(store), factory=factory)
        with pytest.raises(ValueError):
            registry.guard("api")
        assert "api" not in registry

        enforcer = registry.guard("api")
        assert enforcer.config is not None
        assert registry.guard("api") is enforcer


# =============================================================================
# enforcer() Tests
# =============================================================================


class TestEnforcerSlot:
    """Tests for the default-guard enforcer() accessor."""

    def test_enforcer_is_default_guard(self, registry: GuardRegistry) -> None:
        """enforcer() and guard() share one cache."""
        assert registry.enforcer() is registry.guard()

    def test_repeat_returns_same(self, registry: GuardRegistry) -> None:
        """enforcer(False) on a populated slot returns the previous instance."""
        first = registry.enforcer()
        assert registry.enforcer(False) is first

    def test_force_new_rebuilds(self, registry: GuardRegistry, factory: Any) -> None:
        """enforcer(True) always returns a fresh instance."""
        first = registry.enforcer()
        second = registry.enforcer(True)
        third = registry.enforcer(True)
        assert second is not first
        assert third is not second
        assert factory.builds == ["api", "api", "api"]

    def test_force_new_replaces_cached_guard(self, registry: GuardRegistry) -> None:
        """After a forced rebuild, guard() sees the new instance."""
        registry.guard()
        rebuilt = registry.enforcer(force_new=True)
        assert registry.guard("api") is rebuilt

    def test_force_new_without_default(self, factory: Any) -> None:
        """Forced rebuild of an unset default is an undefined guard."""
        registry = GuardRegistry(resolver=ConfigResolver(ConfigStore()), factory=factory)
        with pytest.raises(UndefinedGuardError):
            registry.enforcer(True)


# =============================================================================
# Default Guard Tests
# =============================================================================


class TestDefaultGuard:
    """Tests for reading and changing the default guard."""

    def test_get_default(self, registry: GuardRegistry) -> None:
        assert registry.get_default_guard() == "api"

    def test_set_default_switches_guard(self, registry: GuardRegistry) -> None:
        """Changing the default redirects guard()."""
        api = registry.guard()
        registry.set_default_guard("admin")
        admin = registry.guard()
        assert admin is not api
        assert admin.name == "admin"

    def test_set_default_not_validated(self, registry: GuardRegistry) -> None:
        """Setting an unknown default succeeds; using it fails."""
        registry.set_default_guard("nowhere")
        assert registry.get_default_guard() == "nowhere"
        with pytest.raises(UndefinedGuardError):
            registry.guard()


# =============================================================================
# Adapter Injection Tests
# =============================================================================


class TestAdapterInjection:
    """Tests for set_adapter()."""

    def test_no_adapter_by_default(self, registry: GuardRegistry) -> None:
        assert registry.get_adapter() is None

    def test_adapter_used_by_future_builds(self, registry: GuardRegistry) -> None:
        """An adapter set before the build reaches the factory."""
        adapter = object()
        registry.set_adapter(adapter)  # type: ignore[arg-type]
        assert registry.guard("admin").adapter is adapter

    def test_adapter_does_not_touch_cached(self, registry: GuardRegistry) -> None:
        """An adapter set after the build leaves the cached enforcer alone."""
        built = registry.guard("api")
        registry.set_adapter(object())  # type: ignore[arg-type]
        assert registry.guard("api") is built
        assert built.adapter is None


# =============================================================================
# Concurrency Tests
# =============================================================================


class TestConcurrentAccess:
    """Tests for at-most-one build per name under contention."""

    def test_single_build_under_contention(self, store: ConfigStore, factory_cls: Any) -> None:
        """Many threads asking for one unbuilt name cause one build."""
        factory = factory_cls(delay=0.05)
        registry = GuardRegistry(resolver=ConfigResolver(store), factory=factory)
        barrier = threading.Barrier(16)
        results: list[object] = []
        results_lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            enforcer = registry.guard("api")
            with results_lock:
                results.append(enforcer)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert factory.builds == ["api"]
        assert len(results) == 16
        assert all(r is results[0] for r in results)
        assert registry._name_locks == {}

    def test_different_names_build_once_each(self, store: ConfigStore, factory_cls: Any) -> None:
        """Contention across names still builds each name once."""
        factory = factory_cls(delay=0.02)
        registry = GuardRegistry(resolver=ConfigResolver(store), factory=factory)
        names = ["api", "admin", "empty"] * 5

        threads = [threading.Thread(target=registry.guard, args=(n,)) for n in names]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(factory.builds) == ["admin", "api", "empty"]


# =============================================================================
# Passthrough Tests
# =============================================================================


class TestPassthrough:
    """Tests for forwarding calls to the default guard."""

    def test_unknown_method_forwarded(self, registry: GuardRegistry, factory: Any) -> None:
        """registry.enforce() calls the default guard's enforce()."""
        assert registry.enforce("alice", "data1", "read") is True
        assert registry.enforce("bob", "data1", "read") is False
        assert factory.builds == ["api"]

    def test_arguments_forwarded(self, registry: GuardRegistry) -> None:
        """Positional and keyword arguments arrive unchanged."""
        assert registry.add_policy("bob", "data2", "write", ptype="p") == (
            ("bob", "data2", "write"),
            {"ptype": "p"},
        )

    def test_invoke_by_name(self, registry: GuardRegistry) -> None:
        """invoke() is the explicit form of the passthrough."""
        assert registry.invoke("enforce", "alice", "data1", "read") is True

    def test_engine_errors_propagate(self, registry: GuardRegistry) -> None:
        """Errors raised by the enforcer are not wrapped."""
        with pytest.raises(LookupError, match="engine failure"):
            registry.explode()
        with pytest.raises(LookupError, match="engine failure"):
            registry.invoke("explode")

    def test_missing_engine_attribute(self, registry: GuardRegistry) -> None:
        """An attribute the enforcer lacks raises AttributeError."""
        with pytest.raises(AttributeError):
            registry.no_such_operation()

    def test_private_names_not_forwarded(self, registry: GuardRegistry, factory: Any) -> None:
        """Underscore names never trigger a build."""
        with pytest.raises(AttributeError):
            registry._not_here
        assert factory.builds == []

    def test_passthrough_without_default(self, factory: Any) -> None:
        """Forwarding with no default guard is an undefined guard."""
        registry = GuardRegistry(resolver=ConfigResolver(ConfigStore()), factory=factory)
        with pytest.raises(UndefinedGuardError):
            registry.enforce("alice", "data1", "read")


# =============================================================================
# Model Text Tests
# =============================================================================


class TestModelConfigText:
    """Tests for reading and writing inline model text."""

    def test_get_model_text(self, registry: GuardRegistry, rbac_model_text: str) -> None:
        assert registry.get_model_config_text() == rbac_model_text
        assert registry.get_model_config_text("admin") == ""

    def test_set_model_text_affects_future_builds(self, registry: GuardRegistry) -> None:
        """New text is seen by builds after the call only."""
        built = registry.guard("api")
        registry.set_model_config_text("[request_definition]\nr = sub, obj\n")
        assert built.config.model.config_text != registry.get_model_config_text()

        rebuilt = registry.enforcer(force_new=True)
        assert rebuilt.config.model.config_text == "[request_definition]\nr = sub, obj\n"
