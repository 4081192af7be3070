"""
casguard - Named Casbin enforcers resolved from process-wide configuration.

casguard sits between an application's configuration and pycasbin.
It provides:
- Guard sections ("permission.<name>") validated with Pydantic
- Lazy, at-most-once construction of one enforcer per guard
- Injected or configured persistence adapters
- Bridging of Casbin's log records into an application logger
- A registry that forwards enforcer calls to the default guard

Example usage:
    from casguard import default_registry, default_store

    default_store.load_file("casguard.yaml")
    default_registry.enforce("alice", "data1", "read")

    $ casguard check casguard.yaml alice data1 read --guard api
"""

__version__ = "0.1.0"
__author__ = "casguard Contributors"

from casguard.config import ConfigStore, default_store
from casguard.engine import EngineFactory, UnloadedEnforcer
from casguard.errors import (
    AdapterConstructionError,
    CasguardError,
    ConfigInvalidError,
    ConfigMissingError,
    ModelNotLoadedError,
    ModelParseError,
    UndefinedGuardError,
)
from casguard.logbridge import LogBridge, casbin_log_bridge
from casguard.registry import GuardRegistry, default_registry, enforcer, guard
from casguard.resolver import ConfigResolver
from casguard.schema import GuardConfig, ModelSource

__all__ = [
    "__version__",
    "__author__",
    "AdapterConstructionError",
    "CasguardError",
    "ConfigInvalidError",
    "ConfigMissingError",
    "ConfigResolver",
    "ConfigStore",
    "EngineFactory",
    "GuardConfig",
    "GuardRegistry",
    "LogBridge",
    "ModelNotLoadedError",
    "ModelParseError",
    "ModelSource",
    "UndefinedGuardError",
    "UnloadedEnforcer",
    "casbin_log_bridge",
    "default_registry",
    "default_store",
    "enforcer",
    "guard",
]
