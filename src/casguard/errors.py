"""
Exception hierarchy for casguard.

All casguard exceptions inherit from CasguardError, allowing callers to catch
all casguard-specific exceptions with a single except clause.

Exception Categories:
    - ConfigMissingError: No configuration section for a guard name
    - ConfigInvalidError: A guard section exists but does not validate
    - UndefinedGuardError: A guard was requested that cannot be built
    - ModelParseError: The policy model file/text could not be loaded
    - ModelNotLoadedError: A policy operation hit an engine without a model
    - AdapterConstructionError: A persistence adapter descriptor is unusable

Errors raised by the Casbin enforcer itself are never wrapped in one of
these; they reach the caller exactly as the enforcer raised them.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Config errors: 1xxx
ERROR_CONFIG_MISSING = 1001
ERROR_CONFIG_INVALID = 1002

# Guard errors: 2xxx
ERROR_GUARD_UNDEFINED = 2001

# Model errors: 3xxx
ERROR_MODEL_PARSE = 3001
ERROR_MODEL_NOT_LOADED = 3002

# Adapter errors: 4xxx
ERROR_ADAPTER_CONSTRUCTION = 4001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class CasguardError(Exception):
    """
    Base exception for all casguard errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(CasguardError):
    """
    Base class for configuration errors.

    Attributes:
        key: The configuration key that was being read
    """

    key: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["key"] = self.key


@dataclass
class ConfigMissingError(ConfigError):
    """Raised when no configuration section exists for a key."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No configuration found for {self.key!r}"
        if self.code == 0:
            self.code = ERROR_CONFIG_MISSING
        if not self.suggestion:
            self.suggestion = "Add the section to the configuration file or check the guard name"
        super().__post_init__()


@dataclass
class ConfigInvalidError(ConfigError):
    """Raised when a configuration section fails validation."""

    validation_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration for {self.key!r}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        super().__post_init__()
        self.context["validation_error"] = self.validation_error


# =============================================================================
# Guard Errors
# =============================================================================


@dataclass
class UndefinedGuardError(CasguardError):
    """
    Raised when a guard name resolves to no usable configuration.

    Attributes:
        guard: The guard name that was requested
    """

    guard: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Enforcer [{self.guard}] is not defined."
        if self.code == 0:
            self.code = ERROR_GUARD_UNDEFINED
        if not self.suggestion:
            if self.guard:
                self.suggestion = "Define the guard section or set a different default guard"
            else:
                self.suggestion = "Set a default guard name or pass one explicitly"
        self.context["guard"] = self.guard


# =============================================================================
# Model Errors
# =============================================================================


@dataclass
class ModelError(CasguardError):
    """
    Base class for policy model errors.

    Attributes:
        source: Description of the model source ("file", "text", "none")
    """

    source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["source"] = self.source


@dataclass
class ModelParseError(ModelError):
    """Raised when a model file or text cannot be loaded."""

    path: str | None = None
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            where = f" from {self.path}" if self.path else ""
            self.message = f"Failed to load {self.source} model{where}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_MODEL_PARSE
        if not self.suggestion:
            self.suggestion = "Check the model for [request_definition], [policy_definition], [policy_effect] and [matchers]"
        super().__post_init__()
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })


@dataclass
class ModelNotLoadedError(ModelError):
    """Raised when a policy operation reaches an engine that has no model."""

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.source:
            self.source = "none"
        if not self.message:
            self.message = f"Cannot call {self.operation!r}: no policy model is loaded"
        if self.code == 0:
            self.code = ERROR_MODEL_NOT_LOADED
        if not self.suggestion:
            self.suggestion = "Call load_model() or load_model_from_text() first, or set model.config_type"
        super().__post_init__()
        self.context["operation"] = self.operation


# =============================================================================
# Adapter Errors
# =============================================================================


@dataclass
class AdapterConstructionError(CasguardError):
    """
    Raised when an adapter descriptor cannot be turned into an adapter.

    Attributes:
        descriptor: The adapter descriptor from configuration
        underlying_error: What went wrong while resolving it
    """

    descriptor: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot construct adapter {self.descriptor!r}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_ADAPTER_CONSTRUCTION
        if not self.suggestion:
            self.suggestion = "Use 'file' or an importable 'package.module:ClassName' adapter"
        self.context.update({
            "descriptor": self.descriptor,
            "underlying_error": self.underlying_error,
        })
