"""
Schema definitions for casguard.

This module defines the Pydantic models for one guard's configuration section:
- ModelSettings: Where the Casbin model definition comes from
- LogSettings: Which logger to bridge and whether the enforcer logs
- GuardConfig: A full guard section (adapter, model, log)
- ModelSource: The resolved model source (none, file(path), text(content))

A guard section in YAML looks like:

    permission:
      default: api
      api:
        adapter: file
        adapter_options:
          file_path: ./policy.csv
        model:
          config_type: text
          config_text: |
            [request_definition]
            ...
        log:
          logger: casguard.audit
          enable: false

Design Decisions:
    - Sections are validated strictly (extra="forbid")
    - Models are immutable (frozen=True)
    - Every field is optional: an empty section is legal and yields an
      engine with no model
"""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class ModelConfigType(str, Enum):
    """How a guard's model definition is supplied."""

    FILE = "file"
    TEXT = "text"


class ModelSourceKind(str, Enum):
    """Kind of a resolved model source."""

    NONE = "none"
    FILE = "file"
    TEXT = "text"


# =============================================================================
# Guard Section Models
# =============================================================================


class ModelSettings(BaseModel):
    """
    The `model` block of a guard section.

    Attributes:
        config_type: "file" or "text"; omitted means no model
        config_file_path: Path to a Casbin model .conf file
        config_text: Inline Casbin model definition
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    config_type: ModelConfigType | None = Field(
        default=None,
        description="Model source type: 'file' or 'text'",
    )
    config_file_path: str = Field(
        default="",
        description="Path to the model definition file",
    )
    config_text: str = Field(
        default="",
        description="Inline model definition",
    )

    @field_validator("config_type", mode="before")
    @classmethod
    def blank_type_is_none(cls, v: Any) -> Any:
        """Treat an empty config_type as no model."""
        if v == "":
            return None
        return v


class LogSettings(BaseModel):
    """
    The `log` block of a guard section.

    Attributes:
        logger: Logger name, or an already constructed logging.Logger
        enable: Passed to the enforcer as its enable_log flag
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    logger: str | logging.Logger | None = Field(
        default=None,
        description="Logger to bridge Casbin's log records into",
    )
    enable: bool = Field(
        default=False,
        description="Whether the enforcer emits log records",
    )


class ModelSource(BaseModel):
    """
    A resolved model source.

    Exactly one of path/content is meaningful, selected by kind.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ModelSourceKind = ModelSourceKind.NONE
    path: str = ""
    content: str = ""

    @classmethod
    def none(cls) -> "ModelSource":
        """Source for a guard without a model."""
        return cls()

    @classmethod
    def file(cls, path: str) -> "ModelSource":
        """Source reading the model from a file."""
        return cls(kind=ModelSourceKind.FILE, path=path)

    @classmethod
    def text(cls, content: str) -> "ModelSource":
        """Source parsing the model from inline text."""
        return cls(kind=ModelSourceKind.TEXT, content=content)

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to load, whatever the kind."""
        if self.kind == ModelSourceKind.FILE:
            return not self.path
        if self.kind == ModelSourceKind.TEXT:
            return not self.content.strip()
        return True


class GuardConfig(BaseModel):
    """
    One guard's configuration section.

    Attributes:
        adapter: Adapter descriptor ("file" or "package.module:ClassName")
        adapter_options: Keyword arguments for the adapter constructor
        model: Where the model definition comes from
        log: Logger bridging and enforcer logging
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    adapter: str | None = Field(
        default=None,
        description="Persistence adapter descriptor",
    )
    adapter_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword arguments passed to the adapter",
    )
    model: ModelSettings = Field(
        default_factory=ModelSettings,
        description="Model definition source",
    )
    log: LogSettings = Field(
        default_factory=LogSettings,
        description="Logging settings",
    )

    @property
    def model_source(self) -> ModelSource:
        """The model block as a ModelSource."""
        if self.model.config_type == ModelConfigType.FILE:
            return ModelSource.file(self.model.config_file_path)
        if self.model.config_type == ModelConfigType.TEXT:
            return ModelSource.text(self.model.config_text)
        return ModelSource.none()

    @property
    def log_enabled(self) -> bool:
        """Shortcut for log.enable."""
        return self.log.enable
