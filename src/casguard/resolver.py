"""
Guard configuration resolution.

ConfigResolver translates guard names into validated GuardConfig objects by
reading "<namespace>.<guard>" sections from a ConfigStore, and owns the
"<namespace>.default" key that names the default guard.
"""

import logging
from collections.abc import Mapping

from pydantic import ValidationError

from casguard.config import ConfigStore, default_store
from casguard.errors import ConfigInvalidError, ConfigMissingError
from casguard.schema import GuardConfig

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "permission"
DEFAULT_KEY = "default"


class ConfigResolver:
    """
    Reads guard sections from a configuration store.

    Usage:
        resolver = ConfigResolver(store)
        resolver.set_default_guard_name("api")
        config = resolver.resolve("")       # the "api" section

    Attributes:
        store: The configuration store that is read and written
        namespace: Top-level key under which guard sections live
    """

    def __init__(
        self,
        store: ConfigStore | None = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self.store = store if store is not None else default_store
        self.namespace = namespace

    def key_for(self, name: str) -> str:
        """Dotted configuration key for a guard section."""
        return f"{self.namespace}.{name}"

    def default_guard_name(self) -> str:
        """
        Read the default guard name.

        Returns:
            The configured name, or "" when unset
        """
        value = self.store.get_conf(self.key_for(DEFAULT_KEY))
        if value is None:
            return ""
        return str(value)

    def set_default_guard_name(self, name: str) -> None:
        """
        Overwrite the default guard name.

        Not validated: the name may refer to a guard that is not configured.
        """
        self.store.set_conf(self.key_for(DEFAULT_KEY), name)

    def resolve(self, name: str | None = None) -> GuardConfig:
        """
        Resolve a guard name into its configuration.

        Args:
            name: Guard name; empty or None means the default guard

        Returns:
            The validated guard configuration

        Raises:
            ConfigMissingError: If no section exists for the name, or the
                name is the reserved "default" key
            ConfigInvalidError: If the section fails validation
        """
        name = name or self.default_guard_name()
        key = self.key_for(name)
        if not name:
            raise ConfigMissingError(
                key=key,
                message="No guard name given and no default guard configured",
            )
        if name == DEFAULT_KEY:
            raise ConfigMissingError(
                key=key,
                message=f"'{DEFAULT_KEY}' names the default guard and is not a guard section",
            )

        section = self.store.get_conf(key)
        if section is None:
            raise ConfigMissingError(key=key)
        if not isinstance(section, Mapping):
            raise ConfigInvalidError(
                key=key,
                validation_error=f"expected a mapping, got {type(section).__name__}",
            )

        try:
            return GuardConfig.model_validate(dict(section))
        except ValidationError as e:
            raise ConfigInvalidError(key=key, validation_error=str(e)) from e

    def guard_names(self) -> list[str]:
        """
        List configured guard names.

        Returns:
            Section names under the namespace in sorted order, excluding
            the default key
        """
        sections = self.store.get_conf(self.namespace)
        if not isinstance(sections, Mapping):
            return []
        return sorted(
            str(key)
            for key, value in sections.items()
            if key != DEFAULT_KEY and isinstance(value, Mapping)
        )

    def get_model_config_text(self, name: str | None = None) -> str:
        """Inline model text of a guard section, or "" when unset."""
        name = name or self.default_guard_name()
        value = self.store.get_conf(f"{self.key_for(name)}.model.config_text")
        return value or ""

    def set_model_config_text(self, text: str, name: str | None = None) -> None:
        """
        Overwrite the inline model text of a guard section.

        Only affects guards built after the call.
        """
        name = name or self.default_guard_name()
        logger.debug("Setting model text for guard %r", name)
        self.store.set_conf(f"{self.key_for(name)}.model.config_text", text)

    def __repr__(self) -> str:
        return f"<ConfigResolver namespace={self.namespace!r}>"
