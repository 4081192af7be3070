"""
Enforcer construction for casguard.

EngineFactory turns a validated GuardConfig into a Casbin enforcer:

    1. Load the model from its source (file, text, or none)
    2. Pick the persistence adapter (injected adapter wins over descriptor)
    3. Construct the enforcer from (model, adapter, log.enable)
    4. Bridge the configured logger into Casbin's log records

The bridge is installed after construction because pycasbin reconfigures
its loggers while an enforcer is being built, dropping foreign handlers.

A guard without a model gets an UnloadedEnforcer, which rejects every
policy operation until a model is loaded into it.

Side Effects:
    Step 4 retargets a process-wide log bridge. Every build with a
    configured logger does this, rebuilds included. Builds without one
    re-attach the bridge to its current target.
"""

import logging
from typing import Any

import casbin
from casbin.model import Model
from casbin.persist import Adapter

from casguard.adapters import resolve_adapter
from casguard.errors import ModelNotLoadedError, ModelParseError
from casguard.logbridge import LogBridge, casbin_log_bridge
from casguard.schema import GuardConfig, ModelSource, ModelSourceKind

logger = logging.getLogger(__name__)

# Sections every model needs: request, policy, effect and matchers
REQUIRED_SECTIONS = ("r", "p", "e", "m")


def load_model(source: ModelSource) -> Model | None:
    """
    Load a Casbin model from a source.

    Args:
        source: The model source

    Returns:
        The loaded model, or None for an empty source

    Raises:
        ModelParseError: If the file can't be read or the definition is malformed
    """
    if source.is_empty:
        return None

    model = Model()
    try:
        if source.kind == ModelSourceKind.FILE:
            model.load_model(source.path)
        else:
            model.load_model_from_text(source.content)
    except Exception as e:
        raise ModelParseError(
            source=source.kind.value,
            path=source.path or None,
            underlying_error=str(e) or type(e).__name__,
        ) from e

    missing = [sec for sec in REQUIRED_SECTIONS if sec not in model.keys()]
    if missing:
        raise ModelParseError(
            source=source.kind.value,
            path=source.path or None,
            underlying_error=f"missing required sections: {', '.join(missing)}",
        )
    return model


def construct_enforcer(
    enforcer_class: type,
    model: Model,
    adapter: Adapter | None,
    enable_log: bool,
    source: ModelSource,
) -> Any:
    """
    Construct an enforcer, reporting failures as model errors.

    pycasbin only interprets parts of the model (the effect expression,
    role definitions) while the enforcer is being initialized.

    Raises:
        ModelParseError: If the enforcer rejects the model
    """
    try:
        return enforcer_class(model=model, adapter=adapter, enable_log=enable_log)
    except Exception as e:
        raise ModelParseError(
            source=source.kind.value,
            path=source.path or None,
            underlying_error=str(e) or type(e).__name__,
        ) from e


class UnloadedEnforcer:
    """
    Placeholder engine for a guard configured without a model.

    Every enforcer operation raises ModelNotLoadedError until load_model()
    or load_model_from_text() succeeds; from then on all attribute access is
    delegated to a real enforcer built from the loaded model. Loading again
    reloads the model into that same enforcer.

    Attributes:
        adapter: Adapter handed to the enforcer once a model is loaded
        enable_log: Log flag handed to the enforcer
        log_bridge: Bridge re-attached after the enforcer is constructed
    """

    def __init__(
        self,
        adapter: Adapter | None = None,
        enable_log: bool = False,
        enforcer_class: type = casbin.Enforcer,
        log_bridge: LogBridge | None = None,
    ) -> None:
        self.adapter = adapter
        self.enable_log = enable_log
        self.log_bridge = log_bridge
        self._enforcer_class = enforcer_class
        self._enforcer: Any = None

    @property
    def loaded(self) -> bool:
        """True once a model has been loaded."""
        return self._enforcer is not None

    @property
    def enforcer(self) -> Any:
        """The wrapped enforcer, or None before a model is loaded."""
        return self._enforcer

    def load_model(self, path: str = "") -> None:
        """
        Load a model definition file.

        Before a model is loaded this builds the wrapped enforcer. Afterwards
        it is the enforcer's own load_model(), reading from path when one is
        given and from the enforcer's model_path otherwise.
        """
        if self._enforcer is not None:
            if path:
                self._enforcer.model_path = path
            self._enforcer.load_model()
            return
        if not path:
            raise ModelParseError(source=ModelSourceKind.FILE.value, underlying_error="no model path given")
        self._load(ModelSource.file(path))

    def load_model_from_text(self, text: str) -> None:
        """Parse an inline model definition into the enforcer, building it if needed."""
        source = ModelSource.text(text)
        if self._enforcer is not None:
            model = load_model(source)
            if model is None:
                raise ModelParseError(source=source.kind.value, underlying_error="empty model definition")
            self._enforcer.set_model(model)
            return
        self._load(source)

    def _load(self, source: ModelSource) -> None:
        model = load_model(source)
        if model is None:
            raise ModelParseError(source=source.kind.value, underlying_error="empty model definition")
        enforcer = construct_enforcer(self._enforcer_class, model, self.adapter, self.enable_log, source)
        if source.path:
            enforcer.model_path = source.path
        self._enforcer = enforcer
        if self.log_bridge is not None:
            self.log_bridge.attach()
        logger.info("Loaded %s model into previously unloaded enforcer", source.kind.value)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if self._enforcer is not None:
            return getattr(self._enforcer, name)
        if not hasattr(self._enforcer_class, name):
            raise AttributeError(f"{self._enforcer_class.__name__} has no attribute {name!r}")

        def not_loaded(*args: Any, **kwargs: Any) -> Any:
            raise ModelNotLoadedError(operation=name)

        return not_loaded

    def __repr__(self) -> str:
        state = "loaded" if self.loaded else "no model"
        return f"<UnloadedEnforcer {state}>"


class EngineFactory:
    """
    Builds enforcers from guard configuration.

    Usage:
        factory = EngineFactory()
        enforcer = factory.build(config)
        enforcer.enforce("alice", "data1", "read")

    Attributes:
        log_bridge: The bridge that configured loggers are installed into
        enforcer_class: Enforcer type to construct (casbin.Enforcer)
    """

    def __init__(
        self,
        log_bridge: LogBridge | None = None,
        enforcer_class: type = casbin.Enforcer,
    ) -> None:
        self.log_bridge = log_bridge if log_bridge is not None else casbin_log_bridge
        self.enforcer_class = enforcer_class

    def build_model(self, config: GuardConfig) -> Model | None:
        """Load the guard's model; None when it has no model."""
        source = config.model_source
        if source.is_empty and source.kind != ModelSourceKind.NONE:
            logger.warning(
                "Model config_type is %r but no %s was given; building without a model",
                source.kind.value,
                "config_file_path" if source.kind == ModelSourceKind.FILE else "config_text",
            )
        return load_model(source)

    def build_adapter(self, config: GuardConfig, injected: Adapter | None = None) -> Adapter | None:
        """
        Pick the adapter for a build.

        An injected adapter always wins. Otherwise the configured descriptor
        is constructed; with neither, the enforcer keeps policy in memory.
        """
        if injected is not None:
            return injected
        if config.adapter:
            return resolve_adapter(config.adapter, config.adapter_options)
        return None

    def bridge_logger(self, config: GuardConfig) -> logging.Logger | None:
        """
        Install the configured logger into the log bridge.

        Without a configured logger the bridge keeps its current target and
        is only re-attached to the Casbin loggers.
        """
        if config.log.logger is None:
            self.log_bridge.attach()
            return None
        target = self.log_bridge.install(config.log.logger)
        logger.debug("Bridged Casbin logging into %r", target.name)
        return target

    def build(
        self,
        config: GuardConfig,
        adapter: Adapter | None = None,
        name: str = "",
    ) -> Any:
        """
        Build an enforcer from a guard configuration.

        Args:
            config: The guard's configuration
            adapter: Injected adapter overriding the configured descriptor
            name: Guard name, for logging

        Returns:
            A casbin.Enforcer, or an UnloadedEnforcer when no model is configured

        Raises:
            ModelParseError: If the model can't be loaded or the enforcer rejects it
            AdapterConstructionError: If the adapter descriptor is unusable
        """
        model = self.build_model(config)
        resolved_adapter = self.build_adapter(config, adapter)

        logger.info(
            "Building enforcer for guard %r (model=%s, adapter=%s)",
            name,
            config.model_source.kind.value if model is not None else ModelSourceKind.NONE.value,
            type(resolved_adapter).__name__ if resolved_adapter is not None else None,
        )

        if model is None:
            enforcer: Any = UnloadedEnforcer(
                adapter=resolved_adapter,
                enable_log=config.log_enabled,
                enforcer_class=self.enforcer_class,
                log_bridge=self.log_bridge,
            )
        else:
            enforcer = construct_enforcer(
                self.enforcer_class,
                model,
                resolved_adapter,
                config.log_enabled,
                config.model_source,
            )

        self.bridge_logger(config)
        return enforcer
