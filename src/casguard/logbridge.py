"""
Bridge Casbin's log records into an application logger.

pycasbin logs through the standard library on the "casbin",
"casbin.enforcer", "casbin.policy" and "casbin.role" loggers. When an
enforcer is built with logging enabled, pycasbin runs dictConfig over those
loggers: existing handlers are removed and the child loggers stop
propagating to "casbin". LogBridge is therefore a handler attached to each
of them separately, and it has to be re-attached after every such build.

The bridge is process-wide: Casbin's loggers are global, so retargeting
the bridge affects every enforcer already built in the process.
"""

import logging
import threading
from collections.abc import Iterable

CASBIN_LOGGER_NAMES = ("casbin", "casbin.enforcer", "casbin.policy", "casbin.role")


def resolve_logger(descriptor: str | logging.Logger) -> logging.Logger:
    """
    Turn a logger descriptor into a logger.

    Args:
        descriptor: A logger name or an existing logging.Logger

    Returns:
        The named logger (a process-wide singleton) or the object itself
    """
    if isinstance(descriptor, logging.Logger):
        return descriptor
    return logging.getLogger(descriptor)


class LogBridge(logging.Handler):
    """
    Handler forwarding Casbin records to a target logger.

    A record is forwarded once even when it passes through several of the
    source loggers on its way up the hierarchy.

    Attributes:
        source_names: Names of the loggers the bridge is attached to
        target: Logger receiving forwarded records (None = detached)
    """

    def __init__(self, source_names: Iterable[str] = CASBIN_LOGGER_NAMES) -> None:
        super().__init__()
        self.source_names = tuple(source_names)
        self.target: logging.Logger | None = None
        self._install_lock = threading.Lock()

    @property
    def sources(self) -> list[logging.Logger]:
        """The loggers the bridge listens on."""
        return [logging.getLogger(name) for name in self.source_names]

    def _is_source(self, name: str) -> bool:
        return any(name == source or name.startswith(f"{source}.") for source in self.source_names)

    def install(self, target: str | logging.Logger) -> logging.Logger:
        """
        Point the bridge at a target logger and attach it to every source.

        Args:
            target: Logger name or logger object

        Returns:
            The resolved target logger

        Raises:
            ValueError: If the target sits inside a source hierarchy
        """
        resolved = resolve_logger(target)
        if self._is_source(resolved.name):
            # Forwarding into our own source hierarchy would loop forever.
            msg = f"Cannot bridge {self.source_names[0]!r} records into {resolved.name!r}"
            raise ValueError(msg)

        with self._install_lock:
            self.target = resolved
            self._attach(resolved)
        return resolved

    def attach(self) -> bool:
        """
        Re-attach to any source logger that lost the bridge.

        Returns:
            False when there is no target to forward to
        """
        with self._install_lock:
            if self.target is None:
                return False
            self._attach(self.target)
        return True

    def _attach(self, target: logging.Logger) -> None:
        level = target.getEffectiveLevel()
        for source in self.sources:
            if self not in source.handlers:
                source.addHandler(self)
            if source.level == logging.NOTSET or source.level > level:
                source.setLevel(level)

    def uninstall(self) -> None:
        """Detach the bridge from every source logger."""
        with self._install_lock:
            for source in self.sources:
                source.removeHandler(self)
            self.target = None

    @property
    def installed(self) -> bool:
        """True when pointing at a target and attached to every source."""
        return self.target is not None and all(self in source.handlers for source in self.sources)

    def emit(self, record: logging.LogRecord) -> None:
        """Re-emit a record through the target logger."""
        target = self.target
        if target is None or getattr(record, "casguard_bridged", False):
            return
        record.casguard_bridged = True
        if target.isEnabledFor(record.levelno):
            target.handle(record)

    def __repr__(self) -> str:
        target = self.target.name if self.target else None
        return f"<LogBridge {self.source_names[0]!r} -> {target!r}>"


# Global bridge shared by every EngineFactory unless one is injected
casbin_log_bridge = LogBridge()
