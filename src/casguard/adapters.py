"""
Persistence adapter resolution.

A guard's `adapter` entry is a descriptor naming the Casbin adapter to build:

    adapter: file                       # pycasbin FileAdapter
    adapter_options:
      file_path: ./policy.csv

    adapter: casbin_sqlalchemy_adapter:Adapter
    adapter_options:
      engine: sqlite:///policy.db

Dotted ("pkg.module.Class") and colon ("pkg.module:Class") forms are both
accepted. Options are passed to the constructor as keyword arguments.
"""

import importlib
import logging
from typing import Any

from casbin.persist import Adapter
from casbin.persist.adapters import FileAdapter

from casguard.errors import AdapterConstructionError

logger = logging.getLogger(__name__)


def _file_adapter(file_path: str = "", **options: Any) -> Adapter:
    if not file_path:
        raise AdapterConstructionError(
            descriptor="file",
            underlying_error="adapter_options.file_path is required",
        )
    if options:
        raise AdapterConstructionError(
            descriptor="file",
            underlying_error=f"unexpected options: {', '.join(sorted(options))}",
        )
    return FileAdapter(file_path)


BUILTIN_ADAPTERS = {
    "file": _file_adapter,
}


def import_adapter_factory(descriptor: str) -> Any:
    """
    Import the callable named by an adapter descriptor.

    Args:
        descriptor: "pkg.module:Attr" or "pkg.module.Attr"

    Returns:
        The imported attribute

    Raises:
        AdapterConstructionError: If the module or attribute can't be found
    """
    if ":" in descriptor:
        module_name, _, attr = descriptor.partition(":")
    else:
        module_name, _, attr = descriptor.rpartition(".")

    if not module_name or not attr:
        raise AdapterConstructionError(
            descriptor=descriptor,
            underlying_error="expected 'package.module:ClassName'",
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AdapterConstructionError(
            descriptor=descriptor,
            underlying_error=f"cannot import {module_name}: {e}",
        ) from e

    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise AdapterConstructionError(
            descriptor=descriptor,
            underlying_error=f"{module_name} has no attribute {attr!r}",
        ) from e


def resolve_adapter(descriptor: str, options: dict[str, Any] | None = None) -> Adapter:
    """
    Construct the adapter named by a descriptor.

    Exceptions raised by the adapter's own constructor propagate unchanged.

    Args:
        descriptor: Builtin name or import path
        options: Keyword arguments for the constructor

    Returns:
        A Casbin persistence adapter

    Raises:
        AdapterConstructionError: If the descriptor is unusable or does not
            produce a casbin.persist.Adapter
    """
    options = options or {}
    factory = BUILTIN_ADAPTERS.get(descriptor)
    if factory is None:
        factory = import_adapter_factory(descriptor)
    if not callable(factory):
        raise AdapterConstructionError(
            descriptor=descriptor,
            underlying_error=f"{factory!r} is not callable",
        )

    adapter = factory(**options)
    if not isinstance(adapter, Adapter):
        raise AdapterConstructionError(
            descriptor=descriptor,
            underlying_error=f"{type(adapter).__name__} is not a casbin.persist.Adapter",
        )

    logger.debug("Constructed %s adapter for descriptor %r", type(adapter).__name__, descriptor)
    return adapter
