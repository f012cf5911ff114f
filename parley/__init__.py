"""Parley package entrypoint and lightweight public API."""

from __future__ import annotations

import importlib
from typing import Any

__version__ = "0.3.0"

_LAZY_EXPORTS = {
    "Config": ("parley.config", "Config"),
    "SessionLifecycle": ("parley.app.lifecycle", "SessionLifecycle"),
    "StreamAssembler": ("parley.engine.assembler", "StreamAssembler"),
    "RawChunkReassembler": ("parley.protocol.reassembler", "RawChunkReassembler"),
    "Mode": ("parley.types", "Mode"),
    "SessionConfig": ("parley.types", "SessionConfig"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = _LAZY_EXPORTS[name]
    module = importlib.import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = [
    "__version__",
    "Config",
    "SessionLifecycle",
    "StreamAssembler",
    "RawChunkReassembler",
    "Mode",
    "SessionConfig",
]
