"""Shader toolchains and plugin discovery."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable

from ..errors import ToolchainError
from .base import EntryPoint, ShaderCode, ShaderModule, Toolchain, ValidationInfo
from .naga import NagaToolchain

_ENTRY_POINT_GROUP = "starch.toolchains"

_BUILTIN_FACTORIES: Dict[str, Callable[[], Toolchain]] = {
    "naga": NagaToolchain,
}


def load_toolchain(name: str) -> Toolchain:
    """Instantiate the toolchain registered under ``name``.

    Built-in toolchains take precedence over ``starch.toolchains`` entry points.
    """
    key = name.strip().lower()
    factory = _BUILTIN_FACTORIES.get(key)
    if factory is not None:
        return _coerce_toolchain(key, factory())

    for entry in _iter_entry_points():
        if entry.name.lower() != key:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:
            raise ToolchainError(f"Failed to load toolchain entry point '{name}': {exc}") from exc
        return _coerce_toolchain(key, loaded() if callable(loaded) else loaded)

    raise ToolchainError(f"Unknown shader toolchain requested: {name}")


def _coerce_toolchain(name: str, obj: object) -> Toolchain:
    if isinstance(obj, Toolchain):
        return obj
    raise ToolchainError(f"Toolchain '{name}' does not implement the Toolchain protocol")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points(group=_ENTRY_POINT_GROUP)


__all__ = [
    "EntryPoint",
    "NagaToolchain",
    "ShaderCode",
    "ShaderModule",
    "Toolchain",
    "ValidationInfo",
    "load_toolchain",
]
