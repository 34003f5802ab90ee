"""Contract between the build pipeline and a shader front-end/back-end."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, Union, runtime_checkable

from ..language import ShaderLanguage, ShaderStage

ShaderCode = Union[str, bytes]


@dataclass(frozen=True)
class EntryPoint:
    """A named function of a module tagged with its pipeline stage."""

    name: str
    stage: ShaderStage


@dataclass
class ShaderModule:
    """Opaque intermediate module produced by a front-end.

    The pipeline only looks at ``entry_points``; ``payload`` belongs to the
    toolchain that produced the module.
    """

    language: ShaderLanguage
    entry_points: Sequence[EntryPoint] = field(default_factory=tuple)
    payload: Any = None


@dataclass(frozen=True)
class ValidationInfo:
    """Result of validating a module with a flag and capability set."""

    flags: int
    capabilities: int
    payload: Any = None


@runtime_checkable
class Toolchain(Protocol):
    """Front-end/back-end used to parse, validate and emit shaders."""

    name: str

    def supports_source(self, language: ShaderLanguage) -> bool:
        """Return True when ``language`` can be parsed."""

    def supports_target(self, language: ShaderLanguage) -> bool:
        """Return True when modules can be emitted as ``language``."""

    def parse(
        self,
        language: ShaderLanguage,
        source: ShaderCode,
        stage: Optional[ShaderStage],
        *,
        path: Path,
    ) -> ShaderModule:
        """Parse ``source`` or raise :class:`starch.errors.ParseError`."""

    def validate(
        self,
        module: ShaderModule,
        flags: int,
        capabilities: int,
        *,
        path: Path,
    ) -> ValidationInfo:
        """Validate ``module`` or raise :class:`starch.errors.ValidationError`."""

    def generate(
        self,
        target: ShaderLanguage,
        module: ShaderModule,
        info: ValidationInfo,
        entry_point: Optional[EntryPoint],
        *,
        path: Path,
    ) -> ShaderCode:
        """Serialise ``module`` (optionally scoped to one entry point) as ``target``."""


__all__ = ["EntryPoint", "ShaderCode", "ShaderModule", "Toolchain", "ValidationInfo"]
