"""Error taxonomy for shader builds."""

from __future__ import annotations

from pathlib import PurePath
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .language import ShaderLanguage


class StarchError(RuntimeError):
    """Base class for all errors raised by starch."""


class ConfigError(StarchError):
    """Raised when the configuration file cannot be parsed."""


class ToolchainError(StarchError):
    """Raised when the external shader translator is missing or misbehaves."""


class SourceError(StarchError):
    """A shader source could not be loaded, parsed or validated."""

    def __init__(self, message: str, path: PurePath | str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = PurePath(path)


class UnhandledShaderStage(SourceError):
    """A stage-per-file language was given a file without a stage marker."""

    def __init__(self, path: PurePath | str) -> None:
        super().__init__("unhandled shader stage", path)


class PreprocessError(SourceError):
    """The include pass failed (missing include, include cycle, bad encoding)."""


class ParseError(SourceError):
    """The front-end rejected the shader source."""

    def __init__(self, path: PurePath | str, detail: str = "") -> None:
        message = "unable to parse shader"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, path)
        self.detail = detail


class ValidationError(SourceError):
    """The validator rejected the parsed module."""

    def __init__(self, path: PurePath | str, detail: str = "") -> None:
        message = "unable to validate shader"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, path)
        self.detail = detail


class TranspileError(StarchError):
    """Translation of one shader into one target language failed."""

    reason = "transpilation failed"

    def __init__(
        self,
        path: PurePath | str,
        target: Optional["ShaderLanguage"] = None,
        detail: str = "",
    ) -> None:
        parts = [self.reason]
        if target is not None:
            parts.append(f"[{target}]")
        message = " ".join(parts) + f": {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.path = PurePath(path)
        self.target = target
        self.detail = detail


class SourceNotSupported(TranspileError):
    reason = "source file transpilation not supported"


class TargetNotSupported(TranspileError):
    reason = "requested transpilation target not supported"


class NoEntryPoint(TranspileError):
    reason = "shader has no entry point"


class GenerationError(TranspileError):
    reason = "code generation failed"


__all__ = [
    "ConfigError",
    "GenerationError",
    "NoEntryPoint",
    "ParseError",
    "PreprocessError",
    "SourceError",
    "SourceNotSupported",
    "StarchError",
    "TargetNotSupported",
    "ToolchainError",
    "TranspileError",
    "UnhandledShaderStage",
    "ValidationError",
]
