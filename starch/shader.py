"""Discovered shader sources and their per-file processing state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

from .errors import PreprocessError, SourceNotSupported, UnhandledShaderStage
from .language import ShaderLanguage, ShaderStage, detect, detect_stage
from .logging import get_logger
from .preprocess import preprocess_source
from .toolchain import ShaderCode, ShaderModule, Toolchain, ValidationInfo

logger = get_logger("shader")


class ShaderState(Enum):
    DISCOVERED = "discovered"
    SOURCE_LOADED = "source_loaded"
    PARSED = "parsed"
    VALIDATED = "validated"
    TRANSPILED = "transpiled"
    FAILED = "failed"


@dataclass
class Shader:
    """One shader source file, owned by the pipeline while it is processed."""

    root: Path
    path: PurePosixPath
    language: ShaderLanguage
    stage: Optional[ShaderStage] = None
    source: Optional[ShaderCode] = field(default=None, repr=False)
    module: Optional[ShaderModule] = field(default=None, repr=False)
    info: Optional[ValidationInfo] = field(default=None, repr=False)
    state: ShaderState = ShaderState.DISCOVERED

    @classmethod
    def from_path(cls, root: Path, relative: PurePosixPath | str) -> Optional["Shader"]:
        """Build a shader for ``root / relative`` or ``None`` if the extension is unknown."""
        rel = PurePosixPath(relative)
        language = detect(rel)
        if language is None:
            return None
        stage = detect_stage(rel) if language.needs_stage else None
        return cls(root=root, path=rel, language=language, stage=stage)

    @property
    def full_path(self) -> Path:
        return self.root / Path(self.path)

    def read(self) -> ShaderCode:
        """Load the raw source once; later calls return the cached payload."""
        if self.source is not None:
            return self.source
        if self.language.is_binary:
            self.source = self.full_path.read_bytes()
        else:
            try:
                self.source = self.full_path.read_text(encoding="utf-8")
            except UnicodeDecodeError as exc:
                raise PreprocessError("source is not valid UTF-8", self.path) from exc
        self.state = ShaderState.SOURCE_LOADED
        return self.source

    def preprocess(self) -> ShaderCode:
        """Read the source and expand include directives in text sources."""
        source = self.read()
        if isinstance(source, str):
            self.source = preprocess_source(source, self.full_path, root=self.root)
        return self.source

    def parse(self, toolchain: Toolchain) -> ShaderModule:
        """Parse the source into a module; repeated calls reuse the cached module."""
        if self.module is not None:
            return self.module
        if not toolchain.supports_source(self.language):
            raise SourceNotSupported(self.path, self.language)
        if self.language.needs_stage and self.stage is None:
            raise UnhandledShaderStage(self.path)

        source = self.read()
        self.module = toolchain.parse(self.language, source, self.stage, path=Path(self.path))
        self.state = ShaderState.PARSED
        return self.module

    def validate(self, toolchain: Toolchain, flags: int, capabilities: int) -> ValidationInfo:
        if self.info is not None:
            return self.info
        module = self.parse(toolchain)
        self.info = toolchain.validate(module, flags, capabilities, path=Path(self.path))
        self.state = ShaderState.VALIDATED
        return self.info


__all__ = ["Shader", "ShaderState"]
