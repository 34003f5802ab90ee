"""Shader language registry: extension detection, stages and output naming."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Dict, Mapping, Optional, Tuple


class ShaderStage(Enum):
    """Pipeline stage an entry point (or a stage-per-file source) targets."""

    VERTEX = "vertex"
    FRAGMENT = "fragment"
    COMPUTE = "compute"

    @property
    def short_name(self) -> str:
        return _STAGE_SHORT_NAMES[self]

    @property
    def tag(self) -> str:
        """Uppercase tag appended to manifest constant names."""
        return self.short_name.upper()

    @property
    def title(self) -> str:
        return self.value.capitalize()


_STAGE_SHORT_NAMES = {
    ShaderStage.VERTEX: "vert",
    ShaderStage.FRAGMENT: "frag",
    ShaderStage.COMPUTE: "comp",
}


@dataclass(frozen=True)
class LanguageSpec:
    """Capabilities of a single shader language."""

    name: str
    binary: bool
    whole_module: bool
    extensions: Mapping[Optional[ShaderStage], str]
    source_suffixes: Tuple[str, ...] = field(default_factory=tuple)
    stage_per_file: bool = False


class ShaderLanguage(Enum):
    """Supported shader languages, in manifest rendering order."""

    WGSL = "wgsl"
    GLSL = "glsl"
    SPV = "spv"
    HLSL = "hlsl"
    MSL = "msl"

    @property
    def spec(self) -> LanguageSpec:
        return LANGUAGES[self]

    @property
    def lower(self) -> str:
        return self.value

    @property
    def upper(self) -> str:
        return self.value.upper()

    @property
    def is_binary(self) -> bool:
        return self.spec.binary

    @property
    def fans_out(self) -> bool:
        """True when a multi-entry-point module needs one file per entry point."""
        return not self.spec.whole_module

    @property
    def needs_stage(self) -> bool:
        return self.spec.stage_per_file

    def extension(self, stage: Optional[ShaderStage]) -> str:
        return self.spec.extensions[stage]

    def __str__(self) -> str:
        return self.upper


def _stage_extensions(bare: str, vertex: str, fragment: str, compute: str) -> Dict[Optional[ShaderStage], str]:
    return {
        ShaderStage.VERTEX: vertex,
        ShaderStage.FRAGMENT: fragment,
        ShaderStage.COMPUTE: compute,
        None: bare,
    }


LANGUAGES: Dict[ShaderLanguage, LanguageSpec] = {
    ShaderLanguage.WGSL: LanguageSpec(
        name="wgsl",
        binary=False,
        whole_module=True,
        extensions=_stage_extensions("wgsl", "vert.wgsl", "frag.wgsl", "comp.wgsl"),
        source_suffixes=(".wgsl",),
    ),
    ShaderLanguage.GLSL: LanguageSpec(
        name="glsl",
        binary=False,
        whole_module=False,
        extensions=_stage_extensions("glsl", "vert.glsl", "frag.glsl", "comp.glsl"),
        source_suffixes=(".glsl", ".vs", ".fs", ".cs", ".vert", ".frag", ".comp"),
        stage_per_file=True,
    ),
    ShaderLanguage.SPV: LanguageSpec(
        name="spv",
        binary=True,
        whole_module=True,
        extensions=_stage_extensions("spv", "v.spv", "f.spv", "c.spv"),
        source_suffixes=(".spv",),
    ),
    ShaderLanguage.HLSL: LanguageSpec(
        name="hlsl",
        binary=False,
        whole_module=False,
        extensions=_stage_extensions("hlsl", "vert.hlsl", "frag.hlsl", "comp.hlsl"),
    ),
    ShaderLanguage.MSL: LanguageSpec(
        name="msl",
        binary=False,
        whole_module=False,
        extensions=_stage_extensions("msl", "vert.msl", "frag.msl", "comp.msl"),
    ),
}

# Ordered by priority; first match wins.
_LANGUAGE_BY_SUFFIX: Tuple[Tuple[str, ShaderLanguage], ...] = tuple(
    (suffix, language)
    for language, spec in LANGUAGES.items()
    for suffix in spec.source_suffixes
)

_STAGE_BY_TOKEN = {
    "vs": ShaderStage.VERTEX,
    "vert": ShaderStage.VERTEX,
    "fs": ShaderStage.FRAGMENT,
    "frag": ShaderStage.FRAGMENT,
    "cs": ShaderStage.COMPUTE,
    "comp": ShaderStage.COMPUTE,
}


def detect(path: str | PurePath) -> Optional[ShaderLanguage]:
    """Return the source language for ``path`` or ``None`` if unsupported."""
    suffix = PurePath(path).suffix.lower()
    if not suffix:
        return None
    for candidate, language in _LANGUAGE_BY_SUFFIX:
        if suffix == candidate:
            return language
    return None


def detect_stage(path: str | PurePath) -> Optional[ShaderStage]:
    """Infer a pipeline stage from the filename's long suffix.

    ``foo.vert.glsl`` has the long suffix ``vert.glsl``; every dot-separated
    token of it is checked against the known stage markers.
    """
    suffix = long_ext(path)
    if not suffix:
        return None
    for token in suffix.lower().split("."):
        stage = _STAGE_BY_TOKEN.get(token)
        if stage is not None:
            return stage
    return None


def extension_for(language: ShaderLanguage, stage: Optional[ShaderStage]) -> str:
    return language.extension(stage)


def parse_language(value: str) -> Optional[ShaderLanguage]:
    """Parse a case-insensitive language name such as ``"wgsl"`` or ``"HLSL"``."""
    try:
        return ShaderLanguage(value.strip().lower())
    except ValueError:
        return None


def file_prefix(path: str | PurePath) -> str:
    """Return the filename up to (not including) its first dot.

    A leading dot is part of the prefix, so ``.hidden.glsl`` yields ``.hidden``.
    """
    name = PurePath(path).name
    if name in {"", ".", ".."}:
        return name
    index = name.find(".", 1)
    return name if index == -1 else name[:index]


def long_ext(path: str | PurePath) -> Optional[str]:
    """Return everything after the filename prefix, e.g. ``vert.glsl``."""
    name = PurePath(path).name
    prefix = file_prefix(name)
    if len(prefix) >= len(name):
        return None
    return name[len(prefix) + 1 :]


__all__ = [
    "LANGUAGES",
    "LanguageSpec",
    "ShaderLanguage",
    "ShaderStage",
    "detect",
    "detect_stage",
    "extension_for",
    "file_prefix",
    "long_ext",
    "parse_language",
]
