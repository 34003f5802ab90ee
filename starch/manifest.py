"""Aggregation and rendering of the generated shader manifest.

A :class:`Manifest` collects, per language, the original shader sources and
the files generated from them. Entries are deduplicated by canonical path, so
two records for the same path collapse into one even if they disagree on the
stage. Merging manifests is a key-wise union and does not depend on order.
"""

from __future__ import annotations

import json
import posixpath
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .language import ShaderLanguage, ShaderStage, file_prefix
from .logging import get_logger

logger = get_logger("manifest")

HEADER = "GENERATED SOURCE FILE. DO NOT EDIT."

_INVALID_NAME_CHARS = re.compile(r"[^A-Z0-9_]")

_RUST_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}


@dataclass(frozen=True, eq=False)
class ExposedFile:
    """A file the manifest binds to a named constant."""

    language: ShaderLanguage
    path: PurePosixPath
    stage: Optional[ShaderStage] = None

    @property
    def key(self) -> str:
        """Canonical form of ``path`` used for equality and hashing."""
        return canonical_path(self.path)

    @property
    def name(self) -> str:
        """Constant name: uppercased file prefix plus a stage tag for fan-out languages."""
        base = _constant_name(file_prefix(self.path))
        if self.stage is not None and self.language.fans_out:
            return f"{base}_{self.stage.tag}"
        return base

    def qualified_names(self) -> List[str]:
        """Constant names to try in turn when :attr:`name` is shared.

        Each candidate depends only on this file: the plain name, then the
        name with its stage tag, then the name prefixed by the parent
        directories. Repeats are dropped.
        """
        candidates = [self.name]
        staged = self.name
        if self.stage is not None and not self.language.fans_out:
            staged = f"{staged}_{self.stage.tag}"
        candidates.append(staged)
        parents = PurePosixPath(self.key).parent.parts
        if parents:
            candidates.append(_constant_name("_".join([*parents, staged])))
        return list(dict.fromkeys(candidates))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExposedFile):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


def canonical_path(path: PurePosixPath | str) -> str:
    return posixpath.normpath(str(path))


def _constant_name(text: str) -> str:
    name = _INVALID_NAME_CHARS.sub("_", text.upper()) or "_"
    if name[0].isdigit():
        name = f"_{name}"
    return name


def _rust_char(char: str) -> str:
    escaped = _RUST_ESCAPES.get(char)
    if escaped is not None:
        return escaped
    if ord(char) < 0x20 or ord(char) == 0x7F:
        return f"\\u{{{ord(char):x}}}"
    return char


def _preferred(current: ExposedFile, candidate: ExposedFile) -> ExposedFile:
    # Same key; pick a representative independent of insertion order.
    def rank(item: ExposedFile) -> Tuple[str, str]:
        return (item.stage.value if item.stage else "", str(item.path))

    return min(current, candidate, key=rank)


Bucket = Dict[ShaderLanguage, Dict[str, ExposedFile]]


def _insert(bucket: Bucket, language: ShaderLanguage, file: ExposedFile) -> None:
    entries = bucket.setdefault(language, {})
    existing = entries.get(file.key)
    entries[file.key] = file if existing is None else _preferred(existing, file)


@dataclass
class Manifest:
    """Per-language sets of source and generated files."""

    sources: Bucket = field(default_factory=dict)
    includes: Bucket = field(default_factory=dict)

    def register_source(self, language: ShaderLanguage, file: ExposedFile) -> None:
        _insert(self.sources, language, file)

    def register_result(self, language: ShaderLanguage, file: ExposedFile) -> None:
        _insert(self.includes, language, file)

    def source_files(self, language: ShaderLanguage) -> FrozenSet[ExposedFile]:
        return frozenset(self.sources.get(language, {}).values())

    def generated_files(self, language: ShaderLanguage) -> FrozenSet[ExposedFile]:
        return frozenset(self.includes.get(language, {}).values())

    def merge(self, other: "Manifest") -> "Manifest":
        """Return the key-wise union of ``self`` and ``other``."""
        merged = Manifest()
        for manifest in (self, other):
            for language, entries in manifest.sources.items():
                for file in entries.values():
                    merged.register_source(language, file)
            for language, entries in manifest.includes.items():
                for file in entries.values():
                    merged.register_result(language, file)
        return merged

    def __add__(self, other: "Manifest") -> "Manifest":
        if not isinstance(other, Manifest):
            return NotImplemented
        return self.merge(other)

    def __iadd__(self, other: "Manifest") -> "Manifest":
        if not isinstance(other, Manifest):
            return NotImplemented
        for language, entries in other.sources.items():
            for file in entries.values():
                self.register_source(language, file)
        for language, entries in other.includes.items():
            for file in entries.values():
                self.register_result(language, file)
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return all(
            self.source_files(language) == other.source_files(language)
            and self.generated_files(language) == other.generated_files(language)
            for language in ShaderLanguage
        )

    __hash__ = None  # type: ignore[assignment]

    def entries(self, language: ShaderLanguage) -> List[ExposedFile]:
        """Sources and generated files for ``language``, deduplicated and sorted by path."""
        combined: Dict[str, ExposedFile] = {}
        for bucket in (self.sources, self.includes):
            for key, file in bucket.get(language, {}).items():
                existing = combined.get(key)
                combined[key] = file if existing is None else _preferred(existing, file)
        return sorted(combined.values(), key=lambda item: item.key)

    def languages(self) -> List[ShaderLanguage]:
        """Languages with at least one entry, in enumeration order."""
        return [language for language in ShaderLanguage if self.entries(language)]

    def is_empty(self) -> bool:
        return not self.languages()

    def named_entries(self, language: ShaderLanguage) -> List[Tuple[str, ExposedFile]]:
        """Entries paired with unique constant names for one language group.

        Files whose names clash move to their next qualified name until the
        clash is gone, so a name never depends on where a file sorts. Only
        files that still clash with no qualifier left get a numeric suffix.
        """
        entries = self.entries(language)
        candidates = [file.qualified_names() for file in entries]
        levels = [0] * len(entries)
        while True:
            counts = Counter(candidates[index][level] for index, level in enumerate(levels))
            advanced = False
            for index, level in enumerate(levels):
                if counts[candidates[index][level]] > 1 and level + 1 < len(candidates[index]):
                    levels[index] = level + 1
                    advanced = True
            if not advanced:
                break

        names = [candidates[index][level] for index, level in enumerate(levels)]
        reserved = set(names)
        used: Set[str] = set()
        named: List[Tuple[str, ExposedFile]] = []
        for base, file in zip(names, entries):
            name = base
            suffix = 1
            while name in used or (name != base and name in reserved):
                suffix += 1
                name = f"{base}_{suffix}"
            if name != base:
                logger.warning(
                    "Constant %s in %s group already taken; exposing %s as %s",
                    base,
                    language.lower,
                    file.key,
                    name,
                )
            used.add(name)
            named.append((name, file))
        return named

    def render(self, fmt: str = "rust") -> str:
        renderer = get_renderer(fmt)
        lines: List[str] = renderer.header()
        for language in self.languages():
            lines.append("")
            lines.extend(renderer.group(language, self.named_entries(language)))
        return "\n".join(lines) + "\n"

    def write(self, path: Path, fmt: str = "rust") -> Path:
        """Render the manifest to ``path``, replacing whatever was there."""
        content = self.render(fmt)
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            path.unlink()
        path.write_text(content, encoding="utf-8")
        logger.info("Manifest written to %s", path)
        return path


class ManifestRenderer:
    """Formats manifest groups for one host language."""

    comment = "//"
    indent = "    "

    def header(self) -> List[str]:
        return [f"{self.comment} {HEADER}"]

    def group(self, language: ShaderLanguage, entries: Iterable[Tuple[str, ExposedFile]]) -> List[str]:
        raise NotImplementedError

    def literal(self, text: str) -> str:
        """Quote ``text`` as a string literal of the host language."""
        raise NotImplementedError


class RustRenderer(ManifestRenderer):
    """Rust module per language with ``include_str!``/``include_bytes!`` statics."""

    def group(self, language: ShaderLanguage, entries: Iterable[Tuple[str, ExposedFile]]) -> List[str]:
        lines = [f"pub mod {language.lower} {{"]
        for name, file in entries:
            if file.language.is_binary:
                kind, macro = "&'static [u8]", "include_bytes!"
            else:
                kind, macro = "&'static str", "include_str!"
            path = self.literal(f"./{file.key}")
            lines.append(f"{self.indent}pub static {name}: {kind} = {macro}({path});")
        lines.append("}")
        return lines

    def literal(self, text: str) -> str:
        return '"' + "".join(_rust_char(char) for char in text) + '"'


class PythonRenderer(ManifestRenderer):
    """Python namespace class per language with path string constants."""

    comment = "#"

    def group(self, language: ShaderLanguage, entries: Iterable[Tuple[str, ExposedFile]]) -> List[str]:
        lines = [f"class {language.lower}:"]
        for name, file in entries:
            lines.append(f"{self.indent}{name} = {self.literal(file.key)}")
        return lines

    def literal(self, text: str) -> str:
        return json.dumps(text, ensure_ascii=False)


_RENDERERS: Dict[str, ManifestRenderer] = {
    "rust": RustRenderer(),
    "python": PythonRenderer(),
}


def get_renderer(fmt: str) -> ManifestRenderer:
    try:
        return _RENDERERS[fmt.lower()]
    except KeyError:
        raise ValueError(f"Unknown manifest format: {fmt}") from None


__all__ = [
    "ExposedFile",
    "Manifest",
    "ManifestRenderer",
    "PythonRenderer",
    "RustRenderer",
    "canonical_path",
    "get_renderer",
]
