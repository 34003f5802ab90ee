"""Shader discovery under a source root."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, List, Optional, Sequence

from .logging import get_logger
from .shader import Shader

# Version-control metadata never holds shader sources.
_VCS_DIRS = {".git", ".hg", ".svn"}

logger = get_logger("discovery")


@dataclass
class ExcludeRule:
    """A gitignore-style glob from the ``exclude_paths`` setting."""

    pattern: str
    directory_only: bool
    anchored: bool

    @classmethod
    def parse(cls, raw: str) -> Optional["ExcludeRule"]:
        pattern = raw.strip()
        if not pattern:
            return None
        directory_only = pattern.endswith("/")
        pattern = pattern.rstrip("/")
        anchored = pattern.startswith("/") or "/" in pattern
        pattern = pattern.lstrip("/")
        if not pattern:
            return None
        return cls(pattern=pattern, directory_only=directory_only, anchored=anchored)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored:
            return fnmatchcase(rel_path, self.pattern)
        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def discover(
    root: Path | str,
    output_root: Path | str | None = None,
    exclude: Iterable[str] = (),
) -> List[Shader]:
    """Return every shader with a recognised extension under ``root``.

    ``output_root`` is skipped so generated files are never read back as
    sources. Order follows the filesystem walk; sort before relying on it.
    """
    root_path = Path(root).expanduser()
    if not root_path.exists():
        raise FileNotFoundError(f"Shader source path not found: {root}")
    if not root_path.is_dir():
        raise NotADirectoryError(f"Shader source path is not a directory: {root}")
    root_path = root_path.resolve()
    skip_dir = Path(output_root).expanduser().resolve() if output_root is not None else None
    rules = [rule for rule in (ExcludeRule.parse(item) for item in exclude) if rule is not None]

    shaders: List[Shader] = []
    for path in _iter_files(root_path, skip_dir, rules):
        relative = PurePosixPath(path.relative_to(root_path).as_posix())
        shader = Shader.from_path(root_path, relative)
        if shader is None:
            logger.debug("Skipping non-shader file %s", relative)
            continue
        shaders.append(shader)
    logger.debug("Discovered %d shader(s) under %s", len(shaders), root_path)
    return shaders


def _iter_files(root: Path, skip_dir: Optional[Path], rules: Sequence[ExcludeRule]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in dirnames:
            if name in _VCS_DIRS:
                continue
            if skip_dir is not None and (current_dir / name).resolve() == skip_dir:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _is_excluded(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in filenames:
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _is_excluded(rel_path, False, rules):
                continue
            yield current_dir / filename


def _is_excluded(rel_path: str, is_dir: bool, rules: Sequence[ExcludeRule]) -> bool:
    return any(rule.matches(rel_path, is_dir) for rule in rules)


__all__ = ["ExcludeRule", "discover"]
