"""Textual include pass run on shader sources before parsing.

A line of the form ``use "relative/path.wgsl"`` (single quotes work too) is
replaced by the contents of the referenced file, resolved relative to the file
containing the directive. Each file is inlined at most once per shader, and
include cycles are rejected.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Set

from .errors import PreprocessError
from .logging import get_logger

logger = get_logger("preprocess")

_PATH_PATTERN = r"(?:\.|\.\.|[\w\-.]+)(?:[\\/](?:\.\.|[\w\-.]+))*"


@lru_cache(maxsize=None)
def include_pattern() -> re.Pattern[str]:
    """Return the process-wide include directive pattern, compiled on first use."""
    return re.compile(
        rf"""^[ \t]*use\s+(?:'(?P<single>{_PATH_PATTERN})'|"(?P<double>{_PATH_PATTERN})")[ \t]*;?[ \t]*$""",
        re.MULTILINE,
    )


def find_includes(text: str) -> List[str]:
    """List include paths referenced by ``text`` in order of appearance."""
    return [
        match.group("single") or match.group("double")
        for match in include_pattern().finditer(text)
    ]


def preprocess_source(text: str, path: Path, *, root: Optional[Path] = None) -> str:
    """Inline include directives found in ``text`` (read from ``path``).

    Includes may not escape ``root`` when it is given.
    """
    if include_pattern().search(text) is None:
        return text
    seen: Set[Path] = set()
    return _expand(text, path.resolve(), root.resolve() if root else None, [path.resolve()], seen)


def _expand(text: str, path: Path, root: Optional[Path], stack: List[Path], seen: Set[Path]) -> str:
    def _replace(match: re.Match[str]) -> str:
        raw = match.group("single") or match.group("double")
        target = (path.parent / raw).resolve()
        if root is not None and not target.is_relative_to(root):
            raise PreprocessError(f"include '{raw}' escapes the shader root", path)
        if target in stack:
            chain = " -> ".join(item.name for item in [*stack, target])
            raise PreprocessError(f"include cycle ({chain})", path)
        if target in seen:
            logger.debug("Skipping repeated include %s in %s", raw, path)
            return ""
        try:
            included = target.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise PreprocessError(f"include '{raw}' not found", path) from exc
        except UnicodeDecodeError as exc:
            raise PreprocessError(f"include '{raw}' is not valid UTF-8", path) from exc
        seen.add(target)
        logger.debug("Inlining %s into %s", target, path)
        return _expand(included, target, root, [*stack, target], seen).rstrip("\n")

    return include_pattern().sub(_replace, text)


__all__ = ["find_includes", "include_pattern", "preprocess_source"]
