"""Tests for starch.discovery."""

from __future__ import annotations

from pathlib import Path

import pytest

from starch.discovery import ExcludeRule, discover
from tests._fixtures.shader_tree import ShaderTreeBuilder


def _paths(shaders) -> list[str]:
    return sorted(shader.path.as_posix() for shader in shaders)


def test_discover_returns_recognised_shaders(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write(
        {
            "a.vert.glsl": "void main() {}",
            "fx/bloom.wgsl": "fn main() {}",
            "fx/README.md": "docs",
            "blob.spv": b"\x03\x02\x23\x07",
        }
    )

    shaders = discover(shader_tree.src)

    assert _paths(shaders) == ["a.vert.glsl", "blob.spv", "fx/bloom.wgsl"]


def test_discover_skips_output_directory(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write(
        {
            "a.wgsl": "fn main() {}",
            "gen/wgsl/a.wgsl": "fn main() {}",
            "gen/glsl/a.vert.glsl": "void main() {}",
        }
    )

    shaders = discover(shader_tree.src, shader_tree.src / "gen")

    assert _paths(shaders) == ["a.wgsl"]


def test_discover_accepts_non_canonical_output_path(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write({"a.wgsl": "", "gen/a.wgsl": "", "fx/notes.txt": ""})

    shaders = discover(shader_tree.src, shader_tree.src / "fx" / ".." / "gen")

    assert _paths(shaders) == ["a.wgsl"]


def test_discover_applies_exclude_rules(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write(
        {
            "a.wgsl": "",
            "vendor/lib.wgsl": "",
            "wip/draft.wgsl": "",
            "fx/old.frag.glsl": "",
        }
    )

    shaders = discover(shader_tree.src, exclude=["vendor/", "/wip", "old.*"])

    assert _paths(shaders) == ["a.wgsl"]


def test_exclude_rule_parse() -> None:
    assert ExcludeRule.parse("  ") is None
    rule = ExcludeRule.parse("build/")
    assert rule is not None
    assert rule.directory_only
    assert not rule.matches("build", is_dir=False)
    assert rule.matches("nested/build", is_dir=True)


def test_discover_rejects_missing_root(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        discover(tmp_path / "missing")

    (tmp_path / "file.wgsl").write_text("")
    with pytest.raises(NotADirectoryError):
        discover(tmp_path / "file.wgsl")


def test_discover_skips_version_control_metadata(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write({"a.wgsl": "", ".git/objects/b.wgsl": "", ".hg/c.wgsl": ""})

    assert _paths(discover(shader_tree.src)) == ["a.wgsl"]
