"""CLI parser and command tests."""

from __future__ import annotations

from pathlib import Path

import pytest

import starch.pipeline
from starch.cli import _build_parser, main
from starch.config import CONFIG_FILENAME
from tests._fixtures.fake_toolchain import FakeToolchain
from tests._fixtures.shader_tree import ShaderTreeBuilder


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "build"])
    assert args.verbose is True
    assert args.command == "build"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["list", "--verbose"])
    assert args.verbose is True
    assert args.command == "list"


def test_cli_build_collects_repeated_targets() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["build", "proj", "--target", "wgsl", "--target", "hlsl", "--on-error", "skip", "--jobs", "3"]
    )
    assert args.path == "proj"
    assert args.targets == ["wgsl", "hlsl"]
    assert args.on_error == "skip"
    assert args.jobs == 3


def test_cli_rejects_unknown_error_policy() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["build", "--on-error", "retry"])


def test_build_command_runs_pipeline(
    shader_tree: ShaderTreeBuilder,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    shader_tree.write({"a.vert.glsl": "void main() {}\n", "common.glsl": ""})
    monkeypatch.setattr(starch.pipeline, "load_toolchain", lambda name: FakeToolchain())

    main(["build", str(shader_tree.root), "--target", "hlsl", "--log-file", str(shader_tree.root / "logs" / "build.log")])

    out = capsys.readouterr().out
    assert "Built 1 shader(s), skipped 1" in out
    assert (shader_tree.src / "gen" / "hlsl" / "a.vert.hlsl").exists()
    assert not (shader_tree.src / "gen" / "wgsl").exists()
    assert "A_VERT" in (shader_tree.src / "lib.rs").read_text(encoding="utf-8")
    assert "Skipping shader common.glsl" in (shader_tree.root / "logs" / "build.log").read_text(
        encoding="utf-8"
    )


def test_build_command_reports_failures(
    shader_tree: ShaderTreeBuilder,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    shader_tree.write({"broken.wgsl": "PARSE ERROR\n"})
    monkeypatch.setattr(starch.pipeline, "load_toolchain", lambda name: FakeToolchain())

    with pytest.raises(SystemExit) as excinfo:
        main(["build", str(shader_tree.root)])

    assert excinfo.value.code == 1
    assert "starch build failed: unable to parse shader" in capsys.readouterr().err


def test_init_command_writes_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["init", str(tmp_path)])

    assert (tmp_path / CONFIG_FILENAME).exists()
    assert "Configuration written to" in capsys.readouterr().out


def test_list_command_prints_shaders(
    shader_tree: ShaderTreeBuilder,
    capsys: pytest.CaptureFixture[str],
) -> None:
    shader_tree.write({"b.wgsl": "", "a.frag.glsl": "", "notes.md": ""})

    main(["list", str(shader_tree.root)])

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["a.frag.glsl\tglsl\tfragment", "b.wgsl\twgsl\t-"]


def test_cli_accepts_quiet_flag() -> None:
    parser = _build_parser()
    args = parser.parse_args(["build", "-q"])
    assert args.quiet is True
    assert args.verbose is False
