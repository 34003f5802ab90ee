"""End-to-end tests for starch.pipeline using an in-memory toolchain."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest

from starch.config import ON_ERROR_SKIP
from starch.errors import ConfigError, ParseError, ValidationError
from starch.language import ShaderLanguage
from starch.pipeline import Pipeline, build
from tests._fixtures.fake_toolchain import FakeToolchain
from tests._fixtures.shader_tree import ShaderTreeBuilder

WGSL = ShaderLanguage.WGSL
HLSL = ShaderLanguage.HLSL


def _tree_contents(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def test_stage_per_file_sources_fan_out_per_target(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write({"a.vert.glsl": "void main() {}\n", "a.frag.glsl": "void main() {}\n"})
    config = shader_tree.config(targets=[WGSL, HLSL])

    report = build(config, fake_toolchain)

    assert sorted(_tree_contents(config.out)) == [
        "hlsl/a.frag.hlsl",
        "hlsl/a.vert.hlsl",
        "wgsl/a.frag.wgsl",
        "wgsl/a.vert.wgsl",
    ]
    assert report.processed == [PurePosixPath("a.frag.glsl"), PurePosixPath("a.vert.glsl")]
    assert report.skipped == []

    manifest = config.generated.read_text(encoding="utf-8")
    assert "pub mod hlsl {" in manifest
    assert 'pub static A_VERT: &\'static str = include_str!("./gen/hlsl/a.vert.hlsl");' in manifest
    assert 'pub static A_FRAG: &\'static str = include_str!("./gen/hlsl/a.frag.hlsl");' in manifest
    assert 'pub static A_VERT: &\'static str = include_str!("./a.vert.glsl");' in manifest
    assert manifest.index("pub mod wgsl") < manifest.index("pub mod glsl") < manifest.index(
        "pub mod hlsl"
    )


def test_multi_entry_module_gives_one_wgsl_file_and_hlsl_fan_out(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write(
        {
            "a.wgsl": """
            // entry: vertex vs_main
            // entry: fragment fs_main
            """,
        }
    )
    config = shader_tree.config(targets=[WGSL, HLSL])

    report = build(config, fake_toolchain)

    assert sorted(_tree_contents(config.out)) == [
        "hlsl/a.frag.hlsl",
        "hlsl/a.vert.hlsl",
        "wgsl/a.wgsl",
    ]
    assert [name for name, _ in report.manifest.named_entries(WGSL)] == ["A", "GEN_WGSL_A"]
    assert [file.key for _, file in report.manifest.named_entries(WGSL)] == [
        "a.wgsl",
        "gen/wgsl/a.wgsl",
    ]
    assert [name for name, _ in report.manifest.named_entries(HLSL)] == ["A_FRAG", "A_VERT"]
    assert [call[2] for call in fake_toolchain.generate_calls if call[1] is WGSL] == [None]


def test_new_shader_does_not_rebind_existing_constants(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write({"a.vert.glsl": "void main() {}\n", "a.frag.glsl": "void main() {}\n"})
    config = shader_tree.config(targets=[WGSL])

    before = build(config, fake_toolchain).manifest.named_entries(WGSL)
    shader_tree.write({"a.comp.glsl": "void main() {}\n"})
    after = build(config, FakeToolchain()).manifest.named_entries(WGSL)

    old = {name: file.key for name, file in before}
    new = {name: file.key for name, file in after}
    assert old == {"A_FRAG": "gen/wgsl/a.frag.wgsl", "A_VERT": "gen/wgsl/a.vert.wgsl"}
    assert old.items() <= new.items()
    assert new["A_COMP"] == "gen/wgsl/a.comp.wgsl"
    manifest = config.generated.read_text(encoding="utf-8")
    assert 'pub static A_COMP: &\'static str = include_str!("./gen/wgsl/a.comp.wgsl");' in manifest


def test_clean_rebuild_is_byte_identical(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write(
        {
            "a.vert.glsl": "void main() {}\n",
            "fx/bloom.wgsl": "// entry: fragment fs_main\n// entry: compute cs_main\n",
        }
    )
    config = shader_tree.config()

    build(config, fake_toolchain)
    first_manifest = config.generated.read_bytes()
    first_tree = _tree_contents(config.out)

    (config.out / "wgsl" / "stale.wgsl").write_text("left over")
    build(config, FakeToolchain())

    assert config.generated.read_bytes() == first_manifest
    assert _tree_contents(config.out) == first_tree


def test_parallel_build_matches_sequential(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write(
        {f"s{index}.{stage}.glsl": "void main() {}\n" for index in range(6) for stage in ("vert", "frag")}
    )
    config = shader_tree.config()

    sequential = build(config, FakeToolchain())
    sequential_manifest = config.generated.read_bytes()

    config.jobs = 4
    parallel = build(config, FakeToolchain())

    assert config.generated.read_bytes() == sequential_manifest
    assert parallel.processed == sequential.processed
    assert parallel.manifest == sequential.manifest


def test_parse_errors_abort_by_default(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write({"a.wgsl": "// entry: vertex main\n", "b.wgsl": "PARSE ERROR\n"})
    config = shader_tree.config()

    with pytest.raises(ParseError) as excinfo:
        build(config, fake_toolchain)

    assert excinfo.value.path == Path("b.wgsl")
    assert not config.generated.exists()


def test_skip_policy_drops_failing_shaders(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write(
        {
            "a.wgsl": "// entry: vertex main\n",
            "b.wgsl": "PARSE ERROR\n",
            "c.wgsl": "// entry: vertex main\nINVALID\n",
        }
    )
    config = shader_tree.config(on_error=ON_ERROR_SKIP, targets=[WGSL])

    report = build(config, fake_toolchain)

    assert report.processed == [PurePosixPath("a.wgsl")]
    assert [item.path for item in report.skipped] == [PurePosixPath("b.wgsl"), PurePosixPath("c.wgsl")]
    assert "unable to parse shader" in report.skipped[0].reason
    assert "unable to validate shader" in report.skipped[1].reason
    manifest = config.generated.read_text(encoding="utf-8")
    assert "b.wgsl" not in manifest
    assert "c.wgsl" not in manifest


def test_validation_errors_abort_when_configured(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write({"c.wgsl": "INVALID\n"})

    with pytest.raises(ValidationError):
        build(shader_tree.config(), fake_toolchain)


def test_input_errors_are_skipped_under_abort_policy(
    shader_tree: ShaderTreeBuilder, fake_toolchain: FakeToolchain
) -> None:
    shader_tree.write(
        {
            "a.vert.glsl": "void main() {}\n",
            "common.glsl": "float helper();\n",
            "bad.wgsl": "use 'missing.wgsl'\n",
        }
    )
    config = shader_tree.config(targets=[HLSL])

    report = build(config, fake_toolchain)

    assert report.processed == [PurePosixPath("a.vert.glsl")]
    assert sorted(item.path.as_posix() for item in report.skipped) == ["bad.wgsl", "common.glsl"]


def test_pipeline_sorts_discovered_shaders(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write({"z.wgsl": "", "a/b.wgsl": "", "m.vert.glsl": ""})
    pipeline = Pipeline(shader_tree.config(), FakeToolchain())

    assert [shader.path.as_posix() for shader in pipeline.discover()] == [
        "a/b.wgsl",
        "m.vert.glsl",
        "z.wgsl",
    ]


def test_output_root_must_not_contain_sources(shader_tree: ShaderTreeBuilder) -> None:
    shader_tree.write({"a.wgsl": ""})
    config = shader_tree.config(out=shader_tree.root)

    with pytest.raises(ConfigError, match="must not contain"):
        build(config, FakeToolchain())

    assert (shader_tree.src / "a.wgsl").exists()


def test_empty_tree_writes_header_only_manifest(shader_tree: ShaderTreeBuilder) -> None:
    config = shader_tree.config()

    report = build(config, FakeToolchain())

    assert report.manifest.is_empty()
    assert config.generated.read_text(encoding="utf-8") == "// GENERATED SOURCE FILE. DO NOT EDIT.\n"
    assert config.out.is_dir()
