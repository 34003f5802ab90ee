"""Per-shader translation into every configured target language."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Tuple

from .config import StarchConfig
from .errors import TargetNotSupported, TranspileError
from .language import ShaderLanguage, ShaderStage, extension_for, file_prefix
from .logging import get_logger
from .manifest import ExposedFile, Manifest
from .shader import Shader, ShaderState
from .toolchain import EntryPoint, ShaderCode, Toolchain

logger = get_logger("transpile")


@dataclass(frozen=True)
class PlannedOutput:
    """One file to emit for a (shader, target) pair.

    ``entry_point`` is ``None`` when the whole module goes into a single file.
    ``relative`` is relative to the target's output directory.
    """

    entry_point: Optional[EntryPoint]
    stage: Optional[ShaderStage]
    relative: PurePosixPath


def output_path(
    source: PurePosixPath,
    target: ShaderLanguage,
    stage: Optional[ShaderStage],
    qualifier: Optional[str] = None,
) -> PurePosixPath:
    """Map ``dir/name.vert.glsl`` to ``dir/name[.qualifier].<target extension>``."""
    parts = [file_prefix(source)]
    if qualifier:
        parts.append(qualifier)
    parts.append(extension_for(target, stage))
    return source.parent / ".".join(parts)


def plan_outputs(
    source: PurePosixPath,
    entry_points: Sequence[EntryPoint],
    target: ShaderLanguage,
) -> List[PlannedOutput]:
    """Decide which files ``target`` gets for a module with ``entry_points``.

    No entry points means no output. A single entry point always gives one
    stage-suffixed file. Several entry points give one file per entry point
    for fan-out languages, otherwise one whole-module file without a stage.
    """
    if not entry_points:
        return []

    if len(entry_points) == 1:
        entry = entry_points[0]
        return [PlannedOutput(entry, entry.stage, output_path(source, target, entry.stage))]

    if not target.fans_out:
        return [PlannedOutput(None, None, output_path(source, target, None))]

    stage_counts = Counter(entry.stage for entry in entry_points)
    planned = []
    for entry in entry_points:
        # Entry points sharing a stage would otherwise write the same file.
        qualifier = entry.name if stage_counts[entry.stage] > 1 else None
        planned.append(
            PlannedOutput(entry, entry.stage, output_path(source, target, entry.stage, qualifier))
        )
    return planned


def transpile_shader(shader: Shader, config: StarchConfig, toolchain: Toolchain) -> Manifest:
    """Emit ``shader`` for every configured target and describe the results.

    The shader must already be parsed and validated. Failures specific to one
    target are logged and that target is skipped; I/O errors propagate.
    """
    if shader.module is None or shader.info is None:
        raise ValueError(f"shader must be parsed and validated before transpiling: {shader.path}")

    module = shader.module
    manifest = Manifest()

    logger.info("Transpiling: %s", shader.path)
    logger.debug("Detected language: %s", shader.language)
    manifest.register_source(
        shader.language,
        ExposedFile(language=shader.language, path=shader.path, stage=shader.stage),
    )

    if not module.entry_points:
        logger.warning("Skipping shader source with no entry points: %s", shader.path)
        shader.state = ShaderState.TRANSPILED
        return manifest

    out_relative = PurePosixPath(config.out_relative.as_posix())
    for target in config.targets:
        planned = plan_outputs(shader.path, module.entry_points, target)

        try:
            rendered = _generate_target(shader, target, planned, toolchain)
        except TranspileError as exc:
            logger.warning("Skipping %s output for %s: %s", target, shader.path, exc)
            continue

        target_dir = config.out / target.lower
        for output, code in rendered:
            _write_output(target_dir / Path(output.relative), code)
            manifest.register_result(
                target,
                ExposedFile(
                    language=target,
                    path=out_relative / target.lower / output.relative,
                    stage=output.stage,
                ),
            )

    shader.state = ShaderState.TRANSPILED
    return manifest


def _generate_target(
    shader: Shader,
    target: ShaderLanguage,
    planned: Sequence[PlannedOutput],
    toolchain: Toolchain,
) -> List[Tuple[PlannedOutput, ShaderCode]]:
    if not toolchain.supports_target(target):
        raise TargetNotSupported(shader.path, target)
    module, info = shader.module, shader.info

    if len(planned) > 1:
        logger.info("Generating %s files...", target)
    elif planned[0].entry_point is None:
        logger.info("Generating %s module...", target)

    rendered = []
    for output in planned:
        entry = output.entry_point
        if entry is not None:
            logger.debug("- %s %s shader entry point: %s", target, entry.stage.title, entry.name or "<no_function>")
        code = toolchain.generate(target, module, info, entry, path=Path(shader.path))
        rendered.append((output, code))
    return rendered


def _write_output(path: Path, code: ShaderCode) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(code, bytes):
        path.write_bytes(code)
    else:
        path.write_text(code, encoding="utf-8")


__all__ = ["PlannedOutput", "output_path", "plan_outputs", "transpile_shader"]
