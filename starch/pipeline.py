"""Build orchestration: discovery, per-shader processing and manifest output."""

from __future__ import annotations

import shutil
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from .config import ON_ERROR_SKIP, StarchConfig
from .discovery import discover
from .errors import (
    ConfigError,
    ParseError,
    PreprocessError,
    SourceNotSupported,
    TranspileError,
    UnhandledShaderStage,
    ValidationError,
)
from .logging import get_logger
from .manifest import Manifest
from .shader import Shader, ShaderState
from .toolchain import Toolchain, load_toolchain
from .transpile import transpile_shader

# Skipped regardless of the on_error policy.
_INPUT_ERRORS = (SourceNotSupported, UnhandledShaderStage, PreprocessError)
# Subject to the on_error policy.
_SOURCE_ERRORS = (ParseError, ValidationError)


@dataclass
class SkippedShader:
    """A shader dropped from the build and the reason it was dropped."""

    path: PurePosixPath
    reason: str


@dataclass
class BuildReport:
    """Outcome of a complete pipeline run."""

    manifest: Manifest
    manifest_path: Path
    processed: List[PurePosixPath] = field(default_factory=list)
    skipped: List[SkippedShader] = field(default_factory=list)


class Pipeline:
    """Runs discovered shaders through parse, validate and transpile stages."""

    def __init__(self, config: StarchConfig, toolchain: Toolchain | None = None) -> None:
        self.config = config
        self.toolchain = toolchain or load_toolchain(config.toolchain)
        self.logger = get_logger("pipeline")

    def discover(self) -> List[Shader]:
        """Return the shaders under the source root sorted by relative path."""
        shaders = discover(self.config.src, self.config.out, self.config.exclude_paths)
        return sorted(shaders, key=lambda shader: shader.path.as_posix())

    def prepare_output(self) -> None:
        """Remove and recreate the output root so every run starts clean."""
        out = self.config.out.resolve()
        src = self.config.src.resolve()
        if out == src or src.is_relative_to(out):
            raise ConfigError(f"Output directory {out} must not contain the shader sources")
        if out.exists():
            self.logger.info("Removing old generated files...")
            shutil.rmtree(out)
        out.mkdir(parents=True, exist_ok=True)

    def process(self, shader: Shader) -> Manifest:
        """Take one shader from discovery through transpilation."""
        config = self.config
        try:
            shader.preprocess()
            shader.parse(self.toolchain)
            shader.validate(self.toolchain, config.validation_flags, config.capabilities)
            return transpile_shader(shader, config, self.toolchain)
        except Exception:
            shader.state = ShaderState.FAILED
            raise

    def run(self) -> BuildReport:
        config = self.config
        self.logger.info("Starting shader build for %s", config.src)
        shaders = self.discover()
        self.logger.debug("Discovered %d shader(s)", len(shaders))

        self.prepare_output()

        report = BuildReport(manifest=Manifest(), manifest_path=config.generated)
        if config.jobs > 1 and len(shaders) > 1:
            self._run_parallel(shaders, report)
        else:
            for shader in shaders:
                try:
                    partial = self.process(shader)
                except Exception as exc:
                    self._handle_failure(shader, exc, report)
                    continue
                self._accept(shader, partial, report)

        report.manifest.write(config.generated, config.manifest_format)
        self.logger.info(
            "Built %d shader(s), skipped %d", len(report.processed), len(report.skipped)
        )
        return report

    def _run_parallel(self, shaders: List[Shader], report: BuildReport) -> None:
        with ThreadPoolExecutor(max_workers=self.config.jobs, thread_name_prefix="starch") as executor:
            futures: Dict[int, Future[Manifest]] = {
                index: executor.submit(self.process, shader) for index, shader in enumerate(shaders)
            }
            try:
                # Collected in path order so logs and the report stay deterministic.
                for index, shader in enumerate(shaders):
                    try:
                        partial = futures[index].result()
                    except Exception as exc:
                        self._handle_failure(shader, exc, report)
                        continue
                    self._accept(shader, partial, report)
            except BaseException:
                for future in futures.values():
                    future.cancel()
                raise

    def _accept(self, shader: Shader, partial: Manifest, report: BuildReport) -> None:
        report.manifest += partial
        report.processed.append(shader.path)

    def _handle_failure(self, shader: Shader, exc: Exception, report: BuildReport) -> None:
        """Skip ``shader`` when policy allows, otherwise re-raise ``exc``."""
        if isinstance(exc, (*_INPUT_ERRORS, TranspileError)):
            self.logger.warning("Skipping shader %s: %s", shader.path, exc)
            report.skipped.append(SkippedShader(path=shader.path, reason=str(exc)))
            return
        if isinstance(exc, _SOURCE_ERRORS) and self.config.on_error == ON_ERROR_SKIP:
            self.logger.warning("Skipping shader %s: %s", shader.path, exc)
            report.skipped.append(SkippedShader(path=shader.path, reason=str(exc)))
            return
        self.logger.error(
            "Encountered errors while transpiling: %s\n%s", shader.path, exc
        )
        raise exc


def build(config: StarchConfig, toolchain: Optional[Toolchain] = None) -> BuildReport:
    """Run a full shader build with ``config``."""
    return Pipeline(config, toolchain).run()


__all__ = ["BuildReport", "Pipeline", "SkippedShader", "build"]
