"""Adapter for the ``naga`` command-line shader translator."""

from __future__ import annotations

import re
import subprocess
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from ..errors import GenerationError, NoEntryPoint, ParseError, SourceNotSupported, ToolchainError, ValidationError
from ..language import ShaderLanguage, ShaderStage
from ..logging import get_logger
from .base import EntryPoint, ShaderCode, ShaderModule, ValidationInfo

Runner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]

_INPUT_KINDS = {
    ShaderLanguage.WGSL: "wgsl",
    ShaderLanguage.GLSL: "glsl",
    ShaderLanguage.SPV: "spv",
}

_OUTPUT_SUFFIXES = {
    ShaderLanguage.WGSL: "wgsl",
    ShaderLanguage.SPV: "spv",
    ShaderLanguage.HLSL: "hlsl",
    ShaderLanguage.MSL: "metal",
}

# `naga input.x dump.txt` writes the module's Debug representation.
_ENTRY_POINT_PATTERN = re.compile(
    r'EntryPoint\s*\{\s*name:\s*"(?P<name>[^"]*)",\s*stage:\s*(?P<stage>Vertex|Fragment|Compute)\b'
)

_STAGE_BY_DEBUG_NAME = {
    "Vertex": ShaderStage.VERTEX,
    "Fragment": ShaderStage.FRAGMENT,
    "Compute": ShaderStage.COMPUTE,
}

logger = get_logger("toolchain.naga")


@dataclass(frozen=True)
class NagaSource:
    """What naga needs to re-read a module: it has no persistent IR on disk."""

    code: ShaderCode
    stage: Optional[ShaderStage]


class NagaToolchain:
    """Parses, validates and emits shaders by shelling out to ``naga``."""

    name = "naga"

    def __init__(self, *, executable: str | None = None, runner: Runner | None = None) -> None:
        self.executable = executable or "naga"
        self._runner = runner or self._default_runner

    def supports_source(self, language: ShaderLanguage) -> bool:
        return language in _INPUT_KINDS

    def supports_target(self, language: ShaderLanguage) -> bool:
        return True

    def parse(
        self,
        language: ShaderLanguage,
        source: ShaderCode,
        stage: Optional[ShaderStage],
        *,
        path: Path,
    ) -> ShaderModule:
        if not self.supports_source(language):
            raise SourceNotSupported(path, language)
        module = ShaderModule(language=language, payload=NagaSource(code=source, stage=stage))
        with self._staged(module) as (workdir, input_args):
            dump = workdir / "module.txt"
            try:
                self._run(["--validate", "0", *input_args, str(dump)])
            except subprocess.CalledProcessError as exc:
                raise ParseError(path, _describe(exc)) from exc
            text = dump.read_text(encoding="utf-8", errors="replace")
        module.entry_points = tuple(_parse_entry_points(text))
        logger.debug(
            "Parsed %s with %d entry point(s)", path, len(module.entry_points)
        )
        return module

    def validate(
        self,
        module: ShaderModule,
        flags: int,
        capabilities: int,
        *,
        path: Path,
    ) -> ValidationInfo:
        with self._staged(module) as (_, input_args):
            try:
                self._run(["--validate", str(flags), *input_args])
            except subprocess.CalledProcessError as exc:
                raise ValidationError(path, _describe(exc)) from exc
        return ValidationInfo(flags=flags, capabilities=capabilities)

    def generate(
        self,
        target: ShaderLanguage,
        module: ShaderModule,
        info: ValidationInfo,
        entry_point: Optional[EntryPoint],
        *,
        path: Path,
    ) -> ShaderCode:
        if target is ShaderLanguage.GLSL:
            if entry_point is None:
                raise NoEntryPoint(path, target)
            suffix = entry_point.stage.short_name
        else:
            suffix = _OUTPUT_SUFFIXES[target]

        with self._staged(module) as (workdir, input_args):
            output = workdir / f"output.{suffix}"
            args = ["--validate", str(info.flags)]
            if entry_point is not None:
                args.extend(["--entry-point", entry_point.name])
            try:
                self._run([*args, *input_args, str(output)])
            except subprocess.CalledProcessError as exc:
                raise GenerationError(path, target, _describe(exc)) from exc
            if target.is_binary:
                return output.read_bytes()
            return output.read_text(encoding="utf-8")

    @contextmanager
    def _staged(self, module: ShaderModule) -> Iterator[tuple[Path, List[str]]]:
        payload = module.payload
        if not isinstance(payload, NagaSource):
            raise ToolchainError("module was not produced by the naga toolchain")

        with tempfile.TemporaryDirectory(prefix="starch-") as tmp:
            workdir = Path(tmp)
            input_file = workdir / f"input.{_INPUT_KINDS[module.language]}"
            if isinstance(payload.code, bytes):
                input_file.write_bytes(payload.code)
            else:
                input_file.write_text(payload.code, encoding="utf-8")

            args = ["--input-kind", _INPUT_KINDS[module.language]]
            if payload.stage is not None and module.language is ShaderLanguage.GLSL:
                args.extend(["--shader-stage", payload.stage.short_name])
            args.append(str(input_file))
            yield workdir, args

    def _run(self, args: Sequence[str]) -> "subprocess.CompletedProcess[str]":
        command = [self.executable, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            return self._runner(command)
        except FileNotFoundError as exc:
            raise ToolchainError(
                f"Unable to locate naga executable '{self.executable}'. "
                "Install it with `cargo install naga-cli`."
            ) from exc

    @staticmethod
    def _default_runner(command: Sequence[str]) -> "subprocess.CompletedProcess[str]":
        return subprocess.run(list(command), check=True, capture_output=True, text=True)


def _parse_entry_points(dump: str) -> List[EntryPoint]:
    return [
        EntryPoint(name=match.group("name"), stage=_STAGE_BY_DEBUG_NAME[match.group("stage")])
        for match in _ENTRY_POINT_PATTERN.finditer(dump)
    ]


def _describe(exc: subprocess.CalledProcessError) -> str:
    stderr = (exc.stderr or "").strip()
    stdout = (exc.stdout or "").strip()
    return stderr or stdout or f"exit status {exc.returncode}"


__all__ = ["NagaSource", "NagaToolchain"]
