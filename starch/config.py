"""Configuration loading for starch (environment, starch.yml, defaults)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import ConfigError
from .language import ShaderLanguage, parse_language
from .logging import get_logger

CONFIG_FILENAME = "starch.yml"

ENV_SRC = "STARCH_SHADER_SRC"
ENV_OUT = "STARCH_SHADER_OUT"
ENV_GENERATED = "STARCH_SHADER_GEN"
ENV_TARGETS = "STARCH_SHADER_TARGETS"
ENV_VALIDATION = "STARCH_SHADER_VALIDATION"
ENV_CAPABILITIES = "STARCH_SHADER_CAPABILITIES"
ENV_ON_ERROR = "STARCH_ON_ERROR"
ENV_MANIFEST_FORMAT = "STARCH_MANIFEST_FORMAT"
ENV_TOOLCHAIN = "STARCH_TOOLCHAIN"
ENV_JOBS = "STARCH_JOBS"

ON_ERROR_ABORT = "abort"
ON_ERROR_SKIP = "skip"
ON_ERROR_CHOICES = (ON_ERROR_ABORT, ON_ERROR_SKIP)

MANIFEST_FORMATS = ("rust", "python")

# Every naga validation flag / capability bit set.
ALL_VALIDATION_FLAGS = 0x3F
ALL_CAPABILITIES = 0xFF

DEFAULT_TARGETS = (
    ShaderLanguage.SPV,
    ShaderLanguage.GLSL,
    ShaderLanguage.HLSL,
    ShaderLanguage.WGSL,
    ShaderLanguage.MSL,
)

logger = get_logger("config")


@dataclass
class StarchConfig:
    """Resolved build settings for one shader project."""

    root: Path
    src: Path
    out: Path
    generated: Path
    targets: List[ShaderLanguage] = field(default_factory=lambda: list(DEFAULT_TARGETS))
    validation_flags: int = ALL_VALIDATION_FLAGS
    capabilities: int = ALL_CAPABILITIES
    on_error: str = ON_ERROR_ABORT
    manifest_format: str = "rust"
    toolchain: str = "naga"
    exclude_paths: List[str] = field(default_factory=list)
    jobs: int = 1

    @property
    def out_relative(self) -> Path:
        """Output root expressed relative to the source root."""
        return Path(os.path.relpath(self.out, self.src))

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILENAME

    def to_dict(self) -> Dict[str, Any]:
        """Serialisable form with paths stored relative to the project root."""
        return {
            "src": _relative_to(self.src, self.root),
            "out": _relative_to(self.out, self.root),
            "generated": _relative_to(self.generated, self.root),
            "targets": [target.lower for target in self.targets],
            "validation_flags": self.validation_flags,
            "capabilities": self.capabilities,
            "on_error": self.on_error,
            "manifest_format": self.manifest_format,
            "toolchain": self.toolchain,
            "exclude_paths": list(self.exclude_paths),
            "jobs": self.jobs,
        }


def load_config(
    root: Path | str = ".",
    *,
    env: Mapping[str, str] | None = None,
    write_back: bool = True,
) -> StarchConfig:
    """Resolve configuration from environment, ``starch.yml`` and defaults.

    Environment variables win over the file, which wins over defaults. When no
    ``starch.yml`` exists the resolved settings are written to it unless
    ``write_back`` is disabled.
    """
    root_path = Path(root).expanduser().resolve()
    environ = os.environ if env is None else env
    config_file = root_path / CONFIG_FILENAME
    local = _read_config(config_file) if config_file.is_file() else None
    data = local or {}

    src = _resolve_path(root_path, environ.get(ENV_SRC), data.get("src"), root_path / "src")
    out = _resolve_path(root_path, environ.get(ENV_OUT), data.get("out"), root_path / "src" / "gen")
    generated = _resolve_path(
        root_path,
        environ.get(ENV_GENERATED),
        data.get("generated"),
        root_path / "src" / "lib.rs",
    )

    targets = _resolve_targets(environ.get(ENV_TARGETS), data.get("targets"))

    validation_flags = _first_int(
        ENV_VALIDATION, environ.get(ENV_VALIDATION), data.get("validation_flags"), ALL_VALIDATION_FLAGS
    )
    capabilities = _first_int(
        ENV_CAPABILITIES, environ.get(ENV_CAPABILITIES), data.get("capabilities"), ALL_CAPABILITIES
    )

    on_error = _first_str(environ.get(ENV_ON_ERROR), data.get("on_error"), ON_ERROR_ABORT).lower()
    if on_error not in ON_ERROR_CHOICES:
        raise ConfigError(
            f"on_error must be one of {', '.join(ON_ERROR_CHOICES)} (got '{on_error}')"
        )

    manifest_format = _first_str(
        environ.get(ENV_MANIFEST_FORMAT), data.get("manifest_format"), "rust"
    ).lower()
    if manifest_format not in MANIFEST_FORMATS:
        raise ConfigError(
            f"manifest_format must be one of {', '.join(MANIFEST_FORMATS)} (got '{manifest_format}')"
        )

    toolchain = _first_str(environ.get(ENV_TOOLCHAIN), data.get("toolchain"), "naga")
    jobs = _first_int(ENV_JOBS, environ.get(ENV_JOBS), data.get("jobs"), 1)
    if jobs < 1:
        raise ConfigError(f"jobs must be at least 1 (got {jobs})")

    config = StarchConfig(
        root=root_path,
        src=src,
        out=out,
        generated=generated,
        targets=targets,
        validation_flags=validation_flags,
        capabilities=capabilities,
        on_error=on_error,
        manifest_format=manifest_format,
        toolchain=toolchain,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        jobs=jobs,
    )

    if local is None and write_back:
        write_config(config, config_file)

    return config


def write_config(config: StarchConfig, path: Path | None = None) -> Path:
    """Write ``config`` as YAML, replacing any existing file."""
    target = path or config.config_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )
    logger.debug("Wrote configuration to %s", target)
    return target


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _resolve_path(root: Path, env_value: Optional[str], file_value: Any, default: Path) -> Path:
    raw = env_value if env_value else _as_str(file_value)
    if not raw:
        return default
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    return candidate.resolve()


def _resolve_targets(env_value: Optional[str], file_value: Any) -> List[ShaderLanguage]:
    if env_value:
        names = [part for part in env_value.split(",") if part.strip()]
    elif file_value is not None:
        names = _as_str_list(file_value)
    else:
        return list(DEFAULT_TARGETS)

    targets: List[ShaderLanguage] = []
    for name in names:
        language = parse_language(name)
        if language is None:
            logger.warning("Ignoring unknown shader target '%s'", name.strip())
            continue
        if language not in targets:
            targets.append(language)
    return targets


def _first_int(label: str, env_value: Optional[str], file_value: Any, default: int) -> int:
    if env_value:
        parsed = _as_int(env_value)
        if parsed is None:
            raise ConfigError(f"{label} must be an integer (got '{env_value}')")
        return parsed
    parsed = _as_int(file_value)
    return default if parsed is None else parsed


def _first_str(env_value: Optional[str], file_value: Any, default: str) -> str:
    if env_value and env_value.strip():
        return env_value.strip()
    value = _as_str(file_value)
    return value.strip() if value and value.strip() else default


def _relative_to(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_TARGETS",
    "MANIFEST_FORMATS",
    "ON_ERROR_ABORT",
    "ON_ERROR_CHOICES",
    "ON_ERROR_SKIP",
    "StarchConfig",
    "load_config",
    "write_config",
]
