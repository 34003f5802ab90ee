"""CLI entrypoints for starch commands."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .config import ENV_JOBS, ENV_ON_ERROR, ENV_TARGETS, ON_ERROR_CHOICES, load_config, write_config
from .discovery import discover
from .errors import StarchError
from .logging import configure_logging
from .pipeline import Pipeline


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    default: object = argparse.SUPPRESS if suppress_default else False
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Log every toolchain call and entry point.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Only report skipped shaders and errors.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root holding starch.yml (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="starch",
        description="Transpile shader sources and generate an embeddable manifest.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Transpile every shader and regenerate the manifest.",
    )
    _add_logging_options(build_parser, suppress_default=True)
    _add_path_argument(build_parser)
    build_parser.add_argument(
        "--target",
        action="append",
        dest="targets",
        metavar="LANG",
        help="Target language (repeatable); overrides configured targets.",
    )
    build_parser.add_argument(
        "--on-error",
        choices=ON_ERROR_CHOICES,
        help="Abort the build or skip shaders that fail to parse or validate.",
    )
    build_parser.add_argument(
        "--jobs",
        type=int,
        help="Number of shaders to process concurrently.",
    )
    build_parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write log records to this file.",
    )

    init_parser = subparsers.add_parser(
        "init",
        help="Write starch.yml with the resolved configuration.",
    )
    _add_logging_options(init_parser, suppress_default=True)
    _add_path_argument(init_parser)

    list_parser = subparsers.add_parser(
        "list",
        help="List discovered shaders with their language and stage.",
    )
    _add_logging_options(list_parser, suppress_default=True)
    _add_path_argument(list_parser)

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, str]:
    env = dict(os.environ)
    targets = getattr(args, "targets", None)
    if targets:
        env[ENV_TARGETS] = ",".join(targets)
    on_error = getattr(args, "on_error", None)
    if on_error:
        env[ENV_ON_ERROR] = on_error
    jobs = getattr(args, "jobs", None)
    if jobs is not None:
        env[ENV_JOBS] = str(jobs)
    return env


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for starch commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=getattr(args, "log_file", None),
    )

    try:
        if args.command == "build":
            config = load_config(args.path, env=_overrides(args))
            report = Pipeline(config).run()
            print(
                f"Built {len(report.processed)} shader(s), skipped {len(report.skipped)}; "
                f"manifest at {_relativize(report.manifest_path)}"
            )
        elif args.command == "init":
            config = load_config(args.path, write_back=False)
            config_path = write_config(config)
            print(f"Configuration written to {_relativize(config_path)}")
        elif args.command == "list":
            config = load_config(args.path, write_back=False)
            shaders = sorted(
                discover(config.src, config.out, config.exclude_paths),
                key=lambda shader: shader.path.as_posix(),
            )
            for shader in shaders:
                stage = shader.stage.value if shader.stage else "-"
                print(f"{shader.path}\t{shader.language.lower}\t{stage}")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except (StarchError, OSError) as exc:
        parser.exit(1, f"starch {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
