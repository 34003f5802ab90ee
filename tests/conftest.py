from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

import pytest

from tests._fixtures.fake_toolchain import FakeToolchain
from tests._fixtures.shader_tree import ShaderTreeBuilder


@pytest.fixture
def shader_tree(tmp_path: Path) -> ShaderTreeBuilder:
    """Provide a shader project rooted at the pytest tmp_path."""
    return ShaderTreeBuilder(tmp_path)


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture(autouse=True)
def _restore_starch_logger() -> Iterator[None]:
    # configure_logging() detaches the starch logger from the root logger.
    logger = logging.getLogger("starch")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("STARCH_"):
            monkeypatch.delenv(name)
