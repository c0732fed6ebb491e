from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from backend.app.dependencies import reset_cached_dependencies
from tests.platform_fakes import FakeCollaborator


@pytest.fixture(autouse=True)
def _isolated_environment(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("TUBELENS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    reset_cached_dependencies()
    yield
    reset_cached_dependencies()


@pytest.fixture
def collaborator() -> FakeCollaborator:
    return FakeCollaborator()
