from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.ecosystem import FakeDetector


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Provide a GOPATH-style directory rooted at the pytest tmp_path."""
    path = tmp_path / "gopath"
    (path / "src").mkdir(parents=True)
    return path


@pytest.fixture
def detector() -> FakeDetector:
    return FakeDetector()
