"""Shared fixtures for unit tests.

Provides:
- tool_path: Executable placeholder file so availability checks pass
- runner: Fresh FakeRunner (see fakes.py)
- clock: FakeClock starting at T0
"""

import stat
from pathlib import Path

import pytest

from .fakes import FakeClock, FakeRunner


@pytest.fixture
def tool_path(tmp_path: Path) -> str:
    """Executable placeholder for the privileges tool."""
    path = tmp_path / "PrivilegesCLI"
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
