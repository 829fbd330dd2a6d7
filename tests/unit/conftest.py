"""Unit test fixtures for isolated, fast test execution.

Fixtures in this file complement the root conftest.py fixtures:
- Isolated environment fixtures (isolated_env)
- Scripted media backend and capture-session fixtures
- Logging capture for the screencast_uploader namespace
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

import pytest

from tests.infrastructure.mocks.media_mocks import ScriptedBackend


# =============================================================================
# Isolated Environment Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Clean working directory with HOME and XDG paths pointed into tmp_path."""
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    state_dir = tmp_path / "state"
    state_dir.mkdir()

    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))

    original_cwd = os.getcwd()
    os.chdir(work_dir)
    yield work_dir
    os.chdir(original_cwd)


# =============================================================================
# Media Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def backend_factory() -> Callable[..., ScriptedBackend]:
    """Factory for scripted media backends.

    Example:
        def test_decoder_failure(backend_factory):
            backend = backend_factory(fail_at="open_decoder")
    """
    def factory(**kwargs) -> ScriptedBackend:
        return ScriptedBackend(**kwargs)

    return factory


@pytest.fixture
def transcode_settings():
    from screencast_uploader.recording.config import TranscodeSettings
    return TranscodeSettings(
        input_format="pipewire",
        encoder="libx264",
        pixel_format="yuv420p",
        preset=None,
    )


@pytest.fixture
def close_fd() -> MagicMock:
    """Stand-in for os.close so tests never touch real descriptors."""
    return MagicMock(name="close_fd")


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def recorder_logs(caplog):
    """caplog scoped to DEBUG for the screencast_uploader namespace."""
    caplog.set_level(logging.DEBUG, logger="screencast_uploader")
    return caplog
