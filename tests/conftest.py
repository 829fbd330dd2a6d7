"""Shared pytest configuration and fixtures for the screencast uploader test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as exercising the real media library"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def recording_request():
    """The request the parameter form produces for a 2 Mbit/s CBR mp4."""
    from screencast_uploader.recording.request import Container, RateControl, RecordingRequest
    return RecordingRequest(
        destination="rec",
        filename_template="demo",
        container=Container.MP4,
        bitrate_kbps=2000,
        rate_control=RateControl.CBR,
    )


@pytest.fixture
def recorder_config():
    """Default typed configuration with no file or overrides."""
    from screencast_uploader.recording.config import load_config
    return load_config({})


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def object_store():
    """In-memory object store standing in for the bucket."""
    from tests.infrastructure.mocks.storage_mocks import InMemoryObjectStore
    return InMemoryObjectStore()


@pytest.fixture
def fake_portal():
    """Portal double that grants one stream."""
    from tests.infrastructure.mocks.portal_mocks import FakePortal
    return FakePortal()
