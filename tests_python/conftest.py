"""Shared fixtures for the nixpkg test suite."""

from __future__ import annotations

from pathlib import Path

import pytest
from nixpkg_test_helpers import RecordingClient, release_archives

from nixpkg_publish.archives import ReleaseArchive
from nixpkg_publish.config import ReleaseContext


@pytest.fixture
def dist(tmp_path: Path) -> Path:
    """Create an isolated dist directory."""
    root = tmp_path / "dist"
    root.mkdir()
    return root


@pytest.fixture
def release(dist: Path) -> ReleaseContext:
    """Release ``v1.2.1-rc1`` of project ``foo``."""
    return ReleaseContext(
        project_name="foo",
        version="1.2.1",
        tag="v1.2.1",
        dist=dist,
        major=1,
        minor=2,
        patch=1,
        prerelease="rc1",
        url_template="https://dummyhost/download/{tag}/{artifact_name}",
    )


@pytest.fixture
def archives(dist: Path) -> list[ReleaseArchive]:
    """Archives for every ID and platform used by the pipeline tests."""
    return release_archives(dist)


@pytest.fixture
def client() -> RecordingClient:
    """Repository client recording what would be published."""
    return RecordingClient()
