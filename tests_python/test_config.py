"""Tests for configuration loading and release metadata."""

from __future__ import annotations

from pathlib import Path

import pytest

from nixpkg_publish.config import (
    DEFAULT_COMMIT_MESSAGE,
    CommitAuthor,
    Dependency,
    PackageConfig,
    ReleaseContext,
    apply_defaults,
    load_config,
)
from nixpkg_publish.errors import ConfigError

FULL_CONFIG = """\
[project]
name = "foo"
dist = "build"
url_template = "https://dummyhost/download/{tag}/{artifact_name}"

[[nix]]
name = "foo-bin"
ids = ["foo", "bar"]
description = "my test"
homepage = "https://goreleaser.com"
license = "mit"
path = "pkgs/foo.nix"
install = "mkdir -p $out/bin"
extra_install = "installManPage ./manpages/foo.1.gz"
dependencies = ["fish", { name = "zsh", os = "linux" }]
goamd64 = "v2"
skip_upload = true
commit_message_template = "chore: {project_name} {version}"

[nix.repository]
owner = "foo"
name = "nur"
branch = "update-{version}"

[nix.repository.pull_request]
enabled = true
draft = true

[nix.repository.pull_request.base]
owner = "nixos"
name = "nixpkgs"
branch = "master"

[nix.commit_author]
name = "bot"
email = "bot@example.com"

[[nix]]
ids = "baz"
"""


def _write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "nixpkg.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_reads_every_field(tmp_path: Path) -> None:
    """All keys of a ``[[nix]]`` entry map onto the package model."""
    config = load_config(_write_config(tmp_path, FULL_CONFIG))

    assert config.project_name == "foo"
    assert config.dist == "build"
    assert config.url_template.startswith("https://dummyhost")
    full, minimal = config.packages
    assert full.name == "foo-bin"
    assert full.ids == ("foo", "bar")
    assert full.dependencies == (Dependency("fish"), Dependency("zsh", "linux"))
    assert full.goamd64 == "v2"
    assert full.skip_upload == "true"
    assert full.repository.branch == "update-{version}"
    assert full.repository.pull_request.enabled
    assert full.repository.pull_request.draft
    base = full.repository.pull_request.base
    assert base is not None
    assert (base.owner, base.name, base.branch) == ("nixos", "nixpkgs", "master")
    assert full.commit_author == CommitAuthor("bot", "bot@example.com")
    assert minimal.ids == ("baz",)
    assert minimal.commit_author == CommitAuthor()
    assert minimal.repository.pull_request.base is None


def test_load_config_defaults_dist(tmp_path: Path) -> None:
    config = load_config(_write_config(tmp_path, '[project]\nname = "foo"\n'))
    assert config.dist == "dist"
    assert config.packages == []


def test_load_config_defaults_to_release_downloads(tmp_path: Path) -> None:
    """``release_repository`` yields the GitHub release download URL template."""
    config = load_config(
        _write_config(
            tmp_path, '[project]\nname = "foo"\nrelease_repository = "acme/foo"\n'
        )
    )

    assert config.url_template == (
        "https://github.com/acme/foo/releases/download/{tag}/{artifact_name}"
    )


def test_load_config_url_template_wins(tmp_path: Path) -> None:
    text = (
        '[project]\nname = "foo"\nrelease_repository = "acme/foo"\n'
        'url_template = "https://mirror/{artifact_name}"\n'
    )
    config = load_config(_write_config(tmp_path, text))
    assert config.url_template == "https://mirror/{artifact_name}"


@pytest.mark.parametrize("repository", ["acme", "acme/foo/bar", "/foo", "acme/"])
def test_load_config_rejects_bad_release_repository(
    tmp_path: Path, repository: str
) -> None:
    text = f'[project]\nname = "foo"\nrelease_repository = "{repository}"\n'
    with pytest.raises(ConfigError, match="owner/name") as excinfo:
        load_config(_write_config(tmp_path, text))
    assert excinfo.value.field == "release_repository"


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.toml")


@pytest.mark.parametrize(
    ("text", "match", "field"),
    [
        ("[project]\n", "Missing required key", "project"),
        ('nix = 1\n[project]\nname = "foo"\n', "array of tables", "nix"),
        (
            '[project]\nname = "foo"\n[[nix]]\nids = [1]\n',
            "ids must be a list of strings",
            "ids",
        ),
        (
            '[project]\nname = "foo"\n[[nix]]\n'
            'dependencies = [{ name = "x", os = "windows" }]\n',
            "Unsupported dependency OS 'windows'",
            "dependencies",
        ),
        (
            '[project]\nname = "foo"\n[[nix]]\ndependencies = [{ os = "linux" }]\n',
            "Dependencies must be names",
            "dependencies",
        ),
        ("[project\n", "Invalid TOML", ""),
    ],
)
def test_load_config_rejects_invalid(
    tmp_path: Path, text: str, match: str, field: str
) -> None:
    """Invalid configuration reports the offending field."""
    with pytest.raises(ConfigError, match=match) as excinfo:
        load_config(_write_config(tmp_path, text))
    assert excinfo.value.field == field


@pytest.mark.parametrize(
    ("tag", "version", "parts", "prerelease"),
    [
        ("v1.2.1", "1.2.1", (1, 2, 1), ""),
        ("v1.2.1-rc1", "1.2.1-rc1", (1, 2, 1), "rc1"),
        ("2.0", "2.0", (2, 0, 0), ""),
        ("v3.4.5+build.7", "3.4.5+build.7", (3, 4, 5), ""),
    ],
)
def test_release_context_from_tag(
    tag: str, version: str, parts: tuple[int, int, int], prerelease: str
) -> None:
    release = ReleaseContext.from_tag("foo", tag, Path("dist"))
    assert release.version == version
    assert (release.major, release.minor, release.patch) == parts
    assert release.prerelease == prerelease
    assert release.is_prerelease is bool(prerelease)


def test_release_context_rejects_non_semver() -> None:
    with pytest.raises(ConfigError, match="not a semantic version") as excinfo:
        ReleaseContext.from_tag("foo", "nightly", Path("dist"))
    assert excinfo.value.field == "tag"


def test_template_context(release: ReleaseContext) -> None:
    context = release.as_template_context()
    assert context["project_name"] == "foo"
    assert context["version"] == "1.2.1"
    assert context["tag"] == "v1.2.1"
    assert context["prerelease"] == "rc1"


def test_apply_defaults(release: ReleaseContext) -> None:
    """Unset name, amd64 level and commit message fall back to defaults."""
    package = apply_defaults(PackageConfig(), release)
    assert package.name == "foo"
    assert package.goamd64 == "v1"
    assert package.commit_message_template == DEFAULT_COMMIT_MESSAGE

    custom = apply_defaults(PackageConfig(name="bar", goamd64="v3"), release)
    assert (custom.name, custom.goamd64) == ("bar", "v3")


def test_dependency_applies_to() -> None:
    assert Dependency("fish").applies_to("darwin")
    assert Dependency("zsh", "linux").applies_to("linux")
    assert not Dependency("zsh", "linux").applies_to("darwin")
