"""Configuration models and loader for nixpkg generation.

Usage
-----
Load the packages declared in a project configuration::

    from pathlib import Path
    from nixpkg_publish.config import load_config

    config = load_config(Path(".github/nixpkg.toml"))
    for package in config.packages:
        print(package.repository.owner, package.repository.name)
"""

from __future__ import annotations

import dataclasses
import re
import typing as typ
from pathlib import Path

import tomllib

from .errors import ConfigError
from .platforms import DEFAULT_AMD64

if typ.TYPE_CHECKING:
    from .archives import ReleaseArchive

__all__ = [
    "DEFAULT_COMMIT_MESSAGE",
    "RELEASE_DOWNLOAD_URL",
    "CommitAuthor",
    "Dependency",
    "NixConfig",
    "PackageConfig",
    "PullRequestConfig",
    "ReleaseContext",
    "RepositoryRef",
    "apply_defaults",
    "load_config",
]

DEFAULT_COMMIT_MESSAGE = "{project_name}: {previous_tag} -> {tag}"
RELEASE_DOWNLOAD_URL = (
    "https://github.com/{repository}/releases/download/{{tag}}/{{artifact_name}}"
)
DEPENDENCY_OS = frozenset({"", "linux", "darwin"})

_SEMVER = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)


@dataclasses.dataclass(slots=True, frozen=True)
class Dependency:
    """Runtime dependency added to the wrapped binaries' ``PATH``.

    ``os`` restricts the dependency to ``"linux"`` or ``"darwin"``; empty means
    every platform.
    """

    name: str
    os: str = ""

    def applies_to(self, os: str) -> bool:
        return not self.os or self.os == os


@dataclasses.dataclass(slots=True, frozen=True)
class CommitAuthor:
    """Identity recorded on commits pushed to the package repository."""

    name: str = "nixpkg-publish-bot"
    email: str = "nixpkg-publish-bot@users.noreply.github.com"


@dataclasses.dataclass(slots=True, frozen=True)
class PullRequestConfig:
    """Pull request settings of a :class:`RepositoryRef`.

    ``base`` names the repository and branch the pull request targets; when
    unset the pull request targets the default branch of the head repository.
    """

    enabled: bool = False
    draft: bool = False
    base: RepositoryRef | None = None


@dataclasses.dataclass(slots=True, frozen=True)
class RepositoryRef:
    """Package-definition repository the manifest is published to."""

    owner: str = ""
    name: str = ""
    branch: str = ""
    pull_request: PullRequestConfig = PullRequestConfig()


@dataclasses.dataclass(slots=True, frozen=True)
class PackageConfig:
    """One ``[[nix]]`` entry of the configuration file.

    Every string field except ``ids`` and ``goamd64`` is a ``str.format``
    template evaluated against :meth:`ReleaseContext.as_template_context`.
    ``url_template`` is additionally given the artefact fields listed in
    :meth:`ReleaseContext.artifact_context`.

    Examples
    --------
    >>> package = PackageConfig(repository=RepositoryRef(owner="foo", name="bar"))
    >>> package.repository.name
    'bar'
    """

    name: str = ""
    ids: tuple[str, ...] = ()
    description: str = ""
    homepage: str = ""
    license: str = ""
    path: str = ""
    url_template: str = ""
    install: str = ""
    post_install: str = ""
    extra_install: str = ""
    dependencies: tuple[Dependency, ...] = ()
    goamd64: str = ""
    skip_upload: str = ""
    repository: RepositoryRef = RepositoryRef()
    commit_author: CommitAuthor = CommitAuthor()
    commit_message_template: str = ""


@dataclasses.dataclass(slots=True, frozen=True)
class ReleaseContext:
    """Read-only metadata about the release being packaged.

    Parameters
    ----------
    project_name : str
        Name of the project, used as the default package name.
    version : str
        Version without the leading ``v``.
    tag : str
        Git tag of the release.
    dist : Path
        Scratch directory receiving the local manifests.
    """

    project_name: str
    version: str
    tag: str
    dist: Path
    major: int = 0
    minor: int = 0
    patch: int = 0
    prerelease: str = ""
    previous_tag: str = ""
    url_template: str = ""

    @classmethod
    def from_tag(
        cls,
        project_name: str,
        tag: str,
        dist: Path,
        *,
        previous_tag: str = "",
        url_template: str = "",
    ) -> ReleaseContext:
        """Build a context from a semantic version tag such as ``v1.2.1-rc1``."""
        match = _SEMVER.match(tag.strip())
        if match is None:
            message = f"Tag '{tag}' is not a semantic version"
            raise ConfigError(message, "tag")
        return cls(
            project_name=project_name,
            version=tag.strip().removeprefix("v"),
            tag=tag.strip(),
            dist=Path(dist),
            major=int(match["major"]),
            minor=int(match["minor"] or 0),
            patch=int(match["patch"] or 0),
            prerelease=match["prerelease"] or "",
            previous_tag=previous_tag,
            url_template=url_template,
        )

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def as_template_context(self) -> dict[str, typ.Any]:
        """Return the fields exposed to configuration templates."""
        return {
            "project_name": self.project_name,
            "version": self.version,
            "tag": self.tag,
            "previous_tag": self.previous_tag,
            "major": self.major,
            "minor": self.minor,
            "patch": self.patch,
            "prerelease": self.prerelease,
        }

    def artifact_context(self, archive: ReleaseArchive) -> dict[str, typ.Any]:
        """Return the template context extended with ``archive``'s fields."""
        return self.as_template_context() | {
            "artifact_name": archive.name,
            "artifact_id": archive.artifact_id,
            "os": archive.goos,
            "arch": archive.goarch,
            "arm": archive.goarm,
            "amd64": archive.goamd64,
        }


@dataclasses.dataclass(slots=True)
class NixConfig:
    """Concrete configuration produced by :func:`load_config`."""

    project_name: str
    dist: str
    url_template: str
    packages: list[PackageConfig]


def apply_defaults(package: PackageConfig, release: ReleaseContext) -> PackageConfig:
    """Fill the fields left unset in ``package`` from ``release``."""
    return dataclasses.replace(
        package,
        name=package.name or release.project_name,
        goamd64=package.goamd64 or DEFAULT_AMD64,
        commit_message_template=(
            package.commit_message_template or DEFAULT_COMMIT_MESSAGE
        ),
    )


def load_config(config_file: Path) -> NixConfig:
    """Load the ``[project]`` and ``[[nix]]`` tables of ``config_file``.

    Parameters
    ----------
    config_file : Path
        TOML file describing the project and its packages.

    Returns
    -------
    NixConfig
        Parsed configuration; templates are left unevaluated.

    Raises
    ------
    FileNotFoundError
        Raised when the configuration file is absent.
    ConfigError
        Raised when required keys are missing or have the wrong shape.
    """
    config_file = Path(config_file)
    if not config_file.is_file():
        message = f"Configuration file not found at {config_file}"
        raise FileNotFoundError(message)
    with config_file.open("rb") as handle:
        try:
            data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            message = f"Invalid TOML in {config_file}: {exc}"
            raise ConfigError(message) from exc

    project = _table(data.get("project", {}), "project", config_file)
    _require_keys(project, {"name"}, "project", config_file)
    entries = data.get("nix", [])
    if not isinstance(entries, list):
        message = f"[[nix]] must be an array of tables in {config_file}"
        raise ConfigError(message, "nix")
    packages = [
        _make_package(_table(entry, f"nix #{index}", config_file), index, config_file)
        for index, entry in enumerate(entries, start=1)
    ]
    return NixConfig(
        project_name=project["name"],
        dist=project.get("dist", "dist"),
        url_template=_project_url_template(project, config_file),
        packages=packages,
    )


def _make_package(
    entry: dict[str, typ.Any], index: int, config_path: Path
) -> PackageConfig:
    repository = _make_repository(
        _table(entry.get("repository", {}), f"nix #{index}.repository", config_path)
    )
    author = _table(
        entry.get("commit_author", {}), f"nix #{index}.commit_author", config_path
    )
    default_author = CommitAuthor()
    return PackageConfig(
        name=entry.get("name", ""),
        ids=tuple(_string_list(entry.get("ids", []), "ids", index, config_path)),
        description=entry.get("description", ""),
        homepage=entry.get("homepage", ""),
        license=entry.get("license", ""),
        path=entry.get("path", ""),
        url_template=entry.get("url_template", ""),
        install=entry.get("install", ""),
        post_install=entry.get("post_install", ""),
        extra_install=entry.get("extra_install", ""),
        dependencies=_make_dependencies(entry.get("dependencies", []), index, config_path),
        goamd64=entry.get("goamd64", ""),
        skip_upload=_flag_text(entry.get("skip_upload", "")),
        repository=repository,
        commit_author=CommitAuthor(
            name=author.get("name", default_author.name),
            email=author.get("email", default_author.email),
        ),
        commit_message_template=entry.get("commit_message_template", ""),
    )


def _make_repository(table: dict[str, typ.Any]) -> RepositoryRef:
    pull_request = table.get("pull_request") or {}
    base = pull_request.get("base")
    return RepositoryRef(
        owner=table.get("owner", ""),
        name=table.get("name", ""),
        branch=table.get("branch", ""),
        pull_request=PullRequestConfig(
            enabled=bool(pull_request.get("enabled", False)),
            draft=bool(pull_request.get("draft", False)),
            base=_make_repository(base) if base else None,
        ),
    )


def _make_dependencies(
    value: object, index: int, config_path: Path
) -> tuple[Dependency, ...]:
    if not isinstance(value, list):
        message = f"Dependencies must be a list (entry #{index} in {config_path})"
        raise ConfigError(message, "dependencies")
    dependencies: list[Dependency] = []
    for item in value:
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict) or not item.get("name"):
            message = (
                "Dependencies must be names or tables with a 'name' key "
                f"(entry #{index} in {config_path})"
            )
            raise ConfigError(message, "dependencies")
        os = item.get("os", "")
        if os not in DEPENDENCY_OS:
            message = (
                f"Unsupported dependency OS '{os}' for {item['name']} "
                f"(entry #{index} in {config_path})"
            )
            raise ConfigError(message, "dependencies")
        dependencies.append(Dependency(name=item["name"], os=os))
    return tuple(dependencies)


def _flag_text(value: object) -> str:
    """Return TOML booleans as the ``"true"``/``"false"`` template text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _string_list(
    value: object, label: str, index: int, config_path: Path
) -> list[str]:
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        message = f"{label} must be a list of strings (entry #{index} in {config_path})"
        raise ConfigError(message, label)
    return [item for item in value if item]


def _table(value: object, label: str, config_path: Path) -> dict[str, typ.Any]:
    if not isinstance(value, dict):
        message = f"[{label}] must be a table in {config_path}"
        raise ConfigError(message, label)
    return value


def _require_keys(
    section: dict[str, typ.Any], keys: set[str], label: str, config_path: Path
) -> None:
    if missing := sorted(key for key in keys if key not in section):
        joined = ", ".join(missing)
        message = (
            "Missing required key(s) "
            f"{joined} in [{label}] section of {config_path}"
        )
        raise ConfigError(message, label)


def _project_url_template(project: dict[str, typ.Any], config_path: Path) -> str:
    """Return the project URL template, defaulting to GitHub release downloads.

    ``release_repository = "owner/name"`` stands in for an explicit
    ``url_template`` pointing at the assets of the GitHub release.
    """
    if template := project.get("url_template", ""):
        return template
    repository = project.get("release_repository", "")
    if not repository:
        return ""
    parts = repository.split("/") if isinstance(repository, str) else []
    if len(parts) != 2 or not all(parts):
        message = (
            "release_repository must look like 'owner/name' "
            f"in [project] section of {config_path}"
        )
        raise ConfigError(message, "release_repository")
    return RELEASE_DOWNLOAD_URL.format(repository=repository)
