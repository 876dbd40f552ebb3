"""Render package configurations into Nix derivations.

Rendering is split in two steps. :func:`prepare_package` evaluates every
template-bearing configuration field and fails before any checksum work or
filesystem access. :func:`render_manifest` then turns the prepared package, its
platform matrix and a checksum map into the derivation text. Both are pure.
"""

from __future__ import annotations

import dataclasses
import posixpath
import typing as typ
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, UndefinedError

from .config import DEPENDENCY_OS, RepositoryRef
from .errors import ConfigError, NixpkgError, PlaceholderChecksumError
from .matrix import InstallBranch, install_branches
from .prefetch import ZERO_HASH
from .template_utils import render_template, split_lines

if typ.TYPE_CHECKING:
    from .archives import ReleaseArchive
    from .config import PackageConfig, ReleaseContext
    from .matrix import PlatformMatrix

__all__ = [
    "TEMPLATE_DIR",
    "default_path",
    "download_url",
    "prepare_package",
    "render_manifest",
]

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
TEMPLATE_NAME = "package.nix.j2"


def _nix_string(value: object) -> str:
    """Escape ``value`` for use inside a double-quoted Nix string."""
    return (
        str(value)
        .replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
    )


_ENVIRONMENT = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    autoescape=False,
)
_ENVIRONMENT.filters["nix_string"] = _nix_string


def default_path(name: str) -> str:
    """Return the repository path used when a package sets no ``path``."""
    return posixpath.join("pkgs", name, "default.nix")


def prepare_package(package: PackageConfig, release: ReleaseContext) -> PackageConfig:
    """Return ``package`` with every template evaluated against ``release``.

    ``url_template`` is left untouched because it depends on the archive; see
    :func:`download_url`.

    Raises
    ------
    ConfigError
        Raised when the repository owner or name is missing or a dependency
        targets an unsupported OS.
    TemplateError
        Raised when a field references an unknown template key.
    """
    context = release.as_template_context()

    def apply(value: str, field: str) -> str:
        return render_template(value, context, field)

    for dependency in package.dependencies:
        if dependency.os not in DEPENDENCY_OS:
            message = f"Unsupported dependency OS '{dependency.os}' for {dependency.name}"
            raise ConfigError(message, "dependencies")

    repository = _prepare_repository(package.repository, apply, "repository")
    for field in ("owner", "name"):
        if not getattr(repository, field):
            message = f"repository {field} is not set"
            raise ConfigError(message, f"repository.{field}")

    name = apply(package.name, "name") or release.project_name
    path = apply(package.path, "path") or default_path(name)
    return dataclasses.replace(
        package,
        name=name,
        description=apply(package.description, "description"),
        homepage=apply(package.homepage, "homepage"),
        license=apply(package.license, "license"),
        path=path,
        install=apply(package.install, "install"),
        post_install=apply(package.post_install, "post_install"),
        extra_install=apply(package.extra_install, "extra_install"),
        skip_upload=apply(package.skip_upload, "skip_upload"),
        repository=repository,
        commit_message_template=apply(
            package.commit_message_template, "commit_message_template"
        ),
    )


def _prepare_repository(
    repository: RepositoryRef,
    apply: typ.Callable[[str, str], str],
    label: str,
) -> RepositoryRef:
    pull_request = repository.pull_request
    base = pull_request.base
    if base is not None:
        base = _prepare_repository(base, apply, f"{label}.pull_request.base")
    return dataclasses.replace(
        repository,
        owner=apply(repository.owner, f"{label}.owner"),
        name=apply(repository.name, f"{label}.name"),
        branch=apply(repository.branch, f"{label}.branch"),
        pull_request=dataclasses.replace(pull_request, base=base),
    )


def download_url(
    package: PackageConfig, release: ReleaseContext, archive: ReleaseArchive
) -> str:
    """Return the URL ``archive`` is downloaded from.

    Raises
    ------
    ConfigError
        Raised when neither the package nor the release sets a URL template.
    TemplateError
        Raised when the template references an unknown key.
    """
    template = package.url_template or release.url_template
    if not template:
        message = (
            "url_template is not set for the package or the project; "
            "set url_template or release_repository in [project]"
        )
        raise ConfigError(message, "url_template")
    return render_template(template, release.artifact_context(archive), "url_template")


def render_manifest(
    package: PackageConfig,
    matrix: PlatformMatrix,
    checksums: typ.Mapping[str, str],
    release: ReleaseContext,
    *,
    forbid_placeholder: bool = False,
) -> str:
    """Render the Nix derivation of ``package``.

    Parameters
    ----------
    package : PackageConfig
        Package returned by :func:`prepare_package`.
    matrix : PlatformMatrix
        Install variants of the package.
    checksums : Mapping[str, str]
        Checksum of every URL in :attr:`PlatformMatrix.urls`.
    release : ReleaseContext
        Release metadata supplying the version.
    forbid_placeholder : bool, default=False
        Reject output embedding :data:`~nixpkg_publish.prefetch.ZERO_HASH`.

    Returns
    -------
    str
        Derivation text; identical inputs always give identical output.

    Raises
    ------
    NixpkgError
        Raised when a URL has no checksum.
    PlaceholderChecksumError
        Raised when ``forbid_placeholder`` is set and the placeholder hash
        would be published.
    """
    entries = []
    for system, descriptor in matrix.entries():
        try:
            sha = checksums[descriptor.url]
        except KeyError as exc:
            message = f"No checksum available for {descriptor.url}"
            raise NixpkgError(message) from exc
        entries.append(
            {
                "system": system,
                "url": descriptor.url,
                "sha": sha,
                "source_root": descriptor.source_root,
            }
        )

    dependency_names = list(dict.fromkeys(dep.name for dep in package.dependencies))
    inputs = ["installShellFiles"]
    arguments: list[str] = []
    if dependency_names:
        inputs.append("makeWrapper")
        arguments.append("makeWrapper")
    arguments.extend(dependency_names)
    if "zip" in matrix.formats:
        inputs.append("unzip")
        arguments.append("unzip")

    try:
        content = _ENVIRONMENT.get_template(TEMPLATE_NAME).render(
            name=package.name,
            version=release.version,
            description=package.description,
            homepage=package.homepage,
            license=package.license,
            arguments=list(dict.fromkeys(arguments)),
            inputs=inputs,
            entries=entries,
            install_branches=_install_branches(package, matrix),
            post_install=split_lines(package.post_install),
            platforms=matrix.platforms,
        )
    except UndefinedError as exc:
        message = f"Manifest template is missing a value: {exc}"
        raise NixpkgError(message) from exc

    if forbid_placeholder and ZERO_HASH in content:
        message = (
            f"Refusing to publish {package.name}: "
            "manifest contains the placeholder checksum"
        )
        raise PlaceholderChecksumError(message)
    return content


def _install_branches(
    package: PackageConfig, matrix: PlatformMatrix
) -> list[InstallBranch]:
    extra = tuple(split_lines(package.extra_install))
    if custom := split_lines(package.install):
        return [InstallBranch("", (*custom, *extra))]
    return [
        InstallBranch(branch.condition, (*branch.lines, *extra))
        for branch in install_branches(matrix, package.dependencies)
    ]
