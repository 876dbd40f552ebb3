"""Build and publish pipeline for Nix derivations.

The same :class:`NixPipe` drives both phases; only its checksum prefetcher
differs. The build pipe writes a local manifest with placeholder checksums for
every configured package. The publish pipe re-derives each of those manifests
with real checksums and hands them to a repository client.
"""

from __future__ import annotations

import dataclasses
import enum
import sys
import typing as typ
from pathlib import Path

from .client import PullRequestOpener, Repo
from .config import apply_defaults
from .errors import (
    ConfigError,
    NixpkgError,
    PullRequestUnsupportedError,
    SkipPublishError,
    SkipUploadAutoError,
    SkipUploadError,
)
from .matrix import build_platform_matrix
from .prefetch import (
    NIX_PREFETCH_URL_BIN,
    BuildShaPrefetcher,
    PublishShaPrefetcher,
    prefetch_all,
)
from .render import download_url, prepare_package, render_manifest

if typ.TYPE_CHECKING:
    from .archives import ReleaseArchive
    from .client import RepositoryClient
    from .config import PackageConfig, ReleaseContext
    from .prefetch import ShaPrefetcher

__all__ = [
    "Manifest",
    "ManifestKind",
    "NixPipe",
    "PipelineContext",
    "PublishReport",
]


class ManifestKind(enum.Enum):
    """Kind marker distinguishing local manifests from published ones."""

    LOCAL = "nixpkg"
    PUBLISHED = "nixpkg-published"


@dataclasses.dataclass(slots=True, frozen=True)
class Manifest:
    """Rendered derivation.

    Attributes
    ----------
    kind : ManifestKind
        Whether the manifest was written locally or published.
    path : Path
        Local file for :attr:`ManifestKind.LOCAL`, repository path otherwise.
    content : str
        Derivation text.
    package : PackageConfig
        Package with its templates evaluated.
    source : PackageConfig
        Package as configured, used to re-derive the manifest when publishing.
    """

    kind: ManifestKind
    path: Path
    content: str
    package: PackageConfig
    source: PackageConfig


@dataclasses.dataclass(slots=True)
class PipelineContext:
    """State shared by the build and publish pipes of one run."""

    release: ReleaseContext
    archives: list[ReleaseArchive]
    packages: list[PackageConfig]
    manifests: list[Manifest] = dataclasses.field(default_factory=list)

    def manifests_of(self, kind: ManifestKind) -> list[Manifest]:
        return [manifest for manifest in self.manifests if manifest.kind is kind]


@dataclasses.dataclass(slots=True)
class PublishReport:
    """Outcome of :meth:`NixPipe.publish_all`."""

    published: list[Manifest] = dataclasses.field(default_factory=list)
    skipped: list[SkipPublishError] = dataclasses.field(default_factory=list)


class NixPipe:
    """Generate and publish Nix derivations for the configured packages.

    Parameters
    ----------
    prefetcher : ShaPrefetcher
        Resolves download URLs to checksums; see :meth:`for_build` and
        :meth:`for_publish`.
    """

    continue_on_error = True

    def __init__(self, prefetcher: ShaPrefetcher) -> None:
        self.prefetcher = prefetcher

    @classmethod
    def for_build(cls) -> NixPipe:
        return cls(BuildShaPrefetcher())

    @classmethod
    def for_publish(cls, binary: str = NIX_PREFETCH_URL_BIN) -> NixPipe:
        return cls(PublishShaPrefetcher(binary))

    def __str__(self) -> str:
        return "nixpkgs"

    def dependencies(self) -> list[str]:
        return [NIX_PREFETCH_URL_BIN]

    def skip(self, ctx: PipelineContext) -> bool:
        """Return ``True`` when nothing is configured or checksums are unavailable."""
        return not ctx.packages or not self.prefetcher.available()

    def default(self, ctx: PipelineContext) -> None:
        ctx.packages = [apply_defaults(package, ctx.release) for package in ctx.packages]

    def run_all(self, ctx: PipelineContext) -> list[Manifest]:
        """Write the local manifest of every configured package.

        A failing package does not stop the remaining ones. A single failure
        is re-raised as is; several are raised together in an
        :class:`ExceptionGroup`.
        """
        manifests: list[Manifest] = []
        failures: list[NixpkgError] = []
        for package in ctx.packages:
            try:
                manifests.append(self.run(ctx, package))
            except NixpkgError as exc:
                label = package.name or ctx.release.project_name
                print(f"::error title=Nixpkg Failure::{label}: {exc}", file=sys.stderr)
                failures.append(exc)
        if len(failures) == 1:
            raise failures[0]
        if failures:
            message = f"{len(failures)} nixpkg(s) failed to build"
            raise ExceptionGroup(message, failures)
        return manifests

    def run(self, ctx: PipelineContext, package: PackageConfig) -> Manifest:
        """Render ``package`` and write it below ``<dist>/nix``."""
        prepared = prepare_package(package, ctx.release)
        content = self._render(ctx, prepared)
        path = _safe_destination_path(ctx.release.dist / "nix", prepared.path)
        path.write_text(content, encoding="utf-8")
        print(f"Wrote nixpkg '{path}'")
        manifest = Manifest(ManifestKind.LOCAL, path, content, prepared, package)
        ctx.manifests.append(manifest)
        return manifest

    def publish_all(
        self, ctx: PipelineContext, client: RepositoryClient
    ) -> PublishReport:
        """Publish every local manifest of ``ctx``.

        Skipped packages are recorded in the report; every other error
        propagates.
        """
        report = PublishReport()
        for manifest in ctx.manifests_of(ManifestKind.LOCAL):
            try:
                report.published.append(self.publish(ctx, manifest.source, client))
            except SkipPublishError as exc:
                print(
                    f"::notice title=Nixpkg Skipped::{manifest.package.name}: {exc}",
                    file=sys.stderr,
                )
                report.skipped.append(exc)
        return report

    def publish(
        self, ctx: PipelineContext, package: PackageConfig, client: RepositoryClient
    ) -> Manifest:
        """Render ``package`` with real checksums and publish it.

        Raises
        ------
        SkipUploadError
            Raised when ``skip_upload`` evaluates to ``true``.
        SkipUploadAutoError
            Raised when ``skip_upload`` is ``auto`` on a pre-release.
        """
        prepared = prepare_package(package, ctx.release)
        skip_upload = prepared.skip_upload.strip()
        if skip_upload == "true":
            raise SkipUploadError()
        if skip_upload == "auto" and ctx.release.is_prerelease:
            raise SkipUploadAutoError()

        content = self._render(ctx, prepared, forbid_placeholder=True)
        repo = Repo.from_ref(prepared.repository)
        commit_message = prepared.commit_message_template
        pull_request = prepared.repository.pull_request
        if not pull_request.enabled:
            client.create_file(
                repo, prepared.commit_author, content, prepared.path, commit_message
            )
        else:
            if not isinstance(client, PullRequestOpener):
                message = "client does not support pull requests"
                raise PullRequestUnsupportedError(message)
            if not repo.branch:
                message = "repository branch must be set to open a pull request"
                raise ConfigError(message, "repository.branch")
            print("nix.pull_request enabled, creating a pull request")
            client.create_file(
                repo, prepared.commit_author, content, prepared.path, commit_message
            )
            base = pull_request.base
            client.open_pull_request(
                Repo(
                    owner=(base and base.owner) or repo.owner,
                    name=(base and base.name) or repo.name,
                    branch=(base and base.branch) or "",
                ),
                repo,
                commit_message,
                draft=pull_request.draft,
            )

        manifest = Manifest(
            ManifestKind.PUBLISHED, Path(prepared.path), content, prepared, package
        )
        ctx.manifests.append(manifest)
        return manifest

    def _render(
        self,
        ctx: PipelineContext,
        package: PackageConfig,
        *,
        forbid_placeholder: bool = False,
    ) -> str:
        matrix = build_platform_matrix(
            ctx.archives,
            package,
            lambda archive: download_url(package, ctx.release, archive),
        )
        checksums = prefetch_all(self.prefetcher, matrix.urls)
        return render_manifest(
            package,
            matrix,
            checksums,
            ctx.release,
            forbid_placeholder=forbid_placeholder,
        )


def _safe_destination_path(root: Path, destination: str) -> Path:
    """Resolve ``destination`` under ``root`` and create its parent directory."""
    target = (root / destination).resolve()
    if not target.is_relative_to(root.resolve()):
        message = f"Manifest path escapes {root}: {destination}"
        raise ConfigError(message, "path")
    target.parent.mkdir(parents=True, exist_ok=True)
    return target
