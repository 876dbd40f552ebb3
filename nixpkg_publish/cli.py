"""Command-line entry point for the nixpkg helper.

Examples
--------
Write the local derivations after a release build::

    nixpkg-publish build .github/nixpkg.toml --tag v1.2.3

Publish them, printing the planned ``gh`` calls instead of running them::

    nixpkg-publish publish .github/nixpkg.toml --tag v1.2.3 --dry-run
"""

from __future__ import annotations

import sys
import typing as typ
from pathlib import Path

import cyclopts
from plumbum.commands import CommandNotFound, ProcessExecutionError

from .archives import load_archives
from .client import GitHubClient
from .config import ReleaseContext, load_config
from .errors import NixpkgError
from .pipe import NixPipe, PipelineContext
from .prefetch import NIX_PREFETCH_URL_BIN

app = cyclopts.App(help="Generate Nix derivations for release archives and publish them.")


def _load_context(
    config_file: Path, tag: str, previous_tag: str, artifacts: Path | None
) -> PipelineContext:
    config = load_config(config_file)
    dist = Path(config.dist)
    release = ReleaseContext.from_tag(
        config.project_name,
        tag,
        dist,
        previous_tag=previous_tag,
        url_template=config.url_template,
    )
    archives = load_archives(artifacts or dist / "artifacts.json")
    return PipelineContext(release=release, archives=archives, packages=config.packages)


def _fail(exc: BaseException) -> typ.NoReturn:
    print(f"::error title=Nixpkg Failure::{exc}", file=sys.stderr)
    raise SystemExit(1) from exc


@app.command
def build(
    config_file: Path,
    *,
    tag: str,
    previous_tag: str = "",
    artifacts: Path | None = None,
) -> None:
    """Write a local derivation with placeholder checksums for every package.

    Parameters
    ----------
    config_file:
        TOML file declaring ``[project]`` and the ``[[nix]]`` packages.
        ``[project]`` must set ``url_template`` or ``release_repository``
        unless every package sets its own ``url_template``.
    tag:
        Git tag of the release (for example ``"v1.2.3"``).
    previous_tag:
        Tag of the previous release, available to commit message templates.
    artifacts:
        ``artifacts.json`` listing the release archives. Defaults to the one
        in the configured dist directory.
    """
    try:
        ctx = _load_context(config_file, tag, previous_tag, artifacts)
        pipe = NixPipe.for_build()
        if pipe.skip(ctx):
            print("No nix packages configured.", file=sys.stderr)
            return
        pipe.default(ctx)
        manifests = pipe.run_all(ctx)
    except (FileNotFoundError, NixpkgError, ExceptionGroup) as exc:
        _fail(exc)
    print(f"Wrote {len(manifests)} nixpkg(s).", file=sys.stderr)


@app.command
def publish(
    config_file: Path,
    *,
    tag: str,
    previous_tag: str = "",
    artifacts: Path | None = None,
    prefetch_bin: str = NIX_PREFETCH_URL_BIN,
    dry_run: bool = False,
) -> None:
    """Build every derivation, then publish it with real checksums.

    Parameters
    ----------
    config_file:
        TOML file declaring ``[project]`` and the ``[[nix]]`` packages.
        ``[project]`` must set ``url_template`` or ``release_repository``
        unless every package sets its own ``url_template``.
    tag:
        Git tag of the release (for example ``"v1.2.3"``).
    previous_tag:
        Tag of the previous release, available to commit message templates.
    artifacts:
        ``artifacts.json`` listing the release archives.
    prefetch_bin:
        Executable computing the Nix checksum of a URL.
    dry_run:
        Print the planned ``gh`` invocations without publishing.
    """
    try:
        ctx = _load_context(config_file, tag, previous_tag, artifacts)
        publisher = NixPipe.for_publish(prefetch_bin)
        if publisher.skip(ctx):
            print(
                "::notice title=Nixpkg Skipped::no packages configured "
                f"or {prefetch_bin} unavailable",
                file=sys.stderr,
            )
            return
        builder = NixPipe.for_build()
        builder.default(ctx)
        builder.run_all(ctx)
        report = publisher.publish_all(ctx, GitHubClient(dry_run=dry_run))
    except (
        FileNotFoundError,
        NixpkgError,
        ExceptionGroup,
        ProcessExecutionError,
        CommandNotFound,
    ) as exc:
        _fail(exc)
    print(
        f"Published {len(report.published)} nixpkg(s), "
        f"skipped {len(report.skipped)}.",
        file=sys.stderr,
    )


if __name__ == "__main__":
    app()
