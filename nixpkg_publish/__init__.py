"""Public interface for the nixpkg generation package."""

from .archives import ReleaseArchive, load_archives
from .client import GitHubClient, Repo
from .config import (
    Dependency,
    PackageConfig,
    ReleaseContext,
    RepositoryRef,
    load_config,
)
from .errors import (
    ConfigError,
    NixpkgError,
    NoArchivesFoundError,
    SkipPublishError,
    TemplateError,
)
from .pipe import Manifest, ManifestKind, NixPipe, PipelineContext, PublishReport

__all__ = [
    "ConfigError",
    "Dependency",
    "GitHubClient",
    "load_archives",
    "load_config",
    "Manifest",
    "ManifestKind",
    "NixPipe",
    "NixpkgError",
    "NoArchivesFoundError",
    "PackageConfig",
    "PipelineContext",
    "PublishReport",
    "ReleaseArchive",
    "ReleaseContext",
    "Repo",
    "RepositoryRef",
    "SkipPublishError",
    "TemplateError",
]
