"""Error types raised by the nixpkg helpers."""

from __future__ import annotations

import typing as typ

__all__ = [
    "ConfigError",
    "NixpkgError",
    "NoArchivesFoundError",
    "PlaceholderChecksumError",
    "PrefetchError",
    "PrefetcherNotFoundError",
    "PullRequestUnsupportedError",
    "SkipPublishError",
    "SkipUploadAutoError",
    "SkipUploadError",
    "TemplateError",
]


class NixpkgError(RuntimeError):
    """Base class for every failure raised while generating a nixpkg."""


class ConfigError(NixpkgError):
    """Raised when a package configuration is invalid.

    Parameters
    ----------
    message : str
        Human readable description of the problem.
    field : str, default=""
        Configuration field that failed validation.
    """

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class TemplateError(ConfigError):
    """Raised when a template-bearing field cannot be evaluated."""

    def __init__(self, field: str, template: str, key: object) -> None:
        message = f"Invalid template key {key} in {field} template '{template}'"
        super().__init__(message, field)
        self.template = template
        self.key = key


class NoArchivesFoundError(NixpkgError):
    """Raised when no archive survives the platform filters.

    The OS, architecture and ARM catalogues are reported verbatim so users can
    compare them with what their build produced.
    """

    def __init__(
        self,
        *,
        goamd64: str,
        ids: typ.Sequence[str],
        goos: typ.Sequence[str] = ("darwin", "linux"),
        goarch: typ.Sequence[str] = ("amd64", "arm", "arm64", "386"),
        goarm: typ.Sequence[str] = ("6", "7"),
    ) -> None:
        self.goos = tuple(goos)
        self.goarch = tuple(goarch)
        self.goarm = tuple(goarm)
        self.goamd64 = goamd64
        self.ids = tuple(ids)
        super().__init__(
            "no archives found matching "
            f"goos={_bracket(self.goos)} "
            f"goarch={_bracket(self.goarch)} "
            f"goarm={_bracket(self.goarm)} "
            f"goamd64={self.goamd64} "
            f"ids={_bracket(self.ids)}"
        )

    def _key(self) -> tuple[object, ...]:
        return (self.goos, self.goarch, self.goarm, self.goamd64, self.ids)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NoArchivesFoundError):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())


class SkipPublishError(NixpkgError):
    """Expected early termination of the publish phase."""


class SkipUploadError(SkipPublishError):
    """Raised when ``skip_upload`` evaluates to ``true``."""

    def __init__(self) -> None:
        super().__init__("nix.skip_upload is set")


class SkipUploadAutoError(SkipPublishError):
    """Raised when ``skip_upload`` is ``auto`` and the release is a pre-release."""

    def __init__(self) -> None:
        super().__init__(
            "nix.skip_upload is set to 'auto', and current version is a pre-release"
        )


class PrefetchError(NixpkgError):
    """Raised when the checksum tool fails for a URL."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class PrefetcherNotFoundError(PrefetchError):
    """Raised when the checksum tool is not on ``PATH``."""

    def __init__(self, binary: str, url: str = "") -> None:
        super().__init__(f"{binary} not found in PATH", url)
        self.binary = binary


class PlaceholderChecksumError(NixpkgError):
    """Raised when a manifest meant for publishing embeds the placeholder hash."""


class PullRequestUnsupportedError(NixpkgError):
    """Raised when pull requests are requested from a client without support."""


def _bracket(values: typ.Iterable[str]) -> str:
    return "[" + " ".join(values) + "]"
