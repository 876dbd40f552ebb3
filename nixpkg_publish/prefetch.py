"""Checksum prefetchers resolving download URLs to Nix content hashes.

Building a manifest for local verification only needs a syntactically valid
hash, so :class:`BuildShaPrefetcher` answers with :data:`ZERO_HASH` without
touching the network. Publishing needs the real hash, which
:class:`PublishShaPrefetcher` obtains from ``nix-prefetch-url``.
"""

from __future__ import annotations

import sys
import typing as typ

from plumbum import local
from plumbum.commands import CommandNotFound, ProcessExecutionError

from .errors import PrefetchError, PrefetcherNotFoundError

__all__ = [
    "NIX_PREFETCH_URL_BIN",
    "ZERO_HASH",
    "BuildShaPrefetcher",
    "PublishShaPrefetcher",
    "ShaPrefetcher",
    "prefetch_all",
]

NIX_PREFETCH_URL_BIN = "nix-prefetch-url"
ZERO_HASH = "0" * 52


class ShaPrefetcher(typ.Protocol):
    """Resolve a download URL to the checksum embedded in the manifest."""

    def prefetch(self, url: str) -> str: ...

    def available(self) -> bool: ...


class BuildShaPrefetcher:
    """Return the placeholder hash for every URL."""

    def prefetch(self, url: str) -> str:
        return ZERO_HASH

    def available(self) -> bool:
        return True


class PublishShaPrefetcher:
    """Compute real hashes by running ``nix-prefetch-url``.

    Parameters
    ----------
    binary : str, default="nix-prefetch-url"
        Name (resolved on ``PATH``) or path of the checksum executable.
    """

    def __init__(self, binary: str = NIX_PREFETCH_URL_BIN) -> None:
        self.binary = binary

    def available(self) -> bool:
        """Return ``True`` when :attr:`binary` resolves to an executable."""
        try:
            if "/" in self.binary:
                path = local.path(self.binary)
                if not path.is_file() or not path.access("x"):
                    raise CommandNotFound(self.binary, [])
            else:
                local.which(self.binary)
        except CommandNotFound:
            print(
                f"::warning title=Prefetcher Missing::{self.binary} is not available",
                file=sys.stderr,
            )
            return False
        return True

    def prefetch(self, url: str) -> str:
        """Return the hash printed by :attr:`binary` for ``url``.

        Raises
        ------
        PrefetcherNotFoundError
            Raised when :attr:`binary` cannot be resolved.
        PrefetchError
            Raised when :attr:`binary` exits with a non-zero status.
        """
        try:
            output = local[self.binary](url)
        except (CommandNotFound, FileNotFoundError) as exc:
            raise PrefetcherNotFoundError(self.binary, url) from exc
        except ProcessExecutionError as exc:
            message = (
                f"{self.binary} failed for {url} "
                f"(exit {exc.retcode}): {str(exc.stderr).strip()}"
            )
            raise PrefetchError(message, url) from exc
        return output.strip()


def prefetch_all(prefetcher: ShaPrefetcher, urls: typ.Iterable[str]) -> dict[str, str]:
    """Return a checksum map with one :meth:`ShaPrefetcher.prefetch` per URL."""
    return {url: prefetcher.prefetch(url) for url in sorted(set(urls))}
