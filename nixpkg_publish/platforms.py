"""Closed vocabulary of the operating systems and architectures we package.

Archives identify their platform with goreleaser-style strings (``goos``,
``goarch``, ``goarm``, ``goamd64``). They are mapped onto :class:`Os` and
:class:`Arch` once, and everything downstream matches on the enums.
"""

from __future__ import annotations

import enum

__all__ = [
    "AMD64_LEVELS",
    "DEFAULT_AMD64",
    "SUPPORTED_ARCH",
    "SUPPORTED_ARM",
    "SUPPORTED_OS",
    "Arch",
    "Os",
    "nix_systems",
    "platform_tag",
]

SUPPORTED_OS: tuple[str, ...] = ("darwin", "linux")
SUPPORTED_ARCH: tuple[str, ...] = ("amd64", "arm", "arm64", "386")
SUPPORTED_ARM: tuple[str, ...] = ("6", "7")
AMD64_LEVELS: tuple[str, ...] = ("v1", "v2", "v3", "v4")
DEFAULT_AMD64 = "v1"


class Os(enum.Enum):
    """Operating system families."""

    LINUX = "linux"
    DARWIN = "darwin"
    OTHER = "other"

    @classmethod
    def parse(cls, goos: str) -> Os:
        """Return the family for ``goos``; unknown systems map to ``OTHER``."""
        try:
            return cls(goos)
        except ValueError:
            return cls.OTHER


class Arch(enum.Enum):
    """CPU architecture families, ``UNIVERSAL`` being a multi-arch binary."""

    AMD64 = "amd64"
    ARM64 = "arm64"
    X86 = "386"
    ARM = "arm"
    UNIVERSAL = "all"

    @classmethod
    def parse(cls, goarch: str) -> Arch | None:
        """Return the architecture for ``goarch`` or ``None`` if unsupported."""
        try:
            return cls(goarch)
        except ValueError:
            return None


def platform_tag(os: Os, arch: Arch, goarm: str = "", goamd64: str = "") -> str:
    """Return the canonical tag identifying an install variant.

    Examples
    --------
    >>> platform_tag(Os.LINUX, Arch.ARM, goarm="6")
    'linux_armv6'
    >>> platform_tag(Os.DARWIN, Arch.AMD64, goamd64="v1")
    'darwin_amd64v1'
    """
    tag = f"{os.value}_{arch.value}"
    if arch is Arch.ARM:
        tag += f"v{goarm}"
    if arch is Arch.AMD64:
        tag += goamd64
    return tag


_LINUX_SYSTEMS: dict[Arch, tuple[str, ...]] = {
    Arch.AMD64: ("x86_64-linux",),
    Arch.ARM64: ("aarch64-linux",),
    Arch.X86: ("i686-linux",),
    Arch.UNIVERSAL: ("x86_64-linux", "aarch64-linux"),
}
_LINUX_ARM_SYSTEMS: dict[str, tuple[str, ...]] = {
    "6": ("armv6l-linux",),
    "7": ("armv7l-linux",),
}
_DARWIN_SYSTEMS: dict[Arch, tuple[str, ...]] = {
    Arch.AMD64: ("x86_64-darwin",),
    Arch.ARM64: ("aarch64-darwin",),
    Arch.UNIVERSAL: ("x86_64-darwin", "aarch64-darwin"),
}


def nix_systems(os: Os, arch: Arch, goarm: str = "") -> tuple[str, ...]:
    """Return the Nix system doubles an archive for ``os``/``arch`` can serve.

    An empty tuple means Nix has no matching system and the archive is not
    packaged.
    """
    match os:
        case Os.LINUX:
            if arch is Arch.ARM:
                return _LINUX_ARM_SYSTEMS.get(goarm, ())
            return _LINUX_SYSTEMS.get(arch, ())
        case Os.DARWIN:
            return _DARWIN_SYSTEMS.get(arch, ())
        case Os.OTHER:
            return ()
