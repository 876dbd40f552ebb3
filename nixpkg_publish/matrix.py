"""Group release archives into the platform matrix of a Nix derivation.

The matrix holds one :class:`PlatformDescriptor` per install variant. Each
descriptor records the Nix systems it serves, its download URL and the
binaries it installs. Universal (``goarch = "all"``) archives either replace
the per-architecture archives of their OS, when flagged with ``Replaces``, or
serve the systems no per-architecture archive covers.
"""

from __future__ import annotations

import dataclasses
import sys
import typing as typ

from .errors import NoArchivesFoundError
from .platforms import (
    DEFAULT_AMD64,
    SUPPORTED_ARCH,
    SUPPORTED_ARM,
    SUPPORTED_OS,
    Arch,
    Os,
    nix_systems,
    platform_tag,
)

if typ.TYPE_CHECKING:
    from .archives import ReleaseArchive
    from .config import Dependency, PackageConfig

__all__ = [
    "InstallBranch",
    "PlatformDescriptor",
    "PlatformMatrix",
    "build_platform_matrix",
    "install_branches",
    "install_lines",
    "select_archives",
]

_OS_CONDITIONS = {
    Os.LINUX: "stdenvNoCC.isLinux",
    Os.DARWIN: "stdenvNoCC.isDarwin",
}


@dataclasses.dataclass(slots=True, frozen=True)
class PlatformDescriptor:
    """Install variant derived from a single archive."""

    tag: str
    os: Os
    arch: Arch
    systems: tuple[str, ...]
    url: str
    binaries: tuple[str, ...]
    wrapped_in: str
    format: str
    archive: ReleaseArchive

    @property
    def source_root(self) -> str:
        """Directory the binaries are installed from, relative to the unpack."""
        return self.wrapped_in or "."

    @property
    def is_universal(self) -> bool:
        return self.arch is Arch.UNIVERSAL


@dataclasses.dataclass(slots=True, frozen=True)
class PlatformMatrix:
    """Sorted install variants of one package."""

    descriptors: tuple[PlatformDescriptor, ...]

    @property
    def urls(self) -> list[str]:
        """Distinct download URLs of the descriptors that serve a system."""
        return sorted({item.url for item in self.descriptors if item.systems})

    @property
    def platforms(self) -> list[str]:
        """Sorted Nix systems covered by the matrix."""
        return sorted({system for item in self.descriptors for system in item.systems})

    @property
    def formats(self) -> set[str]:
        return {item.format for item in self.descriptors if item.systems}

    def by_os(self) -> dict[Os, list[PlatformDescriptor]]:
        """Return the descriptors grouped by OS, ordered by OS name."""
        grouped: dict[Os, list[PlatformDescriptor]] = {}
        for item in sorted(self.descriptors, key=lambda d: (d.os.value, d.tag)):
            grouped.setdefault(item.os, []).append(item)
        return grouped

    def entries(self) -> list[tuple[str, PlatformDescriptor]]:
        """Return ``(system, descriptor)`` pairs ordered by OS then system."""
        pairs = [(system, item) for item in self.descriptors for system in item.systems]
        return sorted(pairs, key=lambda pair: (pair[1].os.value, pair[0]))


@dataclasses.dataclass(slots=True, frozen=True)
class InstallBranch:
    """Install script guarded by a Nix condition; empty means unconditional."""

    condition: str
    lines: tuple[str, ...]


def select_archives(
    archives: typ.Iterable[ReleaseArchive], package: PackageConfig
) -> list[ReleaseArchive]:
    """Return the archives of ``package`` that map to a supported Nix system.

    Raises
    ------
    NoArchivesFoundError
        Raised when nothing survives the filters.
    """
    level = package.goamd64 or DEFAULT_AMD64
    ids = set(package.ids)
    selected = [archive for archive in archives if _accepts(archive, ids, level)]
    if not selected:
        raise NoArchivesFoundError(
            goamd64=level,
            ids=package.ids,
            goos=SUPPORTED_OS,
            goarch=SUPPORTED_ARCH,
            goarm=SUPPORTED_ARM,
        )
    return selected


def _accepts(archive: ReleaseArchive, ids: set[str], level: str) -> bool:
    if not archive.is_uploadable_archive:
        return False
    if ids and archive.artifact_id not in ids:
        return False
    os = Os.parse(archive.goos)
    arch = Arch.parse(archive.goarch)
    if os is Os.OTHER or arch is None:
        return False
    match arch:
        case Arch.AMD64:
            if archive.goamd64 != level:
                return False
        case Arch.ARM:
            if archive.goarm not in SUPPORTED_ARM:
                return False
        case Arch.ARM64 | Arch.X86 | Arch.UNIVERSAL:
            pass
    return bool(nix_systems(os, arch, archive.goarm))


def build_platform_matrix(
    archives: typ.Iterable[ReleaseArchive],
    package: PackageConfig,
    url_for: typ.Callable[[ReleaseArchive], str],
) -> PlatformMatrix:
    """Group ``archives`` into the install variants of ``package``.

    Parameters
    ----------
    archives : Iterable[ReleaseArchive]
        Every archive of the release.
    package : PackageConfig
        Package whose ``ids`` and ``goamd64`` select the archives.
    url_for : Callable[[ReleaseArchive], str]
        Returns the download URL of an archive.

    Returns
    -------
    PlatformMatrix
        Descriptors sorted by platform tag.

    Raises
    ------
    NoArchivesFoundError
        Raised when no archive matches the package filters.
    """
    grouped: dict[Os, list[ReleaseArchive]] = {}
    for archive in select_archives(archives, package):
        grouped.setdefault(Os.parse(archive.goos), []).append(archive)

    descriptors: list[PlatformDescriptor] = []
    for os in sorted(grouped, key=lambda item: item.value):
        retained = _apply_universal_override(grouped[os])
        descriptors.extend(_describe(os, retained, url_for))
    return PlatformMatrix(tuple(sorted(descriptors, key=lambda item: item.tag)))


def _apply_universal_override(group: list[ReleaseArchive]) -> list[ReleaseArchive]:
    """Drop per-architecture archives when a universal one replaces them."""
    replacing = [
        archive
        for archive in group
        if Arch.parse(archive.goarch) is Arch.UNIVERSAL and archive.replaces
    ]
    return replacing or group


def _describe(
    os: Os,
    group: list[ReleaseArchive],
    url_for: typ.Callable[[ReleaseArchive], str],
) -> list[PlatformDescriptor]:
    # Per-architecture archives claim their systems before universal ones.
    ordered = sorted(group, key=lambda item: Arch.parse(item.goarch) is Arch.UNIVERSAL)
    kept: dict[str, ReleaseArchive] = {}
    claimed: set[str] = set()
    descriptors: list[PlatformDescriptor] = []
    for archive in ordered:
        arch = typ.cast(Arch, Arch.parse(archive.goarch))
        tag = platform_tag(os, arch, archive.goarm, archive.goamd64)
        if (first := kept.get(tag)) is not None:
            print(
                "::warning title=Duplicate Archive::"
                f"{archive.name} targets {tag} like {first.name}; keeping {first.name}",
                file=sys.stderr,
            )
            continue
        kept[tag] = archive
        systems = tuple(
            system
            for system in nix_systems(os, arch, archive.goarm)
            if system not in claimed
        )
        claimed.update(systems)
        descriptors.append(
            PlatformDescriptor(
                tag=tag,
                os=os,
                arch=arch,
                systems=systems,
                url=url_for(archive),
                binaries=archive.binaries,
                wrapped_in=archive.wrapped_in,
                format=archive.format,
                archive=archive,
            )
        )
    return descriptors


def install_lines(
    binaries: typ.Iterable[str], dependencies: typ.Iterable[Dependency], os: Os
) -> list[str]:
    """Return the install script copying ``binaries`` into ``$out/bin``.

    Binaries are wrapped so the dependencies applying to ``os`` are on their
    ``PATH``.

    Examples
    --------
    >>> install_lines(["foo"], [], Os.LINUX)
    ['mkdir -p $out/bin', 'cp -vr ./foo $out/bin/foo']
    """
    names = [dep.name for dep in dependencies if dep.applies_to(os.value)]
    lines = ["mkdir -p $out/bin"]
    for binary in binaries:
        lines.append(f"cp -vr ./{binary} $out/bin/{binary}")
        if names:
            lines.append(
                f"wrapProgram $out/bin/{binary} --prefix PATH : "
                f"${{lib.makeBinPath [ {' '.join(names)} ]}}"
            )
    return lines


def install_branches(
    matrix: PlatformMatrix, dependencies: typ.Sequence[Dependency]
) -> list[InstallBranch]:
    """Return the install script of every platform as conditional branches.

    Each OS gets one branch. An OS is split into per-system branches when its
    variants install differently or when a universal archive serves alongside
    per-architecture ones. A single unconditional branch is returned when
    every platform installs the same way.
    """
    branches: list[InstallBranch] = []
    split_any = False
    for os, descriptors in matrix.by_os().items():
        serving = [item for item in descriptors if item.systems]
        if not serving:
            continue
        scripts = {
            item.tag: tuple(install_lines(item.binaries, dependencies, os))
            for item in serving
        }
        mixed = any(item.is_universal for item in serving) and not all(
            item.is_universal for item in serving
        )
        if len(set(scripts.values())) == 1 and not mixed:
            branches.append(InstallBranch(_OS_CONDITIONS[os], scripts[serving[0].tag]))
            continue
        split_any = True
        branches.extend(
            InstallBranch(
                " || ".join(f'system == "{system}"' for system in item.systems),
                scripts[item.tag],
            )
            for item in serving
        )
    if not split_any and len({branch.lines for branch in branches}) == 1:
        return [InstallBranch("", branches[0].lines)]
    return branches
