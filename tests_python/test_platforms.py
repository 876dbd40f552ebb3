"""Tests for the OS and architecture vocabulary."""

from __future__ import annotations

import pytest

from nixpkg_publish.platforms import Arch, Os, nix_systems, platform_tag


@pytest.mark.parametrize(
    ("goos", "expected"),
    [("linux", Os.LINUX), ("darwin", Os.DARWIN), ("windows", Os.OTHER), ("", Os.OTHER)],
)
def test_os_parse(goos: str, expected: Os) -> None:
    """Unknown operating systems collapse to ``OTHER``."""
    assert Os.parse(goos) is expected


def test_arch_parse_rejects_unknown() -> None:
    assert Arch.parse("386") is Arch.X86
    assert Arch.parse("all") is Arch.UNIVERSAL
    assert Arch.parse("riscv64") is None


@pytest.mark.parametrize(
    ("os", "arch", "goarm", "goamd64", "expected"),
    [
        (Os.LINUX, Arch.ARM, "6", "", "linux_armv6"),
        (Os.LINUX, Arch.ARM, "7", "", "linux_armv7"),
        (Os.DARWIN, Arch.AMD64, "", "v1", "darwin_amd64v1"),
        (Os.LINUX, Arch.ARM64, "", "", "linux_arm64"),
        (Os.DARWIN, Arch.UNIVERSAL, "", "", "darwin_all"),
    ],
)
def test_platform_tag(os: Os, arch: Arch, goarm: str, goamd64: str, expected: str) -> None:
    assert platform_tag(os, arch, goarm, goamd64) == expected


@pytest.mark.parametrize(
    ("os", "arch", "goarm", "expected"),
    [
        (Os.LINUX, Arch.AMD64, "", ("x86_64-linux",)),
        (Os.LINUX, Arch.ARM64, "", ("aarch64-linux",)),
        (Os.LINUX, Arch.X86, "", ("i686-linux",)),
        (Os.LINUX, Arch.ARM, "6", ("armv6l-linux",)),
        (Os.LINUX, Arch.ARM, "7", ("armv7l-linux",)),
        (Os.LINUX, Arch.ARM, "5", ()),
        (Os.LINUX, Arch.UNIVERSAL, "", ("x86_64-linux", "aarch64-linux")),
        (Os.DARWIN, Arch.AMD64, "", ("x86_64-darwin",)),
        (Os.DARWIN, Arch.ARM64, "", ("aarch64-darwin",)),
        (Os.DARWIN, Arch.UNIVERSAL, "", ("x86_64-darwin", "aarch64-darwin")),
        (Os.DARWIN, Arch.X86, "", ()),
        (Os.OTHER, Arch.AMD64, "", ()),
    ],
)
def test_nix_systems(os: Os, arch: Arch, goarm: str, expected: tuple[str, ...]) -> None:
    """Each platform maps onto the Nix system doubles it can serve."""
    assert nix_systems(os, arch, goarm) == expected
