"""Helper utilities shared by the nixpkg test suite."""

from __future__ import annotations

import typing as typ
from pathlib import Path

from nixpkg_publish.archives import ReleaseArchive
from nixpkg_publish.config import CommitAuthor

__all__ = [
    "DOWNLOAD_URL",
    "ALL_CHECKSUMS",
    "FOO_CHECKSUMS",
    "FakePrefetcher",
    "RecordingClient",
    "WriteOnlyClient",
    "make_archive",
    "release_archives",
]

DOWNLOAD_URL = "https://dummyhost/download/v1.2.1/{}"

FOO_CHECKSUMS = {
    DOWNLOAD_URL.format("foo_linux_amd64v1.tar.gz"): "sha1",
    DOWNLOAD_URL.format("foo_linux_arm64.tar.gz"): "sha2",
    DOWNLOAD_URL.format("foo_darwin_amd64v1.tar.gz"): "sha3",
    DOWNLOAD_URL.format("foo_darwin_arm64.tar.gz"): "sha4",
    DOWNLOAD_URL.format("foo_linux_386.tar.gz"): "sha5",
    DOWNLOAD_URL.format("foo_linux_arm6.tar.gz"): "sha6",
    DOWNLOAD_URL.format("foo_linux_arm7.tar.gz"): "sha7",
}

ALL_CHECKSUMS = FOO_CHECKSUMS | {DOWNLOAD_URL.format("foo_darwin_all.tar.gz"): "sha8"}


def make_archive(
    artifact_id: str,
    goos: str,
    goarch: str,
    *,
    goamd64: str = "",
    goarm: str = "",
    root: Path = Path("dist"),
    **extra: typ.Any,
) -> ReleaseArchive:
    """Return an uploadable ``tar.gz`` archive containing the ``foo`` binary."""
    name = f"foo_{goos}_{goarch}{goamd64}{goarm}.tar.gz"
    return ReleaseArchive(
        name=name,
        path=root / name,
        goos=goos,
        goarch=goarch,
        goarm=goarm,
        goamd64=goamd64,
        extra={
            "ID": artifact_id,
            "Format": "tar.gz",
            "Binaries": ["foo"],
            "WrappedIn": "",
        }
        | extra,
    )


def release_archives(root: Path = Path("dist")) -> list[ReleaseArchive]:
    """Return the archives of a release built for several IDs and platforms."""
    archives = [
        make_archive("unibin-replaces", "darwin", "all", root=root, Replaces=True),
        make_archive("unibin", "darwin", "all", root=root),
    ]
    for goos in ("linux", "darwin", "windows"):
        for goarch in ("amd64", "arm64", "386", "arm"):
            if goos + goarch == "darwin386":
                continue
            if goarch == "amd64":
                for artifact_id in ("partial", "foo", "unibin", "unibin-replaces"):
                    archives.append(
                        make_archive(artifact_id, goos, goarch, goamd64="v1", root=root)
                    )
                archives.append(
                    make_archive(
                        "wrapped-in-dir",
                        goos,
                        goarch,
                        goamd64="v1",
                        root=root,
                        WrappedIn="./foo",
                    )
                )
            if goarch == "arm":
                if goos != "linux":
                    continue
                archives.append(make_archive("foo", goos, goarch, goarm="6", root=root))
                archives.append(make_archive("foo", goos, goarch, goarm="7", root=root))
                continue
            for artifact_id in ("foo", "unibin", "unibin-replaces"):
                archives.append(make_archive(artifact_id, goos, goarch, root=root))
            archives.append(
                make_archive("wrapped-in-dir", goos, goarch, root=root, WrappedIn="./foo")
            )
    return archives


class FakePrefetcher:
    """Prefetcher answering from a fixed URL to checksum mapping."""

    def __init__(self, checksums: typ.Mapping[str, str]) -> None:
        self.checksums = dict(checksums)
        self.calls: list[str] = []

    def prefetch(self, url: str) -> str:
        self.calls.append(url)
        return self.checksums[url]

    def available(self) -> bool:
        return True


class WriteOnlyClient:
    """Repository client without pull request support."""

    def __init__(self) -> None:
        self.created_file = False
        self.repo = None
        self.author: CommitAuthor | None = None
        self.content = ""
        self.path = ""
        self.message = ""

    def create_file(
        self,
        repo: typ.Any,
        author: CommitAuthor,
        content: str,
        path: str,
        message: str,
    ) -> None:
        self.created_file = True
        self.repo = repo
        self.author = author
        self.content = content
        self.path = path
        self.message = message


class RecordingClient(WriteOnlyClient):
    """Repository client recording files and pull requests."""

    def __init__(self) -> None:
        super().__init__()
        self.opened_pull_request = False
        self.pull_request: dict[str, typ.Any] = {}

    def open_pull_request(
        self, base: typ.Any, head: typ.Any, title: str, *, draft: bool = False
    ) -> None:
        self.opened_pull_request = True
        self.pull_request = {"base": base, "head": head, "title": title, "draft": draft}
