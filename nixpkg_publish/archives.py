"""Release archives produced by the build and their on-disk index."""

from __future__ import annotations

import dataclasses
import json
import typing as typ
from pathlib import Path

from .errors import ConfigError

__all__ = [
    "EXTRA_BINARIES",
    "EXTRA_FORMAT",
    "EXTRA_ID",
    "EXTRA_REPLACES",
    "EXTRA_WRAPPED_IN",
    "UPLOADABLE_ARCHIVE",
    "ReleaseArchive",
    "load_archives",
]

UPLOADABLE_ARCHIVE = "Archive"

EXTRA_ID = "ID"
EXTRA_FORMAT = "Format"
EXTRA_BINARIES = "Binaries"
EXTRA_WRAPPED_IN = "WrappedIn"
EXTRA_REPLACES = "Replaces"


@dataclasses.dataclass(slots=True, frozen=True)
class ReleaseArchive:
    """A single build output as recorded in ``artifacts.json``.

    Parameters
    ----------
    name : str
        File name of the archive, used when rendering download URLs.
    path : Path
        Location of the archive on disk.
    goos, goarch : str
        Target operating system and CPU architecture.
    goarm : str, default=""
        ARM revision (``"6"``, ``"7"``) for ``arm`` archives.
    goamd64 : str, default=""
        AMD64 micro-architecture level (``"v1"`` .. ``"v4"``).
    type : str, default="Archive"
        Artefact classification; only ``"Archive"`` entries are packaged.
    extra : Mapping[str, Any]
        Side table carrying the artefact ID, archive format, contained
        binaries, wrapping directory and the universal ``Replaces`` flag.

    Examples
    --------
    >>> archive = ReleaseArchive(
    ...     name="foo_linux_arm64.tar.gz",
    ...     path=Path("dist/foo_linux_arm64.tar.gz"),
    ...     goos="linux",
    ...     goarch="arm64",
    ...     extra={"ID": "foo", "Binaries": ["foo"]},
    ... )
    >>> archive.artifact_id, archive.binaries
    ('foo', ('foo',))
    """

    name: str
    path: Path
    goos: str
    goarch: str
    goarm: str = ""
    goamd64: str = ""
    type: str = UPLOADABLE_ARCHIVE
    extra: typ.Mapping[str, typ.Any] = dataclasses.field(default_factory=dict)

    @property
    def artifact_id(self) -> str:
        return str(self.extra.get(EXTRA_ID) or "")

    @property
    def format(self) -> str:
        return str(self.extra.get(EXTRA_FORMAT) or "")

    @property
    def binaries(self) -> tuple[str, ...]:
        return tuple(self.extra.get(EXTRA_BINARIES) or ())

    @property
    def wrapped_in(self) -> str:
        return str(self.extra.get(EXTRA_WRAPPED_IN) or "")

    @property
    def replaces(self) -> bool:
        return self.extra.get(EXTRA_REPLACES) is True

    @property
    def is_uploadable_archive(self) -> bool:
        return self.type == UPLOADABLE_ARCHIVE


def load_archives(path: Path) -> list[ReleaseArchive]:
    """Load the archives listed in a goreleaser-style ``artifacts.json``.

    Parameters
    ----------
    path : Path
        JSON file holding a list of artefact objects.

    Returns
    -------
    list[ReleaseArchive]
        Every entry of the file, in file order. Filtering by classification
        happens when the platform matrix is built.

    Raises
    ------
    FileNotFoundError
        Raised when ``path`` does not exist.
    ConfigError
        Raised when the file is not a list of artefact objects.
    """
    path = Path(path)
    if not path.is_file():
        message = f"Artifacts file not found at {path}"
        raise FileNotFoundError(message)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        message = f"Invalid JSON in {path}: {exc}"
        raise ConfigError(message, "artifacts") from exc
    if not isinstance(data, list):
        message = f"Expected a list of artifacts in {path}"
        raise ConfigError(message, "artifacts")
    return [_make_archive(entry, index, path) for index, entry in enumerate(data, 1)]


def _make_archive(entry: object, index: int, path: Path) -> ReleaseArchive:
    if not isinstance(entry, dict):
        message = f"Artifact entries must be objects (entry #{index} in {path})"
        raise ConfigError(message, "artifacts")
    if missing := sorted(key for key in ("name", "path") if not entry.get(key)):
        joined = ", ".join(missing)
        message = f"Missing artifact key(s) {joined} (entry #{index} in {path})"
        raise ConfigError(message, "artifacts")
    extra = entry.get("extra", {})
    if extra is None:
        extra = {}
    if not isinstance(extra, dict):
        message = f"Artifact 'extra' must be an object (entry #{index} in {path})"
        raise ConfigError(message, "artifacts")
    return ReleaseArchive(
        name=entry["name"],
        path=Path(entry["path"]),
        goos=entry.get("goos", ""),
        goarch=entry.get("goarch", ""),
        goarm=entry.get("goarm", ""),
        goamd64=entry.get("goamd64", ""),
        type=entry.get("type", ""),
        extra=extra,
    )
